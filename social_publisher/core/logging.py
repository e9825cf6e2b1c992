"""
Logging utilities for the FastAPI application and the publishing core.

Provides a consistent logging format and a component logger that carries the
platform name and honours the ``SOCIAL_MEDIA_LOGGING`` toggle.
"""

import logging
import sys
from typing import Any, MutableMapping, Optional, Tuple


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


class ComponentLogger(logging.LoggerAdapter):
    """Logger adapter that prefixes records with the platform and can be muted."""

    def __init__(
        self,
        logger: logging.Logger,
        *,
        platform: Optional[str] = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(logger, {"platform": platform} if platform else {})
        self.enabled = enabled

    def isEnabledFor(self, level: int) -> bool:  # noqa: N802 - logging API name
        return self.enabled and self.logger.isEnabledFor(level)

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        platform = extra.get("platform")
        if platform:
            msg = f"[{platform}] {msg}"
        return msg, kwargs


def get_component_logger(
    name: str, *, platform: Optional[str] = None, enabled: bool = True
) -> ComponentLogger:
    """Return a component logger bound to ``name`` and an optional platform."""
    return ComponentLogger(logging.getLogger(name), platform=platform, enabled=enabled)


__all__ = ["ComponentLogger", "configure_logging", "get_component_logger"]
