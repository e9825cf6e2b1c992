"""HTTP utilities providing retry/backoff semantics and provider error parsing."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from social_publisher.core.exceptions import SocialMediaException

logger = logging.getLogger(__name__)

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 1.0) -> None:
        if attempts < 1:
            raise ValueError("Retry attempts must be at least 1.")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given 1-based failed attempt."""
        return self.backoff_seconds * (2 ** (attempt - 1))


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def extract_error_message(response: httpx.Response) -> str:
    """Pull the most specific error description out of a provider response."""
    body = _safe_json(response)
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
        if error:
            return error if isinstance(error, str) else json.dumps(error)
        if body.get("detail"):
            return str(body["detail"])
        if body.get("description"):
            return str(body["description"])
    return f"HTTP {response.status_code}: {response.text}"


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    log: Optional[LoggerLike] = None,
    platform: Optional[str] = None,
    **kwargs,
) -> httpx.Response:
    """Invoke ``func`` until it yields a 2xx response or attempts run out."""
    config = retry_config or RetryConfig()
    log = log or logger
    last_message = "no attempt was made"
    last_status: Optional[int] = None
    last_body: Any = None

    for attempt in range(1, config.attempts + 1):
        try:
            response = await func(*args, **kwargs)
        except httpx.HTTPError as exc:
            last_message = str(exc) or exc.__class__.__name__
            last_status = None
            last_body = None
        else:
            if response.is_success:
                log.debug(
                    "Request attempt %s/%s succeeded with HTTP %s",
                    attempt,
                    config.attempts,
                    response.status_code,
                )
                return response
            last_message = extract_error_message(response)
            last_status = response.status_code
            last_body = _safe_json(response) or response.text

        log.warning(
            "Request attempt %s/%s failed: %s", attempt, config.attempts, last_message
        )
        if attempt < config.attempts:
            await asyncio.sleep(config.delay_for(attempt))

    raise SocialMediaException(
        f"API request failed: {last_message}",
        platform=platform,
        status_code=last_status,
        raw=last_body,
    )


__all__ = ["RetryConfig", "extract_error_message", "request_with_retry"]
