"""Exception hierarchy shared by adapters, the store and the orchestration layer."""

from __future__ import annotations

from typing import Any, Optional


class SocialMediaException(Exception):
    """Generic provider or transport failure raised by platform adapters."""

    def __init__(
        self,
        message: str,
        *,
        platform: Optional[str] = None,
        status_code: Optional[int] = None,
        raw: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.status_code = status_code
        self.raw = raw


class ConfigurationError(SocialMediaException):
    """Required client credentials or bot tokens are missing."""


class ValidationError(SocialMediaException):
    """Content rejected locally before any request is sent."""


class CryptoError(SocialMediaException):
    """Stored secret material could not be decrypted."""


class NotAuthenticatedError(SocialMediaException):
    """An OAuth callback arrived without a resolvable owner."""


class ConnectionMismatchError(SocialMediaException):
    """A connection record was handed to an adapter for another platform."""


class UnsupportedOperationError(SocialMediaException):
    """The platform has no native primitive for the requested share."""


__all__ = [
    "ConfigurationError",
    "ConnectionMismatchError",
    "CryptoError",
    "NotAuthenticatedError",
    "SocialMediaException",
    "UnsupportedOperationError",
    "ValidationError",
]
