"""Public schema exports."""

from .auth import (
    AuthorizationResponse,
    ConnectionSummary,
    OAuthCallbackPayload,
    OAuthCallbackResponse,
)

__all__ = [
    "AuthorizationResponse",
    "ConnectionSummary",
    "OAuthCallbackPayload",
    "OAuthCallbackResponse",
]
