"""Service layer exports."""

from .token_cipher import TokenCipherService
from .connection_store import ConnectionStore
from .oauth_state import InvalidOAuthStateError, OAuthStateEncoder, PkceVerifierStore
from .token_refresh import ConnectionTokenService
from .dispatcher import AggregateReport, SocialMediaManager
from .oauth_callback import (
    AuthorizationStart,
    CallbackOutcome,
    CallbackState,
    OAuthCallbackHandler,
    OwnerResolver,
)

__all__ = [
    "AggregateReport",
    "AuthorizationStart",
    "CallbackOutcome",
    "CallbackState",
    "ConnectionStore",
    "ConnectionTokenService",
    "InvalidOAuthStateError",
    "OAuthCallbackHandler",
    "OAuthStateEncoder",
    "OwnerResolver",
    "PkceVerifierStore",
    "SocialMediaManager",
    "TokenCipherService",
]
