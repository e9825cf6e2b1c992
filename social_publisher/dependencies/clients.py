"""
Factory functions to provide shared services as FastAPI dependencies.
"""

from functools import lru_cache

from social_publisher.core.config import get_settings
from social_publisher.core.exceptions import ConfigurationError
from social_publisher.services import (
    ConnectionStore,
    ConnectionTokenService,
    OAuthCallbackHandler,
    OAuthStateEncoder,
    PkceVerifierStore,
    SocialMediaManager,
    TokenCipherService,
)


@lru_cache()
def _settings():
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    return TokenCipherService(secret=_settings().security.token_encryption_secret or "")


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Sign state with the dedicated secret, falling back to the token secret."""
    settings = _settings()
    secret = settings.oauth.state_secret or settings.security.token_encryption_secret
    if not secret:
        raise ConfigurationError("OAUTH_STATE_SECRET or TOKEN_ENCRYPTION_SECRET must be set.")
    return OAuthStateEncoder(secret_key=secret)


@lru_cache()
def get_connection_store() -> ConnectionStore:
    """Provide the shared SQLite connection store."""
    return ConnectionStore(_settings().database_path, cipher=get_token_cipher_service())


@lru_cache()
def get_verifier_store() -> PkceVerifierStore:
    """Process-local PKCE verifiers; authorize and callback must hit the same worker."""
    return PkceVerifierStore(ttl_seconds=_settings().oauth.state_ttl_seconds)


@lru_cache()
def get_token_service() -> ConnectionTokenService:
    return ConnectionTokenService(store=get_connection_store(), settings=_settings())


@lru_cache()
def get_callback_handler() -> OAuthCallbackHandler:
    return OAuthCallbackHandler(
        store=get_connection_store(),
        settings=_settings(),
        verifier_store=get_verifier_store(),
    )


def get_social_media_manager() -> SocialMediaManager:
    """Build a dispatcher bound to the shared store and token service."""
    return SocialMediaManager(
        store=get_connection_store(),
        settings=_settings(),
        token_service=get_token_service(),
    )


__all__ = [
    "get_callback_handler",
    "get_connection_store",
    "get_oauth_state_encoder",
    "get_social_media_manager",
    "get_token_cipher_service",
    "get_token_service",
    "get_verifier_store",
]
