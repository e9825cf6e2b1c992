"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_callback_handler,
    get_connection_store,
    get_oauth_state_encoder,
    get_social_media_manager,
    get_token_cipher_service,
    get_token_service,
    get_verifier_store,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_callback_handler",
    "get_connection_store",
    "get_oauth_state_encoder",
    "get_social_media_manager",
    "get_token_cipher_service",
    "get_token_service",
    "get_verifier_store",
]
