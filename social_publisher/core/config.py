"""
Application configuration models and helpers.

Each platform gets its own settings group so adapters can be constructed from
exactly the credentials they need; the root ``AppSettings`` stitches them
together for the FastAPI app and the dispatcher.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_CONFIG = {
    "env_file": ".env",
    "env_file_encoding": "utf-8",
    "extra": "ignore",
    "populate_by_name": True,
}


class FacebookSettings(BaseSettings):
    """Facebook app credentials and Graph API version."""

    model_config = SettingsConfigDict(env_prefix="FACEBOOK_", **_ENV_CONFIG)

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    api_version: str = "v20.0"


class XSettings(BaseSettings):
    """Twitter/X OAuth 2.0 client."""

    model_config = SettingsConfigDict(env_prefix="X_", **_ENV_CONFIG)

    client_id: Optional[str] = None
    client_secret: Optional[str] = None


class LinkedInSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LINKEDIN_", **_ENV_CONFIG)

    client_id: Optional[str] = None
    client_secret: Optional[str] = None


class InstagramSettings(BaseSettings):
    """Instagram Graph credentials; falls back to the Facebook app when unset."""

    model_config = SettingsConfigDict(env_prefix="INSTAGRAM_", **_ENV_CONFIG)

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    story_image_base_url: str = Field(
        "https://placehold.co/1080x1920/000000/FFFFFF/png",
        description="Image renderer used for text-only story posts.",
    )


class TikTokSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TIKTOK_", **_ENV_CONFIG)

    client_id: Optional[str] = None
    client_secret: Optional[str] = None


class YouTubeSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="YOUTUBE_", **_ENV_CONFIG)

    client_id: Optional[str] = None
    client_secret: Optional[str] = None


class PinterestSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PINTEREST_", **_ENV_CONFIG)

    client_id: Optional[str] = None
    client_secret: Optional[str] = None


class TelegramSettings(BaseSettings):
    """Bot credentials; Telegram has no per-owner OAuth grant."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", **_ENV_CONFIG)

    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    api_base_url: str = "https://api.telegram.org/bot"


class PublisherSettings(BaseSettings):
    """Transport behaviour shared by every adapter."""

    model_config = SettingsConfigDict(env_prefix="SOCIAL_MEDIA_", **_ENV_CONFIG)

    enable_logging: bool = Field(True, validation_alias="SOCIAL_MEDIA_LOGGING")
    timeout: float = Field(30.0, gt=0)
    retry_attempts: int = Field(3, ge=1)
    retry_backoff: float = Field(1.0, ge=0)


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(**_ENV_CONFIG)

    token_encryption_secret: Optional[str] = Field(
        None,
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(env_prefix="OAUTH_", **_ENV_CONFIG)

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    state_secret: Optional[str] = None
    redirect_base_url: Optional[HttpUrl] = Field(
        None,
        description="Public base URL the providers redirect back to.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application and the dispatcher."""

    model_config = SettingsConfigDict(**_ENV_CONFIG)

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    database_path: str = Field(
        "data/social_media.db", validation_alias="SOCIAL_MEDIA_DB_PATH"
    )
    publisher: PublisherSettings = Field(default_factory=PublisherSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    facebook: FacebookSettings = Field(default_factory=FacebookSettings)
    x: XSettings = Field(default_factory=XSettings)
    linkedin: LinkedInSettings = Field(default_factory=LinkedInSettings)
    instagram: InstagramSettings = Field(default_factory=InstagramSettings)
    tiktok: TikTokSettings = Field(default_factory=TikTokSettings)
    youtube: YouTubeSettings = Field(default_factory=YouTubeSettings)
    pinterest: PinterestSettings = Field(default_factory=PinterestSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return str(value).strip().upper() or "INFO"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "FacebookSettings",
    "InstagramSettings",
    "LinkedInSettings",
    "OAuthSettings",
    "PinterestSettings",
    "PublisherSettings",
    "SecuritySettings",
    "TelegramSettings",
    "TikTokSettings",
    "XSettings",
    "YouTubeSettings",
    "get_settings",
]
