"""
Domain models for persisted social media connections.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from social_publisher.core.exceptions import CryptoError
from social_publisher.models.secret import EncryptedSecret, SecretCipher


class Platform(str, Enum):
    """Platforms with a publishing adapter."""

    FACEBOOK = "facebook"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    PINTEREST = "pinterest"
    TELEGRAM = "telegram"

    @classmethod
    def parse(cls, value: "str | Platform") -> "Platform":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class Owner(BaseModel):
    """Host-application entity on whose behalf connections exist."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1, description="Owner kind, e.g. user or company.")
    id: str = Field(..., min_length=1, description="Stable identifier of the owner.")

    def __str__(self) -> str:
        return f"{self.type}#{self.id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SocialMediaConnection(BaseModel):
    """One OAuth grant binding an owner to a platform account."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[int] = None
    owner: Owner
    platform: Platform
    connection_type: str = "profile"
    platform_user_id: Optional[str] = None
    platform_username: Optional[str] = None
    access_token: Optional[EncryptedSecret] = Field(None, exclude=True, repr=False)
    refresh_token: Optional[EncryptedSecret] = Field(None, exclude=True, repr=False)
    token_secret: Optional[EncryptedSecret] = Field(None, exclude=True, repr=False)
    expires_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    _cipher: Optional[SecretCipher] = PrivateAttr(default=None)

    def bind_cipher(self, cipher: SecretCipher) -> "SocialMediaConnection":
        """Attach the cipher used by the decryption accessors."""
        self._cipher = cipher
        return self

    def _open(self, secret: Optional[EncryptedSecret]) -> Optional[str]:
        if secret is None:
            return None
        if self._cipher is None:
            raise CryptoError(
                "Connection has no cipher bound; load it through the connection store.",
                platform=self.platform.value,
            )
        return secret.open(self._cipher)

    def get_decrypted_access_token(self) -> Optional[str]:
        return self._open(self.access_token)

    def get_decrypted_refresh_token(self) -> Optional[str]:
        return self._open(self.refresh_token)

    def get_decrypted_token_secret(self) -> Optional[str]:
        return self._open(self.token_secret)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True only when an expiry is recorded and already passed."""
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < (now or _utcnow())

    def meta(self, key: str, default: Any = None) -> Any:
        value = self.metadata.get(key)
        return default if value in (None, "") else value


__all__ = ["Owner", "Platform", "SocialMediaConnection"]
