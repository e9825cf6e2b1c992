"""Keeps stored grants usable: refresh or extend before expiry, revoke on disconnect."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx

from social_publisher.clients import OAuthClient, build_oauth_client, get_platform_entry
from social_publisher.core.config import AppSettings
from social_publisher.core.exceptions import CryptoError, SocialMediaException
from social_publisher.core.logging import get_component_logger
from social_publisher.models.connection import SocialMediaConnection
from social_publisher.services.connection_store import ConnectionStore
from social_publisher.utils.http import LoggerLike

_REFRESH_WINDOW = timedelta(minutes=5)


class ConnectionTokenService:
    """Refreshes grants close to expiry and tears connections down."""

    def __init__(
        self,
        *,
        store: ConnectionStore,
        settings: AppSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
        oauth_factory: Callable[..., OAuthClient] = build_oauth_client,
    ) -> None:
        self._store = store
        self._settings = settings
        self._transport = transport
        self._oauth_factory = oauth_factory
        self._logger = logger or get_component_logger(
            __name__, enabled=settings.publisher.enable_logging
        )

    def needs_refresh(
        self, connection: SocialMediaConnection, now: Optional[datetime] = None
    ) -> bool:
        if connection.expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return connection.is_expired(current + _REFRESH_WINDOW)

    async def ensure_fresh(self, connection: SocialMediaConnection) -> SocialMediaConnection:
        """Return a connection whose access token is not about to expire."""
        if not self.needs_refresh(connection):
            return connection
        if get_platform_entry(connection.platform).oauth is None:
            self._logger.warning(
                "%s connection %s is expiring but has no OAuth client to refresh it",
                connection.platform.value,
                connection.id,
            )
            return connection
        return await self.refresh(connection)

    async def refresh(self, connection: SocialMediaConnection) -> SocialMediaConnection:
        client = self._oauth_factory(
            connection.platform, self._settings, transport=self._transport
        )
        refresh_token = connection.get_decrypted_refresh_token()
        if refresh_token:
            token = await client.refresh_access_token(refresh_token)
        else:
            access_token = connection.get_decrypted_access_token()
            if not access_token:
                raise SocialMediaException(
                    "Connection has no token to refresh.",
                    platform=connection.platform.value,
                )
            token = await client.extend_access_token(access_token)

        updated = self._store.update_tokens(
            connection,
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=token.expires_at,
        )
        self._logger.info(
            "Refreshed %s connection %s (expires_at=%s)",
            connection.platform.value,
            connection.id,
            updated.expires_at,
        )
        return updated

    async def disconnect(
        self, connection: SocialMediaConnection, *, delete: bool = True
    ) -> bool:
        """Revoke the grant at the provider, then remove or deactivate the row.

        Returns whether the provider confirmed the revocation. The local record
        is removed either way.
        """
        revoked = False
        if get_platform_entry(connection.platform).oauth is not None:
            try:
                access_token = connection.get_decrypted_access_token()
            except CryptoError:
                self._logger.warning(
                    "Stored token for connection %s could not be decrypted", connection.id
                )
                access_token = None
            if access_token:
                client = self._oauth_factory(
                    connection.platform, self._settings, transport=self._transport
                )
                revoked = await client.disconnect(access_token)

        if delete:
            self._store.delete(connection)
        else:
            self._store.deactivate(connection)
        self._logger.info(
            "Disconnected %s connection %s (revoked=%s)",
            connection.platform.value,
            connection.id,
            revoked,
        )
        return revoked


__all__ = ["ConnectionTokenService"]
