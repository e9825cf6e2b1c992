"""
Multi-platform publishing with per-platform failure isolation.

One failing platform never aborts the others; every target ends up in either
``AggregateReport.results`` or ``AggregateReport.errors``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import httpx

from social_publisher.clients import (
    PLATFORM_REGISTRY,
    PlatformEntry,
    PostResult,
    Publisher,
    TelegramClient,
    get_platform_entry,
)
from social_publisher.core.config import AppSettings
from social_publisher.core.exceptions import SocialMediaException
from social_publisher.core.logging import get_component_logger
from social_publisher.models.connection import Owner, Platform, SocialMediaConnection
from social_publisher.services.connection_store import ConnectionStore
from social_publisher.services.token_refresh import ConnectionTokenService
from social_publisher.utils.http import LoggerLike


@dataclass(slots=True)
class AggregateReport:
    """Outcome of one fan-out publish."""

    results: Dict[str, PostResult] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    total_platforms: int = 0

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def all_succeeded(self) -> bool:
        return self.total_platforms > 0 and self.error_count == 0

    @property
    def partially_succeeded(self) -> bool:
        return self.success_count > 0 and self.error_count > 0

    @property
    def all_failed(self) -> bool:
        return self.total_platforms > 0 and self.success_count == 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "results": {name: result.as_dict() for name, result in self.results.items()},
            "errors": dict(self.errors),
            "success_count": self.success_count,
            "error_count": self.error_count,
            "total_platforms": self.total_platforms,
        }


def _normalize_targets(platforms: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(str(name).strip().lower() for name in platforms))


class SocialMediaManager:
    """Resolves an owner's connections into publishers and fans content out."""

    def __init__(
        self,
        *,
        store: ConnectionStore,
        settings: AppSettings,
        token_service: Optional[ConnectionTokenService] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._token_service = token_service
        self._transport = transport
        self._logger = logger or get_component_logger(
            __name__, enabled=settings.publisher.enable_logging
        )

    def _telegram_from_settings(self) -> TelegramClient:
        return TelegramClient.from_settings(self._settings, transport=self._transport)

    def _build(self, entry: PlatformEntry, connection: SocialMediaConnection) -> Publisher:
        return entry.publisher.for_connection(
            connection,
            publisher_settings=self._settings.publisher,
            transport=self._transport,
            **entry.publisher.settings_options(self._settings),
        )

    def platform(
        self,
        name: str,
        owner: Optional[Owner] = None,
        connection_type: Optional[str] = None,
    ) -> Publisher:
        """Return a ready publisher for ``name`` using the owner's stored grant.

        Telegram falls back to the configured bot when no connection exists.
        """
        entry = get_platform_entry(name)
        platform_name = entry.platform.value
        if owner is None:
            if not entry.requires_connection:
                return self._telegram_from_settings()
            raise SocialMediaException(
                f"An owner is required to resolve a {platform_name} connection.",
                platform=platform_name,
            )

        connection = self._store.find_active(
            owner, entry.platform, connection_type or entry.default_connection_type
        )
        if connection is None:
            if not entry.requires_connection:
                return self._telegram_from_settings()
            raise SocialMediaException(
                f"No active {platform_name} connection found for owner {owner}.",
                platform=platform_name,
            )
        return self._build(entry, connection)

    async def _resolve(self, name: str, owner: Owner) -> Publisher:
        entry = get_platform_entry(name)
        connection = self._store.find_active(
            owner, entry.platform, entry.default_connection_type
        )
        if connection is not None and self._token_service is not None:
            await self._token_service.ensure_fresh(connection)
        return self.platform(name, owner)

    async def _dispatch(
        self, owner: Owner, platforms: Iterable[str], operation: str, *args: Any
    ) -> AggregateReport:
        targets = _normalize_targets(platforms)
        report = AggregateReport(total_platforms=len(targets))
        for name in targets:
            try:
                publisher = await self._resolve(name, owner)
                result = await getattr(publisher, operation)(*args)
            except Exception as exc:  # noqa: BLE001 - isolate each platform
                message = exc.message if isinstance(exc, SocialMediaException) else str(exc)
                report.errors[name] = message
                self._logger.warning("%s failed on %s: %s", operation, name, message)
            else:
                report.results[name] = result

        self._logger.info(
            "%s for %s finished: %d succeeded, %d failed",
            operation,
            owner,
            report.success_count,
            report.error_count,
        )
        return report

    async def share_text(
        self, owner: Owner, platforms: Iterable[str], caption: str
    ) -> AggregateReport:
        return await self._dispatch(owner, platforms, "share_text", caption)

    async def share_url(
        self, owner: Owner, platforms: Iterable[str], caption: str, url: str
    ) -> AggregateReport:
        return await self._dispatch(owner, platforms, "share_url", caption, url)

    async def share_image(
        self, owner: Owner, platforms: Iterable[str], caption: str, image_url: str
    ) -> AggregateReport:
        return await self._dispatch(owner, platforms, "share_image", caption, image_url)

    async def share_video(
        self, owner: Owner, platforms: Iterable[str], caption: str, video_url: str
    ) -> AggregateReport:
        return await self._dispatch(owner, platforms, "share_video", caption, video_url)

    async def share_text_to_all(self, owner: Owner, caption: str) -> AggregateReport:
        return await self.share_text(owner, self.get_available_platforms(owner), caption)

    async def share_url_to_all(self, owner: Owner, caption: str, url: str) -> AggregateReport:
        return await self.share_url(owner, self.get_available_platforms(owner), caption, url)

    async def share_image_to_all(
        self, owner: Owner, caption: str, image_url: str
    ) -> AggregateReport:
        return await self.share_image(
            owner, self.get_available_platforms(owner), caption, image_url
        )

    async def share_video_to_all(
        self, owner: Owner, caption: str, video_url: str
    ) -> AggregateReport:
        return await self.share_video(
            owner, self.get_available_platforms(owner), caption, video_url
        )

    def get_available_platforms(self, owner: Optional[Owner] = None) -> List[str]:
        """Platforms that can publish right now.

        Without an owner this is every registered platform. With one it is the
        platforms holding an active connection, plus Telegram when a bot is
        configured.
        """
        if owner is None:
            return [platform.value for platform in PLATFORM_REGISTRY]

        connected = {
            connection.platform
            for connection in self._store.list_for_owner(owner)
            if connection.connection_type
            == PLATFORM_REGISTRY[connection.platform].default_connection_type
        }
        telegram = self._settings.telegram
        if telegram.bot_token and telegram.chat_id:
            connected.add(Platform.TELEGRAM)
        return [platform.value for platform in PLATFORM_REGISTRY if platform in connected]

    def is_platform_available(self, name: str, owner: Optional[Owner] = None) -> bool:
        try:
            platform = Platform.parse(name)
        except ValueError:
            return False
        return platform.value in self.get_available_platforms(owner)


__all__ = ["AggregateReport", "SocialMediaManager"]
