"""
Telegram Bot API adapter.

Telegram has no OAuth grant: a bot token and a chat id from configuration
stand in for a stored connection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

import httpx

from social_publisher.clients.base import PostResult, Publisher
from social_publisher.core.exceptions import ConfigurationError, SocialMediaException
from social_publisher.models.connection import Platform, SocialMediaConnection
from social_publisher.utils.http import LoggerLike

if TYPE_CHECKING:
    from social_publisher.core.config import AppSettings

TELEGRAM_API_BASE = "https://api.telegram.org/bot"
MAX_MEDIA_CAPTION_LENGTH = 1024


class TelegramClient(Publisher):
    """Sends messages, photos and videos to a single chat through a bot."""

    PLATFORM = Platform.TELEGRAM
    MAX_CAPTION_LENGTH = 4096

    def __init__(
        self,
        *,
        access_token: str,
        chat_id: str,
        api_base_url: str = TELEGRAM_API_BASE,
        **kwargs: Any,
    ) -> None:
        super().__init__(access_token=access_token, **kwargs)
        if not chat_id:
            raise ConfigurationError("Telegram chat id must be provided.", platform="telegram")
        self._chat_id = chat_id
        self._api_base_url = api_base_url.rstrip("/")

    @classmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> "TelegramClient":
        """Build the bot client from configuration; no connection record needed."""
        telegram = settings.telegram
        if not telegram.bot_token or not telegram.chat_id:
            raise ConfigurationError(
                "Telegram bot token and chat id must be configured.", platform="telegram"
            )
        return cls(
            access_token=telegram.bot_token,
            chat_id=telegram.chat_id,
            api_base_url=telegram.api_base_url,
            publisher_settings=settings.publisher,
            transport=transport,
            logger=logger,
        )

    @classmethod
    def settings_options(cls, settings: "AppSettings") -> Dict[str, Any]:
        return {"api_base_url": settings.telegram.api_base_url}

    @classmethod
    def _from_connection(
        cls, connection: SocialMediaConnection, **kwargs: Any
    ) -> "TelegramClient":
        return cls(chat_id=cls._require_meta(connection, "chat_id"), **kwargs)

    async def _call(self, method: str, body: Dict[str, Any]) -> PostResult:
        payload = await self._request_json(
            "POST",
            f"{self._api_base_url}{self._access_token}/{method}",
            json={"chat_id": self._chat_id, **body},
        )
        if not payload.get("ok"):
            raise SocialMediaException(
                f"API request failed: {payload.get('description') or 'unknown Telegram error'}",
                platform=self.platform,
                raw=payload,
            )
        result = payload.get("result") or {}
        return self._result(result.get("message_id"), payload)

    async def share_text(self, caption: str) -> PostResult:
        return await self._call("sendMessage", {"text": self._caption(caption)})

    async def share_url(self, caption: str, url: str) -> PostResult:
        link = self._url(url)
        text = self._caption(caption, max_length=self.MAX_CAPTION_LENGTH - len(link) - 2)
        return await self._call("sendMessage", {"text": f"{text}\n\n{link}"})

    async def share_image(self, caption: str, image_url: str) -> PostResult:
        text = self._caption(caption, max_length=MAX_MEDIA_CAPTION_LENGTH)
        return await self._call("sendPhoto", {"photo": self._url(image_url), "caption": text})

    async def share_video(self, caption: str, video_url: str) -> PostResult:
        text = self._caption(caption, max_length=MAX_MEDIA_CAPTION_LENGTH)
        return await self._call(
            "sendVideo",
            {"video": self._url(video_url), "caption": text, "supports_streaming": True},
        )


__all__ = ["TelegramClient"]
