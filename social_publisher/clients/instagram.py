"""
Instagram Graph API adapter.

Every post is two-phase: create a media container, then publish its creation
id. Instagram has no text-only primitive, so text and link shares become a
story whose image is a rendered placeholder carrying the text.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from social_publisher.clients.base import PostResult, Publisher, TokenResult
from social_publisher.clients.facebook import (
    DEFAULT_API_VERSION,
    GRAPH_BASE_URL,
    FacebookOAuthClient,
)
from social_publisher.core.exceptions import SocialMediaException, ValidationError
from social_publisher.models.connection import Platform, SocialMediaConnection
from social_publisher.utils.http import LoggerLike

if TYPE_CHECKING:
    from social_publisher.core.config import AppSettings

DEFAULT_STORY_IMAGE_BASE_URL = "https://placehold.co/1080x1920/000000/FFFFFF/png"
MIN_CAROUSEL_ITEMS = 2
MAX_CAROUSEL_ITEMS = 10


class InstagramOAuthClient(FacebookOAuthClient):
    """Instagram Business login through the Facebook dialog."""

    PLATFORM = Platform.INSTAGRAM
    DEFAULT_SCOPES = (
        "instagram_basic",
        "instagram_content_publish",
        "pages_show_list",
        "pages_read_engagement",
    )

    @classmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> "InstagramOAuthClient":
        return cls(
            client_id=settings.instagram.client_id or settings.facebook.client_id,
            client_secret=settings.instagram.client_secret or settings.facebook.client_secret,
            api_version=settings.facebook.api_version,
            publisher_settings=settings.publisher,
            transport=transport,
            logger=logger,
        )

    async def _enrich(self, token: TokenResult) -> TokenResult:
        """Walk the user's Pages until one exposes a linked business account."""
        pages = await self._fetch_pages(token.access_token)
        for page in pages:
            details = await self._request_json(
                "GET",
                f"{self.graph_url}/{page['id']}",
                params={
                    "fields": "instagram_business_account{id,username}",
                    "access_token": page.get("access_token") or token.access_token,
                },
            )
            account = details.get("instagram_business_account")
            if account and account.get("id"):
                token.connection_type = "profile"
                token.platform_user_id = str(account["id"])
                token.platform_username = account.get("username")
                token.metadata = {
                    "instagram_account_id": str(account["id"]),
                    "username": account.get("username"),
                    "page_id": str(page["id"]),
                }
                return token

        raise SocialMediaException(
            "No Instagram Business Account found. Please ensure your Facebook Page "
            "is connected to an Instagram Business Account.",
            platform=self.platform,
        )


class InstagramClient(Publisher):
    """Publishes to an Instagram Business Account."""

    PLATFORM = Platform.INSTAGRAM
    MAX_CAPTION_LENGTH = 2200

    def __init__(
        self,
        *,
        access_token: str,
        account_id: str,
        api_version: str = DEFAULT_API_VERSION,
        story_image_base_url: str = DEFAULT_STORY_IMAGE_BASE_URL,
        poll_interval: float = 5.0,
        max_polls: int = 60,
        **kwargs: Any,
    ) -> None:
        super().__init__(access_token=access_token, **kwargs)
        self._account_id = account_id
        self._api_version = api_version
        self._story_image_base_url = story_image_base_url
        self._poll_interval = poll_interval
        self._max_polls = max_polls

    @classmethod
    def settings_options(cls, settings: "AppSettings") -> Dict[str, Any]:
        return {
            "api_version": settings.facebook.api_version,
            "story_image_base_url": settings.instagram.story_image_base_url,
        }

    @classmethod
    def _from_connection(
        cls, connection: SocialMediaConnection, **kwargs: Any
    ) -> "InstagramClient":
        account_id = connection.platform_user_id or connection.meta("instagram_account_id")
        if not account_id:
            raise SocialMediaException(
                "instagram connection is missing instagram_account_id.",
                platform=cls.PLATFORM.value,
            )
        return cls(
            account_id=str(account_id),
            **kwargs,
        )

    @property
    def graph_url(self) -> str:
        return f"{GRAPH_BASE_URL}/{self._api_version}"

    async def _create_container(self, fields: Dict[str, Any]) -> str:
        payload = await self._request_json(
            "POST",
            f"{self.graph_url}/{self._account_id}/media",
            data={**fields, "access_token": self._access_token},
        )
        container_id = payload.get("id")
        if not container_id:
            raise SocialMediaException(
                "Instagram did not return a media container id.",
                platform=self.platform,
                raw=payload,
            )
        return str(container_id)

    async def _wait_until_ready(self, container_id: str) -> None:
        """Poll a video container until Instagram finishes processing it."""
        for _ in range(self._max_polls):
            payload = await self._request_json(
                "GET",
                f"{self.graph_url}/{container_id}",
                params={"fields": "status_code", "access_token": self._access_token},
            )
            status = payload.get("status_code")
            if status == "FINISHED":
                return
            if status in ("ERROR", "EXPIRED"):
                raise SocialMediaException(
                    f"Instagram media processing failed with status {status}.",
                    platform=self.platform,
                    raw=payload,
                )
            await asyncio.sleep(self._poll_interval)
        raise SocialMediaException(
            "Timed out waiting for Instagram to process the media.", platform=self.platform
        )

    async def _publish(self, container_id: str) -> PostResult:
        payload = await self._request_json(
            "POST",
            f"{self.graph_url}/{self._account_id}/media_publish",
            data={"creation_id": container_id, "access_token": self._access_token},
        )
        return self._result(payload.get("id"), payload)

    def story_image_url(self, text: str) -> str:
        return f"{self._story_image_base_url}?text={quote(text)}"

    async def share_story(self, caption: str, url: Optional[str] = None) -> PostResult:
        text = self._caption(caption)
        if url:
            text = f"{text}\n\n{self._url(url)}"
        container_id = await self._create_container(
            {"media_type": "STORIES", "image_url": self.story_image_url(text)}
        )
        return await self._publish(container_id)

    async def share_text(self, caption: str) -> PostResult:
        return await self.share_story(caption)

    async def share_url(self, caption: str, url: str) -> PostResult:
        return await self.share_story(caption, url)

    async def share_image(self, caption: str, image_url: str) -> PostResult:
        text = self._caption(caption)
        container_id = await self._create_container(
            {"image_url": self._url(image_url), "caption": text}
        )
        return await self._publish(container_id)

    async def share_video(self, caption: str, video_url: str) -> PostResult:
        text = self._caption(caption)
        container_id = await self._create_container(
            {"media_type": "REELS", "video_url": self._url(video_url), "caption": text}
        )
        await self._wait_until_ready(container_id)
        return await self._publish(container_id)

    async def share_carousel(self, caption: str, image_urls: Sequence[str]) -> PostResult:
        text = self._caption(caption)
        if not MIN_CAROUSEL_ITEMS <= len(image_urls) <= MAX_CAROUSEL_ITEMS:
            raise ValidationError(
                "Carousel must contain between 2 and 10 images.", platform=self.platform
            )
        sources = [self._url(url) for url in image_urls]
        children = [
            await self._create_container({"image_url": source, "is_carousel_item": "true"})
            for source in sources
        ]
        container_id = await self._create_container(
            {"media_type": "CAROUSEL", "children": ",".join(children), "caption": text}
        )
        return await self._publish(container_id)

    async def get_account_info(self) -> Dict[str, Any]:
        return await self._request_json(
            "GET",
            f"{self.graph_url}/{self._account_id}",
            params={
                "fields": "id,username,name,followers_count,media_count",
                "access_token": self._access_token,
            },
        )

    async def get_recent_media(self, limit: int = 10) -> List[Dict[str, Any]]:
        payload = await self._request_json(
            "GET",
            f"{self.graph_url}/{self._account_id}/media",
            params={
                "fields": "id,caption,media_type,media_url,permalink,timestamp",
                "limit": min(limit, 25),
                "access_token": self._access_token,
            },
        )
        return list(payload.get("data") or [])


__all__ = ["InstagramClient", "InstagramOAuthClient"]
