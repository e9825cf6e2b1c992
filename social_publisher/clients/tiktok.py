"""TikTok Content Posting API adapter (publishing only)."""

from __future__ import annotations

from typing import Any, Dict

from social_publisher.clients.base import PostResult, Publisher
from social_publisher.core.exceptions import SocialMediaException
from social_publisher.models.connection import Platform, SocialMediaConnection

API_BASE_URL = "https://open.tiktokapis.com/v2"
DEFAULT_PRIVACY_LEVEL = "PUBLIC_TO_EVERYONE"
MAX_PHOTO_TITLE_LENGTH = 90


class TikTokClient(Publisher):
    """Publishes videos and photo posts pulled by TikTok from public URLs."""

    PLATFORM = Platform.TIKTOK
    MAX_CAPTION_LENGTH = 2200

    def __init__(
        self,
        *,
        access_token: str,
        privacy_level: str = DEFAULT_PRIVACY_LEVEL,
        **kwargs: Any,
    ) -> None:
        super().__init__(access_token=access_token, **kwargs)
        self._privacy_level = privacy_level

    @classmethod
    def _from_connection(
        cls, connection: SocialMediaConnection, **kwargs: Any
    ) -> "TikTokClient":
        return cls(
            privacy_level=connection.meta("privacy_level", DEFAULT_PRIVACY_LEVEL),
            **kwargs,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json; charset=UTF-8",
        }

    async def _call(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = await self._request_json(
            "POST", f"{API_BASE_URL}/{path}/", json=body, headers=self._headers()
        )
        # TikTok reports failures inside a 200 envelope
        error = payload.get("error") or {}
        if error.get("code") not in (None, "ok"):
            raise SocialMediaException(
                f"API request failed: {error.get('message') or error.get('code')}",
                platform=self.platform,
                raw=payload,
            )
        return payload.get("data") or {}

    async def share_text(self, caption: str) -> PostResult:
        raise self._unsupported("text-only posts")

    async def share_url(self, caption: str, url: str) -> PostResult:
        raise self._unsupported("link posts")

    async def share_image(self, caption: str, image_url: str) -> PostResult:
        text = self._caption(caption)
        source = self._url(image_url)
        data = await self._call(
            "post/publish/content/init",
            {
                "post_info": {
                    "title": text[:MAX_PHOTO_TITLE_LENGTH],
                    "description": text,
                    "privacy_level": self._privacy_level,
                    "disable_comment": False,
                },
                "source_info": {
                    "source": "PULL_FROM_URL",
                    "photo_cover_index": 0,
                    "photo_images": [source],
                },
                "post_mode": "DIRECT_POST",
                "media_type": "PHOTO",
            },
        )
        return self._result(data.get("publish_id"), data)

    async def share_video(self, caption: str, video_url: str) -> PostResult:
        text = self._caption(caption)
        source = self._url(video_url)
        data = await self._call(
            "post/publish/video/init",
            {
                "post_info": {
                    "title": text,
                    "privacy_level": self._privacy_level,
                    "disable_comment": False,
                    "disable_duet": False,
                    "disable_stitch": False,
                },
                "source_info": {"source": "PULL_FROM_URL", "video_url": source},
            },
        )
        return self._result(data.get("publish_id"), data)

    async def get_publish_status(self, publish_id: str) -> Dict[str, Any]:
        return await self._call("post/publish/status/fetch", {"publish_id": publish_id})

    async def get_creator_info(self) -> Dict[str, Any]:
        return await self._call("post/publish/creator_info/query", {})


__all__ = ["TikTokClient"]
