"""
YouTube Data API adapter (publishing only).

Videos go through the resumable upload protocol: a metadata POST opens an
upload session whose URL comes back in the ``Location`` header, then the
bytes are PUT to that URL. The Data API exposes no community-post endpoint,
so text, link and image shares are rejected locally.
"""

from __future__ import annotations

from typing import Any, Dict

from social_publisher.clients.base import PostResult, Publisher
from social_publisher.core.exceptions import SocialMediaException
from social_publisher.models.connection import Platform, SocialMediaConnection

API_BASE_URL = "https://www.googleapis.com/youtube/v3"
UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
MAX_TITLE_LENGTH = 100


def video_title(caption: str) -> str:
    """First caption line, without angle brackets, capped at 100 characters."""
    first_line = caption.strip().splitlines()[0] if caption.strip() else ""
    cleaned = first_line.replace("<", "").replace(">", "").strip()
    return cleaned[:MAX_TITLE_LENGTH] or "Untitled"


class YouTubeClient(Publisher):
    PLATFORM = Platform.YOUTUBE
    MAX_CAPTION_LENGTH = 5000

    def __init__(
        self,
        *,
        access_token: str,
        privacy_status: str = "public",
        category_id: str = "22",
        **kwargs: Any,
    ) -> None:
        super().__init__(access_token=access_token, **kwargs)
        self._privacy_status = privacy_status
        self._category_id = category_id

    @classmethod
    def _from_connection(
        cls, connection: SocialMediaConnection, **kwargs: Any
    ) -> "YouTubeClient":
        return cls(
            privacy_status=connection.meta("privacy_status", "public"),
            category_id=str(connection.meta("category_id", "22")),
            **kwargs,
        )

    def _auth(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def share_text(self, caption: str) -> PostResult:
        raise self._unsupported("community text posts")

    async def share_url(self, caption: str, url: str) -> PostResult:
        raise self._unsupported("community link posts")

    async def share_image(self, caption: str, image_url: str) -> PostResult:
        raise self._unsupported("community image posts")

    async def share_video(self, caption: str, video_url: str) -> PostResult:
        description = self._caption(caption)
        source = self._url(video_url)
        video = await self._download(source)

        session = await self._request(
            "POST",
            UPLOAD_URL,
            params={"uploadType": "resumable", "part": "snippet,status"},
            json={
                "snippet": {
                    "title": video_title(description),
                    "description": description,
                    "categoryId": self._category_id,
                },
                "status": {
                    "privacyStatus": self._privacy_status,
                    "selfDeclaredMadeForKids": False,
                },
            },
            headers={
                **self._auth(),
                "X-Upload-Content-Type": "video/*",
                "X-Upload-Content-Length": str(len(video)),
            },
        )
        upload_url = session.headers.get("location")
        if not upload_url:
            raise SocialMediaException(
                "YouTube did not return a resumable upload URL.", platform=self.platform
            )

        payload = await self._request_json(
            "PUT",
            upload_url,
            content=video,
            headers={**self._auth(), "Content-Type": "video/*"},
        )
        return self._result(payload.get("id"), payload)

    async def get_channel_info(self) -> Dict[str, Any]:
        payload = await self._request_json(
            "GET",
            f"{API_BASE_URL}/channels",
            params={"part": "snippet,statistics", "mine": "true"},
            headers=self._auth(),
        )
        items = payload.get("items") or []
        return items[0] if items else {}


__all__ = ["YouTubeClient", "video_title"]
