"""Pinterest API v5 adapter (publishing only)."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from social_publisher.clients.base import PostResult, Publisher
from social_publisher.core.exceptions import SocialMediaException
from social_publisher.models.connection import Platform, SocialMediaConnection

API_BASE_URL = "https://api.pinterest.com/v5"
MAX_TITLE_LENGTH = 100
DEFAULT_PIN_TITLE = "Shared Pin"


def pin_title(note: str) -> str:
    """Derive a pin title from the first line of the note."""
    lines = note.strip().splitlines()
    title = lines[0].strip() if lines else ""
    if not title:
        return DEFAULT_PIN_TITLE
    if len(title) > MAX_TITLE_LENGTH:
        return f"{title[:MAX_TITLE_LENGTH - 3]}..."
    return title


class PinterestClient(Publisher):
    """Creates pins on the board recorded in the connection metadata."""

    PLATFORM = Platform.PINTEREST
    MAX_CAPTION_LENGTH = 500

    def __init__(
        self,
        *,
        access_token: str,
        board_id: str,
        poll_interval: float = 5.0,
        max_polls: int = 60,
        **kwargs: Any,
    ) -> None:
        super().__init__(access_token=access_token, **kwargs)
        self._board_id = board_id
        self._poll_interval = poll_interval
        self._max_polls = max_polls

    @classmethod
    def _from_connection(
        cls, connection: SocialMediaConnection, **kwargs: Any
    ) -> "PinterestClient":
        return cls(board_id=cls._require_meta(connection, "board_id"), **kwargs)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def create_pin(
        self,
        note: str,
        media_source: Dict[str, Any],
        *,
        link: Optional[str] = None,
        board_id: Optional[str] = None,
    ) -> PostResult:
        body: Dict[str, Any] = {
            "board_id": board_id or self._board_id,
            "media_source": media_source,
            "description": note,
            "title": pin_title(note),
        }
        if link:
            body["link"] = link
        payload = await self._request_json(
            "POST", f"{API_BASE_URL}/pins", json=body, headers=self._headers()
        )
        return self._result(payload.get("id"), payload)

    async def share_text(self, caption: str) -> PostResult:
        raise self._unsupported("text-only pins")

    async def share_url(
        self, caption: str, url: str, image_url: Optional[str] = None
    ) -> PostResult:
        note = self._caption(caption)
        link = self._url(url)
        image = self._url(image_url) if image_url else link
        return await self.create_pin(
            note, {"source_type": "image_url", "url": image}, link=link
        )

    async def share_image(self, caption: str, image_url: str) -> PostResult:
        note = self._caption(caption)
        image = self._url(image_url)
        return await self.create_pin(note, {"source_type": "image_url", "url": image})

    async def share_video(self, caption: str, video_url: str) -> PostResult:
        """Register a media upload, send the bytes, wait for processing, then pin."""
        note = self._caption(caption)
        source = self._url(video_url)

        registration = await self._request_json(
            "POST", f"{API_BASE_URL}/media", json={"media_type": "video"}, headers=self._headers()
        )
        media_id = registration.get("media_id")
        upload_url = registration.get("upload_url")
        if not media_id or not upload_url:
            raise SocialMediaException(
                "Pinterest did not return a media upload target.",
                platform=self.platform,
                raw=registration,
            )

        video = await self._download(source)
        await self._request(
            "POST",
            upload_url,
            data=registration.get("upload_parameters") or {},
            files={"file": ("video.mp4", video, "video/mp4")},
        )
        await self._wait_for_media(str(media_id))
        return await self.create_pin(
            note,
            {"source_type": "video_id", "media_id": str(media_id), "cover_image_key_frame_time": 0},
        )

    async def _wait_for_media(self, media_id: str) -> None:
        for _ in range(self._max_polls):
            payload = await self._request_json(
                "GET", f"{API_BASE_URL}/media/{media_id}", headers=self._headers()
            )
            status = payload.get("status")
            if status == "succeeded":
                return
            if status == "failed":
                raise SocialMediaException(
                    "Pinterest media processing failed.", platform=self.platform, raw=payload
                )
            await asyncio.sleep(self._poll_interval)
        raise SocialMediaException(
            "Timed out waiting for Pinterest to process the media.", platform=self.platform
        )

    async def create_board(
        self, name: str, description: Optional[str] = None, privacy: str = "PUBLIC"
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": name, "privacy": privacy}
        if description:
            body["description"] = description
        return await self._request_json(
            "POST", f"{API_BASE_URL}/boards", json=body, headers=self._headers()
        )

    async def get_boards(self, page_size: int = 25) -> List[Dict[str, Any]]:
        payload = await self._request_json(
            "GET",
            f"{API_BASE_URL}/boards",
            params={"page_size": min(page_size, 250)},
            headers=self._headers(),
        )
        return list(payload.get("items") or [])

    async def get_board_pins(
        self, board_id: Optional[str] = None, page_size: int = 25
    ) -> List[Dict[str, Any]]:
        payload = await self._request_json(
            "GET",
            f"{API_BASE_URL}/boards/{board_id or self._board_id}/pins",
            params={"page_size": min(page_size, 250)},
            headers=self._headers(),
        )
        return list(payload.get("items") or [])

    async def get_pin_analytics(
        self, pin_id: str, *, days: int = 30, today: Optional[date] = None
    ) -> Dict[str, Any]:
        end = today or date.today()
        return await self._request_json(
            "GET",
            f"{API_BASE_URL}/pins/{pin_id}/analytics",
            params={
                "start_date": (end - timedelta(days=days)).isoformat(),
                "end_date": end.isoformat(),
                "metric_types": "IMPRESSION,SAVE,CLICKTHROUGH",
            },
            headers=self._headers(),
        )

    async def search_pins(self, query: str, page_size: int = 25) -> List[Dict[str, Any]]:
        payload = await self._request_json(
            "GET",
            f"{API_BASE_URL}/search/pins",
            params={"query": query, "page_size": min(page_size, 250)},
            headers=self._headers(),
        )
        return list(payload.get("items") or [])

    async def get_user_info(self) -> Dict[str, Any]:
        return await self._request_json(
            "GET", f"{API_BASE_URL}/user_account", headers=self._headers()
        )


__all__ = ["PinterestClient", "pin_title"]
