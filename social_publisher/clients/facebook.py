"""
Facebook Graph API adapter.

OAuth tokens are short-lived on exchange and extended with the
``fb_exchange_token`` grant; Facebook has no refresh tokens, so
``refresh_access_token`` performs the same extension. Publishing targets the
first Page the user manages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import httpx

from social_publisher.clients.base import OAuthClient, PostResult, Publisher, TokenResult
from social_publisher.core.exceptions import SocialMediaException
from social_publisher.models.connection import Platform, SocialMediaConnection
from social_publisher.utils.http import LoggerLike

if TYPE_CHECKING:
    from social_publisher.core.config import AppSettings

GRAPH_BASE_URL = "https://graph.facebook.com"
DEFAULT_API_VERSION = "v20.0"


class FacebookOAuthClient(OAuthClient):
    """Facebook Login for Pages."""

    PLATFORM = Platform.FACEBOOK
    DEFAULT_SCOPES = ("pages_manage_posts", "pages_read_engagement")
    SCOPE_SEPARATOR = ","

    def __init__(
        self,
        *,
        client_id: Optional[str],
        client_secret: Optional[str] = None,
        api_version: str = DEFAULT_API_VERSION,
        **kwargs: Any,
    ) -> None:
        super().__init__(client_id=client_id, client_secret=client_secret, **kwargs)
        self._api_version = api_version

    @classmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> "FacebookOAuthClient":
        return cls(
            client_id=settings.facebook.client_id,
            client_secret=settings.facebook.client_secret,
            api_version=settings.facebook.api_version,
            publisher_settings=settings.publisher,
            transport=transport,
            logger=logger,
        )

    @property
    def authorize_url(self) -> str:
        return f"https://www.facebook.com/{self._api_version}/dialog/oauth"

    @property
    def graph_url(self) -> str:
        return f"{GRAPH_BASE_URL}/{self._api_version}"

    async def _exchange_code(
        self, code: str, redirect_uri: str, code_verifier: Optional[str]
    ) -> TokenResult:
        client_id, client_secret = self._require_credentials()
        form = {
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
            "code": code,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier
        payload = await self._request_json(
            "POST", f"{self.graph_url}/oauth/access_token", data=form, retry=False
        )
        token = self._token_result(payload)
        try:
            long_lived = await self.extend_access_token(token.access_token)
        except SocialMediaException as exc:
            self._logger.warning(
                "Long-lived token exchange failed, keeping short-lived token: %s",
                exc.message,
            )
            return token
        return long_lived

    async def _fetch_pages(self, access_token: str) -> List[Dict[str, Any]]:
        payload = await self._request_json(
            "GET",
            f"{self.graph_url}/me/accounts",
            params={"access_token": access_token, "fields": "id,name,category,access_token"},
        )
        return list(payload.get("data") or [])

    async def handle_callback(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> TokenResult:
        token = await self._exchange_code(code, redirect_uri, code_verifier)
        token = await self._enrich(token)
        self._logger.info(
            "Token exchanged for %s (%s)", token.platform_user_id, token.connection_type
        )
        return token

    async def _enrich(self, token: TokenResult) -> TokenResult:
        pages = await self._fetch_pages(token.access_token)
        if not pages:
            raise SocialMediaException(
                "No Facebook Page found. Please create a Page or grant access to one.",
                platform=self.platform,
            )
        page = pages[0]
        token.connection_type = "page"
        token.platform_user_id = str(page["id"])
        token.platform_username = page.get("name")
        token.metadata = {
            "page_id": str(page["id"]),
            "pages": [
                {"id": str(item.get("id")), "name": item.get("name"), "category": item.get("category")}
                for item in pages
            ],
        }
        return token

    async def extend_access_token(self, short_lived_token: str) -> TokenResult:
        client_id, client_secret = self._require_credentials()
        payload = await self._request_json(
            "GET",
            f"{self.graph_url}/oauth/access_token",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": client_id,
                "client_secret": client_secret,
                "fb_exchange_token": short_lived_token,
            },
        )
        self._logger.info("Access token extended")
        return self._token_result(payload)

    async def refresh_access_token(self, refresh_token: str) -> TokenResult:
        return await self.extend_access_token(refresh_token)

    async def disconnect(self, access_token: str) -> bool:
        try:
            await self._request(
                "DELETE",
                f"{self.graph_url}/me/permissions",
                params={"access_token": access_token},
                retry=False,
            )
        except SocialMediaException as exc:
            self._logger.warning("Revoking permissions failed: %s", exc.message)
            return False
        return True


class FacebookClient(Publisher):
    """Publishes to a Facebook Page feed."""

    PLATFORM = Platform.FACEBOOK
    MAX_CAPTION_LENGTH = 2000

    def __init__(
        self,
        *,
        access_token: str,
        page_id: str,
        api_version: str = DEFAULT_API_VERSION,
        page_access_token: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(access_token=access_token, **kwargs)
        self._page_id = page_id
        self._api_version = api_version
        self._page_access_token = page_access_token

    @classmethod
    def settings_options(cls, settings: "AppSettings") -> Dict[str, Any]:
        return {"api_version": settings.facebook.api_version}

    @classmethod
    def _from_connection(
        cls, connection: SocialMediaConnection, **kwargs: Any
    ) -> "FacebookClient":
        return cls(
            page_id=cls._require_meta(connection, "page_id"),
            **kwargs,
        )

    @property
    def graph_url(self) -> str:
        return f"{GRAPH_BASE_URL}/{self._api_version}"

    async def _page_token(self) -> str:
        """Resolve the Page access token; Page endpoints reject user tokens."""
        if self._page_access_token is None:
            payload = await self._request_json(
                "GET",
                f"{self.graph_url}/{self._page_id}",
                params={"fields": "access_token", "access_token": self._access_token},
            )
            self._page_access_token = payload.get("access_token") or self._access_token
        return self._page_access_token

    async def _post_to_page(self, edge: str, form: Dict[str, Any]) -> Dict[str, Any]:
        form = {**form, "access_token": await self._page_token()}
        return await self._request_json(
            "POST", f"{self.graph_url}/{self._page_id}/{edge}", data=form
        )

    async def share_text(self, caption: str) -> PostResult:
        message = self._caption(caption)
        payload = await self._post_to_page("feed", {"message": message})
        return self._result(payload.get("id"), payload)

    async def share_url(self, caption: str, url: str) -> PostResult:
        message = self._caption(caption)
        link = self._url(url)
        payload = await self._post_to_page("feed", {"message": message, "link": link})
        return self._result(payload.get("id"), payload)

    async def share_image(self, caption: str, image_url: str) -> PostResult:
        message = self._caption(caption)
        image = self._url(image_url)
        payload = await self._post_to_page("photos", {"url": image, "caption": message})
        return self._result(payload.get("post_id") or payload.get("id"), payload)

    async def share_video(self, caption: str, video_url: str) -> PostResult:
        """Upload a video with the resumable start/transfer/finish protocol.

        Chunk boundaries are dictated by the offsets Facebook returns on each
        call; the loop ends once the start offset reaches the end offset.
        """
        message = self._caption(caption)
        source = self._url(video_url)
        video = await self._download(source)

        start = await self._post_to_page(
            "videos", {"upload_phase": "start", "file_size": str(len(video))}
        )
        session_id = start.get("upload_session_id")
        if not session_id:
            raise SocialMediaException(
                "Facebook did not return an upload session.", platform=self.platform, raw=start
            )
        start_offset = int(start.get("start_offset", 0))
        end_offset = int(start.get("end_offset", 0))

        while start_offset < end_offset:
            chunk = video[start_offset:end_offset]
            form = {
                "upload_phase": "transfer",
                "upload_session_id": session_id,
                "start_offset": str(start_offset),
                "access_token": await self._page_token(),
            }
            transfer = await self._request_json(
                "POST",
                f"{self.graph_url}/{self._page_id}/videos",
                data=form,
                files={"video_file_chunk": ("chunk", chunk, "application/octet-stream")},
            )
            next_start = int(transfer.get("start_offset", end_offset))
            if next_start <= start_offset:
                raise SocialMediaException(
                    "Facebook video upload did not advance.", platform=self.platform, raw=transfer
                )
            start_offset = next_start
            end_offset = int(transfer.get("end_offset", start_offset))

        finish = await self._post_to_page(
            "videos",
            {
                "upload_phase": "finish",
                "upload_session_id": session_id,
                "description": message,
                "title": message[:255],
                "published": "true",
            },
        )
        if finish.get("success") is False:
            raise SocialMediaException(
                "Facebook rejected the finished video upload.", platform=self.platform, raw=finish
            )
        return self._result(start.get("video_id") or finish.get("video_id"), finish)

    async def get_page_info(self) -> Dict[str, Any]:
        return await self._request_json(
            "GET",
            f"{self.graph_url}/{self._page_id}",
            params={
                "fields": "id,name,category,fan_count,link",
                "access_token": await self._page_token(),
            },
        )

    async def get_page_insights(
        self,
        metrics: Iterable[str] = ("page_impressions", "page_post_engagements"),
        period: str = "day",
    ) -> List[Dict[str, Any]]:
        payload = await self._request_json(
            "GET",
            f"{self.graph_url}/{self._page_id}/insights",
            params={
                "metric": ",".join(metrics),
                "period": period,
                "access_token": await self._page_token(),
            },
        )
        return list(payload.get("data") or [])


__all__ = ["DEFAULT_API_VERSION", "FacebookClient", "FacebookOAuthClient", "GRAPH_BASE_URL"]
