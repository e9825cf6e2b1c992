"""
Twitter/X adapter: OAuth 2.0 authorization code with PKCE and v2 tweets.

Media must first go through the classic upload endpoint; the resulting
``media_id_string`` is then referenced by the tweet.
"""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import httpx

from social_publisher.clients.base import OAuthClient, PostResult, Publisher, TokenResult
from social_publisher.core.exceptions import SocialMediaException
from social_publisher.models.connection import Platform
from social_publisher.utils.http import LoggerLike

if TYPE_CHECKING:
    from social_publisher.core.config import AppSettings

API_BASE_URL = "https://api.twitter.com/2"
UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
MAX_TWEET_LENGTH = 280


def _basic_auth_header(client_id: str, client_secret: str) -> str:
    credentials = f"{client_id}:{client_secret}".encode("utf-8")
    return f"Basic {base64.b64encode(credentials).decode('ascii')}"


class TwitterOAuthClient(OAuthClient):
    """OAuth 2.0 user-context flow for X."""

    PLATFORM = Platform.TWITTER
    AUTHORIZE_URL = "https://twitter.com/i/oauth2/authorize"
    TOKEN_URL = f"{API_BASE_URL}/oauth2/token"
    REVOKE_URL = f"{API_BASE_URL}/oauth2/revoke"
    DEFAULT_SCOPES = ("tweet.read", "tweet.write", "users.read", "offline.access")
    PKCE_BY_DEFAULT = True

    @classmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> "TwitterOAuthClient":
        return cls(
            client_id=settings.x.client_id,
            client_secret=settings.x.client_secret,
            publisher_settings=settings.publisher,
            transport=transport,
            logger=logger,
        )

    def _auth_headers(self) -> Dict[str, str]:
        client_id, client_secret = self._require_credentials()
        return {"Authorization": _basic_auth_header(client_id, client_secret)}

    async def handle_callback(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> TokenResult:
        form = {
            "code": code,
            "grant_type": "authorization_code",
            "client_id": self._require_client_id(),
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier
        payload = await self._request_json(
            "POST", self.TOKEN_URL, data=form, headers=self._auth_headers(), retry=False
        )
        token = self._token_result(payload)

        profile_payload = await self._request_json(
            "GET",
            f"{API_BASE_URL}/users/me",
            params={"user.fields": "id,name,username"},
            headers={"Authorization": f"Bearer {token.access_token}"},
        )
        profile = profile_payload.get("data") or {}
        if not profile.get("id"):
            raise SocialMediaException(
                "Unable to load the X user profile.", platform=self.platform, raw=profile_payload
            )
        token.profile = profile
        token.platform_user_id = str(profile["id"])
        token.platform_username = profile.get("username")
        token.metadata = {
            "username": profile.get("username"),
            "name": profile.get("name"),
            "scope": token.scope,
        }
        self._logger.info("Token exchanged for @%s", token.platform_username)
        return token

    async def refresh_access_token(self, refresh_token: str) -> TokenResult:
        payload = await self._request_json(
            "POST",
            self.TOKEN_URL,
            data={
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
                "client_id": self._require_client_id(),
            },
            headers=self._auth_headers(),
            retry=False,
        )
        self._logger.info("Access token refreshed")
        return self._token_result(payload)

    async def disconnect(self, access_token: str) -> bool:
        try:
            await self._request(
                "POST",
                self.REVOKE_URL,
                data={"token": access_token, "token_type_hint": "access_token"},
                headers=self._auth_headers(),
                retry=False,
            )
        except SocialMediaException as exc:
            self._logger.warning("Token revocation failed: %s", exc.message)
            return False
        return True


class TwitterClient(Publisher):
    """Posts tweets on behalf of the connected user."""

    PLATFORM = Platform.TWITTER
    MAX_CAPTION_LENGTH = MAX_TWEET_LENGTH

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _create_tweet(self, body: Dict[str, Any]) -> PostResult:
        payload = await self._request_json(
            "POST", f"{API_BASE_URL}/tweets", json=body, headers=self._headers()
        )
        data = payload.get("data") or {}
        return self._result(data.get("id"), payload)

    async def _upload_media(self, media_url: str, category: str) -> str:
        media = await self._download(media_url)
        payload = await self._request_json(
            "POST",
            UPLOAD_URL,
            data={
                "media_data": base64.b64encode(media).decode("ascii"),
                "media_category": category,
            },
            headers=self._headers(),
        )
        media_id = payload.get("media_id_string") or payload.get("media_id")
        if not media_id:
            raise SocialMediaException(
                "Media upload did not return a media id.", platform=self.platform, raw=payload
            )
        return str(media_id)

    async def share_text(self, caption: str) -> PostResult:
        text = self._caption(caption)
        return await self._create_tweet({"text": text})

    async def share_url(self, caption: str, url: str) -> PostResult:
        link = self._url(url)
        # caption, a space and the link share the tweet limit
        message = self._caption(caption, max_length=MAX_TWEET_LENGTH - len(link) - 1)
        return await self._create_tweet({"text": f"{message} {link}"})

    async def share_image(self, caption: str, image_url: str) -> PostResult:
        text = self._caption(caption)
        media_id = await self._upload_media(self._url(image_url), "tweet_image")
        return await self._create_tweet({"text": text, "media": {"media_ids": [media_id]}})

    async def share_video(self, caption: str, video_url: str) -> PostResult:
        text = self._caption(caption)
        media_id = await self._upload_media(self._url(video_url), "tweet_video")
        return await self._create_tweet({"text": text, "media": {"media_ids": [media_id]}})

    async def get_timeline(self, limit: int = 10) -> List[Dict[str, Any]]:
        user = await self.get_user_info()
        payload = await self._request_json(
            "GET",
            f"{API_BASE_URL}/users/{user['id']}/tweets",
            params={
                "max_results": max(5, min(limit, 100)),
                "tweet.fields": "created_at,public_metrics",
            },
            headers=self._headers(),
        )
        return list(payload.get("data") or [])

    async def get_user_info(self) -> Dict[str, Any]:
        payload = await self._request_json(
            "GET",
            f"{API_BASE_URL}/users/me",
            params={"user.fields": "id,name,username,public_metrics"},
            headers=self._headers(),
        )
        return payload.get("data") or {}


__all__ = ["MAX_TWEET_LENGTH", "TwitterClient", "TwitterOAuthClient"]
