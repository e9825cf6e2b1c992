"""
LinkedIn adapter built on the UGC Posts API.

The share category decides the payload shape: NONE for text, ARTICLE for
links and IMAGE/VIDEO for media registered through the assets API.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from social_publisher.clients.base import OAuthClient, PostResult, Publisher, TokenResult
from social_publisher.core.exceptions import SocialMediaException
from social_publisher.models.connection import Platform, SocialMediaConnection
from social_publisher.utils.http import LoggerLike

if TYPE_CHECKING:
    from social_publisher.core.config import AppSettings

OAUTH_BASE_URL = "https://www.linkedin.com/oauth/v2"
API_BASE_URL = "https://api.linkedin.com/v2"
PERSON_URN_PREFIX = "urn:li:person:"
ORGANIZATION_URN_PREFIX = "urn:li:organization:"
_UPLOAD_MECHANISM = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"


def person_urn(value: str) -> str:
    return value if value.startswith("urn:li:") else f"{PERSON_URN_PREFIX}{value}"


def organization_urn(value: str) -> str:
    return value if value.startswith("urn:li:") else f"{ORGANIZATION_URN_PREFIX}{value}"


class LinkedInOAuthClient(OAuthClient):
    PLATFORM = Platform.LINKEDIN
    AUTHORIZE_URL = f"{OAUTH_BASE_URL}/authorization"
    TOKEN_URL = f"{OAUTH_BASE_URL}/accessToken"
    REVOKE_URL = f"{OAUTH_BASE_URL}/revoke"
    DEFAULT_SCOPES = ("r_liteprofile", "r_emailaddress", "w_member_social")

    @classmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> "LinkedInOAuthClient":
        return cls(
            client_id=settings.linkedin.client_id,
            client_secret=settings.linkedin.client_secret,
            publisher_settings=settings.publisher,
            transport=transport,
            logger=logger,
        )

    async def handle_callback(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> TokenResult:
        client_id, client_secret = self._require_credentials()
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier
        payload = await self._request_json("POST", self.TOKEN_URL, data=form, retry=False)
        token = self._token_result(payload)

        try:
            profile = await self._request_json(
                "GET",
                f"{API_BASE_URL}/me",
                headers={"Authorization": f"Bearer {token.access_token}"},
            )
        except SocialMediaException as exc:
            self._logger.warning("Profile lookup failed after token exchange: %s", exc.message)
            profile = {}

        token.profile = profile
        if profile.get("id"):
            token.platform_user_id = str(profile["id"])
            first = profile.get("localizedFirstName") or ""
            last = profile.get("localizedLastName") or ""
            token.platform_username = f"{first} {last}".strip() or None
            token.metadata = {"person_urn": person_urn(str(profile["id"]))}
        self._logger.info("Token exchanged for %s", token.platform_user_id or "unknown member")
        return token

    async def refresh_access_token(self, refresh_token: str) -> TokenResult:
        client_id, client_secret = self._require_credentials()
        payload = await self._request_json(
            "POST",
            self.TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
            },
            retry=False,
        )
        self._logger.info("Access token refreshed")
        return self._token_result(payload)

    async def disconnect(self, access_token: str) -> bool:
        try:
            client_id, client_secret = self._require_credentials()
            await self._request(
                "POST",
                self.REVOKE_URL,
                data={
                    "token": access_token,
                    "client_id": client_id,
                    "client_secret": client_secret,
                },
                retry=False,
            )
        except SocialMediaException as exc:
            self._logger.warning("Token revocation failed: %s", exc.message)
            return False
        return True


class LinkedInClient(Publisher):
    """Publishes UGC posts as a member, or as an organization when configured."""

    PLATFORM = Platform.LINKEDIN
    MAX_CAPTION_LENGTH = 3000

    def __init__(
        self,
        *,
        access_token: str,
        person_urn: str,
        organization_urn: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(access_token=access_token, **kwargs)
        self._person_urn = person_urn
        self._organization_urn = organization_urn

    @classmethod
    def _from_connection(
        cls, connection: SocialMediaConnection, **kwargs: Any
    ) -> "LinkedInClient":
        member = connection.meta("person_urn") or connection.platform_user_id
        if not member:
            raise SocialMediaException(
                "linkedin connection is missing person_urn.", platform=cls.PLATFORM.value
            )
        organization = connection.meta("organization_urn")
        return cls(
            person_urn=person_urn(str(member)),
            organization_urn=organization_urn(str(organization)) if organization else None,
            **kwargs,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "X-Restli-Protocol-Version": "2.0.0",
        }

    def _author(self, as_organization: Optional[bool] = None) -> str:
        if as_organization is None:
            return self._organization_urn or self._person_urn
        if as_organization:
            if not self._organization_urn:
                raise SocialMediaException(
                    "Organization URN not configured for company page publishing.",
                    platform=self.platform,
                )
            return self._organization_urn
        return self._person_urn

    def _ugc_payload(
        self,
        author: str,
        text: str,
        category: str,
        media: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        share: Dict[str, Any] = {
            "shareCommentary": {"text": text},
            "shareMediaCategory": category,
        }
        if media is not None:
            share["media"] = [media]
        return {
            "author": author,
            "lifecycleState": "PUBLISHED",
            "specificContent": {"com.linkedin.ugc.ShareContent": share},
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
        }

    async def _create_post(self, body: Dict[str, Any]) -> PostResult:
        response = await self._request(
            "POST", f"{API_BASE_URL}/ugcPosts", json=body, headers=self._headers()
        )
        restli_id = response.headers.get("x-restli-id")
        try:
            payload = self._json_body(response)
        except SocialMediaException:
            if not restli_id:
                raise
            payload = {"id": restli_id, "body": response.text}
        post_id = payload.get("id") or restli_id
        return self._result(post_id, payload)

    async def _register_upload(self, author: str, recipe: str) -> tuple[str, str]:
        payload = await self._request_json(
            "POST",
            f"{API_BASE_URL}/assets",
            params={"action": "registerUpload"},
            json={
                "registerUploadRequest": {
                    "recipes": [f"urn:li:digitalmediaRecipe:{recipe}"],
                    "owner": author,
                    "serviceRelationships": [
                        {
                            "relationshipType": "OWNER",
                            "identifier": "urn:li:userGeneratedContent",
                        }
                    ],
                }
            },
            headers=self._headers(),
        )
        value = payload.get("value") or {}
        mechanism = (value.get("uploadMechanism") or {}).get(_UPLOAD_MECHANISM) or {}
        upload_url = mechanism.get("uploadUrl")
        asset = value.get("asset")
        if not upload_url or not asset:
            raise SocialMediaException(
                "LinkedIn did not return an upload URL.", platform=self.platform, raw=payload
            )
        return upload_url, asset

    async def _upload_media(self, author: str, media_url: str, recipe: str) -> str:
        upload_url, asset = await self._register_upload(author, recipe)
        content = await self._download(media_url)
        await self._request(
            "PUT",
            upload_url,
            content=content,
            headers={
                "Authorization": f"Bearer {self._access_token}",
                "Content-Type": "application/octet-stream",
            },
        )
        return asset

    async def share_text(self, caption: str) -> PostResult:
        text = self._caption(caption)
        return await self._create_post(self._ugc_payload(self._author(), text, "NONE"))

    async def _share_article(self, author: str, caption: str, url: str) -> PostResult:
        text = self._caption(caption)
        link = self._url(url)
        media = {
            "status": "READY",
            "description": {"text": text},
            "originalUrl": link,
            "title": {"text": f"Shared from {urlparse(link).hostname}"},
        }
        return await self._create_post(self._ugc_payload(author, text, "ARTICLE", media))

    async def share_url(self, caption: str, url: str) -> PostResult:
        return await self._share_article(self._author(), caption, url)

    async def share_to_company_page(self, caption: str, url: str) -> PostResult:
        return await self._share_article(self._author(as_organization=True), caption, url)

    async def _share_media(
        self, caption: str, media_url: str, category: str, recipe: str, title: str
    ) -> PostResult:
        text = self._caption(caption)
        source = self._url(media_url)
        author = self._author()
        asset = await self._upload_media(author, source, recipe)
        media = {
            "status": "READY",
            "description": {"text": text},
            "media": asset,
            "title": {"text": title},
        }
        return await self._create_post(self._ugc_payload(author, text, category, media))

    async def share_image(self, caption: str, image_url: str) -> PostResult:
        return await self._share_media(caption, image_url, "IMAGE", "feedshare-image", "Image Post")

    async def share_video(self, caption: str, video_url: str) -> PostResult:
        return await self._share_media(caption, video_url, "VIDEO", "feedshare-video", "Video Post")

    async def get_user_info(self) -> Dict[str, Any]:
        return await self._request_json("GET", f"{API_BASE_URL}/me", headers=self._headers())

    async def get_organization_info(self, organization_id: str) -> Dict[str, Any]:
        org_id = organization_id.removeprefix(ORGANIZATION_URN_PREFIX)
        return await self._request_json(
            "GET", f"{API_BASE_URL}/organizations/{org_id}", headers=self._headers()
        )

    async def get_administered_company_pages(self) -> List[Dict[str, Any]]:
        """List organizations the member administers.

        The projected ACL query is tried first; some apps lack the projection
        permission, so the plain ACL listing is used as a fallback and each
        organization is then looked up individually.
        """
        params = {
            "q": "roleAssignee",
            "role": "ADMINISTRATOR",
            "state": "APPROVED",
        }
        try:
            payload = await self._request_json(
                "GET",
                f"{API_BASE_URL}/organizationAcls",
                params={
                    **params,
                    "projection": "(elements*(organization~(id,localizedName,vanityName)))",
                },
                headers=self._headers(),
            )
            pages = [
                {
                    "id": str(org.get("id")),
                    "name": org.get("localizedName"),
                    "vanity_name": org.get("vanityName"),
                    "urn": organization_urn(str(org.get("id"))),
                }
                for org in (element.get("organization~") for element in payload.get("elements", []))
                if org
            ]
            if pages:
                return pages
        except SocialMediaException as exc:
            self._logger.warning("Projected organization lookup failed: %s", exc.message)

        payload = await self._request_json(
            "GET", f"{API_BASE_URL}/organizationAcls", params=params, headers=self._headers()
        )
        pages = []
        for element in payload.get("elements", []):
            urn = element.get("organization")
            if not urn:
                continue
            org_id = urn.removeprefix(ORGANIZATION_URN_PREFIX)
            try:
                info = await self.get_organization_info(org_id)
            except SocialMediaException as exc:
                self._logger.warning("Organization %s lookup failed: %s", org_id, exc.message)
                info = {}
            pages.append(
                {
                    "id": org_id,
                    "name": info.get("localizedName"),
                    "vanity_name": info.get("vanityName"),
                    "urn": urn,
                }
            )
        return pages


__all__ = [
    "LinkedInClient",
    "LinkedInOAuthClient",
    "organization_urn",
    "person_urn",
]
