"""
Shared plumbing for platform adapters.

Every platform implements two capabilities: an ``OAuthClient`` that only needs
application configuration (authorize URL, code exchange, refresh, revoke) and
a ``Publisher`` that needs a concrete credential set taken from a stored
connection. Both send requests through :func:`request_with_retry`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Iterable, Optional, Sequence, Union
from urllib.parse import urlencode

import httpx
from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from social_publisher.core.config import PublisherSettings
from social_publisher.core.exceptions import (
    ConfigurationError,
    ConnectionMismatchError,
    SocialMediaException,
    UnsupportedOperationError,
    ValidationError,
)
from social_publisher.core.logging import get_component_logger
from social_publisher.models.connection import Platform, SocialMediaConnection
from social_publisher.utils.http import LoggerLike, RetryConfig, request_with_retry
from social_publisher.utils.pkce import (
    CODE_CHALLENGE_METHOD,
    derive_code_challenge,
    generate_code_verifier,
    generate_state,
)

if TYPE_CHECKING:
    from social_publisher.core.config import AppSettings

_HTTP_URL = TypeAdapter(HttpUrl)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class TokenResult:
    """Normalized outcome of a code exchange, refresh or extension."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    profile: Dict[str, Any] = field(default_factory=dict)
    connection_type: str = "profile"
    platform_user_id: Optional[str] = None
    platform_username: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    issued_at: datetime = field(default_factory=_utcnow)

    @property
    def expires_at(self) -> Optional[datetime]:
        if not self.expires_in:
            return None
        return self.issued_at + timedelta(seconds=int(self.expires_in))

    def connection_fields(self) -> Dict[str, Any]:
        """Fields to upsert into the connection store for this grant."""
        fields: Dict[str, Any] = {
            "access_token": self.access_token,
            "expires_at": self.expires_at,
            "platform_user_id": self.platform_user_id,
            "platform_username": self.platform_username,
            "metadata": dict(self.metadata),
        }
        if self.refresh_token:
            fields["refresh_token"] = self.refresh_token
        return fields


@dataclass(slots=True)
class PostResult:
    """Identifier and raw payload returned by a successful publish."""

    platform: str
    post_id: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"platform": self.platform, "post_id": self.post_id, "raw": self.raw}


@dataclass(slots=True, frozen=True)
class AuthorizationRequest:
    """Authorize URL issued with PKCE; the verifier must be kept until callback."""

    url: str
    code_verifier: str
    state: str


def validate_caption(
    text: Optional[str], *, max_length: Optional[int] = None, platform: Optional[str] = None
) -> str:
    """Return the trimmed caption or raise when it is empty or too long."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationError("Text content cannot be empty.", platform=platform)
    if max_length is not None and len(cleaned) > max_length:
        raise ValidationError(
            f"Text content exceeds maximum length of {max_length} characters.",
            platform=platform,
        )
    return cleaned


def validate_url(url: Optional[str], *, platform: Optional[str] = None) -> str:
    """Return the URL when it is an absolute http(s) URL."""
    candidate = (url or "").strip()
    try:
        _HTTP_URL.validate_python(candidate)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid URL provided: {url!r}", platform=platform) from exc
    return candidate


class PlatformHttpClient:
    """Holds transport settings and sends requests for a single platform."""

    PLATFORM: ClassVar[Platform]

    def __init__(
        self,
        *,
        publisher_settings: Optional[PublisherSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> None:
        self._publisher_settings = publisher_settings or PublisherSettings()
        self._transport = transport
        self._logger = logger or get_component_logger(
            type(self).__module__,
            platform=self.PLATFORM.value,
            enabled=self._publisher_settings.enable_logging,
        )
        self._retry = RetryConfig(
            attempts=self._publisher_settings.retry_attempts,
            backoff_seconds=self._publisher_settings.retry_backoff,
        )

    @property
    def platform(self) -> str:
        return self.PLATFORM.value

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._publisher_settings.timeout, transport=self._transport
        )

    async def _request(
        self, method: str, url: str, *, retry: bool = True, **kwargs: Any
    ) -> httpx.Response:
        config = self._retry if retry else RetryConfig(attempts=1, backoff_seconds=0)
        async with self._client() as client:
            return await request_with_retry(
                client.request,
                method,
                url,
                retry_config=config,
                log=self._logger,
                platform=self.platform,
                **kwargs,
            )

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        response = await self._request(method, url, **kwargs)
        return self._json_body(response)

    def _json_body(self, response: httpx.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise SocialMediaException(
                f"Unexpected non-JSON response from {self.platform}.",
                platform=self.platform,
                status_code=response.status_code,
                raw=response.text,
            ) from exc
        return payload if isinstance(payload, dict) else {"data": payload}

    async def _download(self, url: str) -> bytes:
        """Fetch remote media so it can be re-uploaded to the provider."""
        response = await self._request("GET", url, follow_redirects=True)
        if not response.content:
            raise SocialMediaException(
                f"Downloaded media from {url} is empty.", platform=self.platform
            )
        return response.content


class OAuthClient(PlatformHttpClient, ABC):
    """Stateless OAuth flow capability; needs only application credentials."""

    AUTHORIZE_URL: ClassVar[str]
    TOKEN_URL: ClassVar[str]
    DEFAULT_SCOPES: ClassVar[Sequence[str]] = ()
    SCOPE_SEPARATOR: ClassVar[str] = " "
    PKCE_BY_DEFAULT: ClassVar[bool] = False

    def __init__(
        self,
        *,
        client_id: Optional[str],
        client_secret: Optional[str] = None,
        publisher_settings: Optional[PublisherSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> None:
        super().__init__(
            publisher_settings=publisher_settings, transport=transport, logger=logger
        )
        self._client_id = client_id
        self._client_secret = client_secret

    @classmethod
    @abstractmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> "OAuthClient":
        """Build the client from the platform's settings group."""

    @property
    def authorize_url(self) -> str:
        return self.AUTHORIZE_URL

    def _require_client_id(self) -> str:
        if not self._client_id:
            raise ConfigurationError(
                f"{self.platform} client id is not configured.", platform=self.platform
            )
        return self._client_id

    def _require_credentials(self) -> tuple[str, str]:
        client_id = self._require_client_id()
        if not self._client_secret:
            raise ConfigurationError(
                f"{self.platform} client secret is not configured.",
                platform=self.platform,
            )
        return client_id, self._client_secret

    def _authorization_params(
        self, redirect_uri: str, scopes: Sequence[str], state: str
    ) -> Dict[str, str]:
        return {
            "client_id": self._require_client_id(),
            "redirect_uri": redirect_uri,
            "scope": self.SCOPE_SEPARATOR.join(scopes),
            "state": state,
            "response_type": "code",
        }

    def get_authorization_url(
        self,
        redirect_uri: str,
        scopes: Optional[Iterable[str]] = None,
        state: Optional[str] = None,
        use_pkce: Optional[bool] = None,
        code_verifier: Optional[str] = None,
    ) -> Union[str, AuthorizationRequest]:
        """Build the provider consent URL.

        Returns the bare URL, or an :class:`AuthorizationRequest` carrying the
        PKCE verifier when PKCE is in use.
        """
        state = state or generate_state()
        selected = list(scopes) if scopes else list(self.DEFAULT_SCOPES)
        params = self._authorization_params(redirect_uri, selected, state)

        pkce = self.PKCE_BY_DEFAULT if use_pkce is None else use_pkce
        if not pkce:
            url = f"{self.authorize_url}?{urlencode(params)}"
            self._logger.info("Authorization URL issued")
            return url

        verifier = code_verifier or generate_code_verifier()
        params["code_challenge"] = derive_code_challenge(verifier)
        params["code_challenge_method"] = CODE_CHALLENGE_METHOD
        url = f"{self.authorize_url}?{urlencode(params)}"
        self._logger.info("Authorization URL issued with PKCE")
        return AuthorizationRequest(url=url, code_verifier=verifier, state=state)

    @abstractmethod
    async def handle_callback(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> TokenResult:
        """Exchange the authorization code and run platform enrichment."""

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> TokenResult:
        """Obtain a fresh access token."""

    async def extend_access_token(self, short_lived_token: str) -> TokenResult:
        raise UnsupportedOperationError(
            f"{self.platform} issues refresh tokens; use refresh_access_token().",
            platform=self.platform,
        )

    @abstractmethod
    async def disconnect(self, access_token: str) -> bool:
        """Revoke the grant; never raises."""

    def _token_result(self, payload: Dict[str, Any], **extra: Any) -> TokenResult:
        access_token = payload.get("access_token")
        if not access_token:
            raise SocialMediaException(
                f"{self.platform} token response did not include an access token.",
                platform=self.platform,
                raw=payload,
            )
        expires_in = payload.get("expires_in")
        return TokenResult(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_in=int(expires_in) if expires_in else None,
            token_type=payload.get("token_type"),
            scope=payload.get("scope"),
            **extra,
        )


class Publisher(PlatformHttpClient, ABC):
    """Publishing capability bound to one credential set."""

    MAX_CAPTION_LENGTH: ClassVar[Optional[int]] = None

    def __init__(
        self,
        *,
        access_token: str,
        publisher_settings: Optional[PublisherSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
    ) -> None:
        super().__init__(
            publisher_settings=publisher_settings, transport=transport, logger=logger
        )
        if not access_token:
            raise SocialMediaException(
                f"{self.PLATFORM.value} access token is required.",
                platform=self.PLATFORM.value,
            )
        self._access_token = access_token

    @classmethod
    def for_connection(
        cls,
        connection: SocialMediaConnection,
        *,
        publisher_settings: Optional[PublisherSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
        **options: Any,
    ) -> "Publisher":
        """Build a publisher from a stored connection without touching the network."""
        if Platform.parse(connection.platform) is not cls.PLATFORM:
            raise ConnectionMismatchError(
                f"Connection platform mismatch: expected {cls.PLATFORM.value}, "
                f"got {Platform.parse(connection.platform).value}.",
                platform=cls.PLATFORM.value,
            )
        access_token = connection.get_decrypted_access_token()
        if not access_token:
            raise SocialMediaException(
                f"{cls.PLATFORM.value} connection is missing an access token.",
                platform=cls.PLATFORM.value,
            )
        return cls._from_connection(
            connection,
            access_token=access_token,
            publisher_settings=publisher_settings,
            transport=transport,
            logger=logger,
            **options,
        )

    @classmethod
    def settings_options(cls, settings: "AppSettings") -> Dict[str, Any]:
        """Construction options taken from application settings."""
        return {}

    @classmethod
    def _from_connection(
        cls, connection: SocialMediaConnection, **kwargs: Any
    ) -> "Publisher":
        return cls(**kwargs)

    @classmethod
    def get_instance(cls) -> "Publisher":
        raise SocialMediaException(
            "OAuth connection required. Use for_connection() with a stored "
            f"{cls.PLATFORM.value} connection.",
            platform=cls.PLATFORM.value,
        )

    @classmethod
    def _require_meta(cls, connection: SocialMediaConnection, *keys: str) -> str:
        for key in keys:
            value = connection.meta(key)
            if value:
                return str(value)
        raise SocialMediaException(
            f"{cls.PLATFORM.value} connection is missing {' or '.join(keys)}.",
            platform=cls.PLATFORM.value,
        )

    def _caption(self, text: Optional[str], max_length: Optional[int] = None) -> str:
        return validate_caption(
            text,
            max_length=max_length if max_length is not None else self.MAX_CAPTION_LENGTH,
            platform=self.platform,
        )

    def _url(self, url: Optional[str]) -> str:
        return validate_url(url, platform=self.platform)

    def _unsupported(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            f"{self.platform} does not support {operation}.", platform=self.platform
        )

    def _result(self, post_id: Any, raw: Dict[str, Any]) -> PostResult:
        result = PostResult(
            platform=self.platform,
            post_id=str(post_id) if post_id is not None else None,
            raw=raw,
        )
        self._logger.info("Post published (id=%s)", result.post_id)
        return result

    @abstractmethod
    async def share_text(self, caption: str) -> PostResult:
        ...

    @abstractmethod
    async def share_url(self, caption: str, url: str) -> PostResult:
        ...

    @abstractmethod
    async def share_image(self, caption: str, image_url: str) -> PostResult:
        ...

    @abstractmethod
    async def share_video(self, caption: str, video_url: str) -> PostResult:
        ...


__all__ = [
    "AuthorizationRequest",
    "OAuthClient",
    "PlatformHttpClient",
    "PostResult",
    "Publisher",
    "TokenResult",
    "validate_caption",
    "validate_url",
]
