"""
Provider redirect handling.

Each callback walks ``AWAITING_REDIRECT -> CODE_RECEIVED -> TOKEN_EXCHANGED ->
CONNECTION_PERSISTED`` or stops in ``ERRORED``. Adapter failures are turned
into an outcome; nothing raised below this layer reaches the transport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional

import httpx

from social_publisher.clients import AuthorizationRequest, OAuthClient, build_oauth_client
from social_publisher.core.config import AppSettings
from social_publisher.core.exceptions import (
    NotAuthenticatedError,
    SocialMediaException,
    UnsupportedOperationError,
)
from social_publisher.core.logging import get_component_logger
from social_publisher.models.connection import Owner, Platform, SocialMediaConnection
from social_publisher.services.connection_store import ConnectionStore
from social_publisher.services.oauth_state import PkceVerifierStore
from social_publisher.utils.http import LoggerLike
from social_publisher.utils.pkce import generate_state

OwnerResolver = Callable[[], Optional[Owner]]
OAuthClientFactory = Callable[..., OAuthClient]


class CallbackState(str, Enum):
    AWAITING_REDIRECT = "awaiting_redirect"
    CODE_RECEIVED = "code_received"
    TOKEN_EXCHANGED = "token_exchanged"
    CONNECTION_PERSISTED = "connection_persisted"
    ERRORED = "errored"


@dataclass(slots=True)
class CallbackOutcome:
    """Terminal result of one callback."""

    platform: str
    state: CallbackState
    message: str
    error_code: Optional[str] = None
    connection: Optional[SocialMediaConnection] = None
    history: List[CallbackState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is CallbackState.CONNECTION_PERSISTED


@dataclass(slots=True, frozen=True)
class AuthorizationStart:
    url: str
    state: str
    uses_pkce: bool


class OAuthCallbackHandler:
    """Orchestrates authorize redirects and provider callbacks for all platforms."""

    def __init__(
        self,
        *,
        store: ConnectionStore,
        settings: AppSettings,
        verifier_store: Optional[PkceVerifierStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[LoggerLike] = None,
        oauth_factory: OAuthClientFactory = build_oauth_client,
    ) -> None:
        self._store = store
        self._settings = settings
        self._verifiers = (
            verifier_store
            if verifier_store is not None
            else PkceVerifierStore(ttl_seconds=settings.oauth.state_ttl_seconds)
        )
        self._transport = transport
        self._oauth_factory = oauth_factory
        self._logger = logger or get_component_logger(
            __name__, enabled=settings.publisher.enable_logging
        )

    def _client(self, platform: str) -> OAuthClient:
        return self._oauth_factory(platform, self._settings, transport=self._transport)

    def start_authorization(
        self,
        platform: str,
        redirect_uri: str,
        *,
        scopes: Optional[Iterable[str]] = None,
        state: Optional[str] = None,
        use_pkce: Optional[bool] = None,
    ) -> AuthorizationStart:
        """Issue the consent URL and stash the PKCE verifier for the callback."""
        name = Platform.parse(platform).value
        state = state or generate_state()
        issued = self._client(name).get_authorization_url(
            redirect_uri, scopes=scopes, state=state, use_pkce=use_pkce
        )
        if isinstance(issued, AuthorizationRequest):
            self._verifiers.put(name, issued.state, issued.code_verifier)
            return AuthorizationStart(url=issued.url, state=issued.state, uses_pkce=True)
        return AuthorizationStart(url=issued, state=state, uses_pkce=False)

    async def handle(
        self,
        platform: str,
        params: Mapping[str, Any],
        *,
        redirect_uri: str,
        resolve_owner: OwnerResolver,
    ) -> CallbackOutcome:
        name = str(platform).strip().lower()
        history = [CallbackState.AWAITING_REDIRECT]
        # single use: gone before any branch can fail
        code_verifier = self._verifiers.pop(name, params.get("state"))

        def errored(error_code: str, message: str) -> CallbackOutcome:
            self._logger.warning("OAuth callback for %s failed: %s", name, message)
            history.append(CallbackState.ERRORED)
            return CallbackOutcome(
                platform=name,
                state=CallbackState.ERRORED,
                message=message,
                error_code=error_code,
                history=history,
            )

        if params.get("error"):
            description = params.get("error_description") or params["error"]
            return errored(str(params["error"]), f"Failed to connect {name}: {description}")

        code = params.get("code")
        if not code:
            return errored("no_code", f"Failed to connect {name}: no authorization code received.")
        history.append(CallbackState.CODE_RECEIVED)

        try:
            owner = resolve_owner()
            if owner is None:
                raise NotAuthenticatedError(
                    "No authenticated owner is available for this callback.", platform=name
                )
            client = self._client(name)
            token = await client.handle_callback(str(code), redirect_uri, code_verifier)
            history.append(CallbackState.TOKEN_EXCHANGED)
            connection = self._store.upsert(
                owner, client.PLATFORM, token.connection_type, token.connection_fields()
            )
        except NotAuthenticatedError as exc:
            return errored("not_authenticated", exc.message)
        except UnsupportedOperationError as exc:
            return errored("not_implemented", f"Failed to connect {name}: {exc.message}")
        except SocialMediaException as exc:
            return errored("provider_error", f"Failed to connect {name}: {exc.message}")
        except Exception as exc:  # noqa: BLE001 - the transport must only see outcomes
            self._logger.exception("Unexpected error while connecting %s", name)
            return errored("unexpected_error", f"Failed to connect {name}: {exc}")

        history.append(CallbackState.CONNECTION_PERSISTED)
        self._logger.info(
            "Connected %s account %s for %s",
            name,
            connection.platform_username or connection.platform_user_id,
            owner,
        )
        return CallbackOutcome(
            platform=name,
            state=CallbackState.CONNECTION_PERSISTED,
            message=f"Successfully connected {name}.",
            connection=connection,
            history=history,
        )


__all__ = [
    "AuthorizationStart",
    "CallbackOutcome",
    "CallbackState",
    "OAuthCallbackHandler",
    "OwnerResolver",
]
