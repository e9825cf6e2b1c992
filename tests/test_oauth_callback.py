try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from social_publisher.services import CallbackState, OAuthCallbackHandler, PkceVerifierStore

REDIRECT_URI = "https://app.example.com/api/auth/callback"


def _facebook_handler(pages: list):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/oauth/access_token") and request.method == "POST":
            return httpx.Response(200, json={"access_token": "short", "expires_in": 3600})
        if path.endswith("/oauth/access_token"):
            return httpx.Response(200, json={"access_token": "long", "expires_in": 5184000})
        if path.endswith("/me/accounts"):
            return httpx.Response(200, json={"data": pages})
        return httpx.Response(404, json={"message": f"unexpected {path}"})

    return handler


def _twitter_handler(forms: list):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/2/oauth2/token":
            forms.append(parse_qs(request.content.decode()))
            return httpx.Response(
                200,
                json={
                    "access_token": "x-access",
                    "refresh_token": "x-refresh",
                    "expires_in": 7200,
                    "scope": "tweet.read tweet.write",
                },
            )
        return httpx.Response(200, json={"data": {"id": "42", "username": "jdoe", "name": "J"}})

    return handler


def _handler(store, settings, transport=None, verifiers=None) -> OAuthCallbackHandler:
    return OAuthCallbackHandler(
        store=store,
        settings=settings,
        verifier_store=verifiers if verifiers is not None else PkceVerifierStore(ttl_seconds=600),
        transport=transport,
    )


@pytest.mark.anyio
async def test_provider_error_is_passed_through(store, owner, settings) -> None:
    handler = _handler(store, settings)

    outcome = await handler.handle(
        "facebook",
        {"error": "access_denied", "error_description": "User cancelled"},
        redirect_uri=REDIRECT_URI,
        resolve_owner=lambda: owner,
    )

    assert outcome.state is CallbackState.ERRORED
    assert outcome.error_code == "access_denied"
    assert "User cancelled" in outcome.message


@pytest.mark.anyio
async def test_missing_code_is_reported(store, owner, settings) -> None:
    outcome = await _handler(store, settings).handle(
        "twitter", {}, redirect_uri=REDIRECT_URI, resolve_owner=lambda: owner
    )

    assert outcome.error_code == "no_code"
    assert outcome.history == [CallbackState.AWAITING_REDIRECT, CallbackState.ERRORED]


@pytest.mark.anyio
async def test_unresolved_owner_clears_verifier(store, settings) -> None:
    verifiers = PkceVerifierStore(ttl_seconds=600)
    handler = _handler(store, settings, verifiers=verifiers)
    started = handler.start_authorization("twitter", REDIRECT_URI)
    assert started.uses_pkce and len(verifiers) == 1

    outcome = await handler.handle(
        "twitter",
        {"code": "abc", "state": started.state},
        redirect_uri=REDIRECT_URI,
        resolve_owner=lambda: None,
    )

    assert outcome.error_code == "not_authenticated"
    assert len(verifiers) == 0


@pytest.mark.anyio
async def test_platform_without_oauth_is_not_implemented(store, owner, settings) -> None:
    outcome = await _handler(store, settings).handle(
        "tiktok", {"code": "abc"}, redirect_uri=REDIRECT_URI, resolve_owner=lambda: owner
    )

    assert outcome.error_code == "not_implemented"
    assert outcome.message.startswith("Failed to connect tiktok:")


@pytest.mark.anyio
async def test_facebook_callback_persists_page_connection(store, owner, settings) -> None:
    pages = [{"id": "123", "name": "My Page", "category": "Brand", "access_token": "pt"}]
    handler = _handler(store, settings, transport=httpx.MockTransport(_facebook_handler(pages)))

    outcome = await handler.handle(
        "facebook", {"code": "fb-code"}, redirect_uri=REDIRECT_URI, resolve_owner=lambda: owner
    )

    assert outcome.succeeded
    assert outcome.history[-2:] == [
        CallbackState.TOKEN_EXCHANGED,
        CallbackState.CONNECTION_PERSISTED,
    ]
    stored = store.find_active(owner, "facebook", "page")
    assert stored is not None
    assert stored.platform_user_id == "123"
    assert stored.meta("page_id") == "123"
    assert stored.get_decrypted_access_token() == "long"


@pytest.mark.anyio
async def test_facebook_without_pages_fails_cleanly(store, owner, settings) -> None:
    handler = _handler(store, settings, transport=httpx.MockTransport(_facebook_handler([])))

    outcome = await handler.handle(
        "facebook", {"code": "fb-code"}, redirect_uri=REDIRECT_URI, resolve_owner=lambda: owner
    )

    assert outcome.state is CallbackState.ERRORED
    assert outcome.message.startswith("Failed to connect facebook: No Facebook Page found")
    assert store.list_for_owner(owner) == []


@pytest.mark.anyio
async def test_twitter_callback_uses_stashed_verifier_once(store, owner, settings) -> None:
    forms: list = []
    handler = _handler(store, settings, transport=httpx.MockTransport(_twitter_handler(forms)))
    started = handler.start_authorization("twitter", REDIRECT_URI)
    challenge = parse_qs(urlparse(started.url).query)["code_challenge"][0]

    first = await handler.handle(
        "twitter",
        {"code": "c1", "state": started.state},
        redirect_uri=REDIRECT_URI,
        resolve_owner=lambda: owner,
    )
    second = await handler.handle(
        "twitter",
        {"code": "c2", "state": started.state},
        redirect_uri=REDIRECT_URI,
        resolve_owner=lambda: owner,
    )

    assert first.succeeded and second.succeeded
    assert "code_verifier" in forms[0] and challenge
    assert "code_verifier" not in forms[1]
    connection = store.find_active(owner, "twitter")
    assert connection.platform_username == "jdoe"
    assert connection.get_decrypted_refresh_token() == "x-refresh"
    assert len(store.list_for_owner(owner)) == 1


def test_verifier_store_expires_entries() -> None:
    now = [100.0]
    verifiers = PkceVerifierStore(ttl_seconds=10, clock=lambda: now[0])
    verifiers.put("twitter", "s1", "v1")

    now[0] = 111.0

    assert verifiers.pop("twitter", "s1") is None


def test_injected_verifier_store_is_shared_even_when_empty(store, settings) -> None:
    verifiers = PkceVerifierStore(ttl_seconds=600)
    handler = OAuthCallbackHandler(store=store, settings=settings, verifier_store=verifiers)

    started = handler.start_authorization("twitter", REDIRECT_URI)

    assert len(verifiers) == 1
    assert verifiers.pop("twitter", started.state) is not None


@pytest.mark.anyio
async def test_instagram_without_business_account_fails_cleanly(store, owner, settings) -> None:
    pages = [{"id": "123", "name": "My Page", "access_token": "pt"}]
    facebook = _facebook_handler(pages)
    lookups: list = []

    def provider(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/123"):
            lookups.append(request.url.params["fields"])
            return httpx.Response(200, json={"id": "123"})
        return facebook(request)

    handler = _handler(store, settings, transport=httpx.MockTransport(provider))

    outcome = await handler.handle(
        "instagram", {"code": "ig-code"}, redirect_uri=REDIRECT_URI, resolve_owner=lambda: owner
    )

    assert outcome.state is CallbackState.ERRORED
    assert outcome.error_code == "provider_error"
    assert "No Instagram Business Account found" in outcome.message
    assert lookups == ["instagram_business_account{id,username}"]
    assert store.list_for_owner(owner) == []
