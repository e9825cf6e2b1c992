"""
FastAPI routes for the provider OAuth redirects.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from social_publisher.core.config import AppSettings
from social_publisher.core.exceptions import (
    ConfigurationError,
    SocialMediaException,
    UnsupportedOperationError,
)
from social_publisher.dependencies import (
    get_app_settings,
    get_callback_handler,
    get_oauth_state_encoder,
)
from social_publisher.models.connection import Owner, Platform
from social_publisher.schemas import (
    AuthorizationResponse,
    ConnectionSummary,
    OAuthCallbackPayload,
    OAuthCallbackResponse,
)
from social_publisher.services import (
    CallbackOutcome,
    InvalidOAuthStateError,
    OAuthCallbackHandler,
    OAuthStateEncoder,
)

router = APIRouter()
logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    "not_authenticated": HTTPStatus.UNAUTHORIZED,
    "not_implemented": HTTPStatus.NOT_IMPLEMENTED,
}


def _parse_platform(platform: str) -> Platform:
    try:
        return Platform.parse(platform)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"Platform '{platform}' is not supported.",
        ) from exc


def _callback_uri(request: Request, settings: AppSettings, platform: Platform) -> str:
    base = settings.oauth.redirect_base_url
    if base:
        return f"{str(base).rstrip('/')}/api/auth/{platform.value}/callback"
    return str(request.url_for("handle_oauth_callback", platform=platform.value))


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _owner_from_state(
    state_encoder: OAuthStateEncoder, state: Optional[str], ttl_seconds: int
) -> tuple[Optional[Owner], Dict[str, Any]]:
    """Recover the owner carried in a signed state token, if still valid."""
    if not state:
        return None, {}
    try:
        state_data = state_encoder.decode(state)
    except (InvalidOAuthStateError, ValueError) as exc:
        logger.warning("Rejected OAuth state token: %s", exc)
        return None, {}

    issued_at_raw = state_data.get("issued_at")
    try:
        issued_at = datetime.fromisoformat(issued_at_raw) if issued_at_raw else None
    except ValueError:
        issued_at = None
    if issued_at is None:
        logger.warning("OAuth state token carries no valid issued_at")
        return None, state_data
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    if datetime.now(timezone.utc) - issued_at > timedelta(seconds=ttl_seconds):
        logger.warning("OAuth state token has expired")
        return None, state_data

    owner_type, owner_id = state_data.get("owner_type"), state_data.get("owner_id")
    if not owner_type or not owner_id:
        return None, state_data
    return Owner(type=owner_type, id=owner_id), state_data


def _callback_response(
    outcome: CallbackOutcome, redirect_to: Optional[str]
) -> OAuthCallbackResponse:
    connection = outcome.connection
    return OAuthCallbackResponse(
        status="connected" if outcome.succeeded else "error",
        platform=outcome.platform,
        message=outcome.message,
        error_code=outcome.error_code,
        redirect_to=redirect_to,
        connection=ConnectionSummary(
            id=connection.id,
            platform=connection.platform.value,
            connection_type=connection.connection_type,
            platform_user_id=connection.platform_user_id,
            platform_username=connection.platform_username,
            expires_at=connection.expires_at,
            is_active=connection.is_active,
        )
        if connection is not None
        else None,
    )


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/{platform}/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    platform: str,
    request: Request,
    handler: Annotated[OAuthCallbackHandler, Depends(get_callback_handler)],
    state_encoder: Annotated[OAuthStateEncoder, Depends(get_oauth_state_encoder)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    owner_id: str = Query(..., description="Owner identifier initiating authentication."),
    owner_type: str = Query(default="user", description="Owner kind, e.g. user or company."),
    redirect_to: Optional[str] = Query(
        default=None,
        description="Optional URL to redirect back to once the connection is stored.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the provider consent screen.",
    ),
) -> Response:
    """
    Kick off the OAuth flow by signing a state token and building the consent URL.
    """
    selected = _parse_platform(platform)
    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "owner_type": owner_type,
            "owner_id": owner_id,
            "redirect_to": redirect_to,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    try:
        started = handler.start_authorization(
            selected.value, _callback_uri(request, settings, selected), state=state
        )
    except UnsupportedOperationError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_IMPLEMENTED, detail=exc.message) from exc
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=exc.message
        ) from exc
    except SocialMediaException as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=exc.message) from exc

    if redirect or _wants_html(request):
        return RedirectResponse(url=started.url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    body = AuthorizationResponse(
        authorization_url=started.url, state=started.state, uses_pkce=started.uses_pkce
    )
    return JSONResponse(content=body.model_dump())


@router.get("/auth/{platform}/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    platform: str,
    request: Request,
    handler: Annotated[OAuthCallbackHandler, Depends(get_callback_handler)],
    state_encoder: Annotated[OAuthStateEncoder, Depends(get_oauth_state_encoder)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    """Complete the exchange, store the connection and report the outcome."""
    selected = _parse_platform(platform)
    payload = OAuthCallbackPayload(
        code=code, state=state, error=error, error_description=error_description
    )
    owner, state_data = _owner_from_state(
        state_encoder, payload.state, settings.oauth.state_ttl_seconds
    )

    outcome = await handler.handle(
        selected.value,
        payload.as_params(),
        redirect_uri=_callback_uri(request, settings, selected),
        resolve_owner=lambda: owner,
    )

    redirect_target = state_data.get("redirect_to") or settings.frontend_base_url
    body = _callback_response(outcome, state_data.get("redirect_to"))

    if redirect_target and (redirect or _wants_html(request)):
        query = urlencode(
            {
                "platform": outcome.platform,
                "status": body.status,
                "message": outcome.message,
            }
        )
        separator = "&" if "?" in str(redirect_target) else "?"
        return RedirectResponse(
            url=f"{redirect_target}{separator}{query}",
            status_code=HTTPStatus.TEMPORARY_REDIRECT,
        )

    status_code = (
        HTTPStatus.OK
        if outcome.succeeded
        else _ERROR_STATUS.get(outcome.error_code or "", HTTPStatus.BAD_REQUEST)
    )
    return JSONResponse(content=body.model_dump(mode="json"), status_code=status_code)


__all__ = ["router"]
