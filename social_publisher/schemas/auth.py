"""Schemas related to OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Query parameters a provider sends back to the callback endpoint."""

    code: Optional[str] = Field(None, description="Authorization code issued by the provider.")
    state: Optional[str] = Field(None, description="Signed state token issued when starting OAuth.")
    error: Optional[str] = Field(None, description="Provider error code, e.g. access_denied.")
    error_description: Optional[str] = Field(None, description="Human readable provider error.")

    def as_params(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AuthorizationResponse(BaseModel):
    authorization_url: str
    state: str
    uses_pkce: bool = False


class ConnectionSummary(BaseModel):
    """Public view of a stored connection; never carries token material."""

    id: Optional[int]
    platform: str
    connection_type: str
    platform_user_id: Optional[str] = None
    platform_username: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True


class OAuthCallbackResponse(BaseModel):
    status: str = Field(..., description="connected or error.")
    platform: str
    message: str
    error_code: Optional[str] = None
    redirect_to: Optional[str] = None
    connection: Optional[ConnectionSummary] = None


__all__ = [
    "AuthorizationResponse",
    "ConnectionSummary",
    "OAuthCallbackPayload",
    "OAuthCallbackResponse",
]
