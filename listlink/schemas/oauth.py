"""Schemas for the account-linking authorization and token endpoints."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthorizeParams(BaseModel):
    """Validated front-channel parameters carried through the consent page."""

    response_type: Literal["code"] = "code"
    client_id: str
    redirect_uri: str
    state: str


class TokenRequest(BaseModel):
    """Form body posted to ``/token``."""

    model_config = ConfigDict(extra="ignore")

    grant_type: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    code: Optional[str] = None
    refresh_token: Optional[str] = None
    redirect_uri: Optional[str] = None


class TokenResponse(BaseModel):
    """Successful token grant, shaped per RFC 6749 section 5.1."""

    token_type: Literal["Bearer"] = "Bearer"
    access_token: str
    expires_in: int
    refresh_token: str


class OAuthErrorResponse(BaseModel):
    """Error body returned by the token endpoint."""

    error: str
    error_description: Optional[str] = None


class AccessTokenPayload(BaseModel):
    """Claims carried inside the opaque access token."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    uid: Optional[str] = None
    list_id: Optional[str] = Field(None, alias="listId")
    aud: Optional[str] = None
    iss: Optional[str] = None
    exp: Optional[int] = Field(None, description="Absolute expiry in epoch milliseconds.")


__all__ = [
    "AccessTokenPayload",
    "AuthorizeParams",
    "OAuthErrorResponse",
    "TokenRequest",
    "TokenResponse",
]
