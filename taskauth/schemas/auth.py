"""Pydantic schemas for authentication."""

from datetime import datetime

from pydantic import BaseModel, Field


class AccessTokenResponse(BaseModel):
    """Response schema for the refresh endpoint."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshRequest(BaseModel):
    """Request schema for token refresh."""

    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    """Optional body for logout; the access token travels in the header."""

    refresh_token: str | None = None


class TokenUser(BaseModel):
    """Principal reconstructed from access-token claims. No DB query needed."""

    id: str
    authorities: list[str] = Field(default_factory=list)
    token_id: str
    expires_at: datetime
