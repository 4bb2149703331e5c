"""Pydantic schemas package."""
from taskauth.schemas.auth import (
    AccessTokenResponse,
    LogoutRequest,
    RefreshRequest,
    TokenUser,
)

__all__ = [
    "AccessTokenResponse",
    "LogoutRequest",
    "RefreshRequest",
    "TokenUser",
]
