"""Unit tests for the FastAPI auth dependencies."""

import pytest
from fastapi import HTTPException

from taskauth.auth.dependencies import (
    extract_bearer_token,
    get_current_user,
    require_authority,
)
from taskauth.schemas.auth import TokenUser
from tests.helpers.clock import EPOCH


class TestExtractBearerToken:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("Bearer   abc  ", "abc"),
            ("Bearer ", None),
            ("Bearer", None),
            ("bearer abc", None),
            ("Basic dXNlcjpwYXNz", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extraction(self, header, expected):
        assert extract_bearer_token(header) == expected


class TestGetCurrentUser:
    async def test_valid_token_returns_user(self, service):
        pair = service.login("bob", ["ROLE_USER", "ROLE_ADMIN"])
        user = await get_current_user(pair.access_token, service)
        assert user.id == "bob"
        assert user.authorities == ["ROLE_USER", "ROLE_ADMIN"]
        assert user.token_id

    @pytest.mark.parametrize("kind", ["garbage", "refresh", "revoked"])
    async def test_rejections_are_uniform_401(self, service, kind):
        pair = service.login("alice", ["ROLE_USER"])
        token = {
            "garbage": "not-a-token",
            "refresh": pair.refresh_token,
            "revoked": pair.access_token,
        }[kind]
        if kind == "revoked":
            service.logout(pair.access_token)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(token, service)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Not authenticated"
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


class TestRequireAuthority:
    @staticmethod
    def _user(*authorities: str) -> TokenUser:
        return TokenUser(
            id="alice", authorities=list(authorities), token_id="jti-1", expires_at=EPOCH
        )

    async def test_allows_matching_authority(self):
        check = require_authority("ROLE_ADMIN", "ROLE_OPS")
        user = self._user("ROLE_USER", "ROLE_ADMIN")
        assert await check(user) is user

    async def test_rejects_missing_authority(self):
        check = require_authority("ROLE_ADMIN")
        with pytest.raises(HTTPException) as exc_info:
            await check(self._user("ROLE_USER"))
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Insufficient permissions"
