"""Integration tests for the token endpoints.

Tokens are issued through the container's ``AuthService`` (login happens on
the user-management side) and then presented to the HTTP API.
"""

from datetime import datetime

import pytest

from taskauth.dependencies import AuthContainer
from taskauth.main import app
from tests.conftest import auth_headers
from tests.helpers.clock import EPOCH
from tests.helpers.token_factory import base_payload, sign_payload

UNAUTHENTICATED = {"detail": "Not authenticated"}


@pytest.fixture()
def auth(container):
    return container.service


# ======================================================================
# GET /api/v1/auth/me
# ======================================================================


class TestMeEndpoint:
    async def test_returns_principal_from_claims(self, client, auth):
        pair = auth.login("bob", ["ROLE_USER", "ROLE_ADMIN"])
        resp = await client.get("/api/v1/auth/me", headers=auth_headers(pair.access_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == "bob"
        assert body["authorities"] == ["ROLE_USER", "ROLE_ADMIN"]
        assert body["token_id"]

    async def test_expires_at_comes_from_the_token(self, client, auth, clock, settings):
        pair = auth.login("alice", ["ROLE_USER"])
        clock.advance(minutes=30)
        resp = await client.get("/api/v1/auth/me", headers=auth_headers(pair.access_token))
        assert resp.status_code == 200
        expires_at = datetime.fromisoformat(resp.json()["expires_at"])
        assert expires_at == EPOCH + settings.access_token_lifetime

    async def test_without_token(self, client):
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    async def test_non_bearer_scheme(self, client):
        resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    async def test_refresh_token_is_not_a_bearer_token(self, client, auth):
        pair = auth.login("alice", ["ROLE_USER"])
        resp = await client.get("/api/v1/auth/me", headers=auth_headers(pair.refresh_token))
        assert resp.status_code == 401

    @pytest.mark.parametrize("kind", ["expired", "forged", "revoked", "garbage", "foreign"])
    async def test_rejections_share_one_response(self, client, auth, clock, kind):
        pair = auth.login("alice", ["ROLE_USER"])
        if kind == "expired":
            clock.advance(days=2)
            token = pair.access_token
        elif kind == "forged":
            token = sign_payload(base_payload(EPOCH), secret="z" * 40)
        elif kind == "revoked":
            auth.logout(pair.access_token)
            token = pair.access_token
        elif kind == "foreign":
            token = sign_payload(base_payload(EPOCH, iss="someone-else"))
        else:
            token = "invalid.jwt.token"

        resp = await client.get("/api/v1/auth/me", headers=auth_headers(token))

        assert resp.status_code == 401
        assert resp.json() == UNAUTHENTICATED

    async def test_revocation_outage_is_rejected(
        self, client, settings, identities, clock, disconnected_redis
    ):
        app.state.auth = AuthContainer.from_settings(
            settings.model_copy(update={"revocation_backend": "redis"}),
            identities=identities,
            clock=clock,
            redis=disconnected_redis,
        )
        pair = app.state.auth.service.login("alice", ["ROLE_USER"])
        resp = await client.get("/api/v1/auth/me", headers=auth_headers(pair.access_token))
        assert resp.status_code == 401
        assert resp.json() == UNAUTHENTICATED


# ======================================================================
# POST /api/v1/auth/refresh
# ======================================================================


class TestRefreshEndpoint:
    async def test_exchanges_refresh_token(self, client, auth, settings):
        pair = auth.login("bob", ["ROLE_USER"])
        resp = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": pair.refresh_token}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == settings.jwt_access_token_expire_seconds

        me = await client.get("/api/v1/auth/me", headers=auth_headers(body["access_token"]))
        assert me.json()["authorities"] == ["ROLE_USER", "ROLE_ADMIN"]

    async def test_access_token_is_rejected(self, client, auth):
        pair = auth.login("alice", ["ROLE_USER"])
        resp = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": pair.access_token}
        )
        assert resp.status_code == 401
        assert resp.json() == UNAUTHENTICATED

    async def test_disabled_account_is_rejected(self, client, auth):
        pair = auth.login("mallory", ["ROLE_USER"])
        resp = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": pair.refresh_token}
        )
        assert resp.status_code == 401

    async def test_expired_refresh_token(self, client, auth, clock):
        pair = auth.login("alice", ["ROLE_USER"])
        clock.advance(days=7, seconds=1)
        resp = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": pair.refresh_token}
        )
        assert resp.status_code == 401

    async def test_empty_body_is_validation_error(self, client):
        resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": ""})
        assert resp.status_code == 422

    async def test_without_identity_source_is_rejected(self, client, settings, clock):
        app.state.auth = AuthContainer.from_settings(settings, clock=clock)
        pair = app.state.auth.service.login("alice", ["ROLE_USER"])
        resp = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": pair.refresh_token}
        )
        assert resp.status_code == 401
        assert resp.json() == UNAUTHENTICATED


# ======================================================================
# POST /api/v1/auth/logout
# ======================================================================


class TestLogoutEndpoint:
    async def test_logout_then_me_is_rejected(self, client, auth):
        pair = auth.login("alice", ["ROLE_USER"])
        headers = auth_headers(pair.access_token)

        assert (await client.get("/api/v1/auth/me", headers=headers)).status_code == 200

        resp = await client.post("/api/v1/auth/logout", headers=headers)
        assert resp.status_code == 204

        assert (await client.get("/api/v1/auth/me", headers=headers)).status_code == 401

    async def test_logout_revokes_refresh_token_too(self, client, auth):
        pair = auth.login("alice", ["ROLE_USER"])
        resp = await client.post(
            "/api/v1/auth/logout",
            headers=auth_headers(pair.access_token),
            json={"refresh_token": pair.refresh_token},
        )
        assert resp.status_code == 204

        refresh = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": pair.refresh_token}
        )
        assert refresh.status_code == 401

    async def test_logout_with_expired_token_is_still_204(self, client, auth, clock):
        pair = auth.login("alice", ["ROLE_USER"])
        clock.advance(days=2)
        resp = await client.post("/api/v1/auth/logout", headers=auth_headers(pair.access_token))
        assert resp.status_code == 204

    async def test_logout_without_token(self, client):
        resp = await client.post("/api/v1/auth/logout")
        assert resp.status_code == 401


# ======================================================================
# Health + middleware
# ======================================================================


class TestHealthAndHeaders:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    async def test_request_id_is_echoed(self, client):
        resp = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["x-request-id"] == "req-123"

    async def test_request_id_is_generated(self, client):
        resp = await client.get("/health")
        assert resp.headers["x-request-id"]

    async def test_security_headers(self, client):
        resp = await client.get("/health")
        assert resp.headers["x-content-type-options"] == "nosniff"
        assert resp.headers["cache-control"] == "no-store"
