"""Shared test fixtures for the auth service."""

import os

from tests.helpers.token_factory import TEST_SECRET

# Set test JWT secret before any app imports trigger Settings() validation.
os.environ.setdefault("JWT_SECRET_KEY", TEST_SECRET)

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import timedelta  # noqa: E402

import fakeredis  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from taskauth.auth.claims import ClaimCodec  # noqa: E402
from taskauth.auth.identity import Identity, StaticIdentitySource  # noqa: E402
from taskauth.auth.issuer import TokenIssuer  # noqa: E402
from taskauth.auth.keys import KeyManager  # noqa: E402
from taskauth.auth.revocation import InMemoryRevocationStore  # noqa: E402
from taskauth.auth.service import AuthService  # noqa: E402
from taskauth.auth.verifier import TokenVerifier  # noqa: E402
from taskauth.config import Settings  # noqa: E402
from taskauth.constants import DEFAULT_AUDIENCE, DEFAULT_ISSUER  # noqa: E402
from taskauth.dependencies import AuthContainer  # noqa: E402
from taskauth.main import app  # noqa: E402
from tests.helpers.clock import FrozenClock  # noqa: E402

ACCESS_LIFETIME = timedelta(hours=1)
REFRESH_LIFETIME = timedelta(days=7)

# ---------------------------------------------------------------------------
# Clock + settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        jwt_secret_key=TEST_SECRET,
        jwt_access_token_expire_seconds=int(ACCESS_LIFETIME.total_seconds()),
        jwt_refresh_token_expire_seconds=int(REFRESH_LIFETIME.total_seconds()),
    )


@pytest.fixture()
def identities() -> StaticIdentitySource:
    return StaticIdentitySource(
        [
            Identity(principal="alice", authorities=("ROLE_USER",)),
            Identity(principal="bob", authorities=("ROLE_USER", "ROLE_ADMIN")),
            Identity(principal="mallory", enabled=False, authorities=("ROLE_USER",)),
        ]
    )


# ---------------------------------------------------------------------------
# Token components wired by hand on the frozen clock
# ---------------------------------------------------------------------------


@pytest.fixture()
def keys() -> KeyManager:
    return KeyManager(TEST_SECRET)


@pytest.fixture()
def codec() -> ClaimCodec:
    return ClaimCodec(DEFAULT_ISSUER, DEFAULT_AUDIENCE)


@pytest.fixture()
def store(clock) -> InMemoryRevocationStore:
    return InMemoryRevocationStore(clock=clock)


@pytest.fixture()
def issuer(codec, keys, clock) -> TokenIssuer:
    return TokenIssuer(
        codec,
        keys,
        access_lifetime=ACCESS_LIFETIME,
        refresh_lifetime=REFRESH_LIFETIME,
        clock=clock,
    )


@pytest.fixture()
def verifier(codec, keys, store, clock) -> TokenVerifier:
    return TokenVerifier(codec, keys, store, clock=clock)


@pytest.fixture()
def service(issuer, verifier, store, identities, clock) -> AuthService:
    return AuthService(issuer, verifier, store, identities=identities, clock=clock)


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


@pytest.fixture()
def redis_client():
    """Provide a fake synchronous Redis client."""
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.close()


@pytest.fixture()
def disconnected_redis():
    """Provide a fake Redis client whose server is down."""
    server = fakeredis.FakeServer()
    server.connected = False
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.close()


# ---------------------------------------------------------------------------
# HTTP client fixture (FastAPI app with the container injected)
# ---------------------------------------------------------------------------


@pytest.fixture()
def container(settings, identities, clock) -> AuthContainer:
    return AuthContainer.from_settings(settings, identities=identities, clock=clock)


@pytest_asyncio.fixture()
async def client(container) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the FastAPI app.

    The lifespan does not run under ASGITransport, so the container is
    placed on ``app.state`` directly.
    """
    app.state.auth = container

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(token: str) -> dict[str, str]:
    """Return Authorization header dict for *token*."""
    return {"Authorization": f"Bearer {token}"}
