"""Component wiring and FastAPI dependency providers."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Annotated

from fastapi import Depends, Request
from redis import Redis

from taskauth.auth.claims import ClaimCodec, utc_now
from taskauth.auth.identity import CachedIdentitySource, IdentitySource
from taskauth.auth.issuer import TokenIssuer
from taskauth.auth.keys import KeyManager
from taskauth.auth.revocation import InMemoryRevocationStore, RedisRevocationStore, RevocationStore
from taskauth.auth.service import AuthService
from taskauth.auth.verifier import TokenVerifier
from taskauth.config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_redis(settings: Settings) -> Redis:
    """Create the Redis client backing the shared deny-list."""
    return Redis.from_url(str(settings.redis_url), decode_responses=True)


def create_revocation_store(
    settings: Settings,
    *,
    clock: Callable[[], datetime] = utc_now,
    redis: Redis | None = None,
) -> RevocationStore:
    """Pick the revocation backend named by ``revocation_backend``."""
    if settings.revocation_backend == "redis":
        return RedisRevocationStore(redis or create_redis(settings), clock=clock)
    return InMemoryRevocationStore(clock=clock, max_entries=settings.revocation_max_entries)


@dataclass
class AuthContainer:
    """Holds the wired token components for one process.

    Replaces framework-managed singletons with an explicit container that
    the application creates at startup and owns.
    """

    keys: KeyManager
    revocations: RevocationStore
    service: AuthService
    redis: Redis | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        identities: IdentitySource | None = None,
        clock: Callable[[], datetime] = utc_now,
        redis: Redis | None = None,
    ) -> "AuthContainer":
        """Factory that wires key manager, codec, issuer, verifier and store."""
        keys = KeyManager(settings.jwt_secret_key)
        codec = ClaimCodec(
            settings.jwt_issuer,
            settings.jwt_audience,
            algorithm=settings.jwt_algorithm,
            leeway=settings.leeway,
        )
        if settings.revocation_backend == "redis" and redis is None:
            redis = create_redis(settings)
        revocations = create_revocation_store(settings, clock=clock, redis=redis)

        if identities is not None:
            identities = CachedIdentitySource(
                identities,
                ttl=timedelta(seconds=settings.identity_cache_ttl_seconds),
                max_entries=settings.identity_cache_max_entries,
            )

        issuer = TokenIssuer(
            codec,
            keys,
            access_lifetime=settings.access_token_lifetime,
            refresh_lifetime=settings.refresh_token_lifetime,
            clock=clock,
        )
        verifier = TokenVerifier(codec, keys, revocations, clock=clock)
        service = AuthService(issuer, verifier, revocations, identities=identities, clock=clock)
        return cls(keys=keys, revocations=revocations, service=service, redis=redis)

    def verify(self) -> None:
        """Fail fast on a bad secret or unreachable Redis. Call before accepting traffic."""
        self.keys.signing_key()
        logger.info("JWT signing key verified")
        if self.redis is not None:
            self.redis.ping()
            logger.info("Redis connectivity verified")

    def close(self) -> None:
        """Dispose of all managed resources."""
        if self.redis is not None:
            self.redis.close()


# ---------------------------------------------------------------------------
# FastAPI dependencies - pull resources from app.state (set in lifespan)
# ---------------------------------------------------------------------------


def get_auth_container(request: Request) -> AuthContainer:
    return request.app.state.auth


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth.service


# ---------------------------------------------------------------------------
# Type aliases for cleaner dependency injection
# ---------------------------------------------------------------------------
AuthSvc = Annotated[AuthService, Depends(get_auth_service)]
AppSettings = Annotated[Settings, Depends(get_settings)]
