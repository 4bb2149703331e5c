"""Access and refresh token issuance."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from taskauth.auth.claims import ClaimCodec, ClaimSet, TokenType, utc_now
from taskauth.auth.keys import KeyManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    """A signed token together with the claims it was built from."""

    token: str
    claims: ClaimSet


class TokenIssuer:
    """Produces signed tokens. Has no side effects beyond building the string."""

    def __init__(
        self,
        codec: ClaimCodec,
        keys: KeyManager,
        *,
        access_lifetime: timedelta,
        refresh_lifetime: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ):
        if access_lifetime <= timedelta(0) or refresh_lifetime <= timedelta(0):
            raise ValueError("Token lifetimes must be positive")
        if access_lifetime == refresh_lifetime:
            raise ValueError("Access and refresh tokens must have distinct lifetimes")
        self.codec = codec
        self.keys = keys
        self.access_lifetime = access_lifetime
        self.refresh_lifetime = refresh_lifetime
        self._clock = clock

    def issue_access(
        self, identity: str, authorities: Iterable[str], now: datetime | None = None
    ) -> IssuedToken:
        """Issue an access token embedding *authorities*."""
        return self._issue(
            identity, tuple(authorities), TokenType.access, now, self.access_lifetime
        )

    def issue_refresh(self, identity: str, now: datetime | None = None) -> IssuedToken:
        """Issue a refresh token; it carries only the subject and ``type=refresh``."""
        return self._issue(identity, (), TokenType.refresh, now, self.refresh_lifetime)

    def issue_access_token(
        self, identity: str, authorities: Iterable[str], now: datetime | None = None
    ) -> str:
        return self.issue_access(identity, authorities, now).token

    def issue_refresh_token(self, identity: str, now: datetime | None = None) -> str:
        return self.issue_refresh(identity, now).token

    def _issue(
        self,
        identity: str,
        authorities: tuple[str, ...],
        token_type: TokenType,
        now: datetime | None,
        lifetime: timedelta,
    ) -> IssuedToken:
        # Resolve the key first so a bad secret produces no claims at all
        key = self.keys.signing_key()
        claims = self.codec.encode(
            identity,
            authorities,
            token_type,
            now if now is not None else self._clock(),
            lifetime,
        )
        logger.debug(
            "Issuing %s token jti=%s sub=%s authorities=%s",
            token_type.value,
            claims.token_id,
            claims.subject,
            list(claims.authorities),
        )
        return IssuedToken(token=self.codec.sign(claims, key), claims=claims)
