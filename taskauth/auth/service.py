"""Authentication facade: the single entry point for token operations.

Lifecycle of a token::

    issued --> valid --+--> expired   (natural, terminal)
                       +--> revoked   (logout, terminal)

Nothing moves a token out of ``expired`` or ``revoked``.  Validation paths
(``authenticate``, ``refresh``, ``is_valid``, ``logout``) never raise on a bad
token; they return ``Rejected`` / ``False``.  Only configuration errors
(missing or weak secret) propagate, plus a deny-list write that the
revocation backend could not record during ``logout``.

Refresh tokens are deliberately not rotated: exchanging one leaves it valid
until its own expiry.  Pass it to ``logout`` to revoke it early.
"""

import enum
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from taskauth.auth.claims import ClaimSet, TokenType, utc_now
from taskauth.auth.errors import (
    AccountDisabledError,
    ExpiredError,
    IdentityUnavailableError,
    NotYetValidError,
    RejectionReason,
    TokenRejectedError,
    TokenRevokedError,
)
from taskauth.auth.identity import IdentitySource
from taskauth.auth.issuer import TokenIssuer
from taskauth.auth.revocation import RevocationStore
from taskauth.auth.verifier import Rejected, TokenVerifier, Valid, VerificationResult, log_rejection

logger = logging.getLogger(__name__)


class TokenState(enum.StrEnum):
    """Where a token currently sits in its lifecycle."""

    valid = "valid"
    not_yet_valid = "not_yet_valid"
    expired = "expired"
    revoked = "revoked"
    invalid = "invalid"


@dataclass(frozen=True)
class TokenPair:
    """Tokens handed out at login."""

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


@dataclass(frozen=True)
class Refreshed:
    """A refresh token was exchanged for a new access token."""

    access_token: str
    claims: ClaimSet

    def __bool__(self) -> bool:
        return True


RefreshResult = Refreshed | Rejected


class AuthService:
    """Combines issuer, verifier and revocation store."""

    def __init__(
        self,
        issuer: TokenIssuer,
        verifier: TokenVerifier,
        revocations: RevocationStore,
        *,
        identities: IdentitySource | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.issuer = issuer
        self.verifier = verifier
        self.revocations = revocations
        self.identities = identities
        self._clock = clock

    def _now(self, now: datetime | None) -> datetime:
        return now if now is not None else self._clock()

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def login(
        self, identity: str, authorities: Iterable[str], now: datetime | None = None
    ) -> TokenPair:
        """Issue an access/refresh pair for an already authenticated principal."""
        now = self._now(now)
        access = self.issuer.issue_access(identity, authorities, now)
        refresh = self.issuer.issue_refresh(identity, now)
        logger.info("Issued token pair for sub=%s access_jti=%s", identity, access.claims.token_id)
        return TokenPair(
            access_token=access.token,
            refresh_token=refresh.token,
            expires_in=int(self.issuer.access_lifetime.total_seconds()),
        )

    def refresh(self, refresh_token: str, now: datetime | None = None) -> RefreshResult:
        """Exchange a valid refresh token for a new access token.

        Refresh tokens carry no authorities, so the principal's current ones
        are looked up in the identity source.  Without a source, or for a
        disabled or unknown account, the exchange is rejected.
        """
        now = self._now(now)
        result = self.verifier.check(refresh_token, TokenType.refresh, now)
        if isinstance(result, Rejected):
            return result

        subject = result.claims.subject
        if self.identities is None:
            exc = IdentityUnavailableError(
                "No identity source configured; refresh is unavailable",
                token_id=result.claims.token_id,
            )
            log_rejection(exc, context="refresh")
            return Rejected(exc.reason)

        identity = self.identities.lookup(subject)
        if identity is None or not identity.enabled:
            log_rejection(
                AccountDisabledError(
                    f"Account {subject!r} is unknown or disabled",
                    token_id=result.claims.token_id,
                ),
                context="refresh",
            )
            return Rejected(RejectionReason.account_disabled)

        issued = self.issuer.issue_access(subject, identity.authorities, now)
        logger.info(
            "Refreshed access token for sub=%s refresh_jti=%s access_jti=%s",
            subject,
            result.claims.token_id,
            issued.claims.token_id,
        )
        return Refreshed(access_token=issued.token, claims=issued.claims)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def authenticate(self, access_token: str, now: datetime | None = None) -> VerificationResult:
        """Validate an access token presented on a request."""
        return self.verifier.check(access_token, TokenType.access, self._now(now))

    def is_valid(self, token: str, expected_subject: str, now: datetime | None = None) -> bool:
        return self.verifier.is_valid(token, expected_subject, TokenType.access, self._now(now))

    def state_of(
        self,
        token: str,
        expected_type: TokenType | None = None,
        now: datetime | None = None,
    ) -> TokenState:
        """Classify *token* into its lifecycle state."""
        try:
            self.verifier.verify(token, expected_type, self._now(now))
        except ExpiredError:
            return TokenState.expired
        except NotYetValidError:
            return TokenState.not_yet_valid
        except TokenRevokedError:
            return TokenState.revoked
        except TokenRejectedError:
            return TokenState.invalid
        return TokenState.valid

    def subject_of(self, token: str) -> str | None:
        """Return the subject of a correctly signed token, expired or not."""
        try:
            claims = self.verifier.codec.decode(
                token, self.verifier.keys.signing_key(), verify_window=False
            )
        except TokenRejectedError as exc:
            log_rejection(exc, context="subject_of")
            return None
        return claims.subject

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    def logout(
        self,
        access_token: str,
        refresh_token: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Revoke the presented token(s).

        The tokens need not still be valid: an already expired token is a
        no-op, and a forged or malformed one is logged and ignored.  Returns
        ``True`` if the access token was revoked by this call.
        """
        now = self._now(now)
        revoked = self.revoke(access_token, now)
        if refresh_token is not None:
            self.revoke(refresh_token, now)
        return revoked

    def revoke(self, token: str, now: datetime | None = None) -> bool:
        """Put a correctly signed, unexpired token on the deny-list."""
        now = self._now(now)
        try:
            claims = self.verifier.codec.decode(
                token, self.verifier.keys.signing_key(), verify_window=False
            )
        except TokenRejectedError as exc:
            log_rejection(exc, context="revoke")
            return False

        if claims.is_expired(now):
            logger.debug("Ignoring revocation of already expired token jti=%s", claims.token_id)
            return False

        self.revocations.revoke(claims.token_id, claims.expires_at)
        logger.info(
            "Token revoked jti=%s sub=%s type=%s",
            claims.token_id,
            claims.subject,
            claims.token_type.value,
        )
        return True

    def sweep(self, now: datetime | None = None) -> int:
        """Drop revocation entries for tokens that have expired."""
        return self.revocations.sweep(self._now(now))


__all__ = [
    "AuthService",
    "Refreshed",
    "RefreshResult",
    "Rejected",
    "TokenPair",
    "TokenState",
    "Valid",
    "VerificationResult",
]
