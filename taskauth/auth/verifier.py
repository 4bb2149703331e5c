"""Token verification.

``TokenVerifier.verify`` runs every check and raises a typed
``TokenRejectedError``.  ``check`` narrows that to a ``Valid | Rejected``
result and ``is_valid`` narrows it further to a boolean; neither lets a
rejection escape.

Checks, all mandatory:

1. structure + signature + issuer/audience (``ClaimCodec.decode``)
2. ``not_before <= now <= expires_at``
3. ``type`` equals the expected token type
4. ``jti`` is not on the deny-list
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from taskauth.auth.claims import ClaimCodec, ClaimSet, TokenType, utc_now
from taskauth.auth.errors import (
    AuthError,
    ErrorCategory,
    RejectionReason,
    SubjectMismatchError,
    TokenRejectedError,
    TokenRevokedError,
    TokenTypeMismatchError,
)
from taskauth.auth.keys import KeyManager
from taskauth.auth.revocation import RevocationStore

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("taskauth.security")


@dataclass(frozen=True)
class Valid:
    """The token passed every check."""

    claims: ClaimSet

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    """The token failed a check. ``reason`` is for logs and metrics only."""

    reason: RejectionReason

    def __bool__(self) -> bool:
        return False


VerificationResult = Valid | Rejected


def log_rejection(exc: TokenRejectedError, *, context: str = "verify") -> None:
    """Log a rejection at the level its category calls for."""
    target = security_logger if exc.category is ErrorCategory.semantic else logger
    target.log(
        exc.category.log_level,
        "Token rejected during %s: reason=%s jti=%s detail=%s",
        context,
        exc.reason.value,
        exc.token_id or "-",
        exc,
    )


class TokenVerifier:
    """Parses and validates tokens presented by clients."""

    def __init__(
        self,
        codec: ClaimCodec,
        keys: KeyManager,
        revocations: RevocationStore,
        *,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.codec = codec
        self.keys = keys
        self.revocations = revocations
        self._clock = clock

    def verify(
        self,
        token: str,
        expected_type: TokenType | None,
        now: datetime | None = None,
    ) -> ClaimSet:
        """Run every check and return the claims, or raise ``TokenRejectedError``.

        ``expected_type=None`` skips only the type check (generic structural
        validation).
        """
        now = now if now is not None else self._clock()
        claims = self.codec.decode(token, self.keys.signing_key(), now=now)

        if expected_type is not None and claims.token_type is not expected_type:
            raise TokenTypeMismatchError(
                f"Expected a {expected_type.value} token, got {claims.token_type.value}",
                token_id=claims.token_id,
            )

        if self.revocations.is_revoked(claims.token_id, now):
            raise TokenRevokedError("Token has been revoked", token_id=claims.token_id)

        return claims

    def check(
        self,
        token: str,
        expected_type: TokenType | None,
        now: datetime | None = None,
    ) -> VerificationResult:
        """Like ``verify`` but returns ``Valid`` or ``Rejected`` instead of raising.

        Configuration errors still propagate.
        """
        try:
            return Valid(self.verify(token, expected_type, now))
        except TokenRejectedError as exc:
            log_rejection(exc)
            return Rejected(exc.reason)

    def is_valid(
        self,
        token: str,
        expected_subject: str,
        expected_type: TokenType | None = TokenType.access,
        now: datetime | None = None,
    ) -> bool:
        """Return ``True`` only for a valid token whose subject is *expected_subject*.

        Never raises.
        """
        try:
            claims = self.verify(token, expected_type, now)
            if claims.subject != expected_subject:
                raise SubjectMismatchError(
                    f"Token subject {claims.subject!r} does not match {expected_subject!r}",
                    token_id=claims.token_id,
                )
        except TokenRejectedError as exc:
            log_rejection(exc, context="is_valid")
            return False
        except AuthError:
            logger.exception("Token validation failed on a configuration error")
            return False
        return True
