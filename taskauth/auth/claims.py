"""Claim set model and the JWT encode/decode primitive.

The compact serialisation itself is delegated to python-jose.  This module
decides *which* claims a token carries and how a decoded payload is turned
back into a ``ClaimSet``, classifying every failure into the error taxonomy
in ``taskauth.auth.errors``.

Timestamps are carried as NumericDate values with millisecond precision
(``1760000000.123``) so very short lifetimes remain meaningful and a decoded
claim set compares equal to the one that was encoded.  The expiry window is
checked here against a caller-supplied clock rather than by python-jose,
which only resolves whole seconds.
"""

import enum
import secrets
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import jwt
from jose.exceptions import JWTClaimsError, JWTError
from jose.utils import base64url_decode, base64url_encode

from taskauth.auth.errors import (
    AudienceMismatchError,
    ExpiredError,
    IssuerMismatchError,
    MalformedTokenError,
    NotYetValidError,
    SignatureInvalidError,
    UnsupportedAlgorithmError,
)
from taskauth.auth.keys import SigningKey
from taskauth.constants import CLAIM_AUTHORITIES, CLAIM_TYPE, SUPPORTED_ALGORITHM

# Signature, issuer and audience are checked by python-jose; the time window
# is checked by ClaimCodec.check_window.
_JOSE_OPTIONS: dict[str, Any] = {
    "verify_signature": True,
    "verify_aud": True,
    "verify_iss": True,
    "verify_sub": True,
    "verify_jti": True,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_exp": False,
}

_TOKEN_ID_BYTES = 16  # 128 bits


class TokenType(enum.StrEnum):
    """Discriminator carried in the ``type`` claim."""

    access = "access"
    refresh = "refresh"


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalise *value* to an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def truncate_to_millis(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def to_numeric_date(value: datetime) -> float:
    return round(as_utc(value).timestamp(), 3)


def from_numeric_date(value: int | float) -> datetime:
    return datetime.fromtimestamp(value, tz=UTC)


def _has_canonical_signature(token: str) -> bool:
    """Reject signature segments whose unused base64url bits are set.

    python-jose ignores those bits, so several strings would otherwise verify
    as the same signature.
    """
    segment = token.rsplit(".", 1)[-1]
    try:
        raw = segment.encode("ascii")
        return base64url_encode(base64url_decode(raw)) == raw
    except ValueError:
        return False


def new_token_id() -> str:
    """Return a fresh 128-bit random token identifier."""
    return secrets.token_hex(_TOKEN_ID_BYTES)


@dataclass(frozen=True)
class ClaimSet:
    """Semantic content of a token."""

    subject: str
    issuer: str
    audience: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime
    token_id: str
    token_type: TokenType
    authorities: tuple[str, ...] = ()

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) > self.expires_at

    def remaining(self, now: datetime) -> timedelta:
        """Time left before expiry; never negative."""
        return max(self.expires_at - as_utc(now), timedelta(0))

    def to_payload(self) -> dict[str, Any]:
        """Registered + private claims, ready for signing."""
        payload: dict[str, Any] = {
            "sub": self.subject,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": to_numeric_date(self.issued_at),
            "nbf": to_numeric_date(self.not_before),
            "exp": to_numeric_date(self.expires_at),
            "jti": self.token_id,
            CLAIM_TYPE: self.token_type.value,
        }
        # Refresh tokens carry no authorities at all
        if self.token_type is TokenType.access:
            payload[CLAIM_AUTHORITIES] = list(self.authorities)
        return payload


class ClaimCodec:
    """Builds claim sets and converts them to and from signed tokens."""

    def __init__(
        self,
        issuer: str,
        audience: str,
        *,
        algorithm: str = SUPPORTED_ALGORITHM,
        leeway: timedelta = timedelta(0),
    ):
        if algorithm != SUPPORTED_ALGORITHM:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm
        self.leeway = leeway

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(
        self,
        identity: str,
        authorities: Iterable[str],
        token_type: TokenType,
        now: datetime,
        lifetime: timedelta,
    ) -> ClaimSet:
        """Build a fresh, internally consistent claim set.

        Only ``token_id`` is random; everything else is a function of the
        arguments.  ``not_before`` always equals ``issued_at``.
        """
        if not identity or not identity.strip():
            raise ValueError("Token subject must be a non-empty string")
        if lifetime <= timedelta(0):
            raise ValueError("Token lifetime must be positive")

        authorities = tuple(authorities)
        if token_type is TokenType.refresh and authorities:
            raise ValueError("Refresh tokens must not carry authorities")

        issued_at = truncate_to_millis(as_utc(now))
        return ClaimSet(
            subject=identity,
            issuer=self.issuer,
            audience=self.audience,
            issued_at=issued_at,
            not_before=issued_at,
            expires_at=truncate_to_millis(issued_at + lifetime),
            token_id=new_token_id(),
            token_type=token_type,
            authorities=authorities,
        )

    def sign(self, claims: ClaimSet, key: SigningKey) -> str:
        """Serialise *claims* into a compact signed JWT."""
        return jwt.encode(
            claims.to_payload(),
            key.material,
            algorithm=self.algorithm,
            headers={"typ": "JWT"},
        )

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(
        self,
        token: str,
        key: SigningKey,
        *,
        now: datetime | None = None,
        verify_window: bool = True,
    ) -> ClaimSet:
        """Verify *token* and return its claim set.

        Raises one of ``MalformedTokenError``, ``UnsupportedAlgorithmError``,
        ``SignatureInvalidError``, ``IssuerMismatchError``,
        ``AudienceMismatchError``, ``ExpiredError`` or ``NotYetValidError``.
        With ``verify_window=False`` the signature and fixed claims are still
        checked but an expired token is returned instead of rejected.
        """
        if not isinstance(token, str) or not token.strip():
            raise MalformedTokenError("Token is empty")

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedTokenError(f"Unreadable token header: {exc}") from exc

        algorithm = header.get("alg") if isinstance(header, Mapping) else None
        if algorithm != self.algorithm:
            raise UnsupportedAlgorithmError(f"Token algorithm {algorithm!r} is not accepted")

        if not _has_canonical_signature(token):
            raise SignatureInvalidError("Token signature is not canonically encoded")

        try:
            payload = jwt.decode(
                token,
                key.material,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options=dict(_JOSE_OPTIONS),
            )
        except JWTClaimsError as exc:
            raise self._classify_claims_error(exc) from exc
        except JWTError as exc:
            raise SignatureInvalidError(f"Token verification failed: {exc}") from exc

        claims = self._from_payload(payload)
        if verify_window:
            self.check_window(claims, now if now is not None else utc_now())
        return claims

    def check_window(self, claims: ClaimSet, now: datetime) -> None:
        """Enforce ``not_before <= now <= expires_at`` (widened by the leeway)."""
        now = as_utc(now)
        if now > claims.expires_at + self.leeway:
            raise ExpiredError("Token has expired", token_id=claims.token_id)
        if now < claims.not_before - self.leeway:
            raise NotYetValidError("Token is not yet valid", token_id=claims.token_id)

    @staticmethod
    def peek(token: str) -> dict[str, Any]:
        """Return the *unverified* claims of *token*.

        For diagnostics only; nothing read here may drive an authorization
        decision.
        """
        try:
            return jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedTokenError(f"Unreadable token payload: {exc}") from exc

    def _classify_claims_error(self, exc: JWTClaimsError) -> Exception:
        message = str(exc).lower()
        if "issuer" in message:
            return IssuerMismatchError("Token issuer does not match")
        if "audience" in message:
            return AudienceMismatchError("Token audience does not match")
        return MalformedTokenError(f"Invalid token claims: {exc}")

    def _from_payload(self, payload: Mapping[str, Any]) -> ClaimSet:
        token_id = payload.get("jti")
        if not isinstance(token_id, str) or not token_id:
            raise MalformedTokenError("Token is missing its id (jti)")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise MalformedTokenError("Token is missing its subject", token_id=token_id)

        # python-jose skips the audience check entirely when the claim is absent
        if "aud" not in payload:
            raise AudienceMismatchError("Token has no audience", token_id=token_id)
        if payload.get("iss") != self.issuer:
            raise IssuerMismatchError("Token issuer does not match", token_id=token_id)

        try:
            token_type = TokenType(payload.get(CLAIM_TYPE))
        except ValueError as exc:
            raise MalformedTokenError(
                "Token type is missing or unknown", token_id=token_id
            ) from exc

        timestamps = {}
        for name in ("iat", "nbf", "exp"):
            value = payload.get(name)
            if isinstance(value, bool) or not isinstance(value, int | float):
                raise MalformedTokenError(f"Token claim {name!r} is missing", token_id=token_id)
            timestamps[name] = from_numeric_date(value)

        raw_authorities = payload.get(CLAIM_AUTHORITIES)
        if raw_authorities is None and token_type is TokenType.refresh:
            raw_authorities = []
        if not isinstance(raw_authorities, list) or not all(
            isinstance(a, str) for a in raw_authorities
        ):
            raise MalformedTokenError("Token authorities are malformed", token_id=token_id)

        return ClaimSet(
            subject=subject,
            issuer=self.issuer,
            audience=self.audience,
            issued_at=timestamps["iat"],
            not_before=timestamps["nbf"],
            expires_at=timestamps["exp"],
            token_id=token_id,
            token_type=token_type,
            authorities=tuple(raw_authorities),
        )
