"""Error taxonomy for the token subsystem.

Two families exist:

* ``ConfigurationError`` - the signing secret is missing or too weak.  These
  are fatal: they propagate out of every call and are never turned into a
  rejection result.
* ``TokenRejectedError`` - a presented token failed one of the checks.  Each
  subclass carries a stable ``RejectionReason`` and an ``ErrorCategory`` that
  decides how loudly it is logged.  Callers that need a yes/no answer use the
  result-returning APIs in ``verifier`` and ``service`` which catch these.
"""

import enum
import logging


class ErrorCategory(enum.StrEnum):
    """Broad class of failure, used to pick a log level."""

    configuration = "configuration"
    malformed_input = "malformed_input"
    temporal = "temporal"
    semantic = "semantic"
    revocation = "revocation"
    backend = "backend"

    @property
    def log_level(self) -> int:
        return _CATEGORY_LOG_LEVELS[self]


_CATEGORY_LOG_LEVELS: dict[ErrorCategory, int] = {
    ErrorCategory.configuration: logging.ERROR,
    ErrorCategory.malformed_input: logging.WARNING,
    ErrorCategory.temporal: logging.DEBUG,
    ErrorCategory.semantic: logging.WARNING,
    ErrorCategory.revocation: logging.INFO,
    ErrorCategory.backend: logging.ERROR,
}


class RejectionReason(enum.StrEnum):
    """Machine-readable reason a token was rejected. Never sent to clients."""

    malformed = "malformed"
    signature_invalid = "signature_invalid"
    unsupported_algorithm = "unsupported_algorithm"
    expired = "expired"
    not_yet_valid = "not_yet_valid"
    issuer_mismatch = "issuer_mismatch"
    audience_mismatch = "audience_mismatch"
    type_mismatch = "type_mismatch"
    subject_mismatch = "subject_mismatch"
    revoked = "revoked"
    account_disabled = "account_disabled"
    identity_unavailable = "identity_unavailable"
    revocation_unavailable = "revocation_unavailable"


class AuthError(Exception):
    """Base authentication error."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(AuthError):
    """The token subsystem is misconfigured and cannot operate."""

    category = ErrorCategory.configuration


class MissingSecretError(ConfigurationError):
    """No signing secret was configured."""


class WeakKeyError(ConfigurationError):
    """The signing secret is shorter than the algorithm requires."""


# ---------------------------------------------------------------------------
# Token rejections
# ---------------------------------------------------------------------------


class TokenRejectedError(AuthError):
    """A presented token failed validation."""

    reason: RejectionReason = RejectionReason.malformed
    category: ErrorCategory = ErrorCategory.malformed_input

    def __init__(self, message: str = "", *, token_id: str | None = None) -> None:
        super().__init__(message or self.reason.value)
        self.token_id = token_id


class MalformedTokenError(TokenRejectedError):
    reason = RejectionReason.malformed
    category = ErrorCategory.malformed_input


class SignatureInvalidError(TokenRejectedError):
    reason = RejectionReason.signature_invalid
    category = ErrorCategory.malformed_input


class UnsupportedAlgorithmError(TokenRejectedError):
    reason = RejectionReason.unsupported_algorithm
    category = ErrorCategory.malformed_input


class ExpiredError(TokenRejectedError):
    reason = RejectionReason.expired
    category = ErrorCategory.temporal


class NotYetValidError(TokenRejectedError):
    reason = RejectionReason.not_yet_valid
    category = ErrorCategory.temporal


class IssuerMismatchError(TokenRejectedError):
    reason = RejectionReason.issuer_mismatch
    category = ErrorCategory.semantic


class AudienceMismatchError(TokenRejectedError):
    reason = RejectionReason.audience_mismatch
    category = ErrorCategory.semantic


class TokenTypeMismatchError(TokenRejectedError):
    reason = RejectionReason.type_mismatch
    category = ErrorCategory.semantic


class SubjectMismatchError(TokenRejectedError):
    reason = RejectionReason.subject_mismatch
    category = ErrorCategory.semantic


class TokenRevokedError(TokenRejectedError):
    reason = RejectionReason.revoked
    category = ErrorCategory.revocation


class AccountDisabledError(TokenRejectedError):
    """The token is fine but its subject may no longer be issued tokens."""

    reason = RejectionReason.account_disabled
    category = ErrorCategory.semantic


class IdentityUnavailableError(TokenRejectedError):
    """No identity source can confirm the subject's current authorities."""

    reason = RejectionReason.identity_unavailable
    category = ErrorCategory.backend


class RevocationUnavailableError(TokenRejectedError):
    """The deny-list could not be consulted; the token is refused."""

    reason = RejectionReason.revocation_unavailable
    category = ErrorCategory.backend
