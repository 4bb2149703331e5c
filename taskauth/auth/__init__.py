"""JWT issuance, verification and revocation."""
from taskauth.auth.claims import ClaimCodec, ClaimSet, TokenType
from taskauth.auth.errors import (
    AuthError,
    ConfigurationError,
    MissingSecretError,
    RejectionReason,
    TokenRejectedError,
    WeakKeyError,
)
from taskauth.auth.issuer import TokenIssuer
from taskauth.auth.keys import KeyManager, SigningKey, signing_key
from taskauth.auth.revocation import InMemoryRevocationStore, RedisRevocationStore, RevocationStore
from taskauth.auth.service import AuthService, Refreshed, TokenPair, TokenState
from taskauth.auth.verifier import Rejected, TokenVerifier, Valid

__all__ = [
    # Components
    "AuthService",
    "ClaimCodec",
    "KeyManager",
    "TokenIssuer",
    "TokenVerifier",
    "InMemoryRevocationStore",
    "RedisRevocationStore",
    "RevocationStore",
    # Values
    "ClaimSet",
    "Refreshed",
    "Rejected",
    "SigningKey",
    "TokenPair",
    "TokenState",
    "TokenType",
    "Valid",
    "signing_key",
    # Errors
    "AuthError",
    "ConfigurationError",
    "MissingSecretError",
    "RejectionReason",
    "TokenRejectedError",
    "WeakKeyError",
]
