"""Signing key derivation.

The HMAC key is the UTF-8 encoding of the configured secret.  It is derived
on first use (so a bad secret fails the first issuance/verification rather
than import) and then kept for the lifetime of the process.  There is no
hot rotation: changing the secret means restarting the service, which also
invalidates every outstanding token.
"""

import logging
import threading
from dataclasses import dataclass, field

from taskauth.auth.errors import MissingSecretError, WeakKeyError
from taskauth.constants import MIN_SECRET_BYTES, SUPPORTED_ALGORITHM, WEAK_SECRET_MARKERS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigningKey:
    """Immutable HMAC key material."""

    material: bytes = field(repr=False)
    algorithm: str = SUPPORTED_ALGORITHM

    def __len__(self) -> int:
        return len(self.material)


def looks_like_placeholder(secret: str) -> bool:
    """Return ``True`` if *secret* contains a known demo/placeholder marker."""
    lowered = secret.lower()
    return any(marker in lowered for marker in WEAK_SECRET_MARKERS)


def signing_key(secret: str | None) -> SigningKey:
    """Derive a signing key from *secret*.

    Raises:
        MissingSecretError: the secret is ``None``, empty or whitespace.
        WeakKeyError: the secret encodes to fewer than 32 bytes.
    """
    if secret is None or not secret.strip():
        raise MissingSecretError("JWT secret cannot be null or empty")

    material = secret.encode("utf-8")
    if len(material) < MIN_SECRET_BYTES:
        raise WeakKeyError(
            f"JWT secret must be at least {MIN_SECRET_BYTES} bytes long "
            f"(got {len(material)})"
        )

    if looks_like_placeholder(secret):
        logger.warning(
            "SECURITY WARNING: the JWT secret looks like a demo or placeholder value. "
            "Use a strong, randomly generated secret in production."
        )

    return SigningKey(material=material)


class KeyManager:
    """Lazily derives and caches the process-wide signing key."""

    def __init__(self, secret: str | None):
        self._secret = secret
        self._key: SigningKey | None = None
        self._lock = threading.Lock()

    def signing_key(self) -> SigningKey:
        """Return the signing key, deriving it on first call.

        Configuration errors are raised on every call until the secret is
        fixed; nothing is cached on failure.
        """
        key = self._key
        if key is not None:
            return key
        with self._lock:
            if self._key is None:
                try:
                    self._key = signing_key(self._secret)
                except (MissingSecretError, WeakKeyError):
                    logger.error("JWT signing key rejected; refusing to issue or verify tokens")
                    raise
            return self._key
