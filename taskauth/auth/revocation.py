"""Token revocation (deny-list) stores.

A revoked token is identified by its ``jti`` claim and remembered only until
the token's own expiry; after that the expiry check rejects it anyway, so the
entry is dead weight and is dropped.

Two interchangeable backends implement ``RevocationStore``:

* ``InMemoryRevocationStore`` - per-process, lost on restart.  Expired
  entries are evicted lazily on lookup and in bulk by ``sweep``.
* ``RedisRevocationStore`` - shared across instances and restarts.  Keys
  carry a TTL equal to the token's remaining lifetime so Redis expires them
  itself.

Usage from a logout handler or incident-response script::

    store.revoke(claims.token_id, claims.expires_at)
    assert store.is_revoked(claims.token_id)
"""

import logging
import math
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from redis import Redis
from redis.exceptions import RedisError

from taskauth.auth.claims import as_utc, to_numeric_date, utc_now
from taskauth.auth.errors import RevocationUnavailableError

logger = logging.getLogger(__name__)

_DENY_PREFIX = "token:deny:"


@runtime_checkable
class RevocationStore(Protocol):
    """Interface for revocation backends. Implementations must be thread-safe.

    A backend that cannot answer ``is_revoked`` raises
    ``RevocationUnavailableError`` so the token is refused, never waved through.
    """

    def revoke(self, token_id: str, expires_at: datetime) -> None: ...

    def is_revoked(self, token_id: str, now: datetime | None = None) -> bool: ...

    def sweep(self, now: datetime | None = None) -> int: ...


class InMemoryRevocationStore:
    """Thread-safe in-memory deny-list keyed by token id."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utc_now,
        max_entries: int = 100_000,
        full_sweep_interval: timedelta = timedelta(seconds=5),
    ):
        self._entries: dict[str, datetime] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.max_entries = max_entries
        self.full_sweep_interval = full_sweep_interval
        self._last_full_sweep: datetime | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def revoke(self, token_id: str, expires_at: datetime) -> None:
        """Record *token_id* as revoked until *expires_at*. Idempotent.

        A full store is swept before the insert, at most once per
        ``full_sweep_interval``.  Live revocations are never evicted to make
        room, so the store may grow past ``max_entries``.
        """
        expires_at = as_utc(expires_at)
        with self._lock:
            if token_id not in self._entries and len(self._entries) >= self.max_entries:
                self._sweep_if_due_locked(as_utc(self._clock()))
            self._entries[token_id] = expires_at

    def is_revoked(self, token_id: str, now: datetime | None = None) -> bool:
        """Return ``True`` if *token_id* is revoked and not yet expired.

        An entry found past its expiry is evicted and reported as not revoked.
        """
        now = as_utc(now if now is not None else self._clock())
        with self._lock:
            expires_at = self._entries.get(token_id)
            if expires_at is None:
                return False
            if now >= expires_at:
                self._entries.pop(token_id, None)
                return False
            return True

    def sweep(self, now: datetime | None = None) -> int:
        """Remove every entry with ``expires_at < now``. Returns the count removed."""
        now = as_utc(now if now is not None else self._clock())
        with self._lock:
            removed = self._sweep_locked(now)
        if removed:
            logger.debug("Revocation sweep removed %d expired entries", removed)
        return removed

    def _sweep_if_due_locked(self, now: datetime) -> None:
        last = self._last_full_sweep
        if last is not None and now - last < self.full_sweep_interval:
            return
        self._last_full_sweep = now
        removed = self._sweep_locked(now)
        if len(self._entries) >= self.max_entries:
            logger.warning(
                "Revocation store over capacity (%d entries, %d swept)",
                len(self._entries),
                removed,
            )

    def _sweep_locked(self, now: datetime) -> int:
        stale = [jti for jti, expires_at in self._entries.items() if expires_at < now]
        for jti in stale:
            del self._entries[jti]
        return len(stale)


class RedisRevocationStore:
    """Redis-backed deny-list shared by every service instance."""

    def __init__(
        self,
        redis: Redis,
        *,
        clock: Callable[[], datetime] = utc_now,
        prefix: str = _DENY_PREFIX,
    ):
        self.redis = redis
        self._clock = clock
        self.prefix = prefix

    def _make_key(self, token_id: str) -> str:
        return f"{self.prefix}{token_id}"

    def revoke(self, token_id: str, expires_at: datetime) -> None:
        """Add *token_id* with a TTL equal to the token's remaining lifetime."""
        remaining = as_utc(expires_at) - as_utc(self._clock())
        ttl_ms = math.ceil(remaining.total_seconds() * 1000)
        if ttl_ms > 0:
            self.redis.set(self._make_key(token_id), str(to_numeric_date(expires_at)), px=ttl_ms)

    def is_revoked(self, token_id: str, now: datetime | None = None) -> bool:
        """Return ``True`` if *token_id* has been revoked.

        Redis drops the key at expiry, so *now* is not needed here.  If Redis
        cannot be reached the lookup fails closed with
        ``RevocationUnavailableError``.
        """
        try:
            return self.redis.exists(self._make_key(token_id)) > 0
        except RedisError as exc:
            logger.error("Revocation lookup failed for jti=%s: %s", token_id, exc)
            raise RevocationUnavailableError(
                "Revocation store unavailable", token_id=token_id
            ) from exc

    def sweep(self, now: datetime | None = None) -> int:
        # Keys expire on their own TTL
        return 0
