"""Identity lookups used when a refresh token is exchanged.

The refresh token carries only a subject, so the authorities for the new
access token (and whether the account may still be issued tokens at all)
come from an ``IdentitySource`` owned by the user-management side.
``CachedIdentitySource`` puts a small bounded TTL cache in front of it.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """What the identity source knows about a principal."""

    principal: str
    enabled: bool = True
    authorities: tuple[str, ...] = ()


class IdentitySource(Protocol):
    """Interface for principal lookups."""

    def lookup(self, principal: str) -> Identity | None: ...


class StaticIdentitySource:
    """Fixed mapping of principals, for wiring without a user service and for tests."""

    def __init__(self, identities: Iterable[Identity] = ()):
        self._identities: dict[str, Identity] = {i.principal: i for i in identities}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]]) -> "StaticIdentitySource":
        """Build from ``{principal: authorities}``; every principal is enabled."""
        return cls(Identity(principal=p, authorities=tuple(a)) for p, a in mapping.items())

    def add(self, identity: Identity) -> None:
        self._identities[identity.principal] = identity

    def lookup(self, principal: str) -> Identity | None:
        return self._identities.get(principal)


@dataclass
class _CacheEntry:
    identity: Identity
    expires_at: float


class CachedIdentitySource:
    """Bounded, TTL-aware cache in front of another ``IdentitySource``.

    Misses (``None``) are never cached so a newly created account is visible
    immediately.  When full, the ~10% of entries closest to expiry are
    dropped.
    """

    def __init__(
        self,
        source: IdentitySource,
        *,
        ttl: timedelta = timedelta(minutes=2),
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.source = source
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def lookup(self, principal: str) -> Identity | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(principal)
            if entry is not None:
                if entry.expires_at > now:
                    return entry.identity
                del self._entries[principal]

        # The source is called outside the lock; concurrent misses may both fetch
        identity = self.source.lookup(principal)
        if identity is None:
            return None

        with self._lock:
            if principal not in self._entries and len(self._entries) >= self.max_entries:
                self._evict_locked()
            self._entries[principal] = _CacheEntry(
                identity=identity, expires_at=now + self.ttl.total_seconds()
            )
        return identity

    def invalidate(self, principal: str) -> None:
        """Drop *principal* so the next lookup goes to the source."""
        with self._lock:
            self._entries.pop(principal, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_locked(self) -> None:
        oldest = sorted(self._entries.items(), key=lambda item: item[1].expires_at)
        evict_count = max(1, self.max_entries // 10)
        for principal, _ in oldest[:evict_count]:
            self._entries.pop(principal, None)
        logger.debug("Identity cache full; evicted %d entries", evict_count)
