"""In-process TTL cache mapping normalised domains to site records.

This module provides :class:`SiteCache`, the bounded read-through cache that
sits in front of the configuration store, and :class:`NegativeCache`, a small
companion that remembers recently-unconfigured domains.

Cache hierarchy (fastest → slowest)
------------------------------------
::

    SiteCache (in-process, μs)
        ↓ miss
    SiteConfigClient → SiteStore (network / database, ms)

TTL strategy
------------
An entry is a hit only while ``now - inserted_at <= ttl``.  Expiry is checked
lazily on read; an expired entry is removed and the read counts as a miss.
:meth:`SiteCache.purge_expired` reclaims memory eagerly and is what the
optional background sweeper calls.

Eviction
--------
When ``max_size`` entries are cached and a new domain is inserted, one entry
is evicted first.  Both policies use the ``OrderedDict`` order:

- ``lru``: a hit calls ``move_to_end``, so the front is least recently used.
- ``fifo``: hits leave the order alone, so the front is oldest inserted.

Overwriting a key always moves it to the back.

Thread / task safety
--------------------
Every public method holds one ``threading.Lock`` for its whole body and never
awaits or performs I/O inside it.  That makes the cache safe for both
event-loop hosts and thread-per-request hosts.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
import logging
import threading
import time
from typing import Any, NamedTuple

from fastapi_sitegate.core.exceptions import CacheCorruptionError
from fastapi_sitegate.core.types import EvictionPolicy, SiteRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class _Entry(NamedTuple):
    """A single cache entry.

    Attributes:
        record: The cached ``SiteRecord`` snapshot.
        inserted_at: Clock reading taken when the entry was written.
    """

    record: SiteRecord
    inserted_at: float


class SiteCache:
    """Bounded domain → ``SiteRecord`` cache with per-entry TTL.

    Args:
        max_size: Maximum number of domains held.  Default: 1000.
        ttl: Seconds an entry is trusted.  Default: 300 (five minutes).
        eviction_policy: ``"lru"`` (default) or ``"fifo"``.
        clock: Monotonic time source.  Injected by tests.

    Example::

        cache = SiteCache(max_size=500, ttl=60)

        cache.put("a.example.com", record)
        hit = cache.get("a.example.com")

        cache.invalidate("a.example.com")
        cache.invalidate_tenant(record.tenant_id)
        cache.invalidate_all()
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: float = 300.0,
        eviction_policy: EvictionPolicy | str = EvictionPolicy.LRU,
        clock: Clock = time.monotonic,
    ) -> None:
        if max_size < 1:
            msg = "max_size must be >= 1"
            raise ValueError(msg)
        if ttl <= 0:
            msg = "ttl must be > 0 seconds"
            raise ValueError(msg)

        self._max_size = max_size
        self._ttl = float(ttl)
        self._policy = EvictionPolicy(eviction_policy)
        self._clock = clock
        self._lock = threading.Lock()

        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._keys_by_tenant: dict[str, set[str]] = {}  # tenant_id → domains

        # Telemetry counters; monotonically increasing, never reset.
        self._hits: int = 0
        self._misses: int = 0
        self._evictions: int = 0
        self._expirations: int = 0

        logger.debug(
            "SiteCache initialised max_size=%d ttl=%.1fs policy=%s",
            max_size,
            self._ttl,
            self._policy,
        )

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def eviction_policy(self) -> EvictionPolicy:
        return self._policy

    ########
    # Read #
    ########

    def get(self, key: str) -> SiteRecord | None:
        """Return the cached record for *key*, or ``None`` on miss or expiry.

        Under the LRU policy a hit promotes the entry to the MRU position.
        A malformed entry is logged, dropped and reported as a miss.

        Args:
            key: Normalised domain.

        Returns:
            Cached ``SiteRecord``, or ``None``.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("Cache miss domain=%s", key)
                return None

            if not self._is_well_formed(entry):
                error = CacheCorruptionError(key, type(entry).__name__)
                logger.error("Dropping cache entry: %s", error)
                self._remove(key)
                self._misses += 1
                return None

            if self._clock() - entry.inserted_at > self._ttl:
                self._remove(key)
                self._expirations += 1
                self._misses += 1
                logger.debug("Cache entry expired domain=%s", key)
                return None

            if self._policy == EvictionPolicy.LRU:
                self._entries.move_to_end(key)
            self._hits += 1
            logger.debug("Cache hit domain=%s tenant=%s", key, entry.record.tenant_id)
            return entry.record

    def __contains__(self, key: object) -> bool:
        """Membership test that ignores TTL and does not touch counters."""
        with self._lock:
            return key in self._entries

    #########
    # Write #
    #########

    def put(self, key: str, record: SiteRecord) -> None:
        """Insert or overwrite *key* with a fresh ``inserted_at``.

        When the cache is full and *key* is new, one entry is evicted first
        according to the eviction policy.

        Args:
            key: Normalised domain.
            record: The record to cache.
        """
        with self._lock:
            if key in self._entries:
                self._remove(key)
            elif len(self._entries) >= self._max_size:
                self._evict_one()

            self._entries[key] = _Entry(record=record, inserted_at=self._clock())
            self._keys_by_tenant.setdefault(record.tenant_id, set()).add(key)

    ################
    # Invalidation #
    ################

    def invalidate(self, key: str) -> bool:
        """Remove the entry for *key*.

        Returns:
            ``True`` when an entry was found and removed; ``False`` on miss.
        """
        with self._lock:
            return self._remove(key)

    def invalidate_all(self) -> int:
        """Remove every entry.  Safe to call on an empty cache.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._keys_by_tenant.clear()
        logger.debug("SiteCache cleared (%d entries removed)", count)
        return count

    def invalidate_tenant(self, tenant_id: str) -> int:
        """Remove every domain cached for *tenant_id*.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            keys = list(self._keys_by_tenant.get(tenant_id, ()))
            for key in keys:
                self._remove(key)
            return len(keys)

    def purge_expired(self) -> int:
        """Eagerly remove all expired entries.

        Entries are already dropped lazily on read; this only reclaims memory
        held by domains that are no longer requested.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [
                k for k, entry in self._entries.items() if now - entry.inserted_at > self._ttl
            ]
            for key in expired:
                self._remove(key)
            self._expirations += len(expired)
            return len(expired)

    ###########################
    # Metrics / introspection #
    ###########################

    def size(self) -> int:
        """Return the number of entries currently held, expired or not."""
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, Any]:
        """Return a snapshot of cache state for monitoring.

        Returns:
            Dictionary with:
                - ``size``: current number of entries.
                - ``max_size``: configured maximum.
                - ``ttl``: configured TTL in seconds.
                - ``eviction_policy``: ``"lru"`` or ``"fifo"``.
                - ``hits`` / ``misses``: cumulative lookup counts.
                - ``evictions``: entries removed to make room.
                - ``expirations``: entries removed because they expired.
                - ``hit_rate_pct``: integer hit-rate percentage (0-100),
                  or 0 when no lookups have occurred yet.
        """
        with self._lock:
            total = self._hits + self._misses
            hit_rate = int(self._hits * 100 / total) if total > 0 else 0
            return {
                "size": len(self._entries),
                "max_size": self._max_size,
                "ttl": self._ttl,
                "eviction_policy": self._policy.value,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "hit_rate_pct": hit_rate,
            }

    ###################
    # Private helpers #
    ###################
    # Callers hold self._lock.

    @staticmethod
    def _is_well_formed(entry: object) -> bool:
        return (
            isinstance(entry, _Entry)
            and isinstance(entry.record, SiteRecord)
            and isinstance(entry.inserted_at, (int, float))
        )

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        record = getattr(entry, "record", None)
        tenant_id = getattr(record, "tenant_id", None)
        keys = self._keys_by_tenant.get(tenant_id) if tenant_id else None
        if keys is not None:
            keys.discard(key)
            if not keys:
                del self._keys_by_tenant[tenant_id]
        return True

    def _evict_one(self) -> None:
        """Evict the entry at the front of the order (LRU or oldest insert)."""
        if not self._entries:
            return
        key = next(iter(self._entries))
        self._remove(key)
        self._evictions += 1
        logger.debug("%s evicted domain=%s", self._policy.value.upper(), key)


class NegativeCache:
    """Bounded, TTL-expiring set of domains known to be unconfigured.

    Lets the resolver answer repeated requests for unknown hosts (scanners,
    stale DNS) without a store round-trip.  Disabled unless the configured
    ``negative_cache_ttl`` is positive.  Oldest insertions are dropped first
    when full.

    Args:
        ttl: Seconds a negative answer is remembered.
        max_size: Maximum number of remembered domains.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        ttl: float,
        max_size: int = 1000,
        clock: Clock = time.monotonic,
    ) -> None:
        if ttl <= 0:
            msg = "ttl must be > 0 seconds"
            raise ValueError(msg)
        if max_size < 1:
            msg = "max_size must be >= 1"
            raise ValueError(msg)
        self._ttl = float(ttl)
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._added_at: OrderedDict[str, float] = OrderedDict()

    def contains(self, key: str) -> bool:
        with self._lock:
            added_at = self._added_at.get(key)
            if added_at is None:
                return False
            if self._clock() - added_at > self._ttl:
                del self._added_at[key]
                return False
            return True

    def add(self, key: str) -> None:
        with self._lock:
            self._added_at.pop(key, None)
            if len(self._added_at) >= self._max_size:
                self._added_at.popitem(last=False)
            self._added_at[key] = self._clock()

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._added_at.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._added_at)
            self._added_at.clear()
            return count

    def size(self) -> int:
        with self._lock:
            return len(self._added_at)


__all__ = ["NegativeCache", "SiteCache"]
