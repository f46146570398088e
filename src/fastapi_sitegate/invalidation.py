"""Explicit cache invalidation and the optional expiry sweeper.

Two mechanisms bound how long a changed site record can be served stale:

- **Passive TTL expiry** lives in :meth:`SiteCache.get` and always applies.
- **Explicit invalidation** through :class:`InvalidationChannel`, called by
  whatever learns that a record changed (an admin hook, a webhook handler,
  a message consumer).

If an invalidation signal is lost, staleness is bounded by the TTL alone.

Entry lifecycle::

    Absent ──put──▶ Present ──(expired on read | invalidate | eviction)──▶ Absent

Entries are never modified in place; a refresh is a new ``put``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from fastapi_sitegate.utils.validation import DEFAULT_LOOPBACK_HOSTS, normalize_domain

if TYPE_CHECKING:
    from collections.abc import Iterable

    from fastapi_sitegate.cache.site_cache import NegativeCache, SiteCache

logger = logging.getLogger(__name__)


class InvalidationChannel:
    """Invalidation hooks over a :class:`SiteCache` (and its negative cache).

    Args:
        cache: The site cache to invalidate.
        negative_cache: Optional negative cache, cleared alongside.
        loopback_hosts: Same port policy as the resolver, so keys match.

    Example::

        channel = InvalidationChannel(cache)

        # after an admin edits tenant t1's record:
        channel.invalidate_tenant("t1")
    """

    def __init__(
        self,
        cache: SiteCache,
        negative_cache: NegativeCache | None = None,
        loopback_hosts: Iterable[str] = DEFAULT_LOOPBACK_HOSTS,
    ) -> None:
        self._cache = cache
        self._negative = negative_cache
        self._loopback_hosts = frozenset(loopback_hosts)
        self._sweeper: asyncio.Task[None] | None = None

    ################
    # Invalidation #
    ################

    def invalidate_domain(self, domain: str) -> bool:
        """Drop the cached record (and any negative entry) for *domain*.

        Returns:
            ``True`` when a cached record was removed.
        """
        key = normalize_domain(domain, self._loopback_hosts)
        if not key:
            return False
        removed = self._cache.invalidate(key)
        if self._negative is not None:
            self._negative.invalidate(key)
        logger.info("Invalidated domain=%s removed=%s", key, removed)
        return removed

    def invalidate_all(self) -> int:
        """Drop every cached record.  A no-op on an empty cache.

        Returns:
            Number of site cache entries removed.
        """
        count = self._cache.invalidate_all()
        if self._negative is not None:
            self._negative.clear()
        logger.info("Invalidated all cached sites (%d entries)", count)
        return count

    def invalidate_tenant(self, tenant_id: str) -> int:
        """Drop every cached domain belonging to *tenant_id*.

        Returns:
            Number of entries removed.
        """
        count = self._cache.invalidate_tenant(tenant_id)
        logger.info("Invalidated tenant=%s (%d entries)", tenant_id, count)
        return count

    def purge_expired(self) -> int:
        """Remove entries whose TTL has passed.

        Returns:
            Number of entries removed.
        """
        return self._cache.purge_expired()

    ###########
    # Sweeper #
    ###########

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self, interval: float) -> None:
        """Start a background task calling :meth:`purge_expired` every *interval* s.

        Must be called from a running event loop.  Calling it while a sweeper
        is already running does nothing.
        """
        if interval <= 0:
            msg = "interval must be > 0 seconds"
            raise ValueError(msg)
        if self.sweeper_running:
            logger.debug("Cache sweeper already running")
            return
        self._sweeper = asyncio.create_task(
            self._sweep_loop(interval), name="sitegate-cache-sweeper"
        )
        logger.info("Cache sweeper started interval=%.1fs", interval)

    async def stop_sweeper(self) -> None:
        """Cancel the background sweeper and wait for it to finish."""
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Cache sweeper stopped")

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            removed = self.purge_expired()
            if removed:
                logger.debug("Cache sweeper purged %d expired entries", removed)


__all__ = ["InvalidationChannel"]
