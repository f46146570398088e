"""Cache-first host → site resolution.

:class:`SiteResolver` is the single entry point for turning a request host
into a :data:`~fastapi_sitegate.core.types.LookupResult`:

1. Normalise the host.  An empty or invalid host is ``Unresolved``.
2. ``SiteCache.get``: a hit is ``Resolved(from_cache=True)``.
3. Negative cache (when enabled): a hit is ``Unresolved``.
4. Miss: ``SiteConfigClient.fetch_by_domain`` bounded by ``timeout``.

   - found: the record is cached, then ``Resolved(from_cache=False)``.
   - not found: ``Unresolved``.  Nothing goes into the site cache, so the
     next request asks the store again.
   - store unavailable / timed out: retried ``retries`` times with linear
     backoff, then ``ResolutionFailed``.  Never cached.
   - anything else: ``ResolutionFailed``, logged with its traceback.

``resolve`` never raises, with one exception: ``asyncio.CancelledError``
propagates untouched.  The cache is written only after a complete record has
been returned, so a cancelled lookup leaves the cache exactly as it was.

Concurrent misses for the same domain each call the store; there is no
request coalescing.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from fastapi_sitegate.core.exceptions import SiteNotFoundError, StoreUnavailableError
from fastapi_sitegate.core.types import (
    LookupResult,
    ResolutionFailed,
    Resolved,
    Unresolved,
)
from fastapi_sitegate.utils.validation import DEFAULT_LOOPBACK_HOSTS, normalize_domain

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from fastapi_sitegate.cache.site_cache import NegativeCache, SiteCache
    from fastapi_sitegate.client import SiteConfigClient
    from fastapi_sitegate.core.types import SiteRecord

logger = logging.getLogger(__name__)

# Marks "use the resolver's configured timeout"; None already means "no limit".
_DEFAULT_TIMEOUT: Any = object()


def _check_timeout(timeout: float | None) -> None:
    if timeout is not None and timeout <= 0:
        msg = "timeout must be > 0 seconds or None"
        raise ValueError(msg)


class SiteResolver:
    """Resolve hosts to site records through the cache.

    Args:
        client: Configuration client used on cache misses.
        cache: The site cache.  Passed in so tests and applications own its
            lifetime; the resolver never creates a shared one.
        negative_cache: Optional cache of unconfigured domains.
        timeout: Seconds allowed per store call.  ``None`` waits forever.
        retries: Extra attempts after a transient failure.
        retry_backoff: Seconds slept before retry *n*, multiplied by *n*.
        loopback_hosts: Hosts whose port is kept in the cache key.

    Example::

        resolver = SiteResolver(SiteConfigClient(store), SiteCache(ttl=300))
        result = await resolver.resolve("Shop.Example.com:443")
        if isinstance(result, Resolved):
            print(result.record.tenant_id)
    """

    def __init__(
        self,
        client: SiteConfigClient,
        cache: SiteCache,
        *,
        negative_cache: NegativeCache | None = None,
        timeout: float | None = None,
        retries: int = 0,
        retry_backoff: float = 0.0,
        loopback_hosts: Iterable[str] = DEFAULT_LOOPBACK_HOSTS,
    ) -> None:
        _check_timeout(timeout)
        if retries < 0:
            msg = "retries must be >= 0"
            raise ValueError(msg)

        self._client = client
        self._cache = cache
        self._negative = negative_cache
        self._timeout = timeout
        self._retries = retries
        self._retry_backoff = retry_backoff
        self._loopback_hosts = frozenset(loopback_hosts)

        self._lookups = 0
        self._store_fetches = 0
        self._not_found = 0
        self._failures = 0
        self._negative_hits = 0

    @property
    def cache(self) -> SiteCache:
        return self._cache

    @property
    def negative_cache(self) -> NegativeCache | None:
        return self._negative

    def normalize(self, host: str | None) -> str:
        """Return the cache key for *host* under this resolver's port policy."""
        return normalize_domain(host, self._loopback_hosts)

    ##############
    # Resolution #
    ##############

    async def resolve(
        self,
        host: str | None,
        *,
        timeout: float | None = _DEFAULT_TIMEOUT,
    ) -> LookupResult:
        """Resolve *host* to a lookup result.

        Args:
            host: Raw host (header value, with or without port).
            timeout: Per-call override of the store timeout.  Must be
                positive or ``None``; anything else raises ``ValueError``.

        Returns:
            ``Resolved``, ``Unresolved`` or ``ResolutionFailed``.
        """
        if timeout is not _DEFAULT_TIMEOUT:
            _check_timeout(timeout)
        self._lookups += 1
        domain = self.normalize(host)
        if not domain:
            logger.debug("Unusable host %r treated as unconfigured", host)
            return Unresolved(domain="")

        record = self._cache.get(domain)
        if record is not None:
            return Resolved(domain=domain, record=record, from_cache=True)

        if self._negative is not None and self._negative.contains(domain):
            self._negative_hits += 1
            logger.debug("Negative cache hit domain=%s", domain)
            return Unresolved(domain=domain)

        try:
            record = await self._fetch(self._client.fetch_by_domain, domain, timeout)
        except SiteNotFoundError:
            self._not_found += 1
            if self._negative is not None:
                self._negative.add(domain)
            logger.info("No site configured for domain=%s", domain)
            return Unresolved(domain=domain)
        except (StoreUnavailableError, TimeoutError) as exc:
            return self._failed(domain, exc)
        except Exception as exc:
            self._failures += 1
            logger.exception("Unexpected error resolving domain=%s", domain)
            return ResolutionFailed(
                domain=domain,
                cause="unexpected error during lookup",
                error_type=type(exc).__name__,
            )

        self._cache.put(domain, record)
        logger.debug("Resolved domain=%s tenant=%s from store", domain, record.tenant_id)
        return Resolved(domain=domain, record=record, from_cache=False)

    async def resolve_by_id(
        self,
        tenant_id: str,
        *,
        timeout: float | None = _DEFAULT_TIMEOUT,
    ) -> LookupResult:
        """Re-resolve a tenant whose ID is already known.

        Always asks the store, then caches the fresh record under its primary
        domain.  An unknown tenant yields ``Unresolved(domain="")``.
        """
        if timeout is not _DEFAULT_TIMEOUT:
            _check_timeout(timeout)
        self._lookups += 1
        try:
            record = await self._fetch(self._client.fetch_by_id, tenant_id, timeout)
        except SiteNotFoundError:
            self._not_found += 1
            logger.info("No site configured for tenant=%s", tenant_id)
            return Unresolved(domain="")
        except (StoreUnavailableError, TimeoutError) as exc:
            return self._failed("", exc, lookup=f"tenant={tenant_id}")
        except Exception as exc:
            self._failures += 1
            logger.exception("Unexpected error resolving tenant=%s", tenant_id)
            return ResolutionFailed(
                domain="",
                cause="unexpected error during lookup",
                error_type=type(exc).__name__,
            )

        domain = self.normalize(record.domain_name) or record.domain_name
        self._cache.put(domain, record)
        return Resolved(domain=domain, record=record, from_cache=False)

    ###########
    # Priming #
    ###########

    def prime(self, record: SiteRecord) -> int:
        """Cache *record* under every domain it serves.

        Returns:
            Number of cache entries written.
        """
        written = 0
        for raw in record.all_domains():
            domain = self.normalize(raw)
            if not domain:
                logger.warning(
                    "Skipping unusable domain %r of tenant=%s", raw, record.tenant_id
                )
                continue
            self._cache.put(domain, record)
            if self._negative is not None:
                self._negative.invalidate(domain)
            written += 1
        return written

    ###########
    # Metrics #
    ###########

    def stats(self) -> dict[str, int]:
        """Return resolver-level counters (cache counters live in ``SiteCache``)."""
        return {
            "lookups": self._lookups,
            "store_fetches": self._store_fetches,
            "not_found": self._not_found,
            "failures": self._failures,
            "negative_hits": self._negative_hits,
        }

    ###################
    # Private helpers #
    ###################

    async def _fetch(
        self,
        call: Callable[[str], Awaitable[SiteRecord]],
        arg: str,
        timeout: float | None,
    ) -> SiteRecord:
        """Run one store call with timeout and transient-failure retries."""
        limit = self._timeout if timeout is _DEFAULT_TIMEOUT else timeout
        attempt = 0
        while True:
            self._store_fetches += 1
            try:
                if limit is None:
                    return await call(arg)
                return await asyncio.wait_for(call(arg), timeout=limit)
            except (StoreUnavailableError, TimeoutError) as exc:
                if attempt >= self._retries:
                    raise
                attempt += 1
                logger.warning(
                    "Transient store failure for %s (%s); retry %d/%d",
                    arg,
                    type(exc).__name__,
                    attempt,
                    self._retries,
                )
                if self._retry_backoff > 0:
                    await asyncio.sleep(self._retry_backoff * attempt)

    def _failed(
        self,
        domain: str,
        exc: Exception,
        lookup: str | None = None,
    ) -> ResolutionFailed:
        self._failures += 1
        if isinstance(exc, StoreUnavailableError):
            cause = f"configuration store unavailable ({exc.reason})"
        else:
            cause = "configuration store timed out"
        logger.error(
            "Site lookup for %s failed after %d attempt(s): %s",
            lookup or f"domain={domain}",
            self._retries + 1,
            cause,
        )
        return ResolutionFailed(domain=domain, cause=cause, error_type=type(exc).__name__)


__all__ = ["SiteResolver"]
