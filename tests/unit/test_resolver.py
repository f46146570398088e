"""Unit tests — fastapi_sitegate.resolution.resolver.SiteResolver

Verified:
* Cache-first lookups: one store call per domain per TTL window
* Host normalisation decides the cache key (case, trailing dot, port)
* Empty / invalid hosts never reach the store
* Not-found is not written to the site cache
* Outages and timeouts yield ResolutionFailed and are never cached
* Retries with backoff, per-call timeout override
* Unexpected store errors are contained and logged
* Cancellation propagates and leaves the cache untouched
* Negative cache, resolve_by_id, prime, counters
"""

from __future__ import annotations

import asyncio
import logging

import pytest

from fastapi_sitegate.cache.site_cache import NegativeCache, SiteCache
from fastapi_sitegate.client import SiteConfigClient
from fastapi_sitegate.core.exceptions import StoreUnavailableError
from fastapi_sitegate.core.types import ResolutionFailed, Resolved, SiteStatus, Unresolved
from fastapi_sitegate.resolution.resolver import SiteResolver

pytestmark = pytest.mark.unit


@pytest.fixture
def cache(clock) -> SiteCache:
    return SiteCache(ttl=300, clock=clock)


@pytest.fixture
def resolver(store, cache) -> SiteResolver:
    return SiteResolver(SiteConfigClient(store), cache, timeout=1.0)


# ─────────────────────────────── Construction ────────────────────────────────


class TestConstruction:
    @pytest.mark.parametrize("timeout", [0, -1])
    def test_invalid_timeout(self, store, cache, timeout):
        with pytest.raises(ValueError, match="timeout"):
            SiteResolver(SiteConfigClient(store), cache, timeout=timeout)

    def test_invalid_retries(self, store, cache):
        with pytest.raises(ValueError, match="retries"):
            SiteResolver(SiteConfigClient(store), cache, retries=-1)

    def test_exposes_cache(self, resolver, cache):
        assert resolver.cache is cache
        assert resolver.negative_cache is None


# ───────────────────────────── Cache-first reads ─────────────────────────────


class TestCacheFirst:
    async def test_miss_then_hit(self, resolver, store, site_factory):
        await store.add(site_factory(tenant_id="t1", domain_name="a.example.com"))

        first = await resolver.resolve("a.example.com")
        second = await resolver.resolve("a.example.com")

        assert isinstance(first, Resolved)
        assert first.from_cache is False
        assert isinstance(second, Resolved)
        assert second.from_cache is True
        assert store.domain_calls == 1

    async def test_one_store_call_per_ttl_window(self, resolver, store, site_factory, clock):
        await store.add(site_factory(domain_name="a.example.com"))
        for _ in range(20):
            await resolver.resolve("a.example.com")
            clock.advance(10)
        # 20 lookups spread over 200 s all fall inside one 300 s window.
        assert store.domain_calls == 1

        clock.advance(200)
        await resolver.resolve("a.example.com")
        assert store.domain_calls == 2

    async def test_hit_serves_cached_snapshot_after_store_edit(
        self, resolver, store, site_factory
    ):
        record = site_factory(tenant_id="t1", domain_name="a.example.com")
        await store.add(record)
        await resolver.resolve("a.example.com")
        await store.replace(record.model_copy(update={"status": SiteStatus.INACTIVE}))

        result = await resolver.resolve("a.example.com")
        assert result.record.status == SiteStatus.ACTIVE

    @pytest.mark.parametrize(
        "variant",
        ["A.Example.COM", "a.example.com.", "a.example.com:443", " a.example.com "],
    )
    async def test_host_variants_share_one_entry(self, resolver, store, site_factory, variant):
        await store.add(site_factory(domain_name="a.example.com"))
        await resolver.resolve("a.example.com")
        result = await resolver.resolve(variant)
        assert isinstance(result, Resolved)
        assert result.domain == "a.example.com"
        assert result.from_cache is True
        assert store.domain_calls == 1

    async def test_loopback_ports_are_distinct_keys(self, resolver, store, site_factory):
        await store.add(site_factory(tenant_id="t1", domain_name="localhost:3001"))
        await store.add(site_factory(tenant_id="t2", domain_name="localhost:3002"))
        first = await resolver.resolve("localhost:3001")
        second = await resolver.resolve("localhost:3002")
        assert first.record.tenant_id == "t1"
        assert second.record.tenant_id == "t2"

    def test_normalize(self, resolver):
        assert resolver.normalize("Shop.Example.com:8443") == "shop.example.com"
        assert resolver.normalize("localhost:8000") == "localhost:8000"


# ─────────────────────────────── Unresolved ──────────────────────────────────


class TestUnresolved:
    @pytest.mark.parametrize("host", [None, "", "   ", "bad host!", "a..example.com"])
    async def test_unusable_host_skips_store(self, resolver, store, host):
        result = await resolver.resolve(host)
        assert result == Unresolved(domain="")
        assert store.domain_calls == 0

    async def test_unknown_domain(self, resolver, store):
        result = await resolver.resolve("ghost.example.com")
        assert result == Unresolved(domain="ghost.example.com")

    async def test_not_found_is_not_cached(self, resolver, store, cache):
        await resolver.resolve("ghost.example.com")
        await resolver.resolve("ghost.example.com")
        assert store.domain_calls == 2
        assert cache.size() == 0

    async def test_new_site_visible_immediately_without_negative_cache(
        self, resolver, store, site_factory
    ):
        assert isinstance(await resolver.resolve("new.example.com"), Unresolved)
        await store.add(site_factory(domain_name="new.example.com"))
        assert isinstance(await resolver.resolve("new.example.com"), Resolved)


# ──────────────────────────────── Failures ───────────────────────────────────


class TestFailures:
    async def test_outage_is_failed_not_unresolved(self, resolver, store):
        store.fail(StoreUnavailableError("find_by_domain", "OperationalError"))
        result = await resolver.resolve("a.example.com")
        assert isinstance(result, ResolutionFailed)
        assert result.domain == "a.example.com"
        assert result.error_type == "StoreUnavailableError"
        assert "OperationalError" in result.cause

    async def test_outage_never_cached(self, resolver, store, cache, site_factory):
        await store.add(site_factory(domain_name="a.example.com"))
        store.fail(OSError("connection refused"), times=1)

        failed = await resolver.resolve("a.example.com")
        recovered = await resolver.resolve("a.example.com")

        assert isinstance(failed, ResolutionFailed)
        assert isinstance(recovered, Resolved)
        assert recovered.from_cache is False
        assert store.domain_calls == 2

    async def test_failure_cause_hides_driver_text(self, resolver, store):
        store.fail(OSError("password=hunter2 host=db.internal"))
        result = await resolver.resolve("a.example.com")
        assert "hunter2" not in result.cause
        assert "db.internal" not in result.cause

    async def test_timeout(self, store, cache, site_factory):
        await store.add(site_factory(domain_name="slow.example.com"))
        store.delay = 0.5
        resolver = SiteResolver(SiteConfigClient(store), cache, timeout=0.01)

        result = await resolver.resolve("slow.example.com")

        assert isinstance(result, ResolutionFailed)
        assert result.error_type == "TimeoutError"
        assert result.cause == "configuration store timed out"
        assert cache.size() == 0

    async def test_per_call_timeout_override(self, resolver, store, site_factory):
        await store.add(site_factory(domain_name="slow.example.com"))
        store.delay = 0.5
        result = await resolver.resolve("slow.example.com", timeout=0.01)
        assert isinstance(result, ResolutionFailed)

    @pytest.mark.parametrize("timeout", [0, -1])
    async def test_invalid_per_call_timeout(self, resolver, store, timeout):
        with pytest.raises(ValueError, match="timeout"):
            await resolver.resolve("a.example.com", timeout=timeout)
        with pytest.raises(ValueError, match="timeout"):
            await resolver.resolve_by_id("t1", timeout=timeout)
        assert store.domain_calls == 0
        assert store.id_calls == 0

    async def test_per_call_timeout_none_waits(self, resolver, store, site_factory):
        await store.add(site_factory(domain_name="slow.example.com"))
        store.delay = 0.02
        result = await resolver.resolve("slow.example.com", timeout=None)
        assert isinstance(result, Resolved)

    async def test_retries_recover(self, store, cache, site_factory):
        await store.add(site_factory(domain_name="a.example.com"))
        store.fail(OSError(), times=2)
        resolver = SiteResolver(SiteConfigClient(store), cache, retries=2, retry_backoff=0.0)

        result = await resolver.resolve("a.example.com")

        assert isinstance(result, Resolved)
        assert store.domain_calls == 3

    async def test_retries_exhausted(self, store, cache, caplog):
        store.fail(OSError())
        resolver = SiteResolver(SiteConfigClient(store), cache, retries=1, retry_backoff=0.001)
        with caplog.at_level(logging.WARNING, logger="fastapi_sitegate.resolution.resolver"):
            result = await resolver.resolve("a.example.com")
        assert isinstance(result, ResolutionFailed)
        assert store.domain_calls == 2
        assert "retry 1/1" in caplog.text

    async def test_not_found_is_not_retried(self, store, cache):
        resolver = SiteResolver(SiteConfigClient(store), cache, retries=3)
        await resolver.resolve("ghost.example.com")
        assert store.domain_calls == 1

    async def test_unexpected_error_contained(self, resolver, store, caplog):
        store.fail(RuntimeError("bug"))
        with caplog.at_level(logging.ERROR, logger="fastapi_sitegate.resolution.resolver"):
            result = await resolver.resolve("a.example.com")
        assert isinstance(result, ResolutionFailed)
        assert result.error_type == "RuntimeError"
        assert result.cause == "unexpected error during lookup"
        assert "Unexpected error" in caplog.text

    async def test_cancellation_propagates_and_leaves_cache_empty(
        self, resolver, store, cache, site_factory
    ):
        await store.add(site_factory(domain_name="a.example.com"))
        store.delay = 0.5
        task = asyncio.create_task(resolver.resolve("a.example.com"))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert cache.size() == 0


# ───────────────────────────── Negative cache ────────────────────────────────


class TestNegativeCache:
    @pytest.fixture
    def negative(self, clock) -> NegativeCache:
        return NegativeCache(ttl=5, clock=clock)

    @pytest.fixture
    def neg_resolver(self, store, cache, negative) -> SiteResolver:
        return SiteResolver(SiteConfigClient(store), cache, negative_cache=negative)

    async def test_unknown_domain_remembered(self, neg_resolver, store):
        await neg_resolver.resolve("ghost.example.com")
        await neg_resolver.resolve("ghost.example.com")
        assert store.domain_calls == 1
        assert neg_resolver.stats()["negative_hits"] == 1

    async def test_negative_entry_expires(self, neg_resolver, store, clock):
        await neg_resolver.resolve("ghost.example.com")
        clock.advance(6)
        await neg_resolver.resolve("ghost.example.com")
        assert store.domain_calls == 2

    async def test_outage_not_remembered(self, neg_resolver, store, negative):
        store.fail(OSError())
        await neg_resolver.resolve("a.example.com")
        assert negative.size() == 0

    async def test_prime_clears_negative_entry(self, neg_resolver, store, site_factory):
        await neg_resolver.resolve("new.example.com")
        neg_resolver.prime(site_factory(domain_name="new.example.com"))
        result = await neg_resolver.resolve("new.example.com")
        assert isinstance(result, Resolved)
        assert result.from_cache is True


# ──────────────────────────── resolve_by_id / prime ──────────────────────────


class TestResolveById:
    async def test_always_asks_store_and_refreshes_cache(
        self, resolver, store, cache, site_factory
    ):
        record = site_factory(tenant_id="t1", domain_name="a.example.com")
        await store.add(record)
        await resolver.resolve("a.example.com")
        await store.replace(record.model_copy(update={"site_name": "Renamed"}))

        result = await resolver.resolve_by_id("t1")

        assert isinstance(result, Resolved)
        assert result.record.site_name == "Renamed"
        assert store.id_calls == 1
        assert cache.get("a.example.com").site_name == "Renamed"

    async def test_unknown_tenant(self, resolver):
        assert await resolver.resolve_by_id("nobody") == Unresolved(domain="")

    async def test_outage(self, resolver, store):
        store.fail(OSError())
        result = await resolver.resolve_by_id("t1")
        assert isinstance(result, ResolutionFailed)
        assert result.domain == ""


class TestPrime:
    def test_prime_writes_every_domain(self, resolver, cache, site_factory):
        record = site_factory(
            domain_name="a.example.com", alternate_domains=("www.a.example.com",)
        )
        assert resolver.prime(record) == 2
        assert cache.get("www.a.example.com") is record

    async def test_primed_domain_skips_store(self, resolver, store, site_factory):
        resolver.prime(site_factory(domain_name="a.example.com"))
        result = await resolver.resolve("a.example.com")
        assert result.from_cache is True
        assert store.domain_calls == 0


class TestStats:
    async def test_counters(self, resolver, store, site_factory):
        await store.add(site_factory(domain_name="a.example.com"))
        await resolver.resolve("a.example.com")
        await resolver.resolve("a.example.com")
        await resolver.resolve("ghost.example.com")
        store.fail(OSError())
        await resolver.resolve("down.example.com")

        assert resolver.stats() == {
            "lookups": 4,
            "store_fetches": 3,
            "not_found": 1,
            "failures": 1,
            "negative_hits": 0,
        }
