"""Unit tests — fastapi_sitegate.invalidation.InvalidationChannel"""

from __future__ import annotations

import asyncio

import pytest

from fastapi_sitegate.cache.site_cache import NegativeCache, SiteCache
from fastapi_sitegate.core.types import SiteRecord
from fastapi_sitegate.invalidation import InvalidationChannel

pytestmark = pytest.mark.unit


def _record(tenant_id: str, domain: str, *alternates: str) -> SiteRecord:
    return SiteRecord(tenant_id=tenant_id, domain_name=domain, alternate_domains=alternates)


@pytest.fixture
def cache(clock) -> SiteCache:
    return SiteCache(ttl=10, clock=clock)


@pytest.fixture
def negative(clock) -> NegativeCache:
    return NegativeCache(ttl=5, clock=clock)


@pytest.fixture
def channel(cache, negative) -> InvalidationChannel:
    return InvalidationChannel(cache, negative_cache=negative)


class TestInvalidateDomain:
    def test_removes_entry(self, channel, cache):
        cache.put("a.example.com", _record("t1", "a.example.com"))
        assert channel.invalidate_domain("a.example.com") is True
        assert "a.example.com" not in cache

    def test_raw_host_is_normalised(self, channel, cache):
        cache.put("a.example.com", _record("t1", "a.example.com"))
        assert channel.invalidate_domain("A.Example.com.:443") is True

    def test_absent_domain(self, channel):
        assert channel.invalidate_domain("ghost.example.com") is False

    def test_invalid_host(self, channel):
        assert channel.invalidate_domain("not a host") is False

    def test_clears_negative_entry(self, channel, negative):
        negative.add("new.example.com")
        channel.invalidate_domain("new.example.com")
        assert not negative.contains("new.example.com")


class TestBulk:
    def test_invalidate_all(self, channel, cache, negative):
        cache.put("a.example.com", _record("t1", "a.example.com"))
        cache.put("b.example.com", _record("t2", "b.example.com"))
        negative.add("ghost.example.com")
        assert channel.invalidate_all() == 2
        assert cache.size() == 0
        assert negative.size() == 0

    def test_invalidate_all_empty(self, channel):
        assert channel.invalidate_all() == 0

    def test_invalidate_tenant(self, channel, cache):
        record = _record("t1", "a.example.com", "www.a.example.com")
        cache.put("a.example.com", record)
        cache.put("www.a.example.com", record)
        assert channel.invalidate_tenant("t1") == 2

    def test_without_negative_cache(self, cache):
        channel = InvalidationChannel(cache)
        cache.put("a.example.com", _record("t1", "a.example.com"))
        assert channel.invalidate_domain("a.example.com") is True
        assert channel.invalidate_all() == 0


class TestSweeper:
    async def test_sweeper_purges_expired(self, channel, cache, clock):
        cache.put("a.example.com", _record("t1", "a.example.com"))
        clock.advance(11)
        channel.start_sweeper(0.01)
        try:
            for _ in range(100):
                if cache.size() == 0:
                    break
                await asyncio.sleep(0.01)
            assert cache.size() == 0
        finally:
            await channel.stop_sweeper()

    async def test_sweeper_keeps_fresh_entries(self, channel, cache):
        cache.put("a.example.com", _record("t1", "a.example.com"))
        channel.start_sweeper(0.01)
        await asyncio.sleep(0.05)
        await channel.stop_sweeper()
        assert "a.example.com" in cache

    async def test_start_is_idempotent_and_stop_resets(self, channel):
        channel.start_sweeper(10)
        first = channel._sweeper
        channel.start_sweeper(10)
        assert channel._sweeper is first
        assert channel.sweeper_running
        await channel.stop_sweeper()
        assert not channel.sweeper_running

    async def test_stop_without_start(self, channel):
        await channel.stop_sweeper()
        assert not channel.sweeper_running

    def test_invalid_interval(self, channel):
        with pytest.raises(ValueError, match="interval"):
            channel.start_sweeper(0)
