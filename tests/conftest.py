"""Shared pytest fixtures for the fastapi-sitegate test suite.

Hierarchy
---------
clock                   FakeClock; advance() moves cache time forward
site_factory            callable that builds SiteRecord objects with sensible defaults
store                   CountingSiteStore (in-memory, counts and can fail calls)
sqlite_store            SQLAlchemySiteStore backed by SQLite :memory:
config                  SiteGateConfig with one bypass token
gate                    SiteGate over store + clock
asgi_app                minimal FastAPI + SiteGateMiddleware
http_client             httpx.AsyncClient → asgi_app
app_factory             build_app, for gates with a custom config
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
import pytest
import pytest_asyncio

from fastapi_sitegate.core.config import SiteGateConfig
from fastapi_sitegate.core.types import SiteRecord, SiteStatus
from fastapi_sitegate.dependencies import (
    SiteContextDep,
    SiteContextOptionalDep,
    SiteSettingsDep,
)
from fastapi_sitegate.manager import SiteGate
from fastapi_sitegate.middleware.sitegate import SiteGateMiddleware
from fastapi_sitegate.storage.database import SQLAlchemySiteStore
from fastapi_sitegate.storage.memory import InMemorySiteStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

BYPASS_TOKEN = "preview-token-0123456789abcdef"


##############
# Fake clock #
##############


class FakeClock:
    """Deterministic monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


################
# Site factory #
################


@pytest.fixture
def site_factory():
    """Return a factory that produces unique SiteRecord objects."""
    counter = [0]

    def _make(
        *,
        tenant_id: str | None = None,
        domain_name: str | None = None,
        status: SiteStatus = SiteStatus.ACTIVE,
        alternate_domains: tuple[str, ...] = (),
        display_settings: dict[str, Any] | None = None,
    ) -> SiteRecord:
        counter[0] += 1
        n = counter[0]
        return SiteRecord(
            tenant_id=tenant_id or f"t{n}",
            domain_name=domain_name or f"site{n}.example.com",
            alternate_domains=alternate_domains,
            site_name=f"Test Site {n}",
            status=status,
            theme_ref="default",
            display_settings=display_settings or {},
        )

    return _make


##########
# Stores #
##########


class CountingSiteStore(InMemorySiteStore):
    """In-memory store that counts reads and can simulate outages.

    Attributes:
        domain_calls: Number of ``find_by_domain`` calls.
        id_calls: Number of ``get_by_id`` calls.
        fail_with: Exception raised by the next ``fail_times`` reads.
        delay: Seconds each read sleeps before answering.
    """

    def __init__(self, records: list[SiteRecord] | None = None) -> None:
        super().__init__(records)
        self.domain_calls = 0
        self.id_calls = 0
        self.fail_with: BaseException | None = None
        self.fail_times = 0
        self.delay = 0.0

    async def _before_read(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None and self.fail_times > 0:
            self.fail_times -= 1
            raise self.fail_with

    async def find_by_domain(self, domain: str) -> list[SiteRecord]:
        self.domain_calls += 1
        await self._before_read()
        return await super().find_by_domain(domain)

    async def get_by_id(self, tenant_id: str) -> SiteRecord:
        self.id_calls += 1
        await self._before_read()
        return await super().get_by_id(tenant_id)

    def fail(self, exc: BaseException, times: int = 1_000_000) -> None:
        self.fail_with = exc
        self.fail_times = times


@pytest.fixture
def store() -> CountingSiteStore:
    return CountingSiteStore()


@pytest_asyncio.fixture
async def sqlite_store() -> AsyncIterator[SQLAlchemySiteStore]:
    s = SQLAlchemySiteStore("sqlite+aiosqlite:///:memory:")
    await s.initialize()
    yield s
    await s.close()


###########
# Configs #
###########


@pytest.fixture
def bypass_token() -> str:
    return BYPASS_TOKEN


@pytest.fixture
def config() -> SiteGateConfig:
    return SiteGateConfig(
        bypass_tokens=[BYPASS_TOKEN],
        store_timeout=1.0,
        excluded_paths=["/health"],
    )


########
# Gate #
########


@pytest_asyncio.fixture
async def gate(
    config: SiteGateConfig,
    store: CountingSiteStore,
    clock: FakeClock,
) -> AsyncIterator[SiteGate]:
    g = SiteGate(config, store, clock=clock)
    await g.initialize()
    yield g
    await g.close()


##########################
# ASGI app + HTTP client #
##########################


def build_app(gate: SiteGate):
    """Return a minimal FastAPI app wrapped in SiteGateMiddleware."""
    app = FastAPI()
    app.add_middleware(SiteGateMiddleware, gate=gate)

    @app.get("/health")
    async def health(site: SiteContextOptionalDep):
        return {"status": "ok", "site": site.tenant_id if site else None}

    @app.get("/")
    async def home(site: SiteContextDep):
        return {
            "tenant_id": site.tenant_id,
            "domain": site.domain,
            "maintenance": site.maintenance,
            "preview": site.preview,
            "from_cache": site.from_cache,
        }

    @app.get("/maintenance")
    async def maintenance(site: SiteContextDep):
        return {"tenant_id": site.tenant_id, "maintenance": site.maintenance}

    @app.get("/settings")
    async def settings(settings: SiteSettingsDep):
        return settings.model_dump()

    return app


@pytest.fixture
def asgi_app(gate: SiteGate):
    return build_app(gate)


@pytest_asyncio.fixture
async def http_client(asgi_app) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=asgi_app),
        base_url="http://testserver",
    ) as client:
        yield client


@pytest.fixture
def app_factory():
    """Return ``build_app`` so tests can wrap a custom-configured gate."""
    return build_app
