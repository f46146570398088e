"""In-memory site store for testing and development.

Warning:
    All records are **lost when the process exits**.  Use it for unit tests,
    integration tests, local development, and demos.

Design notes
------------
- No async I/O: every read completes synchronously inside ``async def`` to
  satisfy the ``SiteStore`` interface.  This keeps tests fast.
- Duplicate domains are accepted on purpose, so the client's
  multiple-match handling can be exercised.
- Writers hold ``_lock`` for their whole read-check-mutate sequence.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
import logging
from typing import TYPE_CHECKING

from fastapi_sitegate.core.exceptions import SiteNotFoundError
from fastapi_sitegate.storage.site_store import SiteStore

if TYPE_CHECKING:
    from fastapi_sitegate.core.types import SiteRecord, SiteStatus

logger = logging.getLogger(__name__)


class InMemorySiteStore(SiteStore):
    """Dictionary-backed site store.

    Example — pytest fixture::

        @pytest.fixture
        async def site_store():
            store = InMemorySiteStore()
            await store.add(SiteRecord(tenant_id="t1", domain_name="a.example.com"))
            yield store
            store.clear()
    """

    def __init__(self, records: list[SiteRecord] | None = None) -> None:
        self._sites: dict[str, SiteRecord] = {r.tenant_id: r for r in records or []}
        self._lock: asyncio.Lock = asyncio.Lock()
        logger.debug("InMemorySiteStore initialised with %d site(s)", len(self._sites))

    ###################
    # Read operations #
    ###################

    async def find_by_domain(self, domain: str) -> list[SiteRecord]:
        return [r for r in self._sites.values() if r.serves(domain)]

    async def get_by_id(self, tenant_id: str) -> SiteRecord:
        record = self._sites.get(tenant_id)
        if record is None:
            raise SiteNotFoundError(lookup=tenant_id)
        return record

    async def list_by_status(self, status: SiteStatus, limit: int = 1000) -> list[SiteRecord]:
        matches = sorted(
            (r for r in self._sites.values() if r.status == status),
            key=lambda r: r.tenant_id,
        )
        return matches[:limit]

    ####################
    # Write operations #
    ####################

    async def add(self, record: SiteRecord) -> SiteRecord:
        """Store a new record.

        Raises:
            ValueError: When ``tenant_id`` already exists.
        """
        async with self._lock:
            if record.tenant_id in self._sites:
                msg = f"Site with tenant_id={record.tenant_id!r} already exists"
                raise ValueError(msg)
            stored = self._stamp(record)
            self._sites[record.tenant_id] = stored
        logger.debug("Added site tenant=%s domain=%s", record.tenant_id, record.domain_name)
        return stored

    async def replace(self, record: SiteRecord) -> SiteRecord:
        """Overwrite an existing record, as an out-of-band edit would.

        Raises:
            SiteNotFoundError: When ``tenant_id`` does not exist.
        """
        async with self._lock:
            if record.tenant_id not in self._sites:
                raise SiteNotFoundError(lookup=record.tenant_id)
            stored = self._stamp(record)
            self._sites[record.tenant_id] = stored
        logger.debug("Replaced site tenant=%s status=%s", record.tenant_id, record.status)
        return stored

    async def remove(self, tenant_id: str) -> None:
        """Delete a record outright.

        Raises:
            SiteNotFoundError: When *tenant_id* does not exist.
        """
        async with self._lock:
            if self._sites.pop(tenant_id, None) is None:
                raise SiteNotFoundError(lookup=tenant_id)

    ###########
    # Helpers #
    ###########

    def get_all(self) -> list[SiteRecord]:
        """Return every stored record ordered by tenant ID (test helper)."""
        return sorted(self._sites.values(), key=lambda r: r.tenant_id)

    def clear(self) -> None:
        """Remove every record.  Intended for test isolation."""
        self._sites.clear()

    @staticmethod
    def _stamp(record: SiteRecord) -> SiteRecord:
        if record.updated_at is not None:
            return record
        return record.model_copy(update={"updated_at": datetime.now(UTC)})


__all__ = ["InMemorySiteStore"]
