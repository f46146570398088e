"""Configuration client: fetch exactly one site record from the store.

The client is the only component that talks to a :class:`SiteStore`.  It
normalises the store's answers into a strict contract:

- exactly one record, or
- :class:`~fastapi_sitegate.core.exceptions.SiteNotFoundError`, or
- :class:`~fastapi_sitegate.core.exceptions.StoreUnavailableError`.

It neither caches nor retries; the resolver owns both.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi_sitegate.core.exceptions import SiteNotFoundError, StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi_sitegate.core.types import SiteRecord, SiteStatus
    from fastapi_sitegate.storage.site_store import SiteStore

logger = logging.getLogger(__name__)


class SiteConfigClient:
    """Thin, failure-normalising wrapper around a :class:`SiteStore`.

    Args:
        store: The configuration store backend.

    Example::

        client = SiteConfigClient(InMemorySiteStore())
        record = await client.fetch_by_domain("a.example.com")
    """

    def __init__(self, store: SiteStore) -> None:
        self._store = store

    @property
    def store(self) -> SiteStore:
        return self._store

    async def fetch_by_domain(self, domain: str) -> SiteRecord:
        """Return the single record serving *domain*.

        When the store reports several records for one domain (a data
        anomaly), the one with the lowest ``tenant_id`` wins so every process
        makes the same choice, and a warning is logged.

        Raises:
            SiteNotFoundError: No record serves *domain*.
            StoreUnavailableError: The store could not be reached.
        """
        try:
            matches: Sequence[SiteRecord] = await self._store.find_by_domain(domain)
        except (OSError, ConnectionError) as exc:
            raise StoreUnavailableError(
                operation="find_by_domain",
                reason=type(exc).__name__,
                details={"domain": domain},
            ) from exc

        if not matches:
            raise SiteNotFoundError(lookup=domain)

        if len(matches) > 1:
            ordered = sorted(matches, key=lambda r: r.tenant_id)
            logger.warning(
                "Domain %s is claimed by %d sites (%s); serving tenant=%s",
                domain,
                len(ordered),
                ", ".join(r.tenant_id for r in ordered),
                ordered[0].tenant_id,
            )
            return ordered[0]
        return matches[0]

    async def fetch_by_id(self, tenant_id: str) -> SiteRecord:
        """Return the record for *tenant_id*.

        Raises:
            SiteNotFoundError: No such tenant.
            StoreUnavailableError: The store could not be reached.
        """
        try:
            return await self._store.get_by_id(tenant_id)
        except (OSError, ConnectionError) as exc:
            raise StoreUnavailableError(
                operation="get_by_id",
                reason=type(exc).__name__,
                details={"tenant_id": tenant_id},
            ) from exc

    async def fetch_by_status(self, status: SiteStatus, limit: int = 1000) -> Sequence[SiteRecord]:
        """Return up to *limit* records with *status* (used for cache warm-up)."""
        try:
            return await self._store.list_by_status(status, limit=limit)
        except (OSError, ConnectionError) as exc:
            raise StoreUnavailableError(
                operation="list_by_status",
                reason=type(exc).__name__,
                details={"status": str(status)},
            ) from exc


__all__ = ["SiteConfigClient"]
