"""Abstract site configuration store: the read side of the repository pattern.

``SiteStore`` is the contract the :class:`~fastapi_sitegate.client.SiteConfigClient`
talks to.  Records are created and edited out-of-band (an admin tool, a
console, a migration); the gate only ever reads them.

Extending
---------
Subclass ``SiteStore`` and implement every ``@abstractmethod``::

    class FirestoreSiteStore(SiteStore):
        async def find_by_domain(self, domain: str) -> Sequence[SiteRecord]: ...
        async def get_by_id(self, tenant_id: str) -> SiteRecord: ...
        async def list_by_status(self, status, limit=1000): ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi_sitegate.core.types import SiteRecord, SiteStatus

logger = logging.getLogger(__name__)


class SiteStore(ABC):
    """Abstract base class for site configuration backends.

    Implementations must be:

    - **Fully async**: every method is a coroutine.
    - **Concurrency-safe**: one instance is shared by every request.
    - **Honest about failure**: connectivity problems raise
      ``StoreUnavailableError`` (or an ``OSError`` the client translates),
      never an empty result.  An empty result means "not configured".
    """

    @abstractmethod
    async def find_by_domain(self, domain: str) -> Sequence[SiteRecord]:
        """Return every record whose primary or alternate domain is *domain*.

        Normally zero or one record.  More than one is a data anomaly the
        client resolves deterministically.

        Args:
            domain: Normalised domain.
        """

    @abstractmethod
    async def get_by_id(self, tenant_id: str) -> SiteRecord:
        """Fetch a record by tenant ID.

        Raises:
            SiteNotFoundError: When no record with *tenant_id* exists.
        """

    @abstractmethod
    async def list_by_status(
        self,
        status: SiteStatus,
        limit: int = 1000,
    ) -> Sequence[SiteRecord]:
        """Return up to *limit* records with *status*, ordered by tenant ID."""

    async def close(self) -> None:
        """Release any resources held by this store (connections, pools, etc.).

        The base implementation is a no-op.  Called by ``SiteGate.close()`` on
        application shutdown.
        """


__all__ = ["SiteStore"]
