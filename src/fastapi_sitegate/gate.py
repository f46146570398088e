"""Tenant status gate: turn a lookup result into a request disposition.

The gate is the only place where a lookup result becomes something the
request pipeline acts on.  It is pure: no I/O, no clock, no shared state.

+----------------------+-----------------------------------------------------+
| Lookup / status      | Disposition                                         |
+======================+=====================================================+
| ``active``           | ``Proceed``                                         |
+----------------------+-----------------------------------------------------+
| ``maintenance``      | ``RedirectTo(maintenance_path)``; ``Proceed`` with  |
|                      | ``maintenance=True`` on the maintenance page itself |
|                      | or with a bypass credential                         |
+----------------------+-----------------------------------------------------+
| ``inactive``         | ``RejectWith(inactive)``                            |
+----------------------+-----------------------------------------------------+
| ``draft``/``preview``| ``Proceed`` with ``preview=True`` given a bypass    |
|                      | credential, else ``RejectWith(inactive)``           |
+----------------------+-----------------------------------------------------+
| ``archived``         | ``RejectWith(not_configured)``                      |
+----------------------+-----------------------------------------------------+
| ``Unresolved``       | ``RejectWith(not_configured)``                      |
+----------------------+-----------------------------------------------------+
| ``ResolutionFailed`` | ``RejectWith(transient_error)``                     |
+----------------------+-----------------------------------------------------+
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from fastapi_sitegate.core.types import (
    LookupResult,
    Proceed,
    RedirectTo,
    RejectReason,
    RejectWith,
    ResolutionFailed,
    ResolutionOutcome,
    Resolved,
    SiteContext,
    SiteStatus,
)

logger = logging.getLogger(__name__)


class GateRequest(NamedTuple):
    """The parts of the in-flight request the gate looks at.

    Attributes:
        path: Request path, used to recognise the maintenance page.
        bypass: Whether a valid bypass credential was presented.  Verifying
            the credential is the caller's job.
    """

    path: str = "/"
    bypass: bool = False


class SiteStatusGate:
    """Map lookup results to ``Proceed`` / ``RedirectTo`` / ``RejectWith``.

    Args:
        maintenance_path: Where maintenance-mode sites redirect to.
    """

    def __init__(self, maintenance_path: str = "/maintenance") -> None:
        if not maintenance_path.startswith("/"):
            msg = "maintenance_path must start with '/'"
            raise ValueError(msg)
        self._maintenance_path = maintenance_path.rstrip("/") or "/"

    @property
    def maintenance_path(self) -> str:
        return self._maintenance_path

    def decide(
        self,
        result: LookupResult,
        request: GateRequest | None = None,
    ) -> ResolutionOutcome:
        """Return the disposition for *result* given *request*."""
        request = request or GateRequest()

        if isinstance(result, ResolutionFailed):
            return RejectWith(reason=RejectReason.TRANSIENT_ERROR)
        if not isinstance(result, Resolved):
            return RejectWith(reason=RejectReason.NOT_CONFIGURED)

        record = result.record
        status = record.status

        if status == SiteStatus.ACTIVE:
            return Proceed(context=self._context(result))

        if status == SiteStatus.MAINTENANCE:
            if request.bypass or self._is_maintenance_page(request.path):
                return Proceed(context=self._context(result, maintenance=True))
            return RedirectTo(path=self._maintenance_path)

        if status in (SiteStatus.DRAFT, SiteStatus.PREVIEW):
            if request.bypass:
                return Proceed(context=self._context(result, preview=True))
            return RejectWith(reason=RejectReason.INACTIVE)

        if status == SiteStatus.INACTIVE:
            return RejectWith(reason=RejectReason.INACTIVE)

        # ARCHIVED, and any status added later without a rule, is not served.
        if status != SiteStatus.ARCHIVED:
            logger.warning(
                "No gate rule for status=%s tenant=%s; treating as unconfigured",
                status,
                record.tenant_id,
            )
        return RejectWith(reason=RejectReason.NOT_CONFIGURED)

    def _is_maintenance_page(self, path: str) -> bool:
        mp = self._maintenance_path
        if mp == "/":
            return path == "/"
        return path == mp or path.startswith(mp + "/")

    @staticmethod
    def _context(
        result: Resolved,
        *,
        maintenance: bool = False,
        preview: bool = False,
    ) -> SiteContext:
        return SiteContext(
            tenant_id=result.record.tenant_id,
            domain=result.domain,
            record=result.record,
            maintenance=maintenance,
            preview=preview,
            from_cache=result.from_cache,
        )


__all__ = ["GateRequest", "SiteStatusGate"]
