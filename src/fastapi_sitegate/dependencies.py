"""FastAPI dependencies for the resolved site.

The middleware attaches a :class:`~fastapi_sitegate.core.types.SiteContext`
to each proceeding request; these dependencies hand it to route handlers.
Nothing here reads module-level or thread-local state.

Annotated shorthand::

    @app.get("/")
    async def home(site: SiteContextDep, settings: SiteSettingsDep):
        return {"tenant": site.tenant_id, "title": settings.seo.default_title}

Closure-based factory::

    get_fresh_site = make_fresh_site_dependency(gate)

    @app.get("/admin/site")
    async def current(record: Annotated[SiteRecord, Depends(get_fresh_site)]):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends

from fastapi_sitegate.core.context import get_site_context, get_site_context_optional
from fastapi_sitegate.core.exceptions import SiteNotFoundError, StoreUnavailableError
from fastapi_sitegate.core.types import (
    DisplaySettings,
    ResolutionFailed,
    Resolved,
    SiteContext,
    SiteRecord,
)

if TYPE_CHECKING:
    from fastapi_sitegate.manager import SiteGate


def get_site_settings(
    context: Annotated[SiteContext, Depends(get_site_context)],
) -> DisplaySettings:
    """Return the display settings of the current request's site."""
    return context.settings


#: Annotated alias for the current site context.
SiteContextDep = Annotated[SiteContext, Depends(get_site_context)]

#: Annotated alias for routes that also serve excluded (site-less) paths.
SiteContextOptionalDep = Annotated[SiteContext | None, Depends(get_site_context_optional)]

#: Annotated alias for the current site's display settings.
SiteSettingsDep = Annotated[DisplaySettings, Depends(get_site_settings)]


####################################
# Closure-based dependency factory #
####################################


def make_fresh_site_dependency(gate: SiteGate) -> Any:
    """Create a dependency returning the current site re-read from the store.

    Uses the tenant ID already on the request context, bypassing the cache
    read, and refreshes the cache entry with the answer.  Useful on pages
    that must reflect an edit immediately (e.g. a site settings screen).

    Args:
        gate: The configured :class:`~fastapi_sitegate.manager.SiteGate`.

    Returns:
        An async function suitable for ``Depends``.  It raises
        ``SiteNotFoundError`` if the tenant vanished and
        ``StoreUnavailableError`` if the store could not answer.
    """

    async def _get_fresh_site(
        context: Annotated[SiteContext, Depends(get_site_context)],
    ) -> SiteRecord:
        result = await gate.resolver.resolve_by_id(context.tenant_id)
        if isinstance(result, Resolved):
            return result.record
        if isinstance(result, ResolutionFailed):
            raise StoreUnavailableError(operation="get_by_id", reason=result.cause)
        raise SiteNotFoundError(lookup=context.tenant_id)

    return _get_fresh_site


__all__ = [
    "SiteContextDep",
    "SiteContextOptionalDep",
    "SiteSettingsDep",
    "get_site_context",
    "get_site_context_optional",
    "get_site_settings",
    "make_fresh_site_dependency",
]
