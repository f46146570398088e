"""Request-scoped site context helpers.

The resolved :class:`~fastapi_sitegate.core.types.SiteContext` travels with
the request it belongs to: the middleware stores it on the ASGI scope's
``state`` and handlers receive it through FastAPI dependency injection or by
passing it explicitly to the code that needs the tenant.

There is deliberately no ``ContextVar``, module-level singleton, or
thread-local holding "the current tenant".  Code that needs the tenant ID
takes it as an argument.

Public surface
--------------
:func:`attach_site_context`
    Store a context on an ASGI scope (used by the middleware).
:func:`get_site_context`
    FastAPI-compatible dependency returning the context or raising
    :class:`~fastapi_sitegate.core.exceptions.SiteContextMissingError`.
:func:`get_site_context_optional`
    Same, but returns ``None`` when no context is attached.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

# Imported at runtime: FastAPI inspects the ``request`` annotation of the
# dependencies below to inject the current request.
from starlette.requests import Request

from fastapi_sitegate.core.exceptions import SiteContextMissingError
from fastapi_sitegate.core.types import SiteContext

if TYPE_CHECKING:
    from starlette.types import Scope

#: Attribute name used on ``request.state``.
STATE_KEY = "site"


def attach_site_context(scope: Scope, context: SiteContext) -> None:
    """Store *context* on ``scope["state"]``.

    Starlette keeps request state as a plain dict on the scope and wraps it
    in ``State`` on access; a pre-populated ``State`` object is also accepted.
    """
    state: Any = scope.setdefault("state", {})
    if isinstance(state, dict):
        state[STATE_KEY] = context
    else:
        setattr(state, STATE_KEY, context)


def get_site_context_optional(request: Request) -> SiteContext | None:
    """Return the site context attached to *request*, or ``None``."""
    state: Any = request.scope.get("state")
    if state is None:
        return None
    value = state.get(STATE_KEY) if isinstance(state, dict) else getattr(state, STATE_KEY, None)
    return value if isinstance(value, SiteContext) else None


def get_site_context(request: Request) -> SiteContext:
    """Return the site context attached to *request*.

    Raises:
        SiteContextMissingError: When the request bypassed the middleware.
    """
    context = get_site_context_optional(request)
    if context is None:
        raise SiteContextMissingError(details={"path": request.url.path})
    return context


__all__ = [
    "STATE_KEY",
    "attach_site_context",
    "get_site_context",
    "get_site_context_optional",
]
