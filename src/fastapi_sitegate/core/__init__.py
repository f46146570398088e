"""Core domain types, configuration, context helpers, and exceptions."""

from fastapi_sitegate.core.config import SiteGateConfig
from fastapi_sitegate.core.context import (
    attach_site_context,
    get_site_context,
    get_site_context_optional,
)
from fastapi_sitegate.core.exceptions import (
    CacheCorruptionError,
    ConfigurationError,
    SiteContextMissingError,
    SiteGateError,
    SiteNotFoundError,
    StoreUnavailableError,
)
from fastapi_sitegate.core.types import (
    DisplaySettings,
    EvictionPolicy,
    LookupResult,
    Proceed,
    RedirectTo,
    RejectReason,
    RejectWith,
    Resolved,
    ResolutionFailed,
    ResolutionOutcome,
    SiteContext,
    SiteRecord,
    SiteStatus,
    Unresolved,
)

__all__ = [
    "CacheCorruptionError",
    "ConfigurationError",
    "DisplaySettings",
    "EvictionPolicy",
    "LookupResult",
    "Proceed",
    "RedirectTo",
    "RejectReason",
    "RejectWith",
    "Resolved",
    "ResolutionFailed",
    "ResolutionOutcome",
    "SiteContext",
    "SiteContextMissingError",
    "SiteGateConfig",
    "SiteGateError",
    "SiteNotFoundError",
    "SiteRecord",
    "SiteStatus",
    "StoreUnavailableError",
    "Unresolved",
    "attach_site_context",
    "get_site_context",
    "get_site_context_optional",
]
