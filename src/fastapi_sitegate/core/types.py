"""Domain types, enumerations, and data models for fastapi-sitegate.

This module is the single source of truth for the library's public domain
vocabulary.  Other modules import *from* this module and never the reverse,
to keep the dependency graph acyclic.

Design notes
------------
* Enumerations use :class:`~enum.StrEnum` so values serialise to plain strings
  in JSON, logs, and database rows without extra conversion.
* :class:`SiteRecord` and every outcome type are Pydantic ``frozen=True``
  models.  A cached record is a snapshot: it is shared by every concurrent
  request that hits the cache, so it must never be mutated in place.
* Site settings are a typed model with a fixed set of known fields plus one
  open ``extensions`` map.  Unknown keys coming from the store are moved into
  ``extensions`` instead of being silently dropped or left untyped.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from fastapi_sitegate.utils.validation import normalize_domain

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SiteStatus(StrEnum):
    """Lifecycle status of a site.

    ``ARCHIVED`` is how a site is "deleted": the record stays in the store but
    is treated exactly like an unconfigured domain.
    """

    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"
    DRAFT = "draft"
    PREVIEW = "preview"
    ARCHIVED = "archived"


class RejectReason(StrEnum):
    """Reason codes carried by :class:`RejectWith`.

    NOT_CONFIGURED
        No routable site exists for the domain (unknown or archived).
    INACTIVE
        The site exists but is switched off, or is a draft/preview requested
        without a bypass credential.
    TRANSIENT_ERROR
        The configuration store could not be reached.  Callers may retry.
    """

    NOT_CONFIGURED = "not_configured"
    INACTIVE = "inactive"
    TRANSIENT_ERROR = "transient_error"


class EvictionPolicy(StrEnum):
    """Entry chosen for eviction when the site cache is full.

    LRU
        Least recently *used*; a cache hit promotes the entry.
    FIFO
        Least recently *inserted* (oldest ``inserted_at``); hits do not
        change the eviction order.
    """

    LRU = "lru"
    FIFO = "fifo"


# ---------------------------------------------------------------------------
# Site settings
# ---------------------------------------------------------------------------


class AnalyticsSettings(BaseModel):
    """Analytics identifiers rendered into page templates."""

    model_config = ConfigDict(frozen=True)

    google_analytics_id: str | None = None
    facebook_pixel_id: str | None = None


class SeoSettings(BaseModel):
    """Default SEO metadata for the site."""

    model_config = ConfigDict(frozen=True)

    default_title: str | None = None
    default_description: str | None = None
    og_image: str | None = None


class FeatureFlags(BaseModel):
    """Per-site feature switches."""

    model_config = ConfigDict(frozen=True)

    enable_blog: bool = False
    enable_ecommerce: bool = False
    enable_contact_form: bool = False


class DisplaySettings(BaseModel):
    """Typed display configuration consumed by the rendering layer.

    The core never interprets these values; it only carries them.  Keys that
    are not declared fields are collected into :attr:`extensions` so newer
    store documents remain loadable by older deployments.

    Attributes:
        logo: URL or path of the site logo.
        contact_email: Primary contact address.
        social_links: Network name → profile URL.
        analytics: Analytics identifiers.
        seo: Default SEO metadata.
        features: Feature switches.
        extensions: Open map for custom, forward-compatible settings.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    logo: str | None = None
    contact_email: str | None = None
    social_links: dict[str, str] = Field(default_factory=dict)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    seo: SeoSettings = Field(default_factory=SeoSettings)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    extensions: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_extensions(cls, data: Any) -> Any:
        """Move undeclared top-level keys into ``extensions``."""
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields)
        unknown = {k: v for k, v in data.items() if k not in known}
        if not unknown:
            return data
        merged = {k: v for k, v in data.items() if k in known}
        merged["extensions"] = {**unknown, **dict(data.get("extensions") or {})}
        return merged


# ---------------------------------------------------------------------------
# Site record
# ---------------------------------------------------------------------------


def _clean_domain(value: str) -> str:
    return value.strip().lower().rstrip(".")


def _canonical_domain(value: str, field: str) -> str:
    # A stored domain must equal its normalize_domain() form: cache keys and
    # store lookups both use that form.
    cleaned = _clean_domain(value)
    if not cleaned:
        msg = f"{field} must not be blank"
        raise ValueError(msg)
    if normalize_domain(cleaned) != cleaned:
        msg = f"{field} {value!r} is not a canonical host name"
        raise ValueError(msg)
    return cleaned


class SiteRecord(BaseModel):
    """Immutable snapshot of one tenant's routing and display configuration.

    Instances are frozen.  To build a modified copy use :meth:`model_copy`::

        archived = record.model_copy(update={"status": SiteStatus.ARCHIVED})

    Attributes:
        tenant_id: Opaque unique identifier; primary key in the store.
        domain_name: Primary lookup domain in canonical host form (lower-cased,
            no trailing dot, no port except on loopback hosts).
        alternate_domains: Additional domains served by the same tenant,
            lower-cased, de-duplicated and sorted.  Never contains
            ``domain_name``.
        site_name: Display name.
        status: Current :class:`SiteStatus`.
        theme_ref: Opaque reference to the site's theme.
        display_settings: Typed :class:`DisplaySettings`.
        updated_at: Last modification time as reported by the store.  A
            staleness hint only; the store gives no causal ordering.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "tenant_id": "tenant1",
                    "domain_name": "tenant1.example.com",
                    "alternate_domains": ["www.tenant1.example.com"],
                    "site_name": "Tenant One",
                    "status": "active",
                    "theme_ref": "blue-theme",
                    "display_settings": {"logo": "/tenant1-logo.png"},
                }
            ]
        },
    )

    tenant_id: str = Field(..., min_length=1, max_length=255)
    domain_name: str = Field(..., min_length=1, max_length=260)
    alternate_domains: tuple[str, ...] = Field(default=())
    site_name: str = Field(default="", max_length=255)
    status: SiteStatus = Field(default=SiteStatus.ACTIVE)
    theme_ref: str | None = Field(default=None)
    display_settings: DisplaySettings = Field(default_factory=DisplaySettings)
    updated_at: datetime | None = Field(default=None)

    @field_validator("domain_name")
    @classmethod
    def _normalise_domain_name(cls, v: str) -> str:
        return _canonical_domain(v, "domain_name")

    @field_validator("alternate_domains", mode="before")
    @classmethod
    def _normalise_alternates(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        primary = info.data.get("domain_name")
        cleaned = {
            _canonical_domain(d, "alternate_domains")
            for d in v
            if isinstance(d, str) and d.strip()
        }
        cleaned.discard(primary)
        return tuple(sorted(cleaned))

    # ------------------------------------------------------------------
    # Domain logic
    # ------------------------------------------------------------------

    def all_domains(self) -> tuple[str, ...]:
        """Return the primary domain followed by every alternate domain."""
        return (self.domain_name, *self.alternate_domains)

    def serves(self, domain: str) -> bool:
        """Return ``True`` when *domain* is the primary or an alternate domain."""
        return _clean_domain(domain) in self.all_domains()

    def is_routable(self) -> bool:
        """Return ``False`` for archived sites, which behave as unconfigured."""
        return self.status != SiteStatus.ARCHIVED

    def model_dump_safe(self) -> dict[str, Any]:
        """Return a compact dict suitable for log records.

        Display settings are summarised as their key names; they can hold
        contact addresses and tracking identifiers that do not belong in logs.
        """
        return {
            "tenant_id": self.tenant_id,
            "domain_name": self.domain_name,
            "alternate_domains": list(self.alternate_domains),
            "status": self.status.value,
            "theme_ref": self.theme_ref,
            "display_settings": sorted(
                self.display_settings.model_dump(exclude_defaults=True)
            ),
        }


# ---------------------------------------------------------------------------
# Request-scoped context
# ---------------------------------------------------------------------------


class SiteContext(BaseModel):
    """Resolved tenant context attached to one in-flight request.

    Passed explicitly down the call chain (request state, dependency
    injection); never stored in module-level or thread-local variables.

    Attributes:
        tenant_id: The resolved tenant.
        domain: Normalised domain the request was resolved from.
        record: The site snapshot used for this request.
        maintenance: ``True`` when the site is in maintenance and the request
            was let through (maintenance page itself, or bypass).
        preview: ``True`` when a draft/preview site was opened with a bypass
            credential.
        from_cache: Whether the record came from the local cache.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    domain: str
    record: SiteRecord
    maintenance: bool = False
    preview: bool = False
    from_cache: bool = False

    @property
    def status(self) -> SiteStatus:
        return self.record.status

    @property
    def settings(self) -> DisplaySettings:
        return self.record.display_settings


# ---------------------------------------------------------------------------
# Lookup results (resolver level)
# ---------------------------------------------------------------------------


class Resolved(BaseModel):
    """A site record was found for the domain."""

    model_config = ConfigDict(frozen=True)

    domain: str
    record: SiteRecord
    from_cache: bool = False


class Unresolved(BaseModel):
    """No site is configured for the domain."""

    model_config = ConfigDict(frozen=True)

    domain: str


class ResolutionFailed(BaseModel):
    """The store could not answer; the result is unknown, not negative.

    Attributes:
        domain: Normalised domain that was looked up.
        cause: Operator-readable description of the failure.
        error_type: Class name of the underlying exception.
    """

    model_config = ConfigDict(frozen=True)

    domain: str
    cause: str
    error_type: str = "StoreUnavailableError"


LookupResult = Resolved | Unresolved | ResolutionFailed


# ---------------------------------------------------------------------------
# Dispositions (gate level, exposed to the request pipeline)
# ---------------------------------------------------------------------------


class Proceed(BaseModel):
    """Let the request through with the attached tenant context."""

    model_config = ConfigDict(frozen=True)

    context: SiteContext


class RedirectTo(BaseModel):
    """Redirect the request to another path on the same host."""

    model_config = ConfigDict(frozen=True)

    path: str


class RejectWith(BaseModel):
    """Reject the request; the pipeline renders a page per reason code."""

    model_config = ConfigDict(frozen=True)

    reason: RejectReason


ResolutionOutcome = Proceed | RedirectTo | RejectWith


__all__ = [
    "AnalyticsSettings",
    "DisplaySettings",
    "EvictionPolicy",
    "FeatureFlags",
    "LookupResult",
    "Proceed",
    "RedirectTo",
    "RejectReason",
    "RejectWith",
    "Resolved",
    "ResolutionFailed",
    "ResolutionOutcome",
    "SeoSettings",
    "SiteContext",
    "SiteRecord",
    "SiteStatus",
    "Unresolved",
]
