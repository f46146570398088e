"""Custom exceptions for fastapi-sitegate.

All exceptions derive from ``SiteGateError`` so callers can catch the entire
family with a single ``except SiteGateError`` clause while still being able to
handle individual sub-types.

Exception hierarchy::

    SiteGateError
    ├── SiteNotFoundError
    ├── StoreUnavailableError
    ├── CacheCorruptionError
    ├── ConfigurationError
    └── SiteContextMissingError

Design decisions:
    - ``SiteNotFoundError`` and ``StoreUnavailableError`` are deliberately
      unrelated siblings.  "Domain not configured" is durable and user-facing;
      "store unreachable" is transient and must never be rendered, cached, or
      counted as a not-found.
    - Every exception carries a structured ``details`` dict that is safe to
      log.  It must never contain connection strings, bypass tokens, or raw
      driver error text that might include credentials.
    - Client-facing messages are built by the middleware, not here.
"""

from __future__ import annotations

from typing import Any


class SiteGateError(Exception):
    """Base exception for all fastapi-sitegate errors.

    Attributes:
        message: Human-readable description of the error.
        details: Supplementary key-value context.  Safe to log.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | details={self.details}"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r})"


class SiteNotFoundError(SiteGateError):
    """Raised when no site record matches a domain or tenant ID.

    Attributes:
        lookup: The domain or tenant ID that was looked up.
    """

    def __init__(
        self,
        lookup: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = f"Site not found: {lookup!r}" if lookup else "Site not found"
        super().__init__(message, details)
        self.lookup = lookup


class StoreUnavailableError(SiteGateError):
    """Raised when the configuration store cannot be reached or fails.

    Transient by nature: the resolver may retry, and never caches it.

    Attributes:
        operation: The store operation that failed (e.g. ``"find_by_domain"``).
        reason: Concise, operator-readable cause.
    """

    def __init__(
        self,
        operation: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Configuration store unavailable during {operation}: {reason}", details)
        self.operation = operation
        self.reason = reason


class CacheCorruptionError(SiteGateError):
    """Describes a malformed cache entry found on read.

    Never propagated out of the cache; it is built so the defect can be
    logged with a stable shape, then the entry is dropped and treated as a
    miss.

    Attributes:
        key: Cache key holding the malformed entry.
        found: Type name of the value that was found.
    """

    def __init__(
        self,
        key: str,
        found: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Malformed cache entry for {key!r} (found {found})", details)
        self.key = key
        self.found = found


class ConfigurationError(SiteGateError):
    """Raised when components are wired with an invalid or inconsistent value.

    Attributes:
        parameter: Name of the offending parameter.
        reason: Why the value is invalid.
    """

    def __init__(
        self,
        parameter: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Invalid configuration for {parameter!r}: {reason}", details)
        self.parameter = parameter
        self.reason = reason


class SiteContextMissingError(SiteGateError):
    """Raised when a handler asks for the site context but none was attached.

    Usually means the route is listed in ``excluded_paths`` or the request
    did not pass through :class:`~fastapi_sitegate.middleware.SiteGateMiddleware`.
    """

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            "No site context is attached to this request. "
            "Ensure the request passed through SiteGateMiddleware.",
            details,
        )


__all__ = [
    "CacheCorruptionError",
    "ConfigurationError",
    "SiteContextMissingError",
    "SiteGateError",
    "SiteNotFoundError",
    "StoreUnavailableError",
]
