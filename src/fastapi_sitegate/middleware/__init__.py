"""ASGI middleware for per-request site resolution and gating."""

from fastapi_sitegate.middleware.sitegate import SiteGateMiddleware

__all__ = ["SiteGateMiddleware"]
