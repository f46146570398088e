"""In-process site cache and negative cache."""

from fastapi_sitegate.cache.site_cache import NegativeCache, SiteCache

__all__ = ["NegativeCache", "SiteCache"]
