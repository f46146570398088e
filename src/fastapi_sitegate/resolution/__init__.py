"""Host → site resolution."""

from fastapi_sitegate.resolution.resolver import SiteResolver

__all__ = ["SiteResolver"]
