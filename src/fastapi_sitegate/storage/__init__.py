"""Site configuration store backends.

``SQLAlchemySiteStore`` needs SQLAlchemy's asyncio extra plus an async driver
(``pip install fastapi-sitegate[sqlite]`` or ``[postgres]``); it is imported
from :mod:`fastapi_sitegate.storage.database` directly.
"""

from fastapi_sitegate.storage.memory import InMemorySiteStore
from fastapi_sitegate.storage.site_store import SiteStore

__all__ = ["InMemorySiteStore", "SiteStore"]
