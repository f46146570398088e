"""
Intermediate Example 1 — SQLite store + admin invalidation
===========================================================
Persist sites in a database and push edits to the cache immediately.

What you'll learn
-----------------
- SQLAlchemySiteStore built from ``database_url``
- Cache warm-up and the background expiry sweeper
- Invalidation hooks after an out-of-band edit
- A "fresh" dependency that bypasses the cache for admin screens

Run
---
    pip install "fastapi-sitegate[sqlite]"
    pip install "fastapi[standard]"
    SITEGATE_DATABASE_URL=sqlite+aiosqlite:///./sites.db uvicorn main:app --reload

Test
----
    # Create / replace a site
    curl -X PUT http://localhost:8000/admin/sites/t1 \\
         -H "Content-Type: application/json" \\
         -d '{"tenant_id": "t1", "domain_name": "acme.example.com", "status": "active"}'

    curl http://localhost:8000/ -H "Host: acme.example.com"

    # Put it in maintenance; visible on the next request
    curl -X PUT http://localhost:8000/admin/sites/t1 \\
         -H "Content-Type: application/json" \\
         -d '{"tenant_id": "t1", "domain_name": "acme.example.com", "status": "maintenance"}'

    curl -i http://localhost:8000/ -H "Host: acme.example.com"

    # Cache counters
    curl http://localhost:8000/admin/cache
"""
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException

from fastapi_sitegate import (
    SiteContextDep,
    SiteGate,
    SiteGateConfig,
    SiteGateMiddleware,
    SiteRecord,
    make_fresh_site_dependency,
)

config = SiteGateConfig(
    database_url="sqlite+aiosqlite:///./sites.db",
    warm_cache_on_startup=True,
    cache_sweep_interval=30,
    negative_cache_ttl=5,
    excluded_paths=["/admin"],
)
gate = SiteGate(config)  # builds SQLAlchemySiteStore from database_url
get_fresh_site = make_fresh_site_dependency(gate)

app = FastAPI(title="SQLite Sites Demo", lifespan=gate.create_lifespan())
app.add_middleware(SiteGateMiddleware, gate=gate)


@app.put("/admin/sites/{tenant_id}")
async def put_site(tenant_id: str, record: SiteRecord):
    if record.tenant_id != tenant_id:
        raise HTTPException(status_code=400, detail="tenant_id mismatch")
    stored = await gate.store.upsert(record)
    # The record may have changed domains, so drop by tenant and by domain.
    gate.invalidate_tenant(tenant_id)
    for domain in stored.all_domains():
        gate.invalidate_domain(domain)
    return stored.model_dump_safe()


@app.get("/admin/cache")
async def cache_stats():
    return gate.stats()


@app.get("/")
async def home(site: SiteContextDep):
    return {"tenant": site.tenant_id, "status": site.status}


@app.get("/settings")
async def settings(record: Annotated[SiteRecord, Depends(get_fresh_site)]):
    return record.display_settings.model_dump(exclude_defaults=True)
