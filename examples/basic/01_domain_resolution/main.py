"""
Basic Example 1 — Domain Resolution
====================================
Serve several sites from one app: the Host header picks the site.

What you'll learn
-----------------
- SiteGate + SiteGateMiddleware wiring with an in-memory store
- Status gating: active, maintenance, draft
- Preview / maintenance bypass with a header
- Reading the resolved site in a handler

Run
---
    pip install "fastapi-sitegate"
    pip install "fastapi[standard]"
    uvicorn main:app --reload

Test (simulating domains via Host header)
----
    # Active site → 200
    curl http://localhost:8000/ -H "Host: acme.example.com"

    # Alternate domain of the same site → 200
    curl http://localhost:8000/ -H "Host: www.acme.example.com"

    # Maintenance site → 307 to /maintenance
    curl -i http://localhost:8000/ -H "Host: globex.example.com"

    # Draft site, with bypass → 200 (preview)
    curl http://localhost:8000/ -H "Host: initech.example.com" \\
         -H "X-Site-Bypass: demo-preview-token-change-me"

    # Unknown domain → 404
    curl -i http://localhost:8000/ -H "Host: unknown.example.com"
"""
from fastapi import FastAPI

from fastapi_sitegate import (
    InMemorySiteStore,
    SiteContextDep,
    SiteGate,
    SiteGateConfig,
    SiteGateMiddleware,
    SiteRecord,
    SiteSettingsDep,
    SiteStatus,
)

config = SiteGateConfig(
    cache_ttl=60,
    bypass_tokens=["demo-preview-token-change-me"],
    excluded_paths=["/health"],
)

store = InMemorySiteStore(
    [
        SiteRecord(
            tenant_id="t1",
            domain_name="acme.example.com",
            alternate_domains=["www.acme.example.com"],
            site_name="Acme Corp",
            display_settings={"logo": "/static/acme.png", "seo": {"default_title": "Acme"}},
        ),
        SiteRecord(
            tenant_id="t2",
            domain_name="globex.example.com",
            site_name="Globex Inc.",
            status=SiteStatus.MAINTENANCE,
        ),
        SiteRecord(
            tenant_id="t3",
            domain_name="initech.example.com",
            site_name="Initech",
            status=SiteStatus.DRAFT,
        ),
    ]
)
gate = SiteGate(config, store)

app = FastAPI(title="Domain Resolution Demo", lifespan=gate.create_lifespan())
app.add_middleware(SiteGateMiddleware, gate=gate)


@app.get("/health")
async def health():
    return {"status": "ok", "cache": gate.cache_stats()}


@app.get("/")
async def home(site: SiteContextDep, settings: SiteSettingsDep):
    return {
        "tenant": site.tenant_id,
        "name": site.record.site_name,
        "title": settings.seo.default_title,
        "preview": site.preview,
        "served_from_cache": site.from_cache,
    }


@app.get("/maintenance")
async def maintenance(site: SiteContextDep):
    return {"message": f"{site.record.site_name} is down for maintenance."}
