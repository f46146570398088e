"""Unit tests — fastapi_sitegate.core.context

The context lives on the ASGI scope of the request it belongs to; these
tests build bare scopes and ``Request`` objects, no app required.
"""

from __future__ import annotations

import pytest
from starlette.datastructures import State
from starlette.requests import Request

from fastapi_sitegate.core.context import (
    STATE_KEY,
    attach_site_context,
    get_site_context,
    get_site_context_optional,
)
from fastapi_sitegate.core.exceptions import SiteContextMissingError
from fastapi_sitegate.core.types import SiteContext, SiteRecord

pytestmark = pytest.mark.unit


def _scope(**extra) -> dict:
    scope = {"type": "http", "method": "GET", "path": "/x", "headers": [], "query_string": b""}
    scope.update(extra)
    return scope


def _context(tenant_id: str = "t1") -> SiteContext:
    record = SiteRecord(tenant_id=tenant_id, domain_name=f"{tenant_id}.example.com")
    return SiteContext(tenant_id=tenant_id, domain=record.domain_name, record=record)


class TestAttach:
    def test_creates_state_when_missing(self):
        scope = _scope()
        ctx = _context()
        attach_site_context(scope, ctx)
        assert scope["state"] == {STATE_KEY: ctx}

    def test_state_object(self):
        scope = _scope(state=State())
        ctx = _context()
        attach_site_context(scope, ctx)
        assert getattr(scope["state"], STATE_KEY) is ctx

    def test_dict_state(self):
        scope = _scope(state={})
        ctx = _context()
        attach_site_context(scope, ctx)
        assert scope["state"][STATE_KEY] is ctx

    def test_visible_through_request_state(self):
        scope = _scope()
        ctx = _context()
        attach_site_context(scope, ctx)
        assert Request(scope).state.site is ctx


class TestGet:
    def test_optional_returns_none_without_state(self):
        assert get_site_context_optional(Request(_scope())) is None

    def test_optional_ignores_foreign_values(self):
        assert get_site_context_optional(Request(_scope(state={STATE_KEY: "t1"}))) is None

    def test_required_returns_context(self):
        scope = _scope()
        ctx = _context()
        attach_site_context(scope, ctx)
        assert get_site_context(Request(scope)) is ctx

    def test_required_raises_with_path(self):
        with pytest.raises(SiteContextMissingError) as info:
            get_site_context(Request(_scope()))
        assert info.value.details == {"path": "/x"}

    def test_contexts_do_not_leak_between_requests(self):
        first, second = _scope(), _scope()
        attach_site_context(first, _context("t1"))
        attach_site_context(second, _context("t2"))
        assert get_site_context(Request(first)).tenant_id == "t1"
        assert get_site_context(Request(second)).tenant_id == "t2"
