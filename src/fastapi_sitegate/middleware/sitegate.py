"""Raw ASGI middleware that resolves and gates every request by host.

Why raw ASGI instead of ``BaseHTTPMiddleware``
----------------------------------------------
``BaseHTTPMiddleware`` buffers the whole response body, which breaks
Server-Sent Events and other streaming endpoints.  This middleware uses the
ASGI 3 callable ``__call__(scope, receive, send)`` directly and only touches
the ``http.response.start`` message.

Request flow
------------
::

    Client                       Middleware                       App
      │── request ───────────────►│                                │
      │                     host + bypass credential               │
      │                     SiteGate.resolve()                     │
      │                      ├─ Proceed ──► scope["state"].site ──►│
      │◄── response (+x-tenant-id, x-site-status) ─────────────────│
      │                      ├─ RedirectTo ─► 307 Location         │
      │                      └─ RejectWith ─► JSON 404/403/503     │

Host selection order
--------------------
1. ``mock_domain_header`` (development only, when configured)
2. ``mock_domain`` (development only, when configured)
3. ``X-Forwarded-Host`` (only when ``trust_x_forwarded`` is set)
4. ``Host``

Responses
---------
- ``not_configured`` → ``404 Not Found``
- ``inactive`` → ``403 Forbidden``
- ``transient_error`` → ``503 Service Unavailable`` with ``Retry-After``

Bodies are ``{"detail": ..., "reason": ...}`` and never include store
errors, host names of backends, or credentials.  WebSocket connections that
do not proceed are closed with code 1008 (policy violation) or 1013 (try
again later).

``x-tenant-id`` and the tenant cookie carry the tenant ID percent-encoded as
UTF-8, since header values are latin-1 on the wire.
"""

from __future__ import annotations

from http.cookies import SimpleCookie
import json
import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import cookie_parser
from starlette.responses import RedirectResponse

from fastapi_sitegate.core.context import attach_site_context
from fastapi_sitegate.core.types import Proceed, RedirectTo, RejectReason

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from starlette.types import ASGIApp, Message, Receive, Scope, Send

    from fastapi_sitegate.core.types import SiteContext
    from fastapi_sitegate.manager import SiteGate

logger = logging.getLogger(__name__)

#: Seconds clients are told to wait after a transient store failure.
RETRY_AFTER_SECONDS = 5

_REJECTIONS: dict[RejectReason, tuple[int, str]] = {
    RejectReason.NOT_CONFIGURED: (404, "Site not found"),
    RejectReason.INACTIVE: (403, "Site is not available"),
    RejectReason.TRANSIENT_ERROR: (503, "Service temporarily unavailable"),
}

# WebSocket close codes: 1008 policy violation, 1013 try again later.
_WS_CLOSE_CODES: dict[RejectReason, int] = {
    RejectReason.NOT_CONFIGURED: 1008,
    RejectReason.INACTIVE: 1008,
    RejectReason.TRANSIENT_ERROR: 1013,
}


def _header_safe(value: str) -> str:
    """Percent-encode *value* as UTF-8 so it fits a latin-1 header or cookie."""
    return quote(value, safe="")


def _json_response(
    send: Send,
    status_code: int,
    payload: dict[str, str],
    extra_headers: list[tuple[bytes, bytes]] | None = None,
) -> Awaitable[None]:
    """Build and send a minimal JSON response.

    Args:
        send: ASGI send callable.
        status_code: HTTP status code.
        payload: JSON body.
        extra_headers: Optional additional response headers (e.g. Retry-After).

    Returns:
        Coroutine that completes after the body is sent.
    """
    body = json.dumps(payload).encode("utf-8")
    headers: list[tuple[bytes, bytes]] = [
        (b"content-type", b"application/json"),
        (b"content-length", str(len(body)).encode()),
        (b"cache-control", b"no-store"),
    ]
    if extra_headers:
        headers.extend(extra_headers)

    async def _send() -> None:
        await send({"type": "http.response.start", "status": status_code, "headers": headers})
        await send({"type": "http.response.body", "body": body, "more_body": False})

    return _send()


class SiteGateMiddleware:
    """Raw ASGI middleware that applies :meth:`SiteGate.resolve` per request.

    Args:
        app: The downstream ASGI application.
        gate: The configured :class:`~fastapi_sitegate.manager.SiteGate`.
        excluded_paths: Extra path prefixes that bypass resolution, added to
            ``gate.config.excluded_paths``.

    Example::

        app.add_middleware(
            SiteGateMiddleware,
            gate=gate,
            excluded_paths=["/health", "/static"],
        )
    """

    def __init__(
        self,
        app: ASGIApp,
        gate: SiteGate,
        excluded_paths: list[str] | None = None,
    ) -> None:
        self._app = app
        self._gate = gate
        self._config = gate.config
        self._excluded: list[str] = [*self._config.excluded_paths, *(excluded_paths or [])]

    def _is_excluded(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self._excluded)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Handle ``http`` and ``websocket`` scopes; pass everything else through."""
        if scope["type"] not in ("http", "websocket"):
            await self._app(scope, receive, send)
            return

        path: str = scope.get("path", "/")
        if self._is_excluded(path):
            await self._app(scope, receive, send)
            return

        await self._handle(scope, receive, send)

    ###################
    # Request parsing #
    ###################

    def _select_host(self, headers: Headers) -> str | None:
        config = self._config
        if config.mock_domain_header:
            mocked = headers.get(config.mock_domain_header)
            if mocked:
                return mocked
        if config.mock_domain:
            return config.mock_domain
        if config.trust_x_forwarded:
            forwarded = headers.get("x-forwarded-host")
            if forwarded:
                return forwarded
        return headers.get("host")

    def _bypass_credential(self, headers: Headers) -> str | None:
        credential = headers.get(self._config.bypass_header_name)
        if credential:
            return credential
        cookie_header = headers.get("cookie")
        if not cookie_header:
            return None
        return cookie_parser(cookie_header).get(self._config.bypass_cookie_name) or None

    ############
    # Dispatch #
    ############

    async def _handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        headers = Headers(scope=scope)
        host = self._select_host(headers)
        path: str = scope.get("path", "/")

        outcome = await self._gate.resolve(
            host,
            path=path,
            bypass_credential=self._bypass_credential(headers),
        )

        if isinstance(outcome, Proceed):
            await self._proceed(outcome.context, scope, receive, send)
            return

        if scope["type"] == "websocket":
            code = 1008 if isinstance(outcome, RedirectTo) else _WS_CLOSE_CODES[outcome.reason]
            await send({"type": "websocket.close", "code": code})
            return

        if isinstance(outcome, RedirectTo):
            logger.info("Redirecting host=%r path=%s to %s", host, path, outcome.path)
            response = RedirectResponse(url=outcome.path, status_code=307)
            await response(scope, receive, send)
            return

        status_code, detail = _REJECTIONS[outcome.reason]
        logger.info("Rejected host=%r path=%s reason=%s", host, path, outcome.reason)
        extra: list[tuple[bytes, bytes]] = []
        if outcome.reason == RejectReason.TRANSIENT_ERROR:
            extra.append((b"retry-after", str(RETRY_AFTER_SECONDS).encode()))
        await _json_response(
            send,
            status_code,
            {"detail": detail, "reason": outcome.reason.value},
            extra_headers=extra,
        )

    async def _proceed(
        self,
        context: SiteContext,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        attach_site_context(scope, context)
        config = self._config
        if not (config.expose_site_headers or config.set_tenant_cookie):
            await self._app(scope, receive, send)
            return

        async def _send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = MutableHeaders(scope=message)
                if config.expose_site_headers:
                    response_headers.append("x-tenant-id", _header_safe(context.tenant_id))
                    response_headers.append("x-site-status", context.status.value)
                if config.set_tenant_cookie:
                    response_headers.append("set-cookie", self._tenant_cookie(context.tenant_id))
            await send(message)

        await self._app(scope, receive, _send_wrapper)

    def _tenant_cookie(self, tenant_id: str) -> str:
        cookie: SimpleCookie = SimpleCookie()
        name = self._config.tenant_cookie_name
        cookie[name] = _header_safe(tenant_id)
        cookie[name]["path"] = "/"
        cookie[name]["samesite"] = "strict"
        return cookie.output(header="").strip()


__all__ = ["RETRY_AFTER_SECONDS", "SiteGateMiddleware"]
