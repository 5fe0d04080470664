"""FastAPI subscription proxy application.

Endpoints:
    GET /                      -- Landing page
    GET /api?url=<target>      -- Proxy a subscription (query form)
    GET /api/<target>          -- Proxy a subscription (path form)
    GET /health                -- Health check
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import HTMLResponse

from subproxy import __version__
from subproxy.config.settings import Settings
from subproxy.core.classifier import classify_request, is_raw_requested
from subproxy.core.headers import build_outbound_headers
from subproxy.core.target import resolve_target
from subproxy.proxy.forwarder import Forwarder
from subproxy.proxy.router import DeliveryMode, route_response, select_delivery_mode
from subproxy.utils.helpers import append_query_param
from subproxy.web.templates import render_help_page

logger = logging.getLogger(__name__)


def _undecoded_path(request: Request) -> str:
    """Return the request path with percent-escapes intact.

    Tokens in subscription links often contain %2B or %2F, which must reach
    the upstream unchanged.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path is None:
        return request.url.path
    return raw_path.decode("latin-1")


def create_app(
    forwarder: Optional[Forwarder] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create the FastAPI proxy application.

    Args:
        forwarder: Upstream forwarder. Built from settings when omitted.
        settings: Proxy settings. Defaults are used when omitted.

    Returns:
        Configured FastAPI application.
    """
    _settings = settings or Settings()
    _forwarder = forwarder or Forwarder(
        timeout=_settings.timeout,
        connect_timeout=_settings.connect_timeout,
        verify_tls=_settings.verify_tls,
        follow_redirects=_settings.follow_redirects,
    )
    prefix = _settings.route_prefix

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await _forwarder.close()

    app = FastAPI(
        title="Subscription Proxy",
        description="Forwarding proxy for subscription links with browser preview",
        version=__version__,
        lifespan=lifespan,
    )

    # --- Health ---

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "subproxy"}

    # --- Landing ---

    @app.get("/", response_class=HTMLResponse)
    async def index():
        return HTMLResponse(render_help_page(prefix))

    # --- Proxy ---

    async def proxy(request: Request) -> Response:
        query_params = request.query_params
        target = resolve_target(
            query_params,
            _undecoded_path(request),
            request.url.query,
            prefix=prefix,
        )
        if target is None:
            return HTMLResponse(render_help_page(prefix))

        user_agent = request.headers.get("user-agent", "")
        caller_class, format_selection = classify_request(user_agent, query_params.get("format"))
        mode = select_delivery_mode(caller_class, is_raw_requested(query_params))

        headers = build_outbound_headers(target, caller_class, format_selection, user_agent)
        result = await _forwarder.fetch(
            target, headers, stream=mode is DeliveryMode.PASS_THROUGH,
        )

        if result.error is None:
            logger.info(
                "GET %s caller=%s mode=%s upstream=%d elapsed=%dms",
                target.resolved_url, caller_class.value, mode.value,
                result.status, result.elapsed_ms,
            )

        return await route_response(
            mode,
            result,
            target,
            caller_class,
            format_selection,
            raw_url=append_query_param(str(request.url), "raw", "true"),
            preview_limit=_settings.preview_limit,
        )

    app.add_api_route(prefix, proxy, methods=["GET"])
    app.add_api_route(prefix + "/{target:path}", proxy, methods=["GET"])

    return app
