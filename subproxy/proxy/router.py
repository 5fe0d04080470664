"""Turns an UpstreamResult into the response sent back to the caller."""

import logging
from enum import Enum
from typing import AsyncIterator, Iterable, Tuple

import httpx
from fastapi import Response
from fastapi.responses import HTMLResponse, StreamingResponse
from starlette.background import BackgroundTask

from subproxy.core.classifier import CallerClass, FormatSelection
from subproxy.core.preview import PreviewContext
from subproxy.core.target import TargetReference
from subproxy.proxy.errors import error_response
from subproxy.proxy.forwarder import BufferedBody, StreamedBody, UpstreamResult
from subproxy.web.templates import DEFAULT_PREVIEW_LIMIT, render_dashboard

logger = logging.getLogger(__name__)

# The body is re-framed on the way out, so upstream framing headers would lie
EXCLUDED_RESPONSE_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


class DeliveryMode(str, Enum):
    PASS_THROUGH = "pass-through"
    PREVIEW = "preview"


def select_delivery_mode(caller_class: CallerClass, raw_requested: bool) -> DeliveryMode:
    """Pick how the upstream body reaches the caller.

    Tool clients always get the raw body. Viewers get the preview unless
    they asked for ``raw=true``.
    """
    if caller_class is CallerClass.TOOL_CLIENT:
        return DeliveryMode.PASS_THROUGH
    if raw_requested:
        return DeliveryMode.PASS_THROUGH
    return DeliveryMode.PREVIEW


def filter_response_headers(headers: httpx.Headers) -> Iterable[Tuple[str, str]]:
    """Yield upstream headers that are safe to copy, keeping repeated ones."""
    for key, value in headers.multi_items():
        if key.lower() not in EXCLUDED_RESPONSE_HEADERS:
            yield key, value


async def _relay(upstream: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in upstream.aiter_bytes():
            yield chunk
    except httpx.HTTPError as e:
        # Headers are already on the wire; all we can do is end the body early
        logger.warning("Upstream stream from %s broke off: %s", upstream.url, e)
    finally:
        await upstream.aclose()


def pass_through_response(result: UpstreamResult) -> Response:
    """Mirror the upstream status, headers and body."""
    if isinstance(result.body, StreamedBody):
        upstream = result.body.response
        # Runs even if the caller leaves before the body iterator starts
        response: Response = StreamingResponse(
            _relay(upstream),
            status_code=result.status,
            background=BackgroundTask(upstream.aclose),
        )
    elif isinstance(result.body, BufferedBody):
        response = Response(content=result.body.content, status_code=result.status)
        # Response computes its own length; drop it so only upstream headers remain
        del response.headers["content-length"]
    else:
        raise TypeError(f"Unsupported upstream body: {result.body!r}")

    for key, value in filter_response_headers(result.headers):
        response.headers.append(key, value)
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


async def preview_response(
    result: UpstreamResult,
    target: TargetReference,
    caller_class: CallerClass,
    format_selection: FormatSelection,
    raw_url: str,
    preview_limit: int = DEFAULT_PREVIEW_LIMIT,
) -> HTMLResponse:
    """Render the dashboard. Always 200; the upstream status is shown as data."""
    body = result.body
    if isinstance(body, StreamedBody):
        content = await body.response.aread()
        await body.response.aclose()
        body = BufferedBody(content=content, text=content.decode("utf-8", errors="replace"))
    if not isinstance(body, BufferedBody):
        raise TypeError(f"Unsupported upstream body: {body!r}")

    context = PreviewContext(
        target=target,
        upstream_status=result.status,
        decoded_body=body.text,
        elapsed_ms=result.elapsed_ms,
        caller_class=caller_class,
        format_selection=format_selection,
        body_size=body.size,
        raw_url=raw_url,
    )
    return HTMLResponse(render_dashboard(context, limit=preview_limit), status_code=200)


async def route_response(
    mode: DeliveryMode,
    result: UpstreamResult,
    target: TargetReference,
    caller_class: CallerClass,
    format_selection: FormatSelection,
    raw_url: str = "",
    preview_limit: int = DEFAULT_PREVIEW_LIMIT,
) -> Response:
    """Build the outbound response for a finished fetch.

    Args:
        mode: Delivery mode chosen before the fetch.
        result: Upstream fetch outcome.
        target: Resolved target.
        caller_class: Classification of the caller.
        format_selection: Preview format.
        raw_url: Link to the same request with ``raw=true``.
        preview_limit: Body characters shown in the preview.

    Returns:
        A 502 on transport failure, otherwise a pass-through or preview response.
    """
    if result.error is not None:
        return error_response(result.error)

    if mode is DeliveryMode.PASS_THROUGH:
        return pass_through_response(result)

    return await preview_response(
        result,
        target,
        caller_class,
        format_selection,
        raw_url=raw_url,
        preview_limit=preview_limit,
    )
