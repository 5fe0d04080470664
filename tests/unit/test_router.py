"""Unit tests for response routing."""

import httpx
import pytest
from fastapi.responses import StreamingResponse

from subproxy.core.classifier import CallerClass, FormatSelection
from subproxy.core.target import TargetReference
from subproxy.proxy.errors import TransportFailure
from subproxy.proxy.forwarder import BufferedBody, StreamedBody, UpstreamResult
from subproxy.proxy.router import (
    DeliveryMode,
    filter_response_headers,
    route_response,
    select_delivery_mode,
)


@pytest.fixture
def target():
    return TargetReference(raw_input="example.com/sub", resolved_url="https://example.com/sub")


def buffered_result(status=200, content=b"payload", headers=None):
    """Create a buffered upstream result."""
    return UpstreamResult(
        status=status,
        headers=httpx.Headers(headers or {}),
        body=BufferedBody(content=content, text=content.decode("utf-8", errors="replace")),
        elapsed_ms=42,
    )


@pytest.mark.parametrize("caller,raw,expected", [
    (CallerClass.TOOL_CLIENT, False, DeliveryMode.PASS_THROUGH),
    (CallerClass.TOOL_CLIENT, True, DeliveryMode.PASS_THROUGH),
    (CallerClass.BROWSER_VIEWER, False, DeliveryMode.PREVIEW),
    (CallerClass.BROWSER_VIEWER, True, DeliveryMode.PASS_THROUGH),
])
def test_select_delivery_mode(caller, raw, expected):
    """Test the mode decision table."""
    assert select_delivery_mode(caller, raw) is expected


def test_filter_response_headers_drops_framing_and_keeps_repeats():
    """Test header filtering."""
    headers = httpx.Headers([
        ("Content-Length", "10"),
        ("Content-Encoding", "gzip"),
        ("Transfer-Encoding", "chunked"),
        ("Subscription-Userinfo", "upload=1; download=2; total=3"),
        ("Set-Cookie", "a=1"),
        ("Set-Cookie", "b=2"),
    ])

    kept = list(filter_response_headers(headers))

    assert ("subscription-userinfo", "upload=1; download=2; total=3") in kept
    assert [v for k, v in kept if k == "set-cookie"] == ["a=1", "b=2"]
    assert not {k for k, _ in kept} & {"content-length", "content-encoding", "transfer-encoding"}


@pytest.mark.asyncio
async def test_transport_error_routes_to_502(target):
    """Test that a failed fetch becomes a 502 in every mode."""
    result = UpstreamResult(error=TransportFailure(message="Connection refused", kind="ConnectError"))

    for mode in DeliveryMode:
        response = await route_response(mode, result, target, CallerClass.BROWSER_VIEWER, FormatSelection.CLASH)
        assert response.status_code == 502
        assert response.body == b"Proxy Error: Connection refused"
        assert response.headers["content-type"].startswith("text/plain")


@pytest.mark.asyncio
async def test_pass_through_mirrors_upstream(target):
    """Test status, headers and body in pass-through mode."""
    result = buffered_result(
        status=418,
        headers={"Content-Type": "text/yaml", "Content-Length": "7", "Profile-Update-Interval": "24"},
    )

    response = await route_response(
        DeliveryMode.PASS_THROUGH, result, target, CallerClass.TOOL_CLIENT, FormatSelection.CLASH,
    )

    assert response.status_code == 418
    assert response.body == b"payload"
    assert response.headers["content-type"] == "text/yaml"
    assert response.headers["profile-update-interval"] == "24"
    assert response.headers["access-control-allow-origin"] == "*"
    assert "content-length" not in response.headers


@pytest.mark.asyncio
async def test_pass_through_overrides_upstream_cors(target):
    """Test that the proxy's CORS header replaces the upstream one."""
    result = buffered_result(headers={"Access-Control-Allow-Origin": "https://only.example"})

    response = await route_response(
        DeliveryMode.PASS_THROUGH, result, target, CallerClass.TOOL_CLIENT, FormatSelection.CLASH,
    )

    assert response.headers.getlist("access-control-allow-origin") == ["*"]


@pytest.mark.asyncio
async def test_pass_through_streams_live_response(target):
    """Test that a streamed upstream is relayed chunk by chunk and closed."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, content=b"line1\nline2\n", headers={"Content-Type": "text/plain"})
    )) as client:
        upstream = await client.send(client.build_request("GET", "https://example.com/sub"), stream=True)
        result = UpstreamResult(status=200, headers=upstream.headers, body=StreamedBody(upstream))

        response = await route_response(
            DeliveryMode.PASS_THROUGH, result, target, CallerClass.TOOL_CLIENT, FormatSelection.CLASH,
        )
        assert isinstance(response, StreamingResponse)

        chunks = [chunk async for chunk in response.body_iterator]

    assert b"".join(chunks) == b"line1\nline2\n"
    assert upstream.is_closed
    assert "content-length" not in response.headers


@pytest.mark.asyncio
@pytest.mark.parametrize("upstream_status", [200, 404, 500])
async def test_preview_is_always_200(target, upstream_status):
    """Test that the preview reports the upstream status as data."""
    result = buffered_result(status=upstream_status, content=b"<b>not found</b>")

    response = await route_response(
        DeliveryMode.PREVIEW, result, target, CallerClass.BROWSER_VIEWER, FormatSelection.CLASH,
        raw_url="http://proxy/api?url=example.com/sub&raw=true",
    )

    html = response.body.decode("utf-8")
    assert response.status_code == 200
    assert response.headers["content-type"] == "text/html; charset=utf-8"
    assert f'<span class="status">{upstream_status}</span>' in html
    assert "&lt;b&gt;not found&lt;/b&gt;" in html
    assert "<b>not found</b>" not in html


@pytest.mark.asyncio
async def test_preview_reads_streamed_body(target):
    """Test that a streamed result is buffered for the preview."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, content=b"vmess://abc")
    )) as client:
        upstream = await client.send(client.build_request("GET", "https://example.com/sub"), stream=True)
        result = UpstreamResult(status=200, headers=upstream.headers, body=StreamedBody(upstream))

        response = await route_response(
            DeliveryMode.PREVIEW, result, target, CallerClass.BROWSER_VIEWER, FormatSelection.BASE64,
        )

    assert response.status_code == 200
    assert "vmess://abc" in response.body.decode("utf-8")
    assert upstream.is_closed


@pytest.mark.asyncio
async def test_pass_through_closes_upstream_when_body_never_sent(target):
    """Test that the upstream is released even if the body iterator never runs."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, content=b"unsent")
    )) as client:
        upstream = await client.send(client.build_request("GET", "https://example.com/sub"), stream=True)
        result = UpstreamResult(status=200, headers=upstream.headers, body=StreamedBody(upstream))

        response = await route_response(
            DeliveryMode.PASS_THROUGH, result, target, CallerClass.TOOL_CLIENT, FormatSelection.CLASH,
        )
        assert response.background is not None
        await response.background()

    assert upstream.is_closed
