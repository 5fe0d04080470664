"""Async HTTP forwarder for subscription fetches.

Uses httpx.AsyncClient for non-blocking requests. Certificate validation is
off by default because subscription hosts are often self-signed.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

import httpx

from subproxy.core.target import TargetReference
from subproxy.proxy.errors import TransportFailure, describe_transport_error

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 10.0

# httpx.InvalidURL is not an HTTPError subclass
FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


@dataclass(frozen=True)
class StreamedBody:
    """Live upstream response whose body has not been read yet."""
    response: httpx.Response


@dataclass(frozen=True)
class BufferedBody:
    """Fully read upstream body."""
    content: bytes
    text: str

    @property
    def size(self) -> int:
        return len(self.content)


ResponseMode = Union[StreamedBody, BufferedBody]


@dataclass(frozen=True)
class UpstreamResult:
    """Outcome of a single upstream fetch."""
    status: int = 0
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Optional[ResponseMode] = None
    elapsed_ms: int = 0
    error: Optional[TransportFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Forwarder:
    """Fetches subscription resources from arbitrary upstream hosts."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        verify_tls: bool = False,
        follow_redirects: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            timeout: Overall request timeout in seconds.
            connect_timeout: Connect timeout in seconds.
            verify_tls: Validate upstream certificates.
            follow_redirects: Follow upstream redirects.
            transport: Optional transport override (used by tests).
        """
        self._timeout = timeout
        self._connect_timeout = connect_timeout
        self._verify_tls = verify_tls
        self._follow_redirects = follow_redirects
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy-init the httpx async client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=self._connect_timeout),
                follow_redirects=self._follow_redirects,
                verify=self._verify_tls,
                transport=self._transport,
            )
        return self._client

    async def fetch(
        self,
        target: TargetReference,
        headers: Dict[str, str],
        stream: bool = False,
    ) -> UpstreamResult:
        """GET the target.

        Args:
            target: Resolved target.
            headers: Outbound headers.
            stream: If True, return the live response without reading the
                body; elapsed time then covers the response headers only.

        Returns:
            UpstreamResult. Transport failures are reported in ``error``,
            never raised.
        """
        client = await self._get_client()
        url = target.resolved_url
        wire_headers = encode_header_values(headers)
        start = time.perf_counter()

        try:
            if stream:
                request = client.build_request("GET", url, headers=wire_headers)
                response = await client.send(request, stream=True)
                body: ResponseMode = StreamedBody(response)
            else:
                response = await client.get(url, headers=wire_headers)
                content = response.content
                body = BufferedBody(content=content, text=content.decode("utf-8", errors="replace"))
        except FETCH_ERRORS as e:
            failure = describe_transport_error(e)
            logger.warning("Fetch failed for %s: %s (%s)", url, failure.message, failure.kind)
            return UpstreamResult(
                elapsed_ms=_elapsed_ms(start),
                error=failure,
            )

        elapsed = _elapsed_ms(start)
        logger.debug("Fetched %s -> %d in %dms (stream=%s)", url, response.status_code, elapsed, stream)
        return UpstreamResult(
            status=response.status_code,
            headers=response.headers,
            body=body,
            elapsed_ms=elapsed,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()


def encode_header_values(headers: Dict[str, str]) -> Dict[str, bytes]:
    """Encode header values to the bytes sent on the wire.

    Inbound headers arrive decoded as latin-1, so encoding them back the same
    way forwards the caller's exact bytes. httpx would otherwise insist on
    ASCII. Characters outside latin-1 (typed on the command line) go as UTF-8.
    """
    encoded = {}
    for key, value in headers.items():
        try:
            encoded[key] = value.encode("latin-1")
        except UnicodeEncodeError:
            encoded[key] = value.encode("utf-8")
    return encoded


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
