"""Uniform degraded responses for failed upstream fetches."""

import logging
from dataclasses import dataclass

from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

BAD_GATEWAY = 502


@dataclass(frozen=True)
class TransportFailure:
    """A fetch that never produced an upstream response."""
    message: str
    kind: str = "TransportError"


def describe_transport_error(exc: BaseException) -> TransportFailure:
    """Turn an httpx exception into a TransportFailure with a readable message.

    Some httpx exceptions (read timeouts in particular) carry an empty
    message, so the exception type is used instead.
    """
    kind = type(exc).__name__
    message = str(exc).strip() or kind
    return TransportFailure(message=message, kind=kind)


def error_response(failure: TransportFailure) -> PlainTextResponse:
    """Build the 502 response sent when the upstream could not be reached."""
    return PlainTextResponse(f"Proxy Error: {failure.message}", status_code=BAD_GATEWAY)
