"""subproxy - Subscription forwarding proxy with browser preview."""

__version__ = "0.1.0"

from subproxy.core.target import TargetReference, resolve_target
from subproxy.core.classifier import (
    CallerClass,
    FormatSelection,
    classify_caller,
    classify_request,
    parse_format,
)
from subproxy.core.headers import build_outbound_headers
from subproxy.core.preview import PreviewContext
from subproxy.proxy.forwarder import Forwarder, UpstreamResult
from subproxy.config.settings import Settings

__all__ = [
    "TargetReference",
    "resolve_target",
    "CallerClass",
    "FormatSelection",
    "classify_caller",
    "classify_request",
    "parse_format",
    "build_outbound_headers",
    "PreviewContext",
    "Forwarder",
    "UpstreamResult",
    "Settings",
]
