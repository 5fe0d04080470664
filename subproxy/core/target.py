"""Target resolution for incoming proxy requests.

The destination is taken from the ``url`` query parameter when present,
otherwise from whatever follows the route prefix in the path, e.g.
``/api/example.com/sub?token=1``.
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_ROUTE_PREFIX = "/api"

# Path remainders that mean "no target", not a host name
INDEX_MARKERS = {"index", "proxy", "favicon.ico", "favicon.png"}

# Query parameters interpreted by the proxy itself
CONTROL_PARAMS = {"url", "raw", "format"}

_SCHEME_RE = re.compile(r"^(https?)://", re.IGNORECASE)
_COLLAPSED_SCHEME_RE = re.compile(r"^(https?):/+(?=[^/])", re.IGNORECASE)


@dataclass(frozen=True)
class TargetReference:
    """Destination resource the proxy fetches on the caller's behalf."""
    raw_input: str
    resolved_url: str

    @property
    def scheme(self) -> str:
        match = _SCHEME_RE.match(self.resolved_url)
        return match.group(1).lower() if match else "https"


def normalize_target(raw_input: str) -> str:
    """Ensure the target carries an explicit scheme.

    Args:
        raw_input: Target as supplied by the caller.

    Returns:
        The target with ``https://`` prepended when no scheme is present.
    """
    if _SCHEME_RE.match(raw_input):
        return raw_input
    return "https://" + raw_input


def strip_control_params(query_string: str) -> str:
    """Remove the proxy's own parameters from a raw query string.

    Remaining pairs keep their original order and encoding.
    """
    kept = []
    for pair in query_string.split("&"):
        if not pair:
            continue
        key = pair.split("=", 1)[0]
        if key in CONTROL_PARAMS:
            continue
        kept.append(pair)
    return "&".join(kept)


def _target_from_path(path: str, query_string: str, prefix: str) -> Optional[str]:
    prefix = prefix.rstrip("/")
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        remainder = path[len(prefix):]
    else:
        return None

    remainder = remainder.lstrip("/")
    if not remainder or remainder in INDEX_MARKERS:
        return None

    # Some front ends merge "//" in paths, turning https://host into https:/host
    remainder = _COLLAPSED_SCHEME_RE.sub(r"\1://", remainder)

    extra_query = strip_control_params(query_string)
    if extra_query:
        remainder = f"{remainder}?{extra_query}"
    return remainder


def resolve_target(
    query_params: Mapping[str, str],
    path: str,
    query_string: str = "",
    prefix: str = DEFAULT_ROUTE_PREFIX,
) -> Optional[TargetReference]:
    """Resolve the target of a request.

    Args:
        query_params: Parsed query parameters of the inbound request.
        path: Inbound request path.
        query_string: Raw inbound query string (without the leading ``?``).
        prefix: Route prefix the proxy is mounted under.

    Returns:
        TargetReference, or None when the request names no target.
    """
    raw_input = query_params.get("url") or None
    if raw_input is None:
        raw_input = _target_from_path(path, query_string, prefix)
    if raw_input is None:
        return None

    return TargetReference(raw_input=raw_input, resolved_url=normalize_target(raw_input))
