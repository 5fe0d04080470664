"""Outbound header construction, including User-Agent spoofing."""

import logging
from typing import Dict, Optional

import httpx

from subproxy.core.classifier import CallerClass, FormatSelection
from subproxy.core.target import TargetReference

logger = logging.getLogger(__name__)

# Sent when a tool client arrives without a User-Agent of its own
FALLBACK_USER_AGENT = "Clash/Meta"

SPOOFED_USER_AGENTS = {
    FormatSelection.CLASH: "Clash/Meta",
    FormatSelection.SINGBOX: "sing-box/1.9.0",
    FormatSelection.BASE64: "v2rayN/6.45",
    FormatSelection.DEFAULT: "Shadowrocket/2070 CFNetwork/1490.0.4 Darwin/23.2.0",
}

DEFAULT_ACCEPT_LANGUAGE = "zh-CN,zh;q=0.9,en;q=0.8"


def spoofed_user_agent(format_selection: Optional[FormatSelection]) -> str:
    """Return the identity presented upstream for a browser viewer."""
    return SPOOFED_USER_AGENTS.get(format_selection, SPOOFED_USER_AGENTS[FormatSelection.CLASH])


def target_origin(resolved_url: str) -> Optional[str]:
    """Return ``scheme://host[:port]`` for a URL, or None if it cannot be parsed."""
    try:
        url = httpx.URL(resolved_url)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None
    if not url.host:
        return None
    return f"{url.scheme}://{url.netloc.decode('ascii')}"


def build_outbound_headers(
    target: TargetReference,
    caller_class: CallerClass,
    format_selection: FormatSelection,
    original_user_agent: Optional[str],
) -> Dict[str, str]:
    """Build the header set sent to the upstream target.

    Tool clients keep their own User-Agent because many subscription
    services choose the response format from it. Browser viewers are
    presented as the subscription client matching ``format_selection``.

    Args:
        target: Resolved target.
        caller_class: Classification of the inbound caller.
        format_selection: Preview format chosen by the viewer.
        original_user_agent: The caller's own User-Agent header.

    Returns:
        Header mapping for the outbound request.
    """
    headers: Dict[str, str] = {}

    origin = target_origin(target.resolved_url)
    if origin:
        headers["Referer"] = origin
        headers["Origin"] = origin
    else:
        logger.debug("Could not derive origin from %r; sending without Referer", target.resolved_url)

    if caller_class is CallerClass.BROWSER_VIEWER:
        headers["User-Agent"] = spoofed_user_agent(format_selection)
    else:
        headers["User-Agent"] = original_user_agent or FALLBACK_USER_AGENT

    headers["Accept"] = "*/*"
    headers["Accept-Language"] = DEFAULT_ACCEPT_LANGUAGE
    return headers
