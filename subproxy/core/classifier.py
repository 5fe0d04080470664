"""Caller classification.

A caller is treated as an interactive viewer when its User-Agent looks like a
browser and does not look like a known subscription client. Everything else,
including an empty User-Agent, is an automated tool.
"""

import re
from enum import Enum
from typing import Mapping, Optional, Tuple

BROWSER_PATTERN = re.compile(r"(Mozilla|Chrome|Safari|Edge|Opera)", re.IGNORECASE)
TOOL_PATTERN = re.compile(
    r"(Clash|Shadowrocket|Quantumult|Stash|Surge|V2Ray|Sing-Box|mihomo)",
    re.IGNORECASE,
)


class CallerClass(str, Enum):
    TOOL_CLIENT = "tool"
    BROWSER_VIEWER = "browser"


class FormatSelection(str, Enum):
    CLASH = "clash"
    SINGBOX = "singbox"
    BASE64 = "base64"
    DEFAULT = "default"


DEFAULT_FORMAT = FormatSelection.CLASH


def classify_caller(user_agent: Optional[str]) -> CallerClass:
    """Classify a caller from its User-Agent string."""
    if not user_agent:
        return CallerClass.TOOL_CLIENT
    if BROWSER_PATTERN.search(user_agent) and not TOOL_PATTERN.search(user_agent):
        return CallerClass.BROWSER_VIEWER
    return CallerClass.TOOL_CLIENT


def parse_format(value: Optional[str]) -> FormatSelection:
    """Parse the ``format`` query parameter, falling back to Clash."""
    if not value:
        return DEFAULT_FORMAT
    try:
        return FormatSelection(value.strip().lower())
    except ValueError:
        return DEFAULT_FORMAT


def is_raw_requested(query_params: Mapping[str, str]) -> bool:
    """Return True when the caller asked for the unmodified body."""
    return (query_params.get("raw") or "").lower() == "true"


def classify_request(
    user_agent: Optional[str], format_value: Optional[str]
) -> Tuple[CallerClass, FormatSelection]:
    return classify_caller(user_agent), parse_format(format_value)
