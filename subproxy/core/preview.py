"""Data handed from the proxy core to the preview renderer."""

from dataclasses import dataclass

from subproxy.core.classifier import CallerClass, FormatSelection
from subproxy.core.target import TargetReference

# Statuses that usually mean a WAF or anti-bot page rather than the resource
BLOCKED_STATUSES = {403, 503}
CHALLENGE_MARKERS = ("Just a moment",)


@dataclass(frozen=True)
class PreviewContext:
    """Everything the dashboard needs to describe a fetched subscription.

    The body is passed as-is; escaping is the renderer's job.
    """
    target: TargetReference
    upstream_status: int
    decoded_body: str
    elapsed_ms: int
    caller_class: CallerClass
    format_selection: FormatSelection
    body_size: int = 0
    raw_url: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.upstream_status < 300

    @property
    def looks_blocked(self) -> bool:
        if self.upstream_status in BLOCKED_STATUSES:
            return True
        return any(marker in self.decoded_body for marker in CHALLENGE_MARKERS)
