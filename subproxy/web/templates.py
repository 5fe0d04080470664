"""HTML pages served to browsers: the landing page and the preview dashboard."""

from html import escape

from subproxy.core.headers import spoofed_user_agent
from subproxy.core.classifier import CallerClass
from subproxy.core.preview import PreviewContext
from subproxy.utils.helpers import format_elapsed, format_size, truncate_text

DEFAULT_PREVIEW_LIMIT = 3000

_HELP_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Subscription Proxy</title>
    <style>
        body {{ font-family: -apple-system, sans-serif; display: flex; justify-content: center; align-items: center; height: 100vh; background: #f0f0f0; margin: 0; }}
        .card {{ background: white; padding: 2rem; border-radius: 12px; box-shadow: 0 4px 12px rgba(0,0,0,0.1); width: 90%; max-width: 400px; text-align: center; }}
        input {{ width: 100%; padding: 10px; margin: 15px 0; border: 1px solid #ddd; border-radius: 6px; box-sizing: border-box; }}
        button {{ background: #000; color: white; border: none; padding: 10px 20px; border-radius: 6px; cursor: pointer; font-weight: bold; width: 100%; }}
        button:hover {{ background: #333; }}
    </style>
</head>
<body>
    <div class="card">
        <h2>Subscription Proxy</h2>
        <p style="color:#666; font-size: 0.9em">Paste a subscription link to get a proxied address.</p>
        <input type="text" id="url" placeholder="https://provider.example/api/...">
        <button onclick="generate()">Generate</button>
        <p style="margin-top: 20px; font-size: 12px; color: #666;">Browsers get a preview, subscription clients get the raw file.</p>
    </div>
    <script>
        function generate() {{
            const input = document.getElementById('url').value;
            if (!input) return;
            window.location.href = '{action_url}?url=' + encodeURIComponent(input);
        }}
    </script>
</body>
</html>"""

_DASHBOARD_PAGE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>Preview: {target}</title>
    <style>
        body {{ background: #111; color: #eee; font-family: monospace; padding: 20px; }}
        .status {{ color: {color}; font-weight: bold; }}
        .box {{ background: #222; padding: 15px; border-radius: 8px; margin-top: 20px; overflow: auto; }}
        .warn {{ background: #422006; color: #fdba74; padding: 10px; border-radius: 6px; margin-bottom: 20px; border: 1px solid #9a3412; }}
        pre {{ white-space: pre-wrap; word-break: break-all; color: #ccc; }}
        a {{ color: #60a5fa; }}
    </style>
</head>
<body>
    {warning}
    <div>Target: {target}</div>
    <div style="margin-top: 10px">
        Status: <span class="status">{status}</span> | Time: {elapsed} | Size: {size}
    </div>
    <div style="margin-top: 10px; color: #888">{identity}</div>
    <div style="margin-top: 20px">
        <a href="{raw_url}">View raw content</a>
    </div>
    <div class="box">
        <pre>{body}</pre>
    </div>
</body>
</html>"""

_BLOCKED_WARNING = (
    '<div class="warn">Warning: the target looks like it blocked this request (403/503/WAF). '
    "Copy the link straight into your client instead of refreshing it in a browser.</div>"
)


def render_help_page(action_url: str) -> str:
    """Render the landing page whose form submits to ``action_url``."""
    return _HELP_PAGE.format(action_url=action_url)


def render_dashboard(context: PreviewContext, limit: int = DEFAULT_PREVIEW_LIMIT) -> str:
    """Render the preview dashboard for a buffered upstream response.

    Args:
        context: Data produced by the proxy core.
        limit: Maximum number of body characters to show (0 = unlimited).

    Returns:
        HTML document.
    """
    if context.caller_class is CallerClass.BROWSER_VIEWER:
        identity = f"Fetched as {spoofed_user_agent(context.format_selection)} ({context.format_selection.value})"
    else:
        identity = "Fetched with the caller's own User-Agent"

    return _DASHBOARD_PAGE.format(
        color="#10b981" if context.is_success else "#ef4444",
        warning=_BLOCKED_WARNING if context.looks_blocked else "",
        target=escape(context.target.resolved_url),
        status=context.upstream_status,
        elapsed=format_elapsed(context.elapsed_ms),
        size=format_size(context.body_size),
        identity=escape(identity),
        raw_url=escape(context.raw_url, quote=True),
        body=escape(truncate_text(context.decoded_body, limit)),
    )
