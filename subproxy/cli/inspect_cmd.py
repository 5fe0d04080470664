"""Inspect and classify commands for subproxy CLI.

Both commands run the same pipeline as the server, without starting it.
"""

import asyncio
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from subproxy.core.classifier import CallerClass, FormatSelection, classify_request
from subproxy.core.headers import build_outbound_headers
from subproxy.core.target import TargetReference, normalize_target
from subproxy.proxy.forwarder import BufferedBody, Forwarder, UpstreamResult
from subproxy.proxy.router import DeliveryMode, filter_response_headers, select_delivery_mode
from subproxy.utils.helpers import format_elapsed, format_size, truncate_text

console = Console()

FORMAT_CHOICES = [f.value for f in FormatSelection]


async def _fetch(forwarder: Forwarder, target: TargetReference, headers: dict) -> UpstreamResult:
    try:
        return await forwarder.fetch(target, headers, stream=False)
    finally:
        await forwarder.close()


@click.command()
@click.argument("url")
@click.option(
    "--user-agent", "-u",
    default="",
    help="User-Agent to present as the caller (default: none, i.e. a tool client)"
)
@click.option(
    "--format", "-f", "format_value",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    help="Preview format used when the caller is a browser (default: clash)"
)
@click.option(
    "--raw",
    is_flag=True,
    help="Ask for the unmodified file, as raw=true does for browsers"
)
@click.option(
    "--show-headers/--no-headers",
    default=True,
    help="Show/hide outbound and upstream headers (default: show)"
)
@click.pass_context
def inspect(ctx, url, user_agent, format_value, raw, show_headers):
    """Fetch URL through the proxy pipeline and show what came back.

    The body is always read in full so it can be shown; upstream headers are
    listed as a caller in the chosen delivery mode would receive them.

    \b
    Examples:
        subproxy inspect provider.example/sub?token=abc
        subproxy inspect https://provider.example/sub -u "Mozilla/5.0" -f singbox
        subproxy inspect https://provider.example/sub -u "Mozilla/5.0" --raw
    """
    settings = ctx.obj.get("settings")

    target = TargetReference(raw_input=url, resolved_url=normalize_target(url))
    caller_class, format_selection = classify_request(user_agent, format_value)
    mode = select_delivery_mode(caller_class, raw)
    headers = build_outbound_headers(target, caller_class, format_selection, user_agent)

    forwarder = Forwarder(
        timeout=settings.timeout,
        connect_timeout=settings.connect_timeout,
        verify_tls=settings.verify_tls,
        follow_redirects=settings.follow_redirects,
    )

    with console.status(f"Fetching {escape(target.resolved_url)}..."):
        result = asyncio.run(_fetch(forwarder, target, headers))

    if result.error is not None:
        console.print(f"[red]Proxy Error: {escape(result.error.message)}[/red]")
        sys.exit(1)

    body = result.body
    if not isinstance(body, BufferedBody):
        raise click.ClickException(f"Unexpected upstream body: {body!r}")

    status_style = "green" if 200 <= result.status < 300 else "red"
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan", width=16)
    table.add_column("Value")
    table.add_row("Target", escape(target.resolved_url))
    table.add_row("Caller", caller_class.value)
    if caller_class is CallerClass.BROWSER_VIEWER:
        table.add_row("Format", format_selection.value)
    table.add_row("Mode", mode.value)
    table.add_row("Status", f"[{status_style}]{result.status}[/{status_style}]")
    table.add_row("Time", format_elapsed(result.elapsed_ms))
    table.add_row("Size", format_size(body.size))
    console.print(table)

    if show_headers:
        headers_table = Table(show_header=True, header_style="bold cyan", box=None)
        headers_table.add_column("Direction", style="cyan")
        headers_table.add_column("Header")
        headers_table.add_column("Value", overflow="fold")
        for key, value in headers.items():
            headers_table.add_row("outbound", key, escape(value))
        if mode is DeliveryMode.PASS_THROUGH:
            upstream_headers = list(filter_response_headers(result.headers))
        else:
            upstream_headers = result.headers.multi_items()
        for key, value in upstream_headers:
            headers_table.add_row("upstream", key, escape(value))
        console.print()
        console.print(headers_table)

    console.print()
    console.print(Panel(
        Text(truncate_text(body.text, settings.preview_limit)),
        title="Body",
        border_style=status_style,
    ))


@click.command()
@click.argument("user_agent", required=False, default="")
@click.option(
    "--format", "-f", "format_value",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    help="Preview format (default: clash)"
)
def classify(user_agent, format_value):
    """Show how a User-Agent is classified and what is sent upstream."""
    caller_class, format_selection = classify_request(user_agent, format_value)
    target = TargetReference(raw_input="example.com", resolved_url="https://example.com")
    headers = build_outbound_headers(target, caller_class, format_selection, user_agent)

    console.print(f"Caller:   [bold]{caller_class.value}[/bold]")
    if caller_class is CallerClass.BROWSER_VIEWER:
        console.print(f"Format:   {format_selection.value}")
        console.print("Delivery: preview (add raw=true for the file)")
    else:
        console.print("Delivery: pass-through")
    console.print(f"Upstream User-Agent: {escape(headers['User-Agent'])}")
