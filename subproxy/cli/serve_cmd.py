"""CLI command to start the subscription proxy server."""

import click


@click.command()
@click.option("--port", type=int, help="Port to listen on (default: 8080)")
@click.option("--host", help="Host to bind to (default: 127.0.0.1)")
@click.option("--prefix", "route_prefix", help="Route the proxy is mounted under (default: /api)")
@click.option("--timeout", type=float, help="Upstream timeout in seconds (default: 30)")
@click.option(
    "--verify-tls/--no-verify-tls", default=None,
    help="Validate upstream certificates (default: off)"
)
@click.option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.pass_context
def serve(ctx, port, host, route_prefix, timeout, verify_tls, log_level):
    """Start the subscription proxy.

    \b
    Quickstart:
        subproxy serve --port 8080
        curl 'http://localhost:8080/api?url=provider.example/sub?token=abc'

    Subscription clients receive the upstream file unchanged. Browsers get
    a preview page; append &raw=true to download the file instead.
    """
    import logging

    settings = ctx.obj["settings"]
    overrides = {
        "port": port,
        "host": host,
        "route_prefix": route_prefix,
        "timeout": timeout,
        "verify_tls": verify_tls,
        "log_level": log_level,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        try:
            settings = type(settings)(**{**settings.model_dump(), **overrides})
        except ValueError as e:
            raise click.ClickException(str(e))

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        import uvicorn
    except ImportError:
        click.echo(
            "Error: Server dependencies not installed. Install with:\n"
            "  pip install fastapi uvicorn httpx",
            err=True,
        )
        raise SystemExit(1)

    from subproxy.proxy.app import create_app

    app = create_app(settings=settings)

    click.echo("subproxy - Subscription forwarding proxy")
    click.echo(f"  Listening on:  http://{settings.host}:{settings.port}")
    click.echo(f"  Proxy route:   {settings.public_url()}?url=<subscription>")
    click.echo(f"  Timeout:       {settings.timeout:.0f}s")
    click.echo(f"  TLS verify:    {'on' if settings.verify_tls else 'off'}")
    click.echo()

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
