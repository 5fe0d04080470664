"""Main CLI entry point for subproxy."""

import click

from subproxy import __version__
from subproxy.config.settings import Settings


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to configuration file"
)
@click.pass_context
def cli(ctx, config):
    """subproxy - Subscription forwarding proxy.

    Serve subscription links through a proxy that hands clients the raw file
    and shows browsers a preview.
    """
    ctx.ensure_object(dict)

    if config:
        ctx.obj["settings"] = Settings.load_from_file(config)
    else:
        ctx.obj["settings"] = Settings()


# Import and register commands
from subproxy.cli.serve_cmd import serve
from subproxy.cli.inspect_cmd import inspect, classify

cli.add_command(serve)
cli.add_command(inspect)
cli.add_command(classify)


if __name__ == "__main__":
    cli()
