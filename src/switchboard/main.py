"""CLI main entry point."""

import asyncio
import sys

import click

from . import __version__
from .bridge import ConnectionView, MCPBridge, StatsSnapshot
from .commands import get_config
from .commands.call import call_command
from .commands.serve import serve_command
from .config import get_config_path
from .formatters import (
    print_config_sources,
    print_connections,
    print_endpoints,
    print_json,
    print_stats,
)
from .shared.logging import configure_logging

LOG_LEVELS = ["debug", "info", "warning", "error"]


@click.group()
@click.option(
    "-c",
    "--config",
    envvar="SWITCHBOARD_CONFIG",
    type=click.Path(dir_okay=False),
    help=f"Config file path (default: {get_config_path()})",
)
@click.option(
    "--log-level",
    envvar="SWITCHBOARD_LOG_LEVEL",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="warning",
    help="Log level (default: warning)",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.version_option(__version__, prog_name="switchboard")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str, json_output: bool) -> None:
    """Multi-endpoint MCP bridge."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["log_level"] = log_level
    ctx.obj["json_output"] = json_output
    configure_logging(log_level)


cli.add_command(serve_command)
cli.add_command(call_command)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Connect all endpoints once and report their status."""
    config = get_config(ctx)

    async def _status() -> tuple[list[ConnectionView], StatsSnapshot]:
        async with MCPBridge(config=config) as bridge:
            return bridge.get_connections(), bridge.get_stats()

    connections, stats = asyncio.run(_status())

    if ctx.obj["json_output"]:
        print_json(
            {
                "connections": [c.to_dict() for c in connections],
                "stats": stats.to_dict(),
            }
        )
    else:
        print_connections(connections)
        click.echo()
        print_stats(stats)


@cli.command()
@click.pass_context
def endpoints(ctx: click.Context) -> None:
    """List configured endpoints without connecting."""
    config = get_config(ctx)
    configured = config.build_endpoints()

    if ctx.obj["json_output"]:
        print_json([e.to_dict() for e in configured])
    else:
        print_endpoints(configured)


@cli.group()
def config() -> None:
    """Inspect configuration."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show effective configuration and where each value came from."""
    loaded = get_config(ctx)

    if ctx.obj["json_output"]:
        data = loaded.to_dict()
        print_json(
            {
                "config": data,
                "sources": {key: loaded.get_source(key) for key in data},
            }
        )
        return

    click.echo("Switchboard Configuration")
    click.echo(f"Source: {ctx.obj['config_path'] or get_config_path()}\n")
    print_config_sources(loaded)


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
