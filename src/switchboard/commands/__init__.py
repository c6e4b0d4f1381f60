"""CLI commands that run the bridge."""

import sys

import click

from ..config import BridgeConfig, ConfigError, load_config


def get_config(ctx: click.Context) -> BridgeConfig:
    """Load configuration for a command, exiting with status 1 on error."""
    if ctx.obj.get("config") is None:
        try:
            ctx.obj["config"] = load_config(ctx.obj.get("config_path"))
        except ConfigError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    return ctx.obj["config"]
