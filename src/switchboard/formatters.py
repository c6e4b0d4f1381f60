"""CLI output formatting helpers."""

import json
from typing import Any

import click
import yaml
from rich.console import Console
from rich.table import Table

from .bridge.connection import ConnectionView
from .bridge.registry import Endpoint
from .bridge.stats import StatsSnapshot
from .config import BridgeConfig

STATUS_STYLES = {
    "connected": "green",
    "connecting": "yellow",
    "idle": "dim",
    "disconnected": "red",
    "closed": "dim",
}


def print_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def print_yaml(data: Any) -> None:
    click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False).rstrip())


def print_config_yaml(data: dict[str, Any], section: str | None = None) -> None:
    """Print config as YAML.

    Args:
        data: Configuration data
        section: Optional section name for header
    """
    if section:
        click.echo(f"{section}:")
        yaml_str = yaml.dump(data, default_flow_style=False, sort_keys=False)
        for line in yaml_str.splitlines():
            click.echo(f"  {line}")
    else:
        print_yaml(data)


def print_connections(connections: list[ConnectionView], console: Console | None = None) -> None:
    """Print connections as a table."""
    console = console or Console()
    table = Table(title="Connections")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Capabilities")
    table.add_column("Messages", justify="right")
    table.add_column("Last activity")

    for view in connections:
        style = STATUS_STYLES.get(view.status, "")
        table.add_row(
            view.id,
            view.name,
            f"[{style}]{view.status}[/{style}]" if style else view.status,
            ", ".join(view.capabilities),
            str(view.message_count),
            view.last_activity.strftime("%Y-%m-%d %H:%M:%S") if view.last_activity else "-",
        )
    console.print(table)


def print_stats(stats: StatsSnapshot) -> None:
    """Print an aggregate snapshot."""
    click.echo(f"Total connections:   {stats.total_connections}")
    click.echo(f"Active connections:  {stats.active_connections}")
    click.echo(f"Messages processed:  {stats.messages_processed}")
    if stats.synthetic_messages:
        click.echo(f"Synthetic messages:  {stats.synthetic_messages}")
    last = stats.last_activity.isoformat() if stats.last_activity else "never"
    click.echo(f"Last activity:       {last}")


def print_endpoints(endpoints: list[Endpoint], console: Console | None = None) -> None:
    """Print configured endpoints as a table."""
    console = console or Console()
    table = Table(title="Endpoints")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Mode")
    table.add_column("URL")
    table.add_column("Tools")

    for endpoint in endpoints:
        table.add_row(
            endpoint.id,
            endpoint.name,
            endpoint.mode.value,
            endpoint.url,
            ", ".join(tool.name for tool in endpoint.tools) or "-",
        )
    console.print(table)


def print_config_sources(config: BridgeConfig) -> None:
    """Print each scalar setting with where its value came from."""
    data = config.to_dict()
    endpoints = data.pop("endpoints")
    width = max(len(key) for key in data)
    for key, value in data.items():
        click.echo(f"{key:<{width}}  {value!s:<12} ({config.get_source(key)})")
    click.echo()
    print_config_yaml(endpoints, f"endpoints ({config.get_source('endpoints')})")
