"""Call command - send one request to one endpoint and print the result."""

import asyncio
import sys
from typing import Any

import click

from ..bridge import BridgeError, MCPBridge, UnknownEndpointError
from ..config import BridgeConfig
from ..formatters import print_json, print_yaml
from ..utils import parse_params
from . import get_config


@click.command("call")
@click.argument("endpoint")
@click.argument("method")
@click.option("-p", "--param", "param_flags", multiple=True, help="Parameter KEY=VALUE")
@click.option(
    "--params-file",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON/YAML file with parameters",
)
@click.option("-t", "--timeout", type=float, help="Call timeout in seconds")
@click.pass_context
def call_command(
    ctx: click.Context,
    endpoint: str,
    method: str,
    param_flags: tuple[str, ...],
    params_file: str | None,
    timeout: float | None,
) -> None:
    """Send METHOD to ENDPOINT and print the result.

    \b
    Example usage:
      switchboard call demo-server tools/list
      switchboard call demo-server tools/call -p name=calculate -p 'arguments={"x": 1}'
    """
    config = get_config(ctx)
    try:
        params = parse_params(param_flags, params_file)
    except (ValueError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        result = asyncio.run(call_endpoint(config, endpoint, method, params, timeout))
    except BridgeError as e:
        if ctx.obj["json_output"]:
            print_json({"error": e.to_jsonrpc()})
        else:
            click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    if ctx.obj["json_output"]:
        print_json(result)
    else:
        print_yaml(result)


async def call_endpoint(
    config: BridgeConfig,
    endpoint_id: str,
    method: str,
    params: dict[str, Any],
    timeout: float | None = None,
) -> Any:
    """Connect just ``endpoint_id``, send one call, and close.

    Raises:
        UnknownEndpointError: If the endpoint is not configured
        BridgeError: If connecting or the call fails
    """
    endpoints = {e.id: e for e in config.build_endpoints()}
    if endpoint_id not in endpoints:
        raise UnknownEndpointError(
            endpoint_id=endpoint_id, data={"available": sorted(endpoints)}
        )

    # Exactly one connect attempt and no background loops
    bridge = MCPBridge([], config=config)
    try:
        await bridge.register_endpoint(endpoints[endpoint_id])
        await bridge.supervisor.connect(endpoint_id)
        return await bridge.send(endpoint_id, method, params, timeout=timeout)
    finally:
        await bridge.close()
