"""Serve command - run the bridge and its status server until stopped."""

import asyncio
import logging
import signal
import sys
from pathlib import Path

import click

from ..bridge import BridgeEvent, MCPBridge
from ..config import BridgeConfig
from ..shared.logging import configure_logging
from ..shared.paths import ensure_dirs, get_log_file
from ..status_server import StatusServer
from . import get_config

logger = logging.getLogger(__name__)


@click.command("serve")
@click.option(
    "--host",
    envvar="SWITCHBOARD_STATUS_HOST",
    help="Status server bind address (default: from config)",
)
@click.option(
    "--port",
    envvar="SWITCHBOARD_STATUS_PORT",
    type=int,
    help="Status server port (default: from config)",
)
@click.option("--no-status", is_flag=True, help="Do not start the status server")
@click.option(
    "--log-file",
    envvar="SWITCHBOARD_LOG_FILE",
    is_flag=False,
    flag_value=str(get_log_file()),
    type=click.Path(dir_okay=False),
    help=f"Write JSON logs to this file instead of stderr (bare flag: {get_log_file()})",
)
@click.pass_context
def serve_command(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    no_status: bool,
    log_file: str | None,
) -> None:
    """Run the bridge until interrupted.

    Connects every configured endpoint, keeps them alive with heartbeats,
    and serves GET /health, /connections and /stats on localhost.

    \b
    Example usage:
      switchboard serve
      switchboard -c endpoints.yaml serve --port 9900
    """
    config = get_config(ctx)
    if log_file:
        log_path = Path(log_file).expanduser()
        if log_path == get_log_file():
            ensure_dirs()
        else:
            log_path.parent.mkdir(parents=True, exist_ok=True)
        configure_logging(ctx.obj.get("log_level") or "info", log_file=log_path, json_output=True)

    status_host = host or config.status_host
    status_port = config.status_port if port is None else port

    try:
        asyncio.run(run_bridge(config, status_host, status_port, not no_status))
    except KeyboardInterrupt:
        logger.info("Bridge interrupted by user")
    except OSError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


async def run_bridge(
    config: BridgeConfig,
    host: str,
    port: int,
    with_status: bool = True,
    shutdown_event: asyncio.Event | None = None,
) -> None:
    """Run the bridge main loop until ``shutdown_event`` is set or a signal arrives."""
    bridge = MCPBridge(config=config)
    status = StatusServer(bridge, host=host, port=port) if with_status else None
    shutdown_event = shutdown_event or asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except (NotImplementedError, RuntimeError):
            pass

    bridge.subscribe(log_event)
    try:
        await bridge.initialize()
        if status:
            await status.start()
            click.echo(f"Status server on http://{status.host}:{status.port}", err=True)
        await shutdown_event.wait()
    finally:
        logger.info("Bridge shutting down")
        if status:
            await status.stop()
        await bridge.close()


def log_event(event: BridgeEvent) -> None:
    """Log connection events as they are delivered."""
    logger.info(f"[{event.endpoint_id}] {event.type.value} {event.data}")
