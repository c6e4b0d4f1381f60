"""Status server for the bridge.

Provides a minimal localhost-only HTTP server answering:

- GET /health       overall status and uptime
- GET /connections  one entry per endpoint
- GET /stats        current aggregate snapshot plus recent history
"""

import asyncio
import json
import time
from typing import TYPE_CHECKING, Any

import structlog

from . import __version__

if TYPE_CHECKING:
    from .bridge.lifecycle import MCPBridge

logger = structlog.get_logger(__name__)

STATUS_HOST = "127.0.0.1"
STATUS_PORT = 9877
READ_TIMEOUT = 5.0
RECENT_STATS_LIMIT = 10

REASONS = {200: "OK", 404: "Not Found", 405: "Method Not Allowed"}


def health_status(active: int, total: int) -> str:
    """Overall status from connected vs registered endpoint counts."""
    if total == 0 or active == 0:
        return "unhealthy"
    if active < total:
        return "degraded"
    return "healthy"


class StatusServer:
    """Minimal HTTP server exposing bridge state as JSON.

    Runs as a task in the bridge's asyncio event loop.
    """

    def __init__(self, bridge: "MCPBridge", host: str = STATUS_HOST, port: int = STATUS_PORT):
        """Initialize status server.

        Args:
            bridge: Bridge whose state is reported
            host: Bind address (keep on loopback)
            port: Bind port; 0 picks a free port
        """
        self.bridge = bridge
        self.host = host
        self.port = port
        self.start_time = time.time()
        self._server: asyncio.Server | None = None

    @property
    def is_running(self) -> bool:
        return self._server is not None

    async def start(self) -> None:
        """Start the status server."""
        self._server = await asyncio.start_server(self._handle_connection, self.host, self.port)
        # Resolve the real port when bound to 0
        self.port = self._server.sockets[0].getsockname()[1]
        logger.info("Status server started", url=f"http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the status server."""
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            logger.info("Status server stopped")

    def health(self) -> dict[str, Any]:
        connections = self.bridge.get_connections()
        active = sum(1 for c in connections if c.status == "connected")
        return {
            "status": health_status(active, len(connections)),
            "uptime_seconds": int(time.time() - self.start_time),
            "endpoints": len(connections),
            "connected": active,
            "version": __version__,
        }

    async def route(self, method: str, path: str) -> tuple[int, Any]:
        """Resolve a request to a status code and JSON body."""
        path = path.split("?", 1)[0]
        if path not in ("/health", "/connections", "/stats"):
            return 404, {"error": "Not Found"}
        if method != "GET":
            return 405, {"error": "Method Not Allowed"}

        if path == "/health":
            return 200, self.health()
        if path == "/connections":
            return 200, {"connections": [c.to_dict() for c in self.bridge.get_connections()]}

        recent = await self.bridge.get_recent_stats(RECENT_STATS_LIMIT)
        return 200, {
            "stats": self.bridge.get_stats().to_dict(),
            "recent": [s.to_dict() for s in recent],
        }

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Handle incoming HTTP connection."""
        try:
            request_line = await asyncio.wait_for(reader.readline(), timeout=READ_TIMEOUT)
            parts = request_line.decode("utf-8").strip().split(" ")
            if len(parts) >= 2:
                method, path = parts[0], parts[1]
            else:
                method, path = "GET", "/"

            # Consume headers
            while True:
                line = await asyncio.wait_for(reader.readline(), timeout=READ_TIMEOUT)
                if line in (b"\r\n", b"\n", b""):
                    break

            status, body = await self.route(method, path)
            payload = json.dumps(body).encode("utf-8")
            head = (
                f"HTTP/1.1 {status} {REASONS.get(status, 'OK')}\r\n"
                f"Content-Type: application/json\r\n"
                f"Content-Length: {len(payload)}\r\n"
                f"Connection: close\r\n"
                f"\r\n"
            )
            writer.write(head.encode("utf-8") + payload)
            await writer.drain()

        except asyncio.TimeoutError:
            logger.debug("Status request timed out")
        except Exception as e:
            logger.debug("Status request failed", error=str(e))
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass
