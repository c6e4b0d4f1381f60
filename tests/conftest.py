"""Shared test fixtures for switchboard tests.

This module provides:
- Endpoint builders for simulated and live endpoints
- A fast BridgeConfig whose background loops never fire on their own
- MockMCPServer: a real local MCP server (WebSocket, HTTP POST, SSE)
"""

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest
from aiohttp import WSMsgType, web

from switchboard.bridge.registry import Endpoint, EndpointMode, ToolInfo
from switchboard.config import BridgeConfig

# =============================================================================
# Endpoints and config
# =============================================================================


def make_endpoint(
    endpoint_id: str = "demo-server",
    url: str | None = None,
    mode: EndpointMode = EndpointMode.SIMULATED,
    **kwargs: Any,
) -> Endpoint:
    """Build an endpoint with sensible test defaults."""
    kwargs.setdefault("name", endpoint_id.replace("-", " ").title())
    kwargs.setdefault("capabilities", ("tools", "resources"))
    kwargs.setdefault("tools", (ToolInfo("calculate", "Perform calculations"),))
    return Endpoint(
        id=endpoint_id,
        url=url or f"ws://localhost:3001/{endpoint_id}",
        mode=mode,
        **kwargs,
    )


@pytest.fixture
def endpoint_factory() -> Callable[..., Endpoint]:
    """Fixture returning the endpoint builder."""
    return make_endpoint


@pytest.fixture
def simulated_endpoint() -> Endpoint:
    return make_endpoint("demo-server")


@pytest.fixture
def fast_config() -> BridgeConfig:
    """Config with short timeouts and loops that never fire during a test."""
    return BridgeConfig(
        heartbeat_interval=3600,
        stats_interval=3600,
        call_timeout=1.0,
        connect_timeout=1.0,
        drain_timeout=0.2,
        event_queue_size=100,
    )


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    """Fixture returning an async poller: ``await wait_until(lambda: cond)``."""
    return _wait_until


# =============================================================================
# Mock MCP server
# =============================================================================


class MockMCPServer:
    """Local MCP server speaking JSON-RPC over WebSocket and HTTP+SSE.

    Provides:
    - GET /ws       WebSocket endpoint
    - POST /mcp     JSON-RPC over HTTP
    - GET /mcp/sse  Server-sent notifications
    """

    def __init__(self):
        self.app = web.Application()
        self.app.router.add_get("/ws", self.handle_ws)
        self.app.router.add_post("/mcp", self.handle_mcp)
        self.app.router.add_get("/mcp/sse", self.handle_sse)
        self.runner: web.AppRunner | None = None
        self.port: int | None = None

        # Request tracking
        self.requests: list[dict[str, Any]] = []
        self.sse_connections = 0

        # Response configuration: method -> {"result": ...} / {"error": ...} / callable
        self.responses: dict[str, Any] = {}
        self.delays: dict[str, float] = {}
        # Seconds between body bytes of HTTP replies (0 sends at once)
        self.drip_interval = 0.0
        self.http_status = 200
        self.sse_status = 200
        self.sse_events: list[dict[str, Any]] = []

        self._websockets: list[web.WebSocketResponse] = []
        self._sse_queues: list[asyncio.Queue] = []
        self._tasks: set[asyncio.Task] = set()
        self._closing = False

    @property
    def ws_url(self) -> str:
        return f"ws://127.0.0.1:{self.port}/ws"

    @property
    def http_url(self) -> str:
        return f"http://127.0.0.1:{self.port}/mcp"

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "127.0.0.1", 0)
        await site.start()
        self.port = site._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        self._closing = True
        for ws in list(self._websockets):
            await ws.close()
        for task in list(self._tasks):
            task.cancel()
        runner, self.runner = self.runner, None
        if runner:
            await runner.cleanup()

    def methods(self) -> list[str]:
        """Methods received so far, in order."""
        return [r.get("method", "") for r in self.requests]

    def build_response(self, body: dict[str, Any]) -> dict[str, Any]:
        method = body.get("method", "")
        request_id = body.get("id")

        if method in self.responses:
            response = self.responses[method]
            if callable(response):
                response = response(body)
            return {"jsonrpc": "2.0", "id": request_id, **response}

        if method == "initialize":
            result: Any = {
                "protocolVersion": "2024-11-05",
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "mock-mcp", "version": "1.0.0"},
            }
        elif method == "ping":
            result = {}
        elif method == "tools/list":
            result = {"tools": [{"name": "test_tool", "description": "A test tool"}]}
        elif method == "tools/call":
            result = {"content": [{"type": "text", "text": "Tool executed"}]}
        else:
            return {
                "jsonrpc": "2.0",
                "id": request_id,
                "error": {"code": -32601, "message": f"Method not found: {method}"},
            }
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    async def handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self._websockets.append(ws)
        try:
            async for msg in ws:
                if msg.type != WSMsgType.TEXT:
                    continue
                body = json.loads(msg.data)
                self.requests.append(body)
                if "id" not in body:
                    continue
                task = asyncio.create_task(self._reply_ws(ws, body))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            self._websockets.remove(ws)
        return ws

    async def _reply_ws(self, ws: web.WebSocketResponse, body: dict[str, Any]) -> None:
        delay = self.delays.get(body.get("method", ""))
        if delay:
            await asyncio.sleep(delay)
        if not ws.closed:
            await ws.send_str(json.dumps(self.build_response(body)))

    async def handle_mcp(self, request: web.Request) -> web.StreamResponse:
        body = await request.json()
        self.requests.append(body)

        delay = self.delays.get(body.get("method", ""))
        if delay:
            await asyncio.sleep(delay)
        if self.http_status != 200:
            return web.json_response({"error": "Service unavailable"}, status=self.http_status)
        if self.drip_interval:
            return await self._drip(request, json.dumps(self.build_response(body)).encode())
        return web.json_response(self.build_response(body))

    async def _drip(self, request: web.Request, payload: bytes) -> web.StreamResponse:
        response = web.StreamResponse()
        response.content_type = "application/json"
        response.content_length = len(payload)
        await response.prepare(request)
        try:
            for i in range(len(payload)):
                await response.write(payload[i : i + 1])
                await asyncio.sleep(self.drip_interval)
        except (ConnectionError, RuntimeError):
            pass
        return response

    async def handle_sse(self, request: web.Request) -> web.StreamResponse:
        if self.sse_status != 200:
            return web.json_response({"error": "no stream"}, status=self.sse_status)

        self.sse_connections += 1
        queue: asyncio.Queue = asyncio.Queue()
        for event in self.sse_events:
            queue.put_nowait(event)
        self._sse_queues.append(queue)

        response = web.StreamResponse()
        response.content_type = "text/event-stream"
        await response.prepare(request)
        try:
            while not self._closing:
                try:
                    frame = await asyncio.wait_for(queue.get(), timeout=0.05)
                except asyncio.TimeoutError:
                    await response.write(b": keepalive\n\n")
                    continue
                await response.write(f"data: {json.dumps(frame)}\n\n".encode())
        except (ConnectionError, RuntimeError):
            pass
        finally:
            self._sse_queues.remove(queue)
        return response

    async def push(self, frame: dict[str, Any]) -> None:
        """Send a server-initiated frame to every WebSocket and SSE client."""
        for ws in list(self._websockets):
            await ws.send_str(json.dumps(frame))
        for queue in self._sse_queues:
            queue.put_nowait(frame)

    async def push_raw(self, text: str) -> None:
        """Send a raw text frame to every WebSocket client."""
        for ws in list(self._websockets):
            await ws.send_str(text)

    async def drop_clients(self) -> None:
        """Close every WebSocket from the server side."""
        for ws in list(self._websockets):
            await ws.close()


@pytest.fixture
async def mcp_server():
    """Fixture providing a running MockMCPServer."""
    server = MockMCPServer()
    await server.start()
    yield server
    await server.stop()
