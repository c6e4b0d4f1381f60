"""WebSocketConnection - live MCP endpoint over a WebSocket.

JSON-RPC frames travel as text messages. A reader task owns the socket's
inbound side: it resolves outstanding calls, hands other frames to the
connection's frame handler, and reports the transport lost when the peer
closes or errors.
"""

import asyncio
import json
import logging
from typing import Any

import aiohttp

from .connection import Connection
from .errors import ConnectError, TransportError, map_connection_error

logger = logging.getLogger(__name__)


class WebSocketConnection(Connection):
    """Live connection to a ``ws://`` or ``wss://`` endpoint."""

    def __init__(self, endpoint, *args: Any, headers: dict[str, str] | None = None, **kwargs: Any):
        super().__init__(endpoint, *args, **kwargs)
        self.headers = headers or {}
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task | None = None

    @property
    def has_transport(self) -> bool:
        return self._ws is not None

    async def _open(self) -> None:
        self._session = aiohttp.ClientSession(headers=self.headers)
        try:
            self._ws = await self._session.ws_connect(self.endpoint.url)
        except (aiohttp.ClientError, OSError) as e:
            raise ConnectError(endpoint_id=self.id, reason=str(e) or type(e).__name__) from e

        logger.info(f"{self.id}: WebSocket open to {self.endpoint.url}")
        self._reader = asyncio.create_task(self._read_loop(self._ws), name=f"ws-reader-{self.id}")
        await self.handshake()

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        """Read frames until the socket closes."""
        reason = "connection closed by remote"
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.handle_raw_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    self.handle_raw_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    reason = f"transport error: {ws.exception()}"
                    break
        except aiohttp.ClientError as e:
            reason = f"transport error: {e}"
        self.transport_lost(reason)

    async def _close(self) -> None:
        reader, self._reader = self._reader, None
        if reader and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()

        session, self._session = self._session, None
        if session is not None:
            await session.close()

    async def _request(self, method: str, params: dict[str, Any], timeout: float) -> Any:
        ws = self._ws
        if ws is None or ws.closed:
            raise TransportError(
                message=f"No open transport for {self.id}",
                data={"endpoint_id": self.id},
            )

        request = self.build_request(method, params)
        future = self.expect_response(request["id"])
        try:
            await ws.send_str(json.dumps(request))
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise map_connection_error(
                str(e), self.id, self.endpoint.url, is_timeout=True
            ) from None
        except (aiohttp.ClientError, ConnectionError) as e:
            raise map_connection_error(str(e), self.id, self.endpoint.url) from e
        finally:
            self.forget_response(request["id"])
