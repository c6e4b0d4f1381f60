"""ConnectionSupervisor - owns one connection per registered endpoint.

All state changes for an endpoint (connect, disconnect, loss reports)
run under that connection's lock, so concurrent connect and disconnect
requests for the same endpoint never interleave. Each applied change
publishes exactly one event.
"""

import asyncio
import logging
from typing import Any

from .connection import (
    DEFAULT_CONNECT_TIMEOUT,
    Connection,
    ConnectionState,
    FrameHandler,
    LostHandler,
)
from .errors import EndpointConfigError
from .events import BridgeEvent, EventBus, EventType
from .proxy import HttpConnection
from .registry import Endpoint, EndpointRegistry
from .simulated import SimulatedConnection
from .websocket import WebSocketConnection

logger = logging.getLogger(__name__)


def create_connection(
    endpoint: Endpoint,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    on_frame: FrameHandler | None = None,
    on_lost: LostHandler | None = None,
) -> Connection:
    """Pick the connection variant for an endpoint.

    Raises:
        EndpointConfigError: If a live endpoint uses an unsupported scheme
    """
    kwargs: dict[str, Any] = {
        "connect_timeout": connect_timeout,
        "on_frame": on_frame,
        "on_lost": on_lost,
    }
    if endpoint.is_simulated:
        return SimulatedConnection(endpoint, **kwargs)

    headers = endpoint.metadata.get("headers") or None
    if endpoint.scheme in ("ws", "wss"):
        return WebSocketConnection(endpoint, headers=headers, **kwargs)
    if endpoint.scheme in ("http", "https"):
        return HttpConnection(endpoint, headers=headers, **kwargs)
    raise EndpointConfigError(
        message=f"Endpoint {endpoint.id}: unsupported scheme {endpoint.scheme!r}",
        data={"url": endpoint.url},
    )


class ConnectionSupervisor:
    """Connects, disconnects and tracks every endpoint's connection."""

    def __init__(
        self,
        registry: EndpointRegistry,
        events: EventBus,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ):
        self.registry = registry
        self.events = events
        self.connect_timeout = connect_timeout

        self._connections: dict[str, Connection] = {}
        self._total_attempts = 0
        self._frame_handler: FrameHandler | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def total_attempts(self) -> int:
        """Connect attempts made on non-closed connections."""
        return self._total_attempts

    def set_frame_handler(self, handler: FrameHandler) -> None:
        """Route inbound uncorrelated frames from every connection to ``handler``."""
        self._frame_handler = handler
        for connection in self._connections.values():
            connection.on_frame = handler

    def register(self, endpoint: Endpoint) -> Connection:
        """Register an endpoint and create its idle connection.

        Raises:
            DuplicateEndpointError: If the id is already registered
            EndpointConfigError: If no connection variant fits the endpoint
        """
        connection = create_connection(
            endpoint,
            connect_timeout=self.connect_timeout,
            on_frame=self._frame_handler,
            on_lost=self._on_lost,
        )
        self.registry.register(endpoint)
        self._connections[endpoint.id] = connection
        logger.debug(f"Registered endpoint {endpoint.id} ({endpoint.mode.value}, {endpoint.url})")
        return connection

    def get(self, endpoint_id: str) -> Connection:
        """Look up an endpoint's connection.

        Raises:
            UnknownEndpointError: If the id is not registered
        """
        endpoint = self.registry.get(endpoint_id)
        return self._connections[endpoint.id]

    def connections(self) -> list[Connection]:
        """All connections in registration order."""
        return [self._connections[e.id] for e in self.registry.list()]

    def is_connected(self, endpoint_id: str) -> bool:
        return self.get(endpoint_id).is_connected

    async def connect(self, endpoint_id: str) -> Connection:
        """Connect an endpoint. No-op if already connected.

        Raises:
            UnknownEndpointError: If the id is not registered
            ConnectError: If the handshake fails, times out, or the bridge is closed
        """
        connection = self.get(endpoint_id)
        async with connection.lock:
            if connection.is_connected:
                return connection
            if connection.state is not ConnectionState.CLOSED:
                self._total_attempts += 1
            await connection.open()

        logger.info(f"Connected to {endpoint_id}")
        self._publish(EventType.CONNECTED, connection)
        return connection

    async def disconnect(self, endpoint_id: str, reason: str = "disconnect requested") -> bool:
        """Disconnect an endpoint.

        Returns:
            True if the endpoint was connected and is now disconnected
        """
        connection = self.get(endpoint_id)
        async with connection.lock:
            changed = await connection.disconnect(reason)

        if changed:
            logger.info(f"Disconnected from {endpoint_id}: {reason}")
            self._publish(EventType.DISCONNECTED, connection, reason=reason)
        return changed

    async def mark_lost(self, endpoint_id: str, reason: str, generation: int | None = None) -> bool:
        """Handle an observed transport loss.

        Reports tagged with an older generation than the current connect
        attempt are ignored.

        Returns:
            True if the connection moved to disconnected
        """
        connection = self.get(endpoint_id)
        async with connection.lock:
            if generation is not None and generation != connection.generation:
                logger.debug(f"{endpoint_id}: ignoring stale loss report: {reason}")
                return False
            changed = await connection.disconnect(reason)

        if changed:
            logger.warning(f"Lost connection to {endpoint_id}: {reason}")
            self._publish(EventType.DISCONNECTED, connection, reason=reason)
        return changed

    async def close_all(self) -> None:
        """Close every connection. Connected ones publish ``disconnected``."""
        await asyncio.gather(
            *(self._close_one(c) for c in self.connections()), return_exceptions=True
        )

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _close_one(self, connection: Connection) -> None:
        async with connection.lock:
            was_connected = connection.is_connected
            await connection.close()
        if was_connected:
            self._publish(EventType.DISCONNECTED, connection, reason="bridge closed")

    def _on_lost(self, connection: Connection, reason: str) -> None:
        # Called from transport tasks; the lock is taken in a fresh task
        task = asyncio.create_task(
            self.mark_lost(connection.id, reason, connection.generation),
            name=f"lost-{connection.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _publish(self, event_type: EventType, connection: Connection, **data: Any) -> None:
        self.events.publish(
            BridgeEvent(
                type=event_type,
                endpoint_id=connection.id,
                data={"name": connection.endpoint.name, "status": connection.state.value, **data},
            )
        )


