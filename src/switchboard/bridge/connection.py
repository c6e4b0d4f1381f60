"""Connection - one endpoint's connection state machine.

Simulated and live endpoints share this base class. It owns the state
transitions, the message counter, and the correlation of inbound frames
to outstanding calls. Variants only implement the transport:

- ``_open()``: perform the handshake, raise ConnectError on failure
- ``_close()``: release the transport handle
- ``_request()``: issue one call and return its JSON-RPC response
"""

import asyncio
import itertools
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import ConnectError, NotConnectedError, TransportError, map_jsonrpc_error
from .registry import Endpoint

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_CALL_TIMEOUT = 30.0

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "mcp-switchboard", "version": "1.0.0"}


class ConnectionState(str, Enum):
    """Connection lifecycle states."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


ALLOWED_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.IDLE: frozenset({ConnectionState.CONNECTING, ConnectionState.CLOSED}),
    ConnectionState.CONNECTING: frozenset(
        {ConnectionState.CONNECTED, ConnectionState.IDLE, ConnectionState.CLOSED}
    ),
    ConnectionState.CONNECTED: frozenset({ConnectionState.DISCONNECTED, ConnectionState.CLOSED}),
    ConnectionState.DISCONNECTED: frozenset(
        {ConnectionState.CONNECTING, ConnectionState.CLOSED}
    ),
    ConnectionState.CLOSED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Raised on a state change the state machine does not allow."""


@dataclass(frozen=True)
class ConnectionView:
    """Read-only projection of a connection."""

    id: str
    name: str
    status: str
    capabilities: tuple[str, ...]
    message_count: int
    last_activity: datetime | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "capabilities": list(self.capabilities),
            "messageCount": self.message_count,
            "lastActivity": self.last_activity.isoformat() if self.last_activity else None,
        }


FrameHandler = Callable[["Connection", dict[str, Any]], None]
LostHandler = Callable[["Connection", str], None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Connection(ABC):
    """Base connection shared by simulated and live variants."""

    def __init__(
        self,
        endpoint: Endpoint,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        on_frame: FrameHandler | None = None,
        on_lost: LostHandler | None = None,
    ):
        """Initialize Connection.

        Args:
            endpoint: Endpoint this connection talks to
            connect_timeout: Max time for the handshake (seconds)
            on_frame: Called with each inbound frame not tied to a call
            on_lost: Called when the transport drops on its own
        """
        self.endpoint = endpoint
        self.connect_timeout = connect_timeout
        self.on_frame = on_frame
        self.on_lost = on_lost

        self._state = ConnectionState.IDLE
        self._message_count = 0
        self._synthetic_count = 0
        self._last_activity: datetime | None = None
        self._lock = asyncio.Lock()
        self._pending: dict[int, asyncio.Future] = {}
        self._request_ids = itertools.count(1)
        self._generation = 0
        self.server_info: dict[str, Any] | None = None

    @property
    def id(self) -> str:
        return self.endpoint.id

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def generation(self) -> int:
        """Incremented on every connect attempt; tags transport-lost reports."""
        return self._generation

    @property
    def lock(self) -> asyncio.Lock:
        """Serializes state changes for this endpoint."""
        return self._lock

    @property
    def message_count(self) -> int:
        return self._message_count

    @property
    def synthetic_count(self) -> int:
        return self._synthetic_count

    @property
    def last_activity(self) -> datetime | None:
        return self._last_activity

    @property
    @abstractmethod
    def has_transport(self) -> bool:
        """Whether a transport handle is currently held."""

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state is self._state:
            return
        if new_state not in ALLOWED_TRANSITIONS[self._state]:
            raise InvalidTransitionError(
                f"{self.id}: cannot go from {self._state.value} to {new_state.value}"
            )
        logger.debug(f"{self.id}: {self._state.value} -> {new_state.value}")
        self._state = new_state

    def record_activity(self) -> None:
        """Count one processed message."""
        self._message_count += 1
        self._last_activity = utcnow()

    def record_synthetic(self, count: int) -> None:
        """Count demo background activity, kept apart from real traffic."""
        if count <= 0:
            return
        self._synthetic_count += count
        self._last_activity = utcnow()

    def view(self) -> ConnectionView:
        return ConnectionView(
            id=self.endpoint.id,
            name=self.endpoint.name,
            status=self._state.value,
            capabilities=self.endpoint.capabilities,
            message_count=self._message_count,
            last_activity=self._last_activity,
        )

    # ------------------------------------------------------------------
    # Lifecycle. Callers hold ``lock`` around these.
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Run the handshake and move to connected.

        Raises:
            ConnectError: If the connection is closed or the handshake fails
        """
        if self._state is ConnectionState.CONNECTED:
            return
        if self._state is ConnectionState.CLOSED:
            raise ConnectError(endpoint_id=self.id, reason="connection is closed")

        # Never hold two transport handles for one endpoint
        if self.has_transport:
            await self._release()

        self._transition(ConnectionState.CONNECTING)
        self._generation += 1
        try:
            await asyncio.wait_for(self._open(), timeout=self.connect_timeout)
        except asyncio.CancelledError:
            await self._release("connect cancelled")
            self._transition(ConnectionState.IDLE)
            raise
        except Exception as e:
            await self._release("connect failed")
            self._transition(ConnectionState.IDLE)
            if isinstance(e, ConnectError):
                raise
            if isinstance(e, asyncio.TimeoutError):
                reason = f"handshake timed out after {self.connect_timeout}s"
            else:
                reason = str(e) or type(e).__name__
            raise ConnectError(endpoint_id=self.id, reason=reason) from e
        self._transition(ConnectionState.CONNECTED)

    async def handshake(self) -> dict[str, Any]:
        """Send the MCP initialize request over a freshly opened transport.

        Returns:
            Initialize result with protocolVersion, capabilities, serverInfo

        Raises:
            ConnectError: If the endpoint rejects the handshake
        """
        response = await self._request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
            self.connect_timeout,
        )
        if not isinstance(response, dict):
            raise ConnectError(endpoint_id=self.id, reason="invalid initialize response")
        if response.get("error") is not None:
            error = response["error"]
            raise ConnectError(
                endpoint_id=self.id,
                reason=f"initialize rejected: {error.get('message', 'unknown error')}",
                data={"remote_error": error},
            )
        result = response.get("result") or {}
        self.server_info = result.get("serverInfo")
        logger.info(f"{self.id}: MCP session initialized: {self.server_info}")
        return result

    async def disconnect(self, reason: str = "disconnect requested") -> bool:
        """Tear down the transport and move to disconnected.

        Returns:
            True if the connection was connected before the call
        """
        if self._state is not ConnectionState.CONNECTED:
            return False
        await self._release(reason)
        self._transition(ConnectionState.DISCONNECTED)
        return True

    async def close(self) -> None:
        """Release the transport and enter the terminal closed state."""
        if self._state is ConnectionState.CLOSED:
            return
        await self._release("bridge closed")
        self._transition(ConnectionState.CLOSED)

    async def _release(self, reason: str = "connection released") -> None:
        self._fail_pending(reason)
        try:
            await self._close()
        except Exception as e:
            logger.warning(f"{self.id}: error releasing transport: {e}")

    # ------------------------------------------------------------------
    # Calls and inbound frames
    # ------------------------------------------------------------------

    async def request(self, method: str, params: dict[str, Any], timeout: float) -> Any:
        """Issue one call and return its result payload.

        Raises:
            NotConnectedError: If not connected
            TimeoutError: If no response arrives in time
            TransportError: If the transport fails mid-call
            RemoteError: If the endpoint answers with a JSON-RPC error
        """
        if self._state is not ConnectionState.CONNECTED:
            raise NotConnectedError(endpoint_id=self.id, state=self._state.value)

        response = await self._request(method, params, timeout)
        self.record_activity()

        if isinstance(response, dict) and response.get("error") is not None:
            raise map_jsonrpc_error(response["error"], self.id)
        if isinstance(response, dict) and "result" in response:
            return response["result"]
        return response

    def next_request_id(self) -> int:
        return next(self._request_ids)

    def build_request(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": self.next_request_id(),
            "method": method,
            "params": params,
        }

    def expect_response(self, request_id: int) -> asyncio.Future:
        """Register a future that resolves when the matching frame arrives."""
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        return future

    def forget_response(self, request_id: int) -> None:
        self._pending.pop(request_id, None)

    def handle_raw_frame(self, raw: str | bytes) -> None:
        """Parse an inbound frame and route it."""
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"{self.id}: dropping malformed frame: {e}")
            return
        if not isinstance(message, dict):
            logger.warning(f"{self.id}: dropping non-object frame: {message!r}")
            return
        self.handle_frame(message)

    def handle_frame(self, message: dict[str, Any]) -> None:
        """Resolve the outstanding call this frame answers, or publish it."""
        request_id = message.get("id")
        is_response = "result" in message or "error" in message
        if is_response and request_id in self._pending:
            future = self._pending.pop(request_id)
            if not future.done():
                future.set_result(message)
            return

        # Uncorrelated frames (notifications, late responses) go to subscribers
        self.record_activity()
        if self.on_frame:
            self.on_frame(self, message)

    def _fail_pending(self, reason: str) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(
                    TransportError(
                        message=f"Connection to {self.id} lost: {reason}",
                        data={"endpoint_id": self.id},
                    )
                )

    def transport_lost(self, reason: str) -> None:
        """Called by a variant when its transport drops on its own."""
        logger.warning(f"{self.id}: transport lost: {reason}")
        self._fail_pending(reason)
        if self.on_lost:
            self.on_lost(self, reason)

    @abstractmethod
    async def _open(self) -> None: ...

    @abstractmethod
    async def _close(self) -> None: ...

    @abstractmethod
    async def _request(self, method: str, params: dict[str, Any], timeout: float) -> Any: ...
