"""MCPBridge - public facade composing registry, supervisor, router and monitor.

Handles:
- Startup: register configured endpoints, connect each, start loops
- Calls to a specific endpoint
- Read-only projections of connections and stats
- Event subscriptions
- Graceful shutdown with in-flight drain
"""

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Any, Optional

from ..store import ActivityStore, MemoryActivityStore, record
from .connection import ConnectionView
from .errors import ConnectError, EndpointConfigError
from .events import BridgeEvent, EventBus, EventCallback, EventType, Subscription
from .health import LivenessMonitor
from .registry import Endpoint, EndpointRegistry
from .router import MessageRouter
from .stats import StatsSnapshot, compute_stats
from .supervisor import ConnectionSupervisor

if TYPE_CHECKING:
    from ..config import BridgeConfig

logger = logging.getLogger(__name__)


class MCPBridge:
    """Multi-endpoint MCP bridge.

    Usage:
        async with MCPBridge(config=load_config()) as bridge:
            tools = await bridge.send("demo-server", "tools/list")
    """

    def __init__(
        self,
        endpoints: list[Endpoint] | None = None,
        *,
        config: Optional["BridgeConfig"] = None,
        store: ActivityStore | None = None,
        rng: random.Random | None = None,
    ):
        """Initialize MCPBridge.

        Args:
            endpoints: Endpoints to register (default: from config)
            config: Bridge settings (default: built-in defaults)
            store: Activity store (default: in-memory)
            rng: Random source for synthetic demo activity
        """
        if config is None:
            from ..config import BridgeConfig

            config = BridgeConfig()
        self.config = config
        self.store = store if store is not None else MemoryActivityStore()

        self._endpoints = endpoints
        self.registry = EndpointRegistry()
        self.events = EventBus(max_queue=config.event_queue_size)
        self.supervisor = ConnectionSupervisor(
            self.registry, self.events, connect_timeout=config.connect_timeout
        )
        self.router = MessageRouter(self.supervisor, self.events, call_timeout=config.call_timeout)
        self.monitor = LivenessMonitor(
            self.supervisor,
            self.router,
            heartbeat_interval=config.heartbeat_interval,
            stats_interval=config.stats_interval,
            auto_reconnect=config.auto_reconnect,
            store=self.store,
            rng=rng,
        )

        self._store_subscription: Subscription | None = None
        self._is_initialized = False
        self._is_closed = False

    @property
    def is_running(self) -> bool:
        """Whether the bridge is initialized and not yet closed."""
        return self._is_initialized and not self._is_closed

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    async def initialize(self) -> None:
        """Register endpoints, connect each, start background loops.

        Per-endpoint connect failures are logged as warnings. Calling this
        again once initialized is a no-op.

        Raises:
            EndpointConfigError: If the endpoint configuration is malformed
            DuplicateEndpointError: If two endpoints share an id
            RuntimeError: If the bridge has been closed
        """
        if self._is_closed:
            raise RuntimeError("Bridge is closed")
        if self._is_initialized:
            return

        logger.info("Starting bridge...")
        endpoints = self._endpoints
        if endpoints is None:
            endpoints = self.config.build_endpoints()
        for endpoint in endpoints:
            self.supervisor.register(endpoint)

        self._store_subscription = self.events.subscribe(self._record_event)
        self.events.start()
        self._is_initialized = True

        ids = [endpoint.id for endpoint in self.registry.list()]
        results = await asyncio.gather(*(self._connect_quietly(i) for i in ids))
        connected = sum(1 for ok in results if ok)

        # close() may have run while the connects were pending
        if self._is_closed:
            logger.info("Bridge closed during startup, not starting monitor")
            return

        self.monitor.start()
        logger.info(f"Bridge started: {connected}/{len(ids)} endpoints connected")

    async def _connect_quietly(self, endpoint_id: str) -> bool:
        try:
            await self.supervisor.connect(endpoint_id)
            return True
        except ConnectError as e:
            logger.warning(f"Could not connect to {endpoint_id}: {e}")
            return False

    async def register_endpoint(self, endpoint: Endpoint | dict[str, Any]) -> ConnectionView:
        """Add an endpoint at runtime.

        When the bridge is running the endpoint is connected immediately;
        a connect failure is logged, not raised.

        Args:
            endpoint: Endpoint, or a mapping with an ``id`` key plus endpoint fields

        Returns:
            View of the new connection

        Raises:
            DuplicateEndpointError: If the id is already registered
            EndpointConfigError: If the mapping is malformed
        """
        if isinstance(endpoint, dict):
            data = dict(endpoint)
            endpoint_id = data.pop("id", None)
            if not endpoint_id:
                raise EndpointConfigError(message="Endpoint mapping needs an 'id'")
            endpoint = Endpoint.from_dict(endpoint_id, data)

        connection = self.supervisor.register(endpoint)
        await record(
            self.store,
            "log_activity",
            "endpoint",
            endpoint.id,
            f"Registered endpoint {endpoint.name}",
            endpoint.to_dict(),
        )
        if self.is_running:
            await self._connect_quietly(endpoint.id)
        return connection.view()

    async def send(
        self,
        endpoint_id: str,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a call to one endpoint.

        Returns:
            The response result

        Raises:
            UnknownEndpointError, NotConnectedError, TimeoutError,
            TransportError, RemoteError: See MessageRouter.send
        """
        return await self.router.send(endpoint_id, method, params, timeout=timeout)

    async def send_message(self, endpoint_id: str, message: dict[str, Any]) -> Any:
        """Send a ``{method, params}`` message to one endpoint.

        Raises:
            EndpointConfigError: If the message has no method
        """
        method = message.get("method") if isinstance(message, dict) else None
        if not method or not isinstance(method, str):
            raise EndpointConfigError(message="Message must include a 'method' string")
        return await self.send(endpoint_id, method, message.get("params") or {})

    def get_connections(self) -> list[ConnectionView]:
        """Read-only view of every connection, in registration order."""
        return [connection.view() for connection in self.supervisor.connections()]

    def get_stats(self) -> StatsSnapshot:
        """Current aggregate snapshot, computed on read."""
        return compute_stats(self.supervisor.connections(), self.supervisor.total_attempts)

    async def get_recent_stats(self, limit: int = 10) -> list[StatsSnapshot]:
        """Recent stats snapshots from the activity store, newest first."""
        result = await record(self.store, "query_recent_stats", limit)
        return list(result or [])

    def subscribe(
        self,
        callback: EventCallback | None = None,
        *,
        max_queue: int | None = None,
        event_types: list[EventType] | None = None,
    ) -> Subscription:
        """Subscribe to connected/disconnected/messageReceived events."""
        return self.events.subscribe(callback, max_queue=max_queue, event_types=event_types)

    def unsubscribe(self, subscription: Subscription) -> None:
        self.events.unsubscribe(subscription)

    async def close(self) -> None:
        """Stop loops, drain in-flight calls, close every connection.

        Safe to call more than once.
        """
        if self._is_closed:
            return
        self._is_closed = True
        logger.info("Shutting down...")

        await self.monitor.stop()

        # Wait for in-flight requests
        await self._drain_requests()

        await self.supervisor.close_all()
        await self.events.stop()
        logger.info("Bridge shutdown complete")

    async def _drain_requests(self) -> None:
        """Wait for in-flight calls to complete, up to the drain timeout."""
        if self.router.in_flight_count == 0:
            return

        drain_timeout = self.config.drain_timeout
        logger.info(f"Waiting for {self.router.in_flight_count} in-flight requests...")
        loop = asyncio.get_running_loop()
        start = loop.time()

        while self.router.in_flight_count > 0:
            if loop.time() - start >= drain_timeout:
                logger.warning(
                    f"Drain timeout, {self.router.in_flight_count} requests still in-flight"
                )
                break
            await asyncio.sleep(0.05)

    async def _record_event(self, event: BridgeEvent) -> None:
        """Mirror connection events into the activity store."""
        if event.type is EventType.MESSAGE_RECEIVED:
            return
        connection = self.supervisor.get(event.endpoint_id)
        await record(
            self.store,
            "log_activity",
            "connection",
            event.endpoint_id,
            f"{connection.endpoint.name} {event.type.value}",
            event.data,
        )
        await record(self.store, "save_connection_snapshot", connection.view())

    async def __aenter__(self) -> "MCPBridge":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
