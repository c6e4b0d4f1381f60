"""LivenessMonitor - periodic heartbeat and stats aggregation.

Two independent loops run as owned asyncio tasks:

- heartbeat: pings every connected endpoint and reconnects dropped ones
- stats: recomputes the snapshot and hands it to the activity store

Neither loop lets an endpoint failure escape; errors are logged and the
next cycle runs on schedule.
"""

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Optional

from ..store import ActivityStore, record
from .connection import Connection, ConnectionState
from .errors import BridgeError, ConnectError, RemoteError
from .stats import StatsSnapshot, compute_stats

if TYPE_CHECKING:
    from .router import MessageRouter
    from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 30.0
DEFAULT_STATS_INTERVAL = 10.0

# Chance per stats cycle that a synthetic endpoint shows activity
SYNTHETIC_ACTIVITY_THRESHOLD = 0.7
SYNTHETIC_ACTIVITY_MAX = 2

# Gateway answers meaning the endpoint behind it is unreachable
GATEWAY_DOWN_STATUSES = (502, 503)


class LivenessMonitor:
    """Keeps connections alive and the stats snapshot fresh."""

    def __init__(
        self,
        supervisor: "ConnectionSupervisor",
        router: "MessageRouter",
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        stats_interval: float = DEFAULT_STATS_INTERVAL,
        auto_reconnect: bool = True,
        ping_timeout: float | None = None,
        store: Optional[ActivityStore] = None,
        rng: random.Random | None = None,
    ):
        """Initialize LivenessMonitor.

        Args:
            supervisor: Owner of the endpoint connections
            router: Used to send heartbeat pings
            heartbeat_interval: Seconds between heartbeat cycles
            stats_interval: Seconds between stats cycles
            auto_reconnect: Reconnect idle and disconnected endpoints each heartbeat
            ping_timeout: Ping timeout (default: router call timeout)
            store: Receives stats snapshots
            rng: Random source for synthetic activity
        """
        self.supervisor = supervisor
        self.router = router
        self.heartbeat_interval = heartbeat_interval
        self.stats_interval = stats_interval
        self.auto_reconnect = auto_reconnect
        self.ping_timeout = ping_timeout
        self.store = store
        self.rng = rng or random.Random()

        self._heartbeat_task: asyncio.Task | None = None
        self._stats_task: asyncio.Task | None = None
        self._heartbeat_count = 0
        self._latest: StatsSnapshot | None = None

    @property
    def is_running(self) -> bool:
        return self._heartbeat_task is not None

    @property
    def heartbeat_count(self) -> int:
        """Completed heartbeat cycles."""
        return self._heartbeat_count

    @property
    def latest(self) -> StatsSnapshot | None:
        """Snapshot computed by the most recent stats cycle."""
        return self._latest

    def start(self) -> None:
        """Start both loops. No-op if already running."""
        if self.is_running:
            return
        logger.info(
            f"Starting liveness monitor (heartbeat: {self.heartbeat_interval}s, "
            f"stats: {self.stats_interval}s)"
        )
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="heartbeat")
        self._stats_task = asyncio.create_task(self._stats_loop(), name="stats")

    async def stop(self) -> None:
        """Cancel both loops and wait for them to finish."""
        tasks = [t for t in (self._heartbeat_task, self._stats_task) if t is not None]
        self._heartbeat_task = None
        self._stats_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("Liveness monitor stopped")

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.heartbeat_once()
            except Exception as e:
                logger.exception(f"Unexpected error in heartbeat: {e}")

    async def _stats_loop(self) -> None:
        while True:
            await asyncio.sleep(self.stats_interval)
            try:
                await self.refresh_stats()
            except Exception as e:
                logger.exception(f"Unexpected error in stats refresh: {e}")

    async def heartbeat_once(self) -> None:
        """Run one heartbeat cycle across all endpoints concurrently."""
        connections = self.supervisor.connections()
        await asyncio.gather(*(self._check(c) for c in connections))
        self._heartbeat_count += 1

    async def _check(self, connection: Connection) -> None:
        state = connection.state
        if state is ConnectionState.CONNECTED:
            await self._ping(connection)
        elif self.auto_reconnect and state in (ConnectionState.IDLE, ConnectionState.DISCONNECTED):
            await self._reconnect(connection)

    async def _ping(self, connection: Connection) -> None:
        generation = connection.generation
        try:
            await self.router.send(connection.id, "ping", {}, timeout=self.ping_timeout)
        except RemoteError as e:
            if e.data.get("http_status") not in GATEWAY_DOWN_STATUSES:
                # An error reply from the endpoint itself still proves it is alive
                logger.debug(f"{connection.id}: ping answered with error {e.code}")
                return
            await self._ping_failed(connection, e, generation)
        except BridgeError as e:
            await self._ping_failed(connection, e, generation)

    async def _ping_failed(self, connection: Connection, error: BridgeError, generation: int) -> None:
        logger.warning(f"Heartbeat failed for {connection.id}: {error}")
        await self.supervisor.mark_lost(connection.id, f"heartbeat failed: {error}", generation)

    async def _reconnect(self, connection: Connection) -> None:
        try:
            await self.supervisor.connect(connection.id)
            logger.info(f"Reconnected to {connection.id}")
        except ConnectError as e:
            logger.warning(f"Reconnect to {connection.id} failed: {e}")

    async def refresh_stats(self) -> StatsSnapshot:
        """Run one stats cycle.

        Returns:
            The freshly computed snapshot
        """
        for connection in self.supervisor.connections():
            if connection.endpoint.synthetic_activity and connection.is_connected:
                self._synthesize(connection)

        snapshot = compute_stats(self.supervisor.connections(), self.supervisor.total_attempts)
        self._latest = snapshot
        if self.store is not None:
            await record(self.store, "save_stats_snapshot", snapshot)
        return snapshot

    def _synthesize(self, connection: Connection) -> None:
        if self.rng.random() > SYNTHETIC_ACTIVITY_THRESHOLD:
            connection.record_synthetic(self.rng.randint(0, SYNTHETIC_ACTIVITY_MAX))
