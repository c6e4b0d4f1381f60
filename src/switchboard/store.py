"""Activity store - where the bridge records activity and stats history.

The bridge only ever talks to an ``ActivityStore`` through ``record()``,
so a failing or slow store never turns into a bridge error. Store
methods may be plain or async.
"""

import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .bridge.connection import ConnectionView
    from .bridge.stats import StatsSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_ACTIVITY = 1000
DEFAULT_MAX_STATS = 500


@dataclass(frozen=True)
class ActivityEntry:
    """One activity log line."""

    type: str
    source: str
    message: str
    data: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "source": self.source,
            "message": self.message,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


@runtime_checkable
class ActivityStore(Protocol):
    """Persistence collaborator interface."""

    def log_activity(
        self, type: str, source: str, message: str, data: dict[str, Any] | None = None
    ) -> Any: ...

    def save_connection_snapshot(self, view: "ConnectionView") -> Any: ...

    def save_stats_snapshot(self, snapshot: "StatsSnapshot") -> Any: ...

    def query_recent_stats(self, limit: int = 100) -> Any: ...


class MemoryActivityStore:
    """Bounded in-memory store. Oldest entries fall off first."""

    def __init__(self, max_activity: int = DEFAULT_MAX_ACTIVITY, max_stats: int = DEFAULT_MAX_STATS):
        self._activity: deque[ActivityEntry] = deque(maxlen=max_activity)
        self._stats: deque["StatsSnapshot"] = deque(maxlen=max_stats)
        self._connections: dict[str, "ConnectionView"] = {}

    def log_activity(
        self, type: str, source: str, message: str, data: dict[str, Any] | None = None
    ) -> None:
        self._activity.append(ActivityEntry(type=type, source=source, message=message, data=data))

    def save_connection_snapshot(self, view: "ConnectionView") -> None:
        self._connections[view.id] = view

    def save_stats_snapshot(self, snapshot: "StatsSnapshot") -> None:
        self._stats.append(snapshot)

    def query_recent_stats(self, limit: int = 100) -> list["StatsSnapshot"]:
        """Most recent stats snapshots, newest first."""
        return list(reversed(self._stats))[: max(limit, 0)]

    def recent_activity(self, limit: int = 100, type: str | None = None) -> list[ActivityEntry]:
        """Most recent activity entries, newest first, optionally of one type."""
        entries = [e for e in reversed(self._activity) if type is None or e.type == type]
        return entries[: max(limit, 0)]

    def connection_snapshots(self) -> dict[str, "ConnectionView"]:
        """Latest saved view per endpoint."""
        return dict(self._connections)


async def record(store: ActivityStore | None, operation: str, *args: Any) -> Any:
    """Call a store method, logging and swallowing any failure.

    Args:
        store: Store to call (None is a no-op)
        operation: Method name, e.g. ``"log_activity"``
        *args: Method arguments

    Returns:
        The method's result, or None if it failed
    """
    if store is None:
        return None
    try:
        result = getattr(store, operation)(*args)
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        logger.warning(f"Activity store {operation} failed: {e}")
        return None
