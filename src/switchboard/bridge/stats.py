"""Stats snapshot derived from the connection set.

Snapshots are always recomputed from the connections, never kept as
separate counters that could drift.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .connection import Connection, ConnectionState


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time aggregate of connection counts and throughput."""

    total_connections: int = 0
    active_connections: int = 0
    messages_processed: int = 0
    synthetic_messages: int = 0
    last_activity: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "totalConnections": self.total_connections,
            "activeConnections": self.active_connections,
            "messagesProcessed": self.messages_processed,
            "syntheticMessages": self.synthetic_messages,
            "lastActivity": self.last_activity.isoformat() if self.last_activity else None,
        }


def compute_stats(connections: Iterable[Connection], total_attempts: int) -> StatsSnapshot:
    """Aggregate a snapshot from the current connections.

    Args:
        connections: All supervised connections
        total_attempts: Connect attempts made so far

    Returns:
        StatsSnapshot
    """
    active = 0
    messages = 0
    synthetic = 0
    last_activity: datetime | None = None

    for connection in connections:
        if connection.state is ConnectionState.CONNECTED:
            active += 1
        messages += connection.message_count
        synthetic += connection.synthetic_count
        if connection.last_activity and (
            last_activity is None or connection.last_activity > last_activity
        ):
            last_activity = connection.last_activity

    return StatsSnapshot(
        total_connections=total_attempts,
        active_connections=active,
        messages_processed=messages,
        synthetic_messages=synthetic,
        last_activity=last_activity,
    )
