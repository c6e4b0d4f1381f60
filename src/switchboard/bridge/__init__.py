"""Bridge module - concurrent connections to many MCP endpoints.

Keeps one connection per registered endpoint (simulated, WebSocket or
HTTP+SSE), routes calls to the right one, fans inbound notifications out
to subscribers, and keeps liveness and stats current in the background.
"""

from .connection import Connection, ConnectionState, ConnectionView
from .errors import (
    BridgeError,
    ConnectError,
    DuplicateEndpointError,
    EndpointConfigError,
    NotConnectedError,
    RemoteError,
    TimeoutError,
    TransportError,
    UnknownEndpointError,
    map_connection_error,
    map_http_error,
    map_jsonrpc_error,
)
from .events import BridgeEvent, EventBus, EventType, Subscription
from .health import LivenessMonitor
from .lifecycle import MCPBridge
from .proxy import HttpConnection
from .registry import DEFAULT_ENDPOINTS, Endpoint, EndpointMode, EndpointRegistry, ToolInfo
from .router import MessageRouter
from .simulated import SimulatedConnection
from .stats import StatsSnapshot
from .supervisor import ConnectionSupervisor, create_connection
from .websocket import WebSocketConnection

__all__ = [
    "BridgeError",
    "BridgeEvent",
    "ConnectError",
    "Connection",
    "ConnectionState",
    "ConnectionSupervisor",
    "ConnectionView",
    "DEFAULT_ENDPOINTS",
    "DuplicateEndpointError",
    "Endpoint",
    "EndpointConfigError",
    "EndpointMode",
    "EndpointRegistry",
    "EventBus",
    "EventType",
    "HttpConnection",
    "LivenessMonitor",
    "MCPBridge",
    "MessageRouter",
    "NotConnectedError",
    "RemoteError",
    "SimulatedConnection",
    "StatsSnapshot",
    "Subscription",
    "TimeoutError",
    "ToolInfo",
    "TransportError",
    "UnknownEndpointError",
    "WebSocketConnection",
    "create_connection",
    "map_connection_error",
    "map_http_error",
    "map_jsonrpc_error",
]
