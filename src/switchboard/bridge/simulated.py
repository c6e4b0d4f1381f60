"""Simulated connections for demonstration and offline endpoints.

A simulated connection connects immediately and answers every call from a
fixed table keyed by method, so demos work without any real server.
"""

import copy
from typing import Any

from .connection import Connection

DEMO_TOOLS = [
    {"name": "calculate", "description": "Perform mathematical calculations"},
    {"name": "weather", "description": "Get current weather information"},
    {"name": "translate", "description": "Translate text between languages"},
]

DEMO_RESOURCES = [
    {"uri": "file://demo.txt", "name": "Demo File", "mimeType": "text/plain"},
    {"uri": "http://example.com", "name": "Example Website", "mimeType": "text/html"},
]

DEFAULT_DEMO_RESULT = {"message": "Demo response", "status": "success"}


def simulate_response(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the fixed demo result for a method.

    Unrecognized methods get a generic success placeholder, never an error.

    Args:
        method: JSON-RPC method name
        params: Call parameters (only ``name`` is used, by tools/call)

    Returns:
        Result payload (the ``result`` member of a JSON-RPC response)
    """
    params = params or {}
    if method == "tools/list":
        return {"tools": copy.deepcopy(DEMO_TOOLS)}
    if method == "tools/call":
        tool_name = params.get("name") or "unknown"
        return {
            "content": [
                {"type": "text", "text": f"Tool executed successfully: {tool_name}"},
            ]
        }
    if method == "resources/list":
        return {"resources": copy.deepcopy(DEMO_RESOURCES)}
    return dict(DEFAULT_DEMO_RESULT)


class SimulatedConnection(Connection):
    """Connection that fabricates responses without a transport."""

    @property
    def has_transport(self) -> bool:
        return False

    async def _open(self) -> None:
        return None

    async def _close(self) -> None:
        return None

    async def _request(self, method: str, params: dict[str, Any], timeout: float) -> Any:
        request = self.build_request(method, params)
        return {"jsonrpc": "2.0", "id": request["id"], "result": simulate_response(method, params)}
