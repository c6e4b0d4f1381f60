"""Endpoint registry - table of known remote MCP servers.

Endpoints are immutable once registered. The registry may be written
from one flow while another reads it, so all access goes through a lock.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from .errors import DuplicateEndpointError, EndpointConfigError, UnknownEndpointError

LIVE_SCHEMES = ("ws", "wss", "http", "https")


class EndpointMode(str, Enum):
    """How the bridge talks to an endpoint."""

    SIMULATED = "simulated"
    LIVE = "live"


@dataclass(frozen=True)
class ToolInfo:
    """A tool an endpoint declares."""

    name: str
    description: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "description": self.description}


@dataclass(frozen=True)
class Endpoint:
    """A registered remote server the bridge can connect to."""

    id: str
    name: str
    url: str
    mode: EndpointMode = EndpointMode.LIVE
    capabilities: tuple[str, ...] = ()
    tools: tuple[ToolInfo, ...] = ()
    # Demo-only background activity, counted apart from real traffic
    synthetic_activity: bool = False
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_simulated(self) -> bool:
        return self.mode is EndpointMode.SIMULATED

    @property
    def scheme(self) -> str:
        return urlparse(self.url).scheme

    @classmethod
    def from_dict(cls, endpoint_id: str, data: dict[str, Any]) -> "Endpoint":
        """Build an Endpoint from a configuration mapping.

        Args:
            endpoint_id: Unique endpoint id (the config key)
            data: Endpoint fields (name, url, mode, capabilities, tools, ...)

        Returns:
            Validated Endpoint

        Raises:
            EndpointConfigError: If the entry is malformed
        """
        if not endpoint_id or not isinstance(endpoint_id, str):
            raise EndpointConfigError(message=f"Invalid endpoint id: {endpoint_id!r}")
        if not isinstance(data, dict):
            raise EndpointConfigError(
                message=f"Endpoint {endpoint_id}: expected a mapping, got {type(data).__name__}"
            )

        url = data.get("url")
        if not url:
            raise EndpointConfigError(message=f"Endpoint {endpoint_id}: missing url")

        # The original config format used status: simulated for demo servers
        raw_mode = data.get("mode") or data.get("status") or EndpointMode.LIVE.value
        try:
            mode = EndpointMode(str(raw_mode).lower())
        except ValueError:
            raise EndpointConfigError(
                message=f"Endpoint {endpoint_id}: unknown mode {raw_mode!r}"
            ) from None

        parsed = urlparse(str(url))
        if mode is EndpointMode.LIVE and (parsed.scheme not in LIVE_SCHEMES or not parsed.netloc):
            raise EndpointConfigError(
                message=f"Endpoint {endpoint_id}: invalid URL for live endpoint: {url}",
                data={"url": url, "supported_schemes": list(LIVE_SCHEMES)},
            )

        tools = []
        for tool in data.get("tools") or []:
            if isinstance(tool, str):
                tools.append(ToolInfo(name=tool))
            elif isinstance(tool, dict) and tool.get("name"):
                tools.append(ToolInfo(name=tool["name"], description=tool.get("description", "")))
            else:
                raise EndpointConfigError(message=f"Endpoint {endpoint_id}: invalid tool {tool!r}")

        return cls(
            id=endpoint_id,
            name=str(data.get("name") or endpoint_id),
            url=str(url),
            mode=mode,
            capabilities=tuple(str(c) for c in data.get("capabilities") or ()),
            tools=tuple(tools),
            synthetic_activity=bool(data.get("synthetic_activity", False))
            and mode is EndpointMode.SIMULATED,
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display and JSON output."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "mode": self.mode.value,
            "capabilities": list(self.capabilities),
            "tools": [t.to_dict() for t in self.tools],
            "synthetic_activity": self.synthetic_activity,
        }


# Demo servers used when no endpoints are configured
DEFAULT_ENDPOINTS: dict[str, dict[str, Any]] = {
    "demo-server": {
        "name": "Demo Server",
        "url": "ws://localhost:3001/mcp",
        "mode": "simulated",
        "capabilities": ["tools", "resources", "prompts"],
        "tools": [
            {"name": "calculate", "description": "Perform calculations"},
            {"name": "weather", "description": "Get weather information"},
            {"name": "translate", "description": "Translate text"},
        ],
    },
    "ai-assistant": {
        "name": "AI Assistant",
        "url": "ws://localhost:3002/mcp",
        "mode": "simulated",
        "capabilities": ["prompts", "completion"],
        "tools": [
            {"name": "chat", "description": "AI chat interface"},
            {"name": "analyze", "description": "Text analysis"},
        ],
    },
    "file-manager": {
        "name": "File Manager",
        "url": "ws://localhost:3003/mcp",
        "mode": "simulated",
        "capabilities": ["resources", "file-operations"],
        "tools": [
            {"name": "read-file", "description": "Read file contents"},
            {"name": "write-file", "description": "Write file contents"},
            {"name": "list-files", "description": "List directory contents"},
        ],
    },
}


def endpoints_from_config(config: dict[str, dict[str, Any]]) -> list[Endpoint]:
    """Build endpoints from an ``id -> fields`` mapping, preserving order.

    Raises:
        EndpointConfigError: If any entry is malformed
    """
    if not isinstance(config, dict):
        raise EndpointConfigError(message="endpoints must be a mapping of id to settings")
    return [Endpoint.from_dict(endpoint_id, data) for endpoint_id, data in config.items()]


class EndpointRegistry:
    """Thread-safe table of endpoints in registration order."""

    def __init__(self, endpoints: list[Endpoint] | None = None):
        self._lock = threading.Lock()
        self._endpoints: dict[str, Endpoint] = {}
        for endpoint in endpoints or []:
            self.register(endpoint)

    def register(self, endpoint: Endpoint) -> Endpoint:
        """Add an endpoint.

        Raises:
            DuplicateEndpointError: If the id is already registered
        """
        with self._lock:
            if endpoint.id in self._endpoints:
                raise DuplicateEndpointError(endpoint_id=endpoint.id)
            self._endpoints[endpoint.id] = endpoint
        return endpoint

    def get(self, endpoint_id: str) -> Endpoint:
        """Look up an endpoint.

        Raises:
            UnknownEndpointError: If the id is not registered
        """
        with self._lock:
            endpoint = self._endpoints.get(endpoint_id)
        if endpoint is None:
            raise UnknownEndpointError(endpoint_id=endpoint_id)
        return endpoint

    def list(self) -> list[Endpoint]:
        """All endpoints in registration order."""
        with self._lock:
            return list(self._endpoints.values())

    def __contains__(self, endpoint_id: object) -> bool:
        with self._lock:
            return endpoint_id in self._endpoints

    def __len__(self) -> int:
        with self._lock:
            return len(self._endpoints)
