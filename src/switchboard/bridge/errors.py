"""Error taxonomy for the bridge.

Every failure the bridge surfaces to callers is a BridgeError carrying a
JSON-RPC error code, so collaborators can forward it unchanged.
"""

from dataclasses import dataclass, field
from typing import Any

# JSON-RPC error codes
JSONRPC_PARSE_ERROR = -32700
JSONRPC_INVALID_REQUEST = -32600
JSONRPC_METHOD_NOT_FOUND = -32601
JSONRPC_INVALID_PARAMS = -32602
JSONRPC_INTERNAL_ERROR = -32603
JSONRPC_SERVER_ERROR = -32000  # -32000 to -32099 reserved for implementation-defined server errors

# Custom error codes for bridge
BRIDGE_CONNECT_ERROR = -32002
BRIDGE_TIMEOUT_ERROR = -32003
BRIDGE_UNKNOWN_ENDPOINT = -32004
BRIDGE_DUPLICATE_ENDPOINT = -32005
BRIDGE_NOT_CONNECTED = -32006
BRIDGE_TRANSPORT_ERROR = -32007


@dataclass
class BridgeError(Exception):
    """Base error class for bridge errors."""

    code: int
    message: str
    retryable: bool = False
    data: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_jsonrpc(self) -> dict[str, Any]:
        """Convert to JSON-RPC error object."""
        error = {"code": self.code, "message": self.message}
        if self.data:
            error["data"] = self.data
        return error


@dataclass
class UnknownEndpointError(BridgeError):
    """Caller referenced an endpoint id that is not registered."""

    code: int = BRIDGE_UNKNOWN_ENDPOINT
    message: str = ""
    retryable: bool = False
    endpoint_id: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Unknown endpoint: {self.endpoint_id}"


@dataclass
class DuplicateEndpointError(BridgeError):
    """An endpoint with the same id is already registered."""

    code: int = BRIDGE_DUPLICATE_ENDPOINT
    message: str = ""
    retryable: bool = False
    endpoint_id: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Endpoint already registered: {self.endpoint_id}"


@dataclass
class EndpointConfigError(BridgeError):
    """Endpoint configuration is malformed. Fatal to bridge startup."""

    code: int = JSONRPC_INVALID_PARAMS
    message: str = "Invalid endpoint configuration"
    retryable: bool = False


@dataclass
class NotConnectedError(BridgeError):
    """Call attempted against an endpoint that is not connected."""

    code: int = BRIDGE_NOT_CONNECTED
    message: str = ""
    retryable: bool = True
    endpoint_id: str = ""
    state: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Endpoint {self.endpoint_id} is not connected (state: {self.state})"


@dataclass
class ConnectError(BridgeError):
    """Connection handshake failed."""

    code: int = BRIDGE_CONNECT_ERROR
    message: str = ""
    retryable: bool = True
    endpoint_id: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Failed to connect to {self.endpoint_id}: {self.reason}"


@dataclass
class TimeoutError(BridgeError):
    """Live call exceeded its timeout."""

    code: int = BRIDGE_TIMEOUT_ERROR
    message: str = "Request timeout"
    retryable: bool = True


@dataclass
class TransportError(BridgeError):
    """Underlying connection dropped or failed mid-call."""

    code: int = BRIDGE_TRANSPORT_ERROR
    message: str = "Transport error"
    retryable: bool = True


@dataclass
class RemoteError(BridgeError):
    """Endpoint answered with a JSON-RPC error object."""

    code: int = JSONRPC_SERVER_ERROR
    message: str = "Remote error"
    retryable: bool = False


def map_jsonrpc_error(error: dict[str, Any], endpoint_id: str) -> RemoteError:
    """Map a JSON-RPC error object received from an endpoint to RemoteError.

    Args:
        error: JSON-RPC error object from the response
        endpoint_id: Endpoint that produced the error

    Returns:
        RemoteError carrying the remote code and message
    """
    data: dict[str, Any] = {"endpoint_id": endpoint_id}
    if error.get("data") is not None:
        data["remote_data"] = error["data"]
    return RemoteError(
        code=error.get("code", JSONRPC_SERVER_ERROR),
        message=error.get("message", "Remote error"),
        data=data,
    )


def map_connection_error(
    error_message: str, endpoint_id: str, url: str, is_timeout: bool = False
) -> BridgeError:
    """Map a transport failure during a call to a BridgeError.

    Args:
        error_message: Error message from exception
        endpoint_id: Endpoint the call was routed to
        url: URL that was being accessed
        is_timeout: Whether this was a timeout error

    Returns:
        TimeoutError or TransportError
    """
    if is_timeout:
        return TimeoutError(
            message=f"Request timeout calling {endpoint_id}",
            data={"endpoint_id": endpoint_id, "url": url, "original_error": error_message},
        )

    # Extract host:port from URL for clearer message
    from urllib.parse import urlparse

    parsed = urlparse(url)
    host_port = f"{parsed.hostname}:{parsed.port}" if parsed.port else parsed.hostname

    return TransportError(
        message=f"Lost connection to {endpoint_id} at {host_port}",
        data={"endpoint_id": endpoint_id, "url": url, "original_error": error_message},
    )


def map_http_error(status_code: int, message: str, endpoint_id: str) -> BridgeError:
    """Map an HTTP error status from a live endpoint to a BridgeError.

    Args:
        status_code: HTTP status code
        message: Error message from response
        endpoint_id: Endpoint the call was routed to

    Returns:
        Appropriate BridgeError subclass
    """
    data = {"endpoint_id": endpoint_id, "original_message": message, "http_status": status_code}
    if status_code in (408, 504):
        return TimeoutError(
            message=f"Request timeout: {message}" if message else "Request timeout",
            data=data,
        )
    elif status_code >= 500:
        return RemoteError(
            code=JSONRPC_SERVER_ERROR,
            message=f"Server error: {message}" if message else "Server error",
            data=data,
            retryable=status_code in (502, 503),  # Gateway errors may be retryable
        )
    elif status_code == 404:
        return RemoteError(
            code=JSONRPC_METHOD_NOT_FOUND,
            message=f"Not found: {message}" if message else "Not found",
            data=data,
        )
    else:
        return RemoteError(
            code=JSONRPC_SERVER_ERROR,
            message=f"HTTP error {status_code}: {message}",
            data=data,
        )
