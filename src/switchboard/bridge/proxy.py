"""HttpConnection - live MCP endpoint over HTTP+SSE.

Handles HTTP transport for MCP protocol:
- POST <url> for JSON-RPC requests
- GET <url>/sse for server-sent events (notifications)
"""

import asyncio
import logging
from typing import Any

import httpx
from httpx_sse import SSEError, aconnect_sse

from .connection import Connection
from .errors import TransportError, map_connection_error, map_http_error

logger = logging.getLogger(__name__)

DEFAULT_SSE_RECONNECT_ATTEMPTS = 3
DEFAULT_SSE_RECONNECT_DELAY = 1.0

# SSE event types that carry no protocol frame
KEEPALIVE_EVENTS = ("heartbeat", "ping")


class HttpConnection(Connection):
    """Live connection to an ``http://`` or ``https://`` endpoint.

    Translates calls to HTTP POST and handles SSE notifications from
    GET <url>/sse. Losing the notification stream leaves the connection
    usable for calls (degraded mode).
    """

    def __init__(
        self,
        endpoint,
        *args: Any,
        headers: dict[str, str] | None = None,
        sse_reconnect_attempts: int = DEFAULT_SSE_RECONNECT_ATTEMPTS,
        sse_reconnect_delay: float = DEFAULT_SSE_RECONNECT_DELAY,
        **kwargs: Any,
    ):
        """Initialize HttpConnection.

        Args:
            endpoint: Endpoint with an http(s) URL
            headers: Extra headers sent with every request
            sse_reconnect_attempts: Max notification stream reconnects
            sse_reconnect_delay: Initial delay between reconnects (seconds)
        """
        super().__init__(endpoint, *args, **kwargs)
        self.url = endpoint.url.rstrip("/")
        self.headers = headers or {}
        self.sse_reconnect_attempts = sse_reconnect_attempts
        self.sse_reconnect_delay = sse_reconnect_delay
        self._client: httpx.AsyncClient | None = None
        self._sse_task: asyncio.Task | None = None
        self._is_degraded = False

    @property
    def has_transport(self) -> bool:
        return self._client is not None

    @property
    def is_degraded(self) -> bool:
        """Whether the notification stream is unavailable."""
        return self._is_degraded

    def _get_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", **self.headers}

    async def _open(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.connect_timeout),
            headers=self._get_headers(),
        )
        await self.handshake()
        self._is_degraded = False
        self._sse_task = asyncio.create_task(
            self._run_notifications(), name=f"sse-{self.id}"
        )

    async def _close(self) -> None:
        sse_task, self._sse_task = self._sse_task, None
        if sse_task:
            sse_task.cancel()
            try:
                await sse_task
            except asyncio.CancelledError:
                pass

        client, self._client = self._client, None
        if client:
            await client.aclose()

    async def _request(self, method: str, params: dict[str, Any], timeout: float) -> Any:
        client = self._client
        if client is None:
            raise TransportError(
                message=f"No open transport for {self.id}",
                data={"endpoint_id": self.id},
            )

        request = self.build_request(method, params)
        # httpx timeouts apply per read; the deadline covers the whole exchange
        try:
            response = await asyncio.wait_for(
                client.post(self.url, json=request, timeout=timeout), timeout=timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise map_connection_error(str(e), self.id, self.url, is_timeout=True) from e
        except httpx.TransportError as e:
            raise map_connection_error(str(e), self.id, self.url) from e

        if response.status_code >= 400:
            raise map_http_error(response.status_code, response.text, self.id)

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                message=f"Invalid JSON response from {self.id}",
                data={"endpoint_id": self.id, "body": response.text[:200]},
            ) from e

    async def _run_notifications(self) -> None:
        """Subscribe to SSE notifications with auto-reconnect."""
        url = f"{self.url}/sse"
        reconnect_attempts = 0

        while True:
            client = self._client
            if client is None:
                return

            try:
                async with aconnect_sse(
                    client, "GET", url, timeout=httpx.Timeout(self.connect_timeout, read=None)
                ) as event_source:
                    event_source.response.raise_for_status()
                    # Reset reconnect counter on successful connection
                    reconnect_attempts = 0
                    self._is_degraded = False
                    logger.info(f"{self.id}: SSE connected to {url}")

                    async for sse in event_source.aiter_sse():
                        if sse.event in KEEPALIVE_EVENTS or not sse.data:
                            continue
                        self.handle_raw_frame(sse.data)
                error_text = "stream ended"
            except httpx.HTTPStatusError as e:
                logger.info(
                    f"{self.id}: no notification stream (HTTP {e.response.status_code}), "
                    "continuing without notifications"
                )
                self._is_degraded = True
                return
            except (httpx.TransportError, SSEError) as e:
                error_text = str(e) or type(e).__name__

            reconnect_attempts += 1
            logger.warning(
                f"{self.id}: SSE connection dropped "
                f"(attempt {reconnect_attempts}/{self.sse_reconnect_attempts}): {error_text}"
            )
            if reconnect_attempts >= self.sse_reconnect_attempts:
                logger.warning(f"{self.id}: giving up on notifications, running degraded")
                self._is_degraded = True
                return

            # Exponential backoff
            delay = self.sse_reconnect_delay * (2 ** (reconnect_attempts - 1))
            logger.info(f"{self.id}: reconnecting SSE in {delay}s...")
            await asyncio.sleep(delay)
