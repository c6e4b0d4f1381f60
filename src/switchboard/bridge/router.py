"""MessageRouter - sends calls to endpoints and publishes inbound frames."""

import logging
from typing import Any

from .connection import DEFAULT_CALL_TIMEOUT, Connection
from .errors import TransportError
from .events import BridgeEvent, EventBus, EventType
from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)


class MessageRouter:
    """Routes calls to the right connection and surfaces inbound traffic."""

    def __init__(
        self,
        supervisor: ConnectionSupervisor,
        events: EventBus,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ):
        """Initialize MessageRouter.

        Args:
            supervisor: Owner of the endpoint connections
            events: Bus that receives ``messageReceived`` events
            call_timeout: Default per-call timeout (seconds)
        """
        self.supervisor = supervisor
        self.events = events
        self.call_timeout = call_timeout
        self._in_flight_count = 0
        supervisor.set_frame_handler(self.handle_inbound)

    @property
    def in_flight_count(self) -> int:
        """Number of calls awaiting a response."""
        return self._in_flight_count

    async def send(
        self,
        endpoint_id: str,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a call to one endpoint and wait for its result.

        Args:
            endpoint_id: Target endpoint
            method: JSON-RPC method name
            params: Method parameters
            timeout: Override the default call timeout (seconds)

        Returns:
            The ``result`` payload of the response

        Raises:
            UnknownEndpointError: If the endpoint is not registered
            NotConnectedError: If the endpoint is not connected
            TimeoutError: If no response arrives in time
            TransportError: If the transport fails; the endpoint is marked lost
            RemoteError: If the endpoint answers with an error
        """
        connection = self.supervisor.get(endpoint_id)
        generation = connection.generation

        self._in_flight_count += 1
        try:
            logger.debug(f"-> {endpoint_id}: {method}")
            result = await connection.request(
                method, params or {}, timeout if timeout is not None else self.call_timeout
            )
            logger.debug(f"<- {endpoint_id}: {method} ok")
            return result
        except TransportError as e:
            await self.supervisor.mark_lost(endpoint_id, str(e), generation)
            raise
        finally:
            self._in_flight_count -= 1

    def handle_inbound(self, connection: Connection, message: dict[str, Any]) -> None:
        """Publish an uncorrelated inbound frame as ``messageReceived``."""
        logger.debug(f"{connection.id}: inbound {message.get('method', 'frame')}")
        self.events.publish(
            BridgeEvent(
                type=EventType.MESSAGE_RECEIVED,
                endpoint_id=connection.id,
                data={"message": message},
            )
        )
