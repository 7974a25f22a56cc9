"""
Relay WebSocket Endpoint.

One instance per connection. Owns that connection's receive loop and
dispatches its lifecycle events to the BroadcastRelay.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket

from shared.config.logging import get_logger
from shared.infrastructure.correlation import connection_id_var
from ws_relay.components.connection.connection import Connection
from ws_relay.components.core.constants import RelayConstants, WSCloseCode
from ws_relay.components.core.exceptions import TransportError
from ws_relay.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)

if TYPE_CHECKING:
    from ws_relay.core.relay import BroadcastRelay

logger = get_logger(__name__)


class RelayEndpoint(
    MessageValidationMixin,
    ConnectionLifecycleMixin,
):
    """
    Per-connection handler for the relay route.

    Lifecycle:
    1. Accept the WebSocket; close it with 1013 while the relay shuts down
    2. Register it (on_connect)
    3. Receive loop: every text or binary frame goes to on_message
    4. on_close, whatever ended the loop

    Usage:
        endpoint = RelayEndpoint(websocket, relay)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        relay: "BroadcastRelay",
        endpoint_name: str = RelayConstants.WS_PATH,
        idle_timeout: float = 0.0,
        max_message_size: int = 1024 * 1024,
    ):
        """
        Initialize the endpoint handler.

        Args:
            websocket: The WebSocket connection.
            relay: BroadcastRelay instance.
            endpoint_name: Route name for logging.
            idle_timeout: Seconds without a frame before closing (0 disables).
            max_message_size: Largest accepted payload in bytes.
        """
        self.websocket = websocket
        self.relay = relay
        self.endpoint_name = endpoint_name
        self.idle_timeout = idle_timeout
        self.max_message_size = max_message_size

        self.connection: Connection | None = None

    async def run(self) -> None:
        """
        Main entry point - run the WebSocket endpoint.

        on_close runs exactly once for every accepted connection, whether the
        peer left, the transport failed, the connection idled out or the
        task was cancelled.
        """
        try:
            await self.websocket.accept()
        except Exception as e:
            self.log_connect_rejected(f"accept failed: {e}")
            return

        # Closing before accept would reject the handshake with HTTP 403,
        # so accept first and send 1013 as a close frame
        if self.relay.is_shutting_down:
            self.log_connect_rejected("shutting_down")
            await self.websocket.close(
                code=WSCloseCode.SERVER_OVERLOADED,
                reason="Server shutting down",
            )
            return

        self.connection = Connection.from_websocket(self.websocket)
        token = connection_id_var.set(self.connection.id)
        reason = "client_disconnect"
        try:
            if not await self.relay.on_connect(self.connection):
                reason = "duplicate_identity"
                await self.connection.close(code=WSCloseCode.SERVER_ERROR)
                return
            reason = await self._message_loop()
        except TransportError as e:
            reason = "transport_error"
            logger.warning("Transport error", remote=self.connection.remote, error=e.detail)
        finally:
            await self.relay.on_close(self.connection)
            self.log_disconnect(reason)
            connection_id_var.reset(token)

    async def _message_loop(self) -> str:
        """
        Main message processing loop.

        Returns:
            Why the loop ended.
        """
        while True:
            message = await self._receive_with_timeout()
            if message is None:
                logger.info(
                    "Connection timed out (no messages)",
                    remote=self.connection.remote,
                    timeout=self.idle_timeout,
                )
                await self.connection.close(
                    code=WSCloseCode.NORMAL,
                    reason="Connection timeout",
                )
                return "idle_timeout"

            if message["type"] == "websocket.disconnect":
                return "client_disconnect"

            payload = message.get("text")
            if payload is None:
                payload = message.get("bytes")
            if payload is None:
                continue

            if not await self.validate_message_size(payload):
                return "message_too_big"

            # Evicted or shutting down: drain until the peer acknowledges the close
            if not self.connection.is_open:
                continue

            await self.relay.on_message(self.connection, payload)

    async def _receive_with_timeout(self) -> dict[str, Any] | None:
        """
        Receive the next ASGI message.

        Returns:
            The message, or None if the idle timeout elapsed.

        Raises:
            TransportError: The socket failed while receiving.
        """
        try:
            if self.idle_timeout > 0:
                return await asyncio.wait_for(
                    self.websocket.receive(),
                    timeout=self.idle_timeout,
                )
            return await self.websocket.receive()
        except asyncio.TimeoutError:
            return None
        except Exception as e:
            raise TransportError(self.connection.id, str(e) or e.__class__.__name__) from e
