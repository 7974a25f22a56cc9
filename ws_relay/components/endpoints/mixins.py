"""
WebSocket Endpoint Mixins.

Each mixin handles a single concern for the relay endpoint.

Mixins:
    MessageValidationMixin: Message size checks
    ConnectionLifecycleMixin: Lifecycle logging
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from fastapi import WebSocket

from shared.config.logging import get_logger
from ws_relay.components.core.constants import WSCloseCode
from ws_relay.components.core.context import payload_size

if TYPE_CHECKING:
    from ws_relay.components.connection.connection import Connection

logger = get_logger(__name__)


# =============================================================================
# Protocols for mixin dependencies
# =============================================================================


class HasConnection(Protocol):
    """Protocol for classes with a websocket and its relay connection."""

    websocket: WebSocket
    endpoint_name: str
    connection: "Connection | None"
    max_message_size: int


# =============================================================================
# Mixins
# =============================================================================


class MessageValidationMixin:
    """
    Mixin for inbound message validation.

    Requires:
        - self.websocket: WebSocket
        - self.connection: Connection | None
        - self.max_message_size: int
    """

    async def validate_message_size(self: HasConnection, data: str | bytes) -> bool:
        """
        Validate message size against the configured limit.

        Args:
            data: Message payload to validate.

        Returns:
            True if valid, False if too large (connection closed).
        """
        size = payload_size(data)
        if size > self.max_message_size:
            logger.warning(
                "Message size exceeded limit",
                endpoint=self.endpoint_name,
                size=size,
                max_size=self.max_message_size,
            )
            if self.connection is not None:
                await self.connection.close(
                    code=WSCloseCode.MESSAGE_TOO_BIG,
                    reason="Message too large",
                )
            else:
                await self.websocket.close(
                    code=WSCloseCode.MESSAGE_TOO_BIG,
                    reason="Message too large",
                )
            return False
        return True


class ConnectionLifecycleMixin:
    """
    Mixin for connection lifecycle logging.

    Requires:
        - self.endpoint_name: str
        - self.connection: Connection | None
    """

    def log_disconnect(self: HasConnection, reason: str = "client_disconnect") -> None:
        """Log why the receive loop ended."""
        logger.debug(
            "Receive loop ended",
            endpoint=self.endpoint_name,
            remote=self.connection.remote if self.connection else "unknown",
            reason=reason,
        )

    def log_connect_rejected(self: HasConnection, reason: str) -> None:
        """Log connection rejection event."""
        client = self.websocket.client
        logger.warning(
            "Connection rejected",
            endpoint=self.endpoint_name,
            remote=f"{client.host}:{client.port}" if client else "unknown",
            reason=reason,
        )


__all__ = [
    "MessageValidationMixin",
    "ConnectionLifecycleMixin",
    "HasConnection",
]
