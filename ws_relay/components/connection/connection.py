"""
Relay Connection.

Wraps one accepted WebSocket with an identity, a liveness state and a
serialized send capability.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from starlette.websockets import WebSocketState

from shared.config.logging import get_logger
from ws_relay.components.core.constants import WSCloseCode
from ws_relay.components.core.exceptions import SendFailure, StaleConnectionError

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette WebSockets have limited state visibility:
    - CONNECTING: Initial state (not observable here)
    - CONNECTED: Active connection
    - DISCONNECTED: Closed connection

    Transitional states are not exposed, so connections may appear
    connected briefly after disconnect initiated.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class ConnectionState(str, Enum):
    """Liveness of a relay connection. CLOSED is terminal."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


def _new_connection_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class Connection:
    """
    One live WebSocket peer.

    Equality and hashing use the opaque id only, so a Connection can be
    stored in sets and dicts regardless of its mutable state.
    """

    websocket: "WebSocket"
    id: str = field(default_factory=_new_connection_id)
    state: ConnectionState = ConnectionState.CONNECTING
    remote: str = "unknown"
    _send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @classmethod
    def from_websocket(cls, websocket: "WebSocket") -> "Connection":
        """Build a connection for an accepted WebSocket."""
        client = getattr(websocket, "client", None)
        remote = f"{client.host}:{client.port}" if client else "unknown"
        return cls(websocket=websocket, remote=remote)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Connection):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_open(self) -> bool:
        """Whether the connection may receive broadcasts."""
        return self.state is ConnectionState.OPEN and is_ws_connected(self.websocket)

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    def mark_open(self) -> None:
        """CONNECTING -> OPEN. Closed connections are never reopened."""
        if self.state is ConnectionState.CONNECTING:
            self.state = ConnectionState.OPEN

    def mark_closing(self) -> None:
        if self.state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            self.state = ConnectionState.CLOSING

    def mark_closed(self) -> bool:
        """
        Move to CLOSED.

        Returns:
            True on the first transition, False if already closed.
        """
        if self.state is ConnectionState.CLOSED:
            return False
        self.state = ConnectionState.CLOSED
        return True

    async def send(self, payload: str | bytes, timeout: float | None = None) -> None:
        """
        Write one payload to the peer, preserving its frame type.

        Writes are serialized per connection so frames from concurrent
        fan-outs never interleave. The timeout covers waiting for the
        connection's send lock as well as the write itself.

        The first failed write moves the connection to CLOSING, so writes
        queued behind it are reported as stale instead of failing again.

        Raises:
            StaleConnectionError: The connection is no longer open.
            SendFailure: The write failed or exceeded the timeout.
        """
        if not self.is_open:
            raise StaleConnectionError(self.id, f"state={self.state.value}")

        try:
            if timeout:
                await asyncio.wait_for(self._locked_write(payload), timeout=timeout)
            else:
                await self._locked_write(payload)
        except StaleConnectionError:
            raise
        except asyncio.TimeoutError as e:
            raise self._send_failed(f"send timed out after {timeout}s") from e
        except Exception as e:
            raise self._send_failed(str(e) or e.__class__.__name__) from e

    async def _locked_write(self, payload: str | bytes) -> None:
        async with self._send_lock:
            if not self.is_open:
                raise StaleConnectionError(self.id, f"state={self.state.value}")
            if isinstance(payload, (bytes, bytearray)):
                await self.websocket.send_bytes(bytes(payload))
            else:
                await self.websocket.send_text(payload)

    def _send_failed(self, detail: str) -> Exception:
        if self.state is not ConnectionState.OPEN:
            return StaleConnectionError(self.id, detail)
        self.mark_closing()
        return SendFailure(self.id, detail)

    async def close(
        self,
        code: int = WSCloseCode.NORMAL,
        reason: str | None = None,
    ) -> bool:
        """
        Close the underlying WebSocket, best effort.

        Returns:
            True if a close frame was sent, False if the socket was already
            closed or the close failed.
        """
        self.mark_closing()
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return False
        try:
            await self.websocket.close(code=code, reason=reason)
            return True
        except Exception as e:
            logger.debug(
                "Failed to close connection",
                connection_id=self.id,
                error=str(e),
            )
            return False
