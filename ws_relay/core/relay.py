"""
Broadcast Relay.

Translates per-connection events into registry operations and fan-out.

Every inbound message is written to every open connection, the sender
included: clients receive their own messages back.
"""

from __future__ import annotations

import asyncio
from typing import Any, TYPE_CHECKING

from shared.config.logging import get_logger
from ws_relay.components.connection.registry import ConnectionRegistry
from ws_relay.components.core.constants import WSCloseCode
from ws_relay.components.core.context import sanitize_log_data
from ws_relay.components.core.exceptions import (
    DuplicateIdentityError,
    SendFailure,
    StaleConnectionError,
)
from ws_relay.components.metrics.collector import MetricsCollector

if TYPE_CHECKING:
    from ws_relay.components.connection.connection import Connection

logger = get_logger(__name__)


class BroadcastRelay:
    """
    Drives the registry and the metrics from connection events.

    Responsibilities:
    - on_connect: register and update the active-connection gauge
    - on_message: count, snapshot, fan out to every open member
    - on_close: unregister exactly once and update the gauge
    - shutdown: close every registered connection

    A failed write to one recipient never aborts the fan-out to the others;
    the failing peer is evicted instead.
    """

    def __init__(
        self,
        registry: ConnectionRegistry | None = None,
        metrics: MetricsCollector | None = None,
        batch_size: int = 50,
        send_timeout: float | None = 5.0,
    ) -> None:
        """
        Initialize the relay.

        Args:
            registry: Live connection set (a fresh one by default)
            metrics: Counters and gauge (a fresh collector by default)
            batch_size: Recipients written to in parallel per batch
            send_timeout: Seconds before a single write counts as failed
        """
        self._registry = registry if registry is not None else ConnectionRegistry()
        self._metrics = metrics if metrics is not None else MetricsCollector()
        self._batch_size = max(1, batch_size)
        self._send_timeout = send_timeout
        self._shutting_down = False

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def is_shutting_down(self) -> bool:
        """Whether shutdown has been initiated."""
        return self._shutting_down

    # =========================================================================
    # Connection events
    # =========================================================================

    async def on_connect(self, conn: "Connection") -> bool:
        """
        Register a freshly accepted connection.

        Returns:
            True if the connection was registered, False if its identity was
            already present (the duplicate is ignored).
        """
        conn.mark_open()
        try:
            await self._registry.add(conn)
        except DuplicateIdentityError as e:
            logger.warning("Ignoring duplicate registration", error=str(e))
            return False

        self._metrics.increment_connections_opened()
        self._metrics.set_active_connections(self._registry.size())
        logger.info(
            "Client connected",
            remote=conn.remote,
            active_connections=self._registry.size(),
        )
        return True

    async def on_message(self, conn: "Connection", payload: str | bytes) -> int:
        """
        Relay one inbound message to every open connection.

        Args:
            conn: The sending connection (also a recipient).
            payload: Opaque text or binary payload.

        Returns:
            Number of connections the payload was delivered to.
        """
        self._metrics.increment_messages_received()
        logger.info(
            "Received message",
            sender=conn.id,
            message=sanitize_log_data(payload),
        )

        recipients = [peer for peer in await self._registry.snapshot() if peer.is_open]
        return await self._broadcast_to_connections(recipients, payload)

    async def on_close(self, conn: "Connection") -> bool:
        """
        Unregister a connection. Idempotent.

        Returns:
            True on the first call for this connection, False afterwards.
        """
        if not conn.mark_closed():
            return False

        removed = await self._registry.remove(conn)
        self._metrics.set_active_connections(self._registry.size())
        if removed:
            logger.info(
                "Client disconnected",
                remote=conn.remote,
                active_connections=self._registry.size(),
            )
        return True

    # =========================================================================
    # Fan-out
    # =========================================================================

    async def _send_to_connection(self, conn: "Connection", payload: str | bytes) -> bool:
        """
        Send to a single connection, returning success status.

        Failures are contained here: the peer is evicted and False returned.
        """
        try:
            await conn.send(payload, timeout=self._send_timeout)
        except StaleConnectionError:
            return False
        except SendFailure as e:
            logger.debug("Send failed", recipient=conn.id, error=e.detail)
            self._metrics.increment_send_failures()
            await self._evict(conn)
            return False

        self._metrics.increment_messages_sent()
        return True

    async def _broadcast_to_connections(
        self,
        connections: list["Connection"],
        payload: str | bytes,
    ) -> int:
        """
        Send to multiple connections in parallel batches.

        All batches complete before this returns, so a sender's next message
        is never fanned out ahead of this one.

        Returns:
            Number of connections that received the message.
        """
        if not connections:
            return 0

        sent = 0
        failed = 0

        for i in range(0, len(connections), self._batch_size):
            batch = connections[i : i + self._batch_size]
            results = await asyncio.gather(
                *[self._send_to_connection(conn, payload) for conn in batch],
                return_exceptions=True,
            )

            for conn, result in zip(batch, results):
                if result is True:
                    sent += 1
                    continue
                failed += 1
                if isinstance(result, Exception):
                    logger.warning(
                        "Unexpected error during fan-out",
                        recipient=conn.id,
                        error=str(result),
                    )

        if failed > 0:
            logger.debug(
                "Broadcast completed with failures",
                sent=sent,
                failed=failed,
                total=len(connections),
            )

        return sent

    async def _evict(self, conn: "Connection") -> None:
        """Unregister a peer whose transport failed and close it, best effort."""
        await self.on_close(conn)
        await conn.close(code=WSCloseCode.GOING_AWAY, reason="Send failed")

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Connection and message statistics for health checks."""
        return {
            "active_connections": self._registry.size(),
            "shutting_down": self._shutting_down,
            "metrics": self._metrics.get_snapshot(),
        }

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self, timeout: float = 5.0) -> int:
        """
        Graceful shutdown - close all connections.

        Returns:
            Number of connections a close frame was sent to.
        """
        self._shutting_down = True
        connections = await self._registry.snapshot()
        logger.info("Relay shutting down", connections=len(connections))

        for conn in connections:
            conn.mark_closing()

        closed = 0
        if connections:
            try:
                results = await asyncio.wait_for(
                    asyncio.gather(
                        *[
                            conn.close(code=WSCloseCode.GOING_AWAY, reason="Server shutdown")
                            for conn in connections
                        ],
                        return_exceptions=True,
                    ),
                    timeout=timeout,
                )
                closed = sum(1 for r in results if r is True)
            except asyncio.TimeoutError:
                logger.warning(
                    "Timed out closing connections",
                    timeout=timeout,
                    total=len(connections),
                )

        for conn in connections:
            await self.on_close(conn)

        logger.info("Relay shutdown complete", closed=closed)
        return closed
