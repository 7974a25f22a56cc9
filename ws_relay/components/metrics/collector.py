"""
Metrics Collector for the WebSocket Relay.

Process-wide counters and gauges for observability.
Thread-safe operations so a scrape can read from any thread.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any


@dataclass
class ConnectionMetrics:
    """Metrics for connection management."""
    active: int = 0  # Gauge, mirrors the registry size
    opened: int = 0


@dataclass
class MessageMetrics:
    """Metrics for message relay."""
    received: int = 0
    sent: int = 0
    send_failures: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector for the relay.

    Counters only ever increase; the active-connections gauge is set to the
    registry size after every add and remove. Nothing is ever reset.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_messages_received()
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connection = ConnectionMetrics()
        self._message = MessageMetrics()
        self._started_at = time.time()

    @property
    def started_at(self) -> float:
        """Unix time at which the collector was created."""
        return self._started_at

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def set_active_connections(self, count: int) -> None:
        """Set the active-connection gauge."""
        with self._lock:
            self._connection.active = max(0, count)

    def increment_connections_opened(self) -> None:
        """Increment count of accepted connections."""
        with self._lock:
            self._connection.opened += 1

    # ==========================================================================
    # Message Metrics
    # ==========================================================================

    def increment_messages_received(self) -> None:
        """Increment count of inbound messages."""
        with self._lock:
            self._message.received += 1

    def increment_messages_sent(self, count: int = 1) -> None:
        """Add successful fan-out writes."""
        with self._lock:
            self._message.sent += count

    def increment_send_failures(self, count: int = 1) -> None:
        """Add failed fan-out writes."""
        with self._lock:
            self._message.send_failures += count

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Returns a copy to prevent modification of internal state.
        """
        with self._lock:
            return {
                "active_connections": self._connection.active,
                "connections_opened": self._connection.opened,
                "messages_received": self._message.received,
                "messages_sent": self._message.sent,
                "send_failures": self._message.send_failures,
                "started_at": self._started_at,
                "uptime_seconds": round(time.time() - self._started_at, 3),
            }
