"""
Prometheus Metrics Export for the WebSocket Relay.

Formats collector snapshots in Prometheus text exposition format 0.0.4.
No external dependencies required.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from ws_relay.components.metrics.collector import MetricsCollector


# =============================================================================
# Metric Types
# =============================================================================


class MetricType(str, Enum):
    """Prometheus metric types."""

    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricDefinition:
    """Definition of a metric for Prometheus output."""

    name: str
    help_text: str
    metric_type: MetricType
    snapshot_key: str


# =============================================================================
# Metric Definitions
# =============================================================================

METRIC_DEFINITIONS: list[MetricDefinition] = [
    # Connection gauge
    MetricDefinition(
        name="websocket_active_connections",
        help_text="Number of active WebSocket connections",
        metric_type=MetricType.GAUGE,
        snapshot_key="active_connections",
    ),

    # Message counters
    MetricDefinition(
        name="websocket_messages_received_total",
        help_text="Total number of messages received",
        metric_type=MetricType.COUNTER,
        snapshot_key="messages_received",
    ),
    MetricDefinition(
        name="websocket_messages_sent_total",
        help_text="Total number of messages sent",
        metric_type=MetricType.COUNTER,
        snapshot_key="messages_sent",
    ),
    MetricDefinition(
        name="websocket_send_failures_total",
        help_text="Total number of failed message deliveries",
        metric_type=MetricType.COUNTER,
        snapshot_key="send_failures",
    ),
    MetricDefinition(
        name="websocket_connections_opened_total",
        help_text="Total number of accepted WebSocket connections",
        metric_type=MetricType.COUNTER,
        snapshot_key="connections_opened",
    ),

    # Process metrics
    MetricDefinition(
        name="process_start_time_seconds",
        help_text="Start time of the process since unix epoch in seconds",
        metric_type=MetricType.GAUGE,
        snapshot_key="started_at",
    ),
    MetricDefinition(
        name="process_uptime_seconds",
        help_text="Seconds since the process started",
        metric_type=MetricType.GAUGE,
        snapshot_key="uptime_seconds",
    ),
]


# =============================================================================
# Prometheus Formatter
# =============================================================================


class PrometheusFormatter:
    """
    Formats metrics in Prometheus text exposition format.

    Reference: https://prometheus.io/docs/instrumenting/exposition_formats/

    Usage:
        formatter = PrometheusFormatter()
        output = formatter.format_all_metrics(collector.get_snapshot())
    """

    def __init__(self, definitions: list[MetricDefinition] | None = None):
        self._definitions = definitions if definitions is not None else METRIC_DEFINITIONS

    def format_metric(
        self,
        name: str,
        value: float | int,
        help_text: str,
        metric_type: MetricType,
    ) -> str:
        """
        Format a single metric in Prometheus format.

        Args:
            name: Metric name.
            value: Metric value.
            help_text: Help text description.
            metric_type: Prometheus metric type.

        Returns:
            Prometheus-formatted metric string.
        """
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} {metric_type.value}",
            f"{name} {value}",
        ]
        return "\n".join(lines)

    def format_all_metrics(self, snapshot: dict[str, Any]) -> str:
        """
        Format every defined metric from a collector snapshot.

        Missing snapshot keys are reported as 0.

        Returns:
            Complete Prometheus exposition format string.
        """
        lines = [
            self.format_metric(
                definition.name,
                snapshot.get(definition.snapshot_key, 0),
                definition.help_text,
                definition.metric_type,
            )
            for definition in self._definitions
        ]
        return "\n".join(lines) + "\n"


def generate_prometheus_metrics(
    metrics: "MetricsCollector",
    formatter: PrometheusFormatter | None = None,
) -> str:
    """
    Generate Prometheus metrics from a collector.

    Args:
        metrics: MetricsCollector instance.
        formatter: Optional formatter (defaults to all relay metrics).

    Returns:
        Prometheus exposition format string.
    """
    formatter = formatter or PrometheusFormatter()
    return formatter.format_all_metrics(metrics.get_snapshot())
