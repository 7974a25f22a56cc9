"""
Metrics and observability components.

Internal metrics collection and Prometheus exposition.
"""

from ws_relay.components.metrics.collector import (
    ConnectionMetrics,
    MessageMetrics,
    MetricsCollector,
)
from ws_relay.components.metrics.prometheus import (
    METRIC_DEFINITIONS,
    MetricDefinition,
    MetricType,
    PrometheusFormatter,
    generate_prometheus_metrics,
)

__all__ = [
    # Metrics collector
    "MetricsCollector",
    "ConnectionMetrics",
    "MessageMetrics",
    # Prometheus
    "METRIC_DEFINITIONS",
    "MetricDefinition",
    "MetricType",
    "PrometheusFormatter",
    "generate_prometheus_metrics",
]
