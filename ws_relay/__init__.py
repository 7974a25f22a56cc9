"""
WebSocket broadcast relay.

Accepts WebSocket connections, relays every message to all connected
clients and exposes connection and message counters for Prometheus.
"""

__version__ = "1.0.0"
