"""
WebSocket Relay Core Module.

- relay.py: connection events, fan-out and shutdown
"""

from ws_relay.core.relay import BroadcastRelay

__all__ = [
    "BroadcastRelay",
]
