"""
Connection components.

Connection wrapper, liveness state and the registry of live peers.
"""

from ws_relay.components.connection.connection import (
    Connection,
    ConnectionState,
    is_ws_connected,
)
from ws_relay.components.connection.registry import ConnectionRegistry

__all__ = [
    "Connection",
    "ConnectionState",
    "ConnectionRegistry",
    "is_ws_connected",
]
