"""
WebSocket endpoint handlers.
"""

from ws_relay.components.endpoints.base import RelayEndpoint
from ws_relay.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)

__all__ = [
    "RelayEndpoint",
    "ConnectionLifecycleMixin",
    "MessageValidationMixin",
]
