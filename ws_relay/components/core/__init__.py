"""
Core building blocks: constants, exceptions and logging helpers.
"""

from ws_relay.components.core.constants import (
    PROMETHEUS_CONTENT_TYPE,
    RelayConstants,
    WSCloseCode,
)
from ws_relay.components.core.context import payload_size, sanitize_log_data
from ws_relay.components.core.exceptions import (
    DuplicateIdentityError,
    RelayError,
    SendFailure,
    StaleConnectionError,
    TransportError,
)

__all__ = [
    "PROMETHEUS_CONTENT_TYPE",
    "RelayConstants",
    "WSCloseCode",
    "payload_size",
    "sanitize_log_data",
    "DuplicateIdentityError",
    "RelayError",
    "SendFailure",
    "StaleConnectionError",
    "TransportError",
]
