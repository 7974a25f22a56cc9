"""
WebSocket Relay Constants.

Centralized constants for close codes, defaults and the metrics content type.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "RelayConstants",
    "PROMETHEUS_CONTENT_TYPE",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the relay.

    Standard codes (1000-1999) from RFC 6455.
    """

    NORMAL = 1000  # Normal closure (idle timeout included)
    GOING_AWAY = 1001  # Server shutting down or peer evicted after a failed send
    MESSAGE_TOO_BIG = 1009  # Frame larger than ws_max_message_size
    SERVER_ERROR = 1011  # Unexpected server error
    SERVER_OVERLOADED = 1013  # Refused while shutting down, try again later


class RelayConstants:
    """
    Relay operational constants.

    Runtime values come from shared.config.settings; these are the defaults
    used by the load-test client and by code paths without settings access.
    """

    # WebSocket route served by the relay
    WS_PATH: Final[str] = "/"

    # Load-test defaults
    LOADTEST_URL: Final[str] = "ws://127.0.0.1:8080/"
    LOADTEST_MESSAGE: Final[str] = "Hello server"
    LOADTEST_TIMEOUT_MS: Final[int] = 3000
    LOADTEST_OPEN_TIMEOUT: Final[float] = 10.0

    # HTTP status returned by a successful WebSocket upgrade
    SWITCHING_PROTOCOLS: Final[int] = 101

    # Maximum characters of a payload written to logs
    LOG_PAYLOAD_MAX_LENGTH: Final[int] = 100


# Prometheus text exposition format 0.0.4
PROMETHEUS_CONTENT_TYPE: Final[str] = "text/plain; version=0.0.4; charset=utf-8"
