"""
Relay error taxonomy.

All errors are contained at the connection boundary: none of them is fatal
to the process or affects connections other than the one named.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors tied to a single connection."""

    def __init__(self, connection_id: str, detail: str = "") -> None:
        self.connection_id = connection_id
        self.detail = detail
        message = f"{self.__class__.__name__} for connection {connection_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DuplicateIdentityError(RelayError):
    """Attempted to register a connection whose identity is already registered."""


class StaleConnectionError(RelayError):
    """Attempted to send to a connection that is no longer open."""


class SendFailure(RelayError):
    """A single fan-out write failed (peer gone, transport error or timeout)."""


class TransportError(RelayError):
    """Handshake or socket failure terminating one connection."""


__all__ = [
    "RelayError",
    "DuplicateIdentityError",
    "StaleConnectionError",
    "SendFailure",
    "TransportError",
]
