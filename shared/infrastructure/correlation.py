"""
Connection correlation for logging.

Every WebSocket connection runs in its own task. The endpoint stores the
connection id in a ContextVar for the lifetime of that task, so log records
emitted while handling the connection can be tied back to it.
"""

from contextvars import ContextVar

# Context variable for the connection id (task-local)
connection_id_var: ContextVar[str] = ContextVar("connection_id", default="")


def get_connection_id() -> str:
    """Get the id of the connection handled by the current task."""
    return connection_id_var.get()


class ConnectionIdFilter:
    """
    Logging filter that adds connection_id to log records.

    Usage:
        import logging
        handler = logging.StreamHandler()
        handler.addFilter(ConnectionIdFilter())
    """

    def filter(self, record) -> bool:
        record.connection_id = connection_id_var.get() or "-"
        return True
