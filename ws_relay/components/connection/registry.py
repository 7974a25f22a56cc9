"""
Connection Registry.

The authoritative set of connections that are eligible for broadcasts.

Concurrency:
    Every mutation and snapshot runs under one asyncio.Lock. The lock is
    only held for in-memory bookkeeping, never across network I/O, so a slow
    peer cannot stall registration of unrelated connections.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from ws_relay.components.core.exceptions import DuplicateIdentityError

if TYPE_CHECKING:
    from ws_relay.components.connection.connection import Connection


class ConnectionRegistry:
    """
    Set of live connections, unique by identity.

    Usage:
        registry = ConnectionRegistry()
        await registry.add(conn)
        for peer in await registry.snapshot():
            ...
        await registry.remove(conn)
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._connections: dict[str, "Connection"] = {}

    async def add(self, conn: "Connection") -> int:
        """
        Register a connection.

        Returns:
            Registry size after the insert.

        Raises:
            DuplicateIdentityError: A connection with the same id is registered.
        """
        async with self._lock:
            if conn.id in self._connections:
                raise DuplicateIdentityError(conn.id, "already registered")
            self._connections[conn.id] = conn
            return len(self._connections)

    async def remove(self, conn: "Connection") -> bool:
        """
        Unregister a connection.

        Removing an absent connection is a no-op, since a peer close can race
        with eviction after a failed send. Only the registered object itself
        is removed, never another connection that shares its id.

        Returns:
            True if the connection was registered.
        """
        async with self._lock:
            if self._connections.get(conn.id) is not conn:
                return False
            del self._connections[conn.id]
            return True

    async def snapshot(self) -> tuple["Connection", ...]:
        """
        Point-in-time copy of the membership.

        Later adds and removes are not reflected in the returned tuple.
        """
        async with self._lock:
            return tuple(self._connections.values())

    def size(self) -> int:
        """Current number of registered connections."""
        return len(self._connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn: object) -> bool:
        conn_id = getattr(conn, "id", None)
        return conn_id is not None and conn_id in self._connections
