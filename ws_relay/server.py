"""
uvicorn server for the relay.

uvicorn closes open WebSockets with 1012 before the application lifespan
shuts down. RelayServer shuts the relay down first, so connected clients
get 1001 "Server shutdown" and connections arriving meanwhile get 1013.
"""

from __future__ import annotations

import socket

import uvicorn
from fastapi import FastAPI

from shared.config.logging import relay_logger as logger
from shared.config.settings import Settings
from ws_relay.core.relay import BroadcastRelay


class RelayServer(uvicorn.Server):
    """
    uvicorn.Server that drains the relay before uvicorn's own shutdown.

    Usage:
        server = RelayServer.for_app(app, settings)
        server.run()
    """

    def __init__(
        self,
        config: uvicorn.Config,
        relay: BroadcastRelay,
        shutdown_timeout: float = 5.0,
    ) -> None:
        super().__init__(config)
        self.relay = relay
        self.shutdown_timeout = shutdown_timeout

    @classmethod
    def for_app(
        cls,
        app: FastAPI,
        settings: Settings,
        host: str | None = None,
        port: int | None = None,
    ) -> "RelayServer":
        """Build a server for an app made by create_app()."""
        config = uvicorn.Config(
            app,
            host=host if host is not None else settings.relay_host,
            port=port if port is not None else settings.port,
            # Frames above the relay's own limit are rejected by uvicorn
            ws_max_size=settings.ws_max_message_size + 1024,
            log_config=None,
        )
        return cls(config, app.state.relay, settings.ws_shutdown_timeout)

    @property
    def bound_port(self) -> int:
        """Port of the first listening socket (useful with port=0)."""
        return self.servers[0].sockets[0].getsockname()[1]

    async def shutdown(self, sockets: list[socket.socket] | None = None) -> None:
        logger.info("Draining relay connections before server shutdown")
        await self.relay.shutdown(timeout=self.shutdown_timeout)
        await super().shutdown(sockets=sockets)
