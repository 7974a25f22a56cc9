"""
Pytest configuration and fixtures for relay tests.
"""

import asyncio
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from shared.config.settings import Settings
from ws_relay.components.connection.connection import Connection
from ws_relay.main import create_app
from ws_relay.server import RelayServer


class FakeWebSocket:
    """
    Minimal stand-in for a Starlette WebSocket.

    Records every payload written to it. Set ``fail_with`` to make sends raise.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 50000):
        self.client = SimpleNamespace(host=host, port=port)
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: list = []
        self.closed_with: tuple | None = None
        self.fail_with: Exception | None = None

    async def send_text(self, data: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(data)

    async def send_bytes(self, data: bytes) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = (code, reason)
        self.application_state = WebSocketState.DISCONNECTED


@pytest.fixture
def make_connection():
    """
    Factory for connections backed by FakeWebSocket.

    Pass open=True to get a connection already in the OPEN state.
    """
    port_counter = iter(range(50000, 60000))

    def _make(open: bool = False) -> Connection:
        conn = Connection.from_websocket(FakeWebSocket(port=next(port_counter)))
        if open:
            conn.mark_open()
        return conn

    return _make


@pytest.fixture(scope="function")
def settings():
    """Relay settings for tests, independent of the environment."""
    return Settings(
        port=8080,
        environment="test",
        debug=False,
        ws_idle_timeout=0,
        ws_max_message_size=1024,
        ws_shutdown_timeout=1.0,
    )


@pytest.fixture(scope="function")
def app(settings):
    """Fresh relay application with its own registry and metrics."""
    return create_app(settings)


@pytest.fixture(scope="function")
def client(app):
    """
    Test client running the app lifespan.

    All WebSocket sessions opened from one client share its event loop.
    """
    with TestClient(app) as test_client:
        yield test_client


@asynccontextmanager
async def running_relay(settings: Settings):
    """
    Serve a fresh relay app with uvicorn on an ephemeral local port.

    Yields (app, server, ws_url). Leaving the block stops the server.
    """
    app = create_app(settings)
    server = RelayServer.for_app(app, settings, host="127.0.0.1", port=0)
    task = asyncio.create_task(server.serve())

    while not server.started:
        if task.done():
            task.result()
            raise RuntimeError("relay server exited during startup")
        await asyncio.sleep(0.01)

    try:
        yield app, server, f"ws://127.0.0.1:{server.bound_port}/"
    finally:
        server.should_exit = True
        await asyncio.wait_for(task, timeout=10)
