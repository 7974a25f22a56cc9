"""
End-to-end tests for the relay application.

WebSocket sessions and HTTP requests go through FastAPI's TestClient.
"""

import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from shared.config.settings import Settings
from ws_relay.components.core.constants import PROMETHEUS_CONTENT_TYPE
from ws_relay.main import create_app
from fastapi.testclient import TestClient


def _metric(client, name: str) -> float:
    """Read one unlabelled sample from /metrics."""
    for line in client.get("/metrics").text.splitlines():
        if line.startswith(f"{name} "):
            return float(line.split()[1])
    raise AssertionError(f"metric {name} not exposed")


class TestRelayWebSocket:
    """Broadcast over real WebSocket sessions."""

    def test_single_client_echo(self, client):
        with client.websocket_connect("/") as ws:
            assert _metric(client, "websocket_active_connections") == 1

            ws.send_text("ping")
            assert ws.receive_text() == "ping"

        assert _metric(client, "websocket_active_connections") == 0
        assert _metric(client, "websocket_messages_received_total") == 1
        assert _metric(client, "websocket_messages_sent_total") == 1

    def test_two_clients_both_receive(self, client):
        with client.websocket_connect("/") as a, client.websocket_connect("/") as b:
            assert _metric(client, "websocket_active_connections") == 2

            a.send_text("hi")
            assert a.receive_text() == "hi"
            assert b.receive_text() == "hi"

            assert _metric(client, "websocket_messages_received_total") == 1
            assert _metric(client, "websocket_messages_sent_total") == 2

    def test_binary_frames_relayed_as_binary(self, client):
        with client.websocket_connect("/") as a, client.websocket_connect("/") as b:
            a.send_bytes(b"\x00\xffdata")

            assert a.receive_bytes() == b"\x00\xffdata"
            assert b.receive_bytes() == b"\x00\xffdata"

    def test_messages_from_one_sender_arrive_in_order(self, client):
        with client.websocket_connect("/") as a, client.websocket_connect("/") as b:
            for i in range(5):
                a.send_text(str(i))

            assert [b.receive_text() for _ in range(5)] == ["0", "1", "2", "3", "4"]
            assert [a.receive_text() for _ in range(5)] == ["0", "1", "2", "3", "4"]

    def test_disconnected_client_no_longer_counted(self, client):
        with client.websocket_connect("/") as a:
            with client.websocket_connect("/"):
                assert _metric(client, "websocket_active_connections") == 2

            assert _metric(client, "websocket_active_connections") == 1
            a.send_text("still here")
            assert a.receive_text() == "still here"

        assert _metric(client, "websocket_messages_sent_total") == 1

    def test_oversized_message_closes_connection(self, client, settings):
        with client.websocket_connect("/") as ws:
            ws.send_text("x" * (settings.ws_max_message_size + 1))

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()

            assert exc_info.value.code == 1009

        assert _metric(client, "websocket_messages_received_total") == 0
        assert _metric(client, "websocket_active_connections") == 0


class TestIdleTimeout:
    """Connections without traffic are closed when an idle timeout is set."""

    def test_idle_connection_closed(self):
        settings = Settings(environment="test", ws_idle_timeout=0.1)

        with TestClient(create_app(settings)) as client:
            with client.websocket_connect("/") as ws:
                with pytest.raises(WebSocketDisconnect) as exc_info:
                    ws.receive_text()

                assert exc_info.value.code == 1000
                assert exc_info.value.reason == "Connection timeout"

            assert _metric(client, "websocket_active_connections") == 0


class TestHttpRoutes:
    """Health and metrics endpoints."""

    def test_metrics_content_type(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"] == PROMETHEUS_CONTENT_TYPE
        assert "# TYPE websocket_active_connections gauge" in response.text

    def test_health(self, client):
        with client.websocket_connect("/"):
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "ws-relay"
        assert data["environment"] == "test"
        assert data["active_connections"] == 1
        assert data["metrics"]["connections_opened"] == 1

    def test_apps_do_not_share_state(self, settings):
        with TestClient(create_app(settings)) as first:
            with first.websocket_connect("/"):
                with TestClient(create_app(settings)) as second:
                    assert _metric(second, "websocket_active_connections") == 0


class TestShutdown:
    """New connections are refused once shutdown has begun."""

    def test_connect_refused_while_shutting_down(self, app, client):
        relay = app.state.relay
        asyncio.run(relay.shutdown(timeout=0.1))

        with client.websocket_connect("/") as ws:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()

        assert exc_info.value.code == 1013
        assert exc_info.value.reason == "Server shutting down"
        assert relay.metrics.get_snapshot()["connections_opened"] == 0
