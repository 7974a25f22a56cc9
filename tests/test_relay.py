"""
Tests for the broadcast relay.

Tests verify:
- Every open connection receives every message, the sender included
- A failing recipient never aborts the fan-out to the others
- on_close is idempotent and keeps the gauge in step with the registry
- Counters match M messages fanned out to N connections
- Shutdown closes every registered connection
"""

import asyncio

import pytest

from ws_relay.components.connection.connection import ConnectionState
from ws_relay.components.core.constants import WSCloseCode
from ws_relay.core.relay import BroadcastRelay


async def _connected_relay(make_connection, count, **relay_kwargs):
    relay = BroadcastRelay(**relay_kwargs)
    connections = [make_connection() for _ in range(count)]
    for conn in connections:
        assert await relay.on_connect(conn) is True
    return relay, connections


class TestRelayConnect:
    """Registration and the active-connection gauge."""

    @pytest.mark.asyncio
    async def test_connect_updates_gauge(self, make_connection):
        relay, connections = await _connected_relay(make_connection, 3)

        snapshot = relay.metrics.get_snapshot()
        assert snapshot["active_connections"] == 3
        assert snapshot["connections_opened"] == 3
        assert all(c.state is ConnectionState.OPEN for c in connections)

    @pytest.mark.asyncio
    async def test_duplicate_connect_ignored(self, make_connection):
        relay, (conn,) = await _connected_relay(make_connection, 1)

        assert await relay.on_connect(conn) is False
        assert relay.registry.size() == 1
        assert relay.metrics.get_snapshot()["active_connections"] == 1


class TestRelayBroadcast:
    """Fan-out semantics."""

    @pytest.mark.asyncio
    async def test_sender_receives_own_message(self, make_connection):
        relay, (conn,) = await _connected_relay(make_connection, 1)

        sent = await relay.on_message(conn, "ping")

        assert sent == 1
        assert conn.websocket.sent == ["ping"]

    @pytest.mark.asyncio
    async def test_every_connection_receives(self, make_connection):
        relay, connections = await _connected_relay(make_connection, 5)

        await relay.on_message(connections[2], "hi")

        for conn in connections:
            assert conn.websocket.sent == ["hi"]

    @pytest.mark.asyncio
    async def test_binary_payload_stays_binary(self, make_connection):
        relay, connections = await _connected_relay(make_connection, 2)

        await relay.on_message(connections[0], b"\xff\x00")

        assert connections[1].websocket.sent == [b"\xff\x00"]

    @pytest.mark.asyncio
    async def test_counters_for_m_messages_to_n_connections(self, make_connection):
        relay, connections = await _connected_relay(make_connection, 4)

        for i in range(3):
            await relay.on_message(connections[i % 4], f"msg-{i}")

        snapshot = relay.metrics.get_snapshot()
        assert snapshot["messages_received"] == 3
        assert snapshot["messages_sent"] == 12

    @pytest.mark.asyncio
    async def test_small_batches_reach_everyone(self, make_connection):
        relay, connections = await _connected_relay(make_connection, 7, batch_size=2)

        assert await relay.on_message(connections[0], "x") == 7

    @pytest.mark.asyncio
    async def test_per_sender_order_preserved(self, make_connection):
        relay, connections = await _connected_relay(make_connection, 3)

        for i in range(10):
            await relay.on_message(connections[0], str(i))

        for conn in connections:
            assert conn.websocket.sent == [str(i) for i in range(10)]

    @pytest.mark.asyncio
    async def test_closed_connection_not_a_recipient(self, make_connection):
        relay, (a, b, c) = await _connected_relay(make_connection, 3)

        await relay.on_close(c)
        sent = await relay.on_message(a, "after")

        assert sent == 2
        assert c.websocket.sent == []


class TestRelayFailureIsolation:
    """A broken peer must not affect the others."""

    @pytest.mark.asyncio
    async def test_failed_recipient_skipped_and_evicted(self, make_connection):
        relay, (a, broken, c) = await _connected_relay(make_connection, 3)
        broken.websocket.fail_with = ConnectionResetError("peer reset")

        sent = await relay.on_message(a, "hello")

        assert sent == 2
        assert a.websocket.sent == ["hello"]
        assert c.websocket.sent == ["hello"]
        assert broken not in relay.registry
        assert broken.is_closed
        assert broken.websocket.closed_with == (WSCloseCode.GOING_AWAY, "Send failed")

        snapshot = relay.metrics.get_snapshot()
        assert snapshot["messages_sent"] == 2
        assert snapshot["send_failures"] == 1
        assert snapshot["active_connections"] == 2

    @pytest.mark.asyncio
    async def test_slow_recipient_times_out(self, make_connection):
        relay, (a, slow) = await _connected_relay(make_connection, 2, send_timeout=0.05)

        async def stalled(data):
            await asyncio.sleep(10)

        slow.websocket.send_text = stalled

        assert await relay.on_message(a, "hello") == 1
        assert slow not in relay.registry

    @pytest.mark.asyncio
    async def test_stalled_peer_does_not_stall_concurrent_fanouts(self, make_connection):
        relay, (a, b, stalled) = await _connected_relay(make_connection, 3, send_timeout=0.2)

        async def never_returns(data):
            await asyncio.sleep(10)

        stalled.websocket.send_text = never_returns

        loop = asyncio.get_running_loop()
        started = loop.time()
        await asyncio.gather(
            *[relay.on_message(a if i % 2 else b, f"m{i}") for i in range(10)]
        )
        elapsed = loop.time() - started

        assert elapsed < 1.0
        assert stalled.is_closed
        assert stalled not in relay.registry
        assert len(a.websocket.sent) == 10
        assert len(b.websocket.sent) == 10
        assert relay.metrics.get_snapshot()["send_failures"] == 1

    @pytest.mark.asyncio
    async def test_evicted_peer_close_is_not_counted_twice(self, make_connection):
        relay, (a, broken) = await _connected_relay(make_connection, 2)
        broken.websocket.fail_with = RuntimeError("gone")
        await relay.on_message(a, "x")

        # The peer's own receive loop ends later and reports the close again
        assert await relay.on_close(broken) is False
        assert relay.metrics.get_snapshot()["active_connections"] == 1


class TestRelayClose:
    """Idempotent unregistration."""

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, make_connection):
        relay, (a, b) = await _connected_relay(make_connection, 2)

        assert await relay.on_close(a) is True
        assert await relay.on_close(a) is False

        assert relay.registry.size() == 1
        assert relay.metrics.get_snapshot()["active_connections"] == 1

    @pytest.mark.asyncio
    async def test_gauge_returns_to_zero(self, make_connection):
        relay, connections = await _connected_relay(make_connection, 3)

        await asyncio.gather(*[relay.on_close(c) for c in connections])

        assert relay.registry.size() == 0
        assert relay.metrics.get_snapshot()["active_connections"] == 0


class TestRelayShutdown:
    """Graceful shutdown."""

    @pytest.mark.asyncio
    async def test_shutdown_closes_everything(self, make_connection):
        relay, connections = await _connected_relay(make_connection, 3)

        closed = await relay.shutdown(timeout=1.0)

        assert closed == 3
        assert relay.is_shutting_down
        assert relay.registry.size() == 0
        assert relay.metrics.get_snapshot()["active_connections"] == 0
        for conn in connections:
            assert conn.is_closed
            assert conn.websocket.closed_with == (WSCloseCode.GOING_AWAY, "Server shutdown")

    @pytest.mark.asyncio
    async def test_shutdown_with_no_connections(self):
        relay = BroadcastRelay()
        assert await relay.shutdown() == 0

    @pytest.mark.asyncio
    async def test_stats(self, make_connection):
        relay, _ = await _connected_relay(make_connection, 2)

        stats = relay.get_stats()

        assert stats["active_connections"] == 2
        assert stats["shutting_down"] is False
        assert stats["metrics"]["connections_opened"] == 2
