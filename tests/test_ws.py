"""
Tests for the WebSocket command handler and broadcaster.
"""

import asyncio
import json
from unittest.mock import MagicMock, patch

from models.lane import Lane
from models.snapshot import CountsSnapshot
from web.broadcaster import WebSocketManager
from web.routes.ws import counts_socket, handle_command


class FakeWebSocket:
    """Collects sent text; optionally fails every send."""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))


class ScriptedClient(FakeWebSocket):
    """Plays back ASGI receive frames, then disconnects."""

    def __init__(self, frames):
        super().__init__()
        self.frames = list(frames)
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def receive(self):
        if self.frames:
            return self.frames.pop(0)
        return {"type": "websocket.disconnect", "code": 1000}


def make_snapshot(total=2):
    lanes = [Lane(lane_id=1, count=total, healthy=True), Lane(lane_id=2, healthy=False)]
    return CountsSnapshot.from_lanes(lanes, total=total, timestamp_ms=99)


class TestHandleCommand:
    """Tests for client command parsing."""

    def test_reset_calls_engine(self):
        mock = MagicMock()
        with patch("web.routes.ws.state", mock):
            reply = handle_command('{"cmd": "reset"}')

        assert reply is None
        mock.engine.request_reset.assert_called_once()

    def test_reset_without_engine(self):
        mock = MagicMock()
        mock.engine = None
        with patch("web.routes.ws.state", mock):
            reply = handle_command('{"cmd": "reset"}')

        assert reply == {"cmd": "error", "detail": "counter not running"}

    def test_ping_replies_pong(self):
        mock = MagicMock()
        mock.engine.ctx.clock.return_value = 1234
        with patch("web.routes.ws.state", mock):
            reply = handle_command('{"cmd": "ping"}')

        assert reply == {"cmd": "pong", "ts": 1234}

    def test_unknown_command_ignored(self):
        mock = MagicMock()
        with patch("web.routes.ws.state", mock):
            reply = handle_command('{"cmd": "explode"}')

        assert reply is None
        mock.engine.request_reset.assert_not_called()

    def test_malformed_json_ignored(self):
        mock = MagicMock()
        with patch("web.routes.ws.state", mock):
            assert handle_command("reset please") is None
            assert handle_command('["reset"]') is None

        mock.engine.request_reset.assert_not_called()


class TestWebSocketManager:
    """Tests for connection tracking and broadcast."""

    def test_broadcast_reaches_all_clients(self):
        manager = WebSocketManager()
        a, b = FakeWebSocket(), FakeWebSocket()

        async def scenario():
            await manager.add_connection(a)
            await manager.add_connection(b)
            return await manager.broadcast(make_snapshot().to_wire_dict())

        sent = asyncio.run(scenario())

        assert sent == 2
        assert a.sent == b.sent == [{"l1": 2, "s1": True, "l2": 0, "s2": False, "total": 2, "ts": 99}]

    def test_failed_client_dropped(self):
        manager = WebSocketManager()
        good, dead = FakeWebSocket(), FakeWebSocket(fail=True)

        async def scenario():
            await manager.add_connection(good)
            await manager.add_connection(dead)
            return await manager.broadcast({"total": 1})

        sent = asyncio.run(scenario())

        assert sent == 1
        assert manager.get_total_connections() == 1

    def test_remove_connection(self):
        manager = WebSocketManager()
        ws = FakeWebSocket()

        async def scenario():
            await manager.add_connection(ws)
            await manager.remove_connection(ws)
            return await manager.broadcast({"total": 1})

        assert asyncio.run(scenario()) == 0
        assert ws.sent == []

    def test_send_reports_failure(self):
        manager = WebSocketManager()

        assert asyncio.run(manager.send(FakeWebSocket(fail=True), {"cmd": "pong"})) is False

    def test_publish_without_loop_is_noop(self):
        manager = WebSocketManager()
        ws = FakeWebSocket()
        asyncio.run(manager.add_connection(ws))

        manager.publish_snapshot(make_snapshot())

        assert ws.sent == []

    def test_publish_from_other_thread(self):
        manager = WebSocketManager()
        ws = FakeWebSocket()

        async def scenario():
            manager.bind_loop(asyncio.get_running_loop())
            await manager.add_connection(ws)
            loop = asyncio.get_running_loop()
            # The host loop thread calls publish_snapshot synchronously.
            await loop.run_in_executor(None, manager.publish_snapshot, make_snapshot(total=5))
            for _ in range(50):
                if ws.sent:
                    break
                await asyncio.sleep(0.01)

        asyncio.run(scenario())

        assert ws.sent == [{"l1": 5, "s1": True, "l2": 0, "s2": False, "total": 5, "ts": 99}]


class TestCountsSocket:
    """Tests for the /ws endpoint loop."""

    def run_client(self, frames):
        mock = MagicMock()
        mock.get_snapshot.return_value = make_snapshot()
        mock.engine.ctx.clock.return_value = 7
        manager = WebSocketManager()
        client = ScriptedClient(frames)
        with patch("web.routes.ws.state", mock), patch("web.routes.ws.manager", manager):
            asyncio.run(counts_socket(client))
        return client, manager, mock

    def test_snapshot_on_connect_and_pong(self):
        client, manager, _ = self.run_client([{"type": "websocket.receive", "text": '{"cmd": "ping"}'}])

        assert client.accepted is True
        assert client.sent == [
            {"l1": 2, "s1": True, "l2": 0, "s2": False, "total": 2, "ts": 99},
            {"cmd": "pong", "ts": 7},
        ]
        assert manager.get_total_connections() == 0

    def test_binary_frame_ignored(self):
        client, manager, mock = self.run_client([
            {"type": "websocket.receive", "bytes": b"\x01\x02"},
            {"type": "websocket.receive", "text": '{"cmd": "reset"}'},
        ])

        assert len(client.sent) == 1
        mock.engine.request_reset.assert_called_once()
        assert manager.get_total_connections() == 0
