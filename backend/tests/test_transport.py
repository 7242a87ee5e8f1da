"""Tests for the per-connection WebSocket outbox."""
import asyncio
import logging

import pytest

from app.chat.manager import RoomCoordinator
from app.chat.protocol import OutboundEvent
from app.chat.transport import WebSocketConnection


class RecordingWebSocket:
    """Minimal stand-in for a FastAPI WebSocket."""

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.sent = []
        self.close_code = None
        self.fail = fail
        self.delay = delay

    async def send_json(self, data):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(data)

    async def close(self, code: int = 1000):
        self.close_code = code


@pytest.mark.asyncio
async def test_frames_are_written_in_order():
    ws = RecordingWebSocket()
    conn = WebSocketConnection(ws, connection_id="c1")
    conn.start()

    conn.send(OutboundEvent.USER_TYPING, "Friend 2")
    conn.send(OutboundEvent.USER_STOPPED_TYPING, "")
    conn.close()
    await conn.wait_closed()

    assert ws.sent == [
        {"event": "user_typing", "data": "Friend 2"},
        {"event": "user_stopped_typing", "data": ""},
    ]
    assert ws.close_code == 1000
    assert conn.closed


@pytest.mark.asyncio
async def test_close_flushes_pending_frames_first():
    ws = RecordingWebSocket()
    conn = WebSocketConnection(ws)
    conn.start()

    conn.send(OutboundEvent.ROOM_FULL, {"message": "full"})
    conn.close(1008)
    conn.send(OutboundEvent.WELCOME, {"username": "late"})
    await conn.wait_closed()

    assert ws.sent == [{"event": "room_full", "data": {"message": "full"}}]
    assert ws.close_code == 1008


@pytest.mark.asyncio
async def test_send_never_blocks_when_outbox_full(caplog):
    ws = RecordingWebSocket()
    conn = WebSocketConnection(ws, outbox_size=2)

    # Writer not started: nothing drains the outbox.
    for i in range(5):
        conn.send(OutboundEvent.USER_TYPING, f"Friend {i}")

    conn.start()
    with caplog.at_level(logging.WARNING, logger="app.chat.transport"):
        conn.close()
    await conn.wait_closed()

    # Two frames fit; the close marker displaced the oldest of them.
    assert ws.sent == [{"event": "user_typing", "data": "Friend 1"}]
    assert "dropping user_typing before close" in caplog.text


@pytest.mark.asyncio
async def test_failed_send_stops_only_that_connection():
    broken_ws = RecordingWebSocket(fail=True)
    healthy_ws = RecordingWebSocket()
    broken = WebSocketConnection(broken_ws, connection_id="broken")
    healthy = WebSocketConnection(healthy_ws, connection_id="healthy")
    broken.start()
    healthy.start()

    room = RoomCoordinator(max_users=3)
    await room.connect(broken)
    await room.connect(healthy)
    await room.send_message("healthy", "still here")

    healthy.close()
    await healthy.wait_closed()
    await broken.wait_closed()

    assert broken.closed
    events = [frame["event"] for frame in healthy_ws.sent]
    assert events == ["welcome", "message_history", "receive_message"]
    assert room.registry.size() == 2


@pytest.mark.asyncio
async def test_slow_client_does_not_delay_others():
    slow_ws = RecordingWebSocket(delay=5.0)
    fast_ws = RecordingWebSocket()
    slow = WebSocketConnection(slow_ws, connection_id="slow")
    fast = WebSocketConnection(fast_ws, connection_id="fast")
    slow.start()
    fast.start()

    room = RoomCoordinator(max_users=3)
    await asyncio.wait_for(room.connect(slow), timeout=1)
    await asyncio.wait_for(room.connect(fast), timeout=1)
    await asyncio.wait_for(room.send_message("fast", "hello"), timeout=1)

    fast.close()
    await asyncio.wait_for(fast.wait_closed(), timeout=1)

    assert fast_ws.sent[-1]["data"]["text"] == "hello"
    await slow.stop()


@pytest.mark.asyncio
async def test_stop_cancels_writer():
    ws = RecordingWebSocket()
    conn = WebSocketConnection(ws)
    conn.start()

    await conn.stop()
    conn.send(OutboundEvent.USER_TYPING, "Friend 1")

    assert conn.closed
    assert ws.sent == []
