"""Unit tests for the WebSocket progress fan-out."""

import asyncio

import pytest

from api.websocket_manager import WebSocketManager
from utils.progress import GenerationStage, ProgressChannel


class RecordingSocket:
    """WebSocket stand-in that records sent messages and yields on each send."""

    def __init__(self, on_send=None):
        self.sent = []
        self.on_send = on_send

    async def send_json(self, message):
        self.sent.append(message)
        if self.on_send:
            self.on_send(len(self.sent))
        await asyncio.sleep(0)


async def _drain():
    for _ in range(5):
        await asyncio.sleep(0)


def _messages(socket: RecordingSocket) -> list:
    return [message["message"] for message in socket.sent]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_attach_delivers_each_event_once_in_order():
    manager = WebSocketManager()
    channel = ProgressChannel()
    channel.subscribe(manager.listener_for("job1"))
    channel.publish(GenerationStage.ANALYZING, "one")
    channel.publish(GenerationStage.SCRIPT_READY, "two")

    def publish_during_replay(count):
        if count == 1:
            channel.publish(GenerationStage.VOICEOVER, "three")

    socket = RecordingSocket(publish_during_replay)
    replayed = await manager.attach("job1", socket, channel)
    channel.publish(GenerationStage.SEARCHING, "four")
    await _drain()

    assert replayed == 3
    assert _messages(socket) == ["one", "two", "three", "four"]
    assert socket.sent[0]["job_id"] == "job1"
    assert socket.sent[0]["type"] == "progress"
    assert socket.sent[0]["stage"] == "analyzing"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_event_goes_to_sockets_registered_at_publish_time():
    manager = WebSocketManager()
    channel = ProgressChannel()
    channel.subscribe(manager.listener_for("job1"))
    early = RecordingSocket()
    late = RecordingSocket()

    manager.register("job1", early)
    channel.publish(GenerationStage.ANALYZING, "one")
    manager.register("job1", late)
    await _drain()

    assert _messages(early) == ["one"]
    assert late.sent == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_broadcast_drops_dead_socket():
    manager = WebSocketManager()
    alive = RecordingSocket()

    class DeadSocket:
        async def send_json(self, message):
            raise RuntimeError("connection closed")

    dead = DeadSocket()
    manager.register("job1", alive)
    manager.register("job1", dead)

    await manager.broadcast("job1", {"message": "hello"})

    assert _messages(alive) == ["hello"]
    assert manager.connections["job1"] == [alive]

    manager.disconnect("job1", alive)
    assert "job1" not in manager.connections
