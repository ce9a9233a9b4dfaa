"""WebSocket fan-out of generation progress events."""

import asyncio
import logging
from typing import Optional

from fastapi import WebSocket

from utils.progress import ProgressChannel, ProgressEvent, ProgressListener

logger = logging.getLogger(__name__)


def progress_message(key: str, event: ProgressEvent) -> dict:
    return {"job_id": key, "type": "progress", **event.to_dict()}


class WebSocketManager:
    """Manages WebSocket connections grouped by job ID.

    A job's ``ProgressChannel`` gets a listener from ``listener_for``; every
    published event is sent as JSON to the sockets watching that job at the
    moment it was published.
    """

    def __init__(self):
        self.connections: dict[str, list[WebSocket]] = {}
        # Keep references to send tasks to prevent garbage collection
        self._tasks: set[asyncio.Task] = set()

    def register(self, key: str, websocket: WebSocket) -> None:
        self.connections.setdefault(key, []).append(websocket)

    async def attach(self, key: str, websocket: WebSocket, channel: ProgressChannel) -> int:
        """Send the channel history to an accepted socket, then register it.

        Events published while the history is being sent are picked up by
        the next pass. Registration follows the last pass with no await in
        between, so every event reaches the socket exactly once and in order.

        Returns:
            Number of replayed events
        """
        sent = 0
        while sent < len(channel.history):
            for event in channel.history[sent:]:
                await websocket.send_json(progress_message(key, event))
                sent += 1
        self.register(key, websocket)
        return sent

    def disconnect(self, key: str, websocket: WebSocket) -> None:
        if websocket in self.connections.get(key, []):
            self.connections[key].remove(websocket)
        if key in self.connections and not self.connections[key]:
            del self.connections[key]

    async def broadcast(
        self, key: str, message: dict, targets: Optional[list[WebSocket]] = None
    ) -> None:
        """Send a message to the sockets for ``key``, dropping dead ones."""
        if targets is None:
            targets = list(self.connections.get(key, []))

        disconnected = []
        for ws in targets:
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.debug(f"Dropping WebSocket for {key}: {e}")
                disconnected.append(ws)

        for ws in disconnected:
            self.disconnect(key, ws)

    def listener_for(self, key: str) -> ProgressListener:
        """Channel listener that broadcasts each event for ``key``.

        Must be subscribed to a channel that publishes on the event loop thread.
        """

        def listener(event: ProgressEvent) -> None:
            targets = list(self.connections.get(key, []))
            if not targets:
                return
            task = asyncio.get_running_loop().create_task(
                self.broadcast(key, progress_message(key, event), targets)
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return listener
