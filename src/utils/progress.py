"""Progress events for video generation jobs.

A job publishes typed ``ProgressEvent`` objects to a ``ProgressChannel``.
Listeners (the CLI, the WebSocket manager, a plain callback) subscribe to
the channel and never need to know which transport delivers the events.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional

logger = logging.getLogger(__name__)


class GenerationStage(str, Enum):
    """Observable milestones of a generation job."""

    ANALYZING = "analyzing"
    SCRIPT_READY = "script_ready"
    VOICEOVER = "voiceover"
    VOICE_READY = "voice_ready"
    SEARCHING = "searching"
    FOOTAGE_RESOLVED = "footage_resolved"
    MUSIC = "music"
    CLIPS_ENCODED = "clips_encoded"
    MERGED = "merged"
    RENDERING = "rendering"
    RENDERED = "rendered"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStage.COMPLETE, GenerationStage.ERROR)


@dataclass
class ProgressEvent:
    """A single progress update."""

    stage: GenerationStage
    message: str
    percent: Optional[int] = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["stage"] = self.stage.value
        return payload


ProgressListener = Callable[[ProgressEvent], None]


class ProgressChannel:
    """Fan-out channel for the progress events of one job.

    ``publish`` is synchronous and safe to call from the event loop thread
    only. Worker threads must hand events over with
    ``loop.call_soon_threadsafe(channel.publish, ...)``.
    """

    def __init__(self):
        self._listeners: list[ProgressListener] = []
        self._queues: list[asyncio.Queue] = []
        self.history: list[ProgressEvent] = []

    def subscribe(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ProgressListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(
        self,
        stage: GenerationStage,
        message: str,
        percent: Optional[int] = None,
        **data: Any,
    ) -> ProgressEvent:
        """Create an event and deliver it to every listener and stream."""
        event = ProgressEvent(stage=stage, message=message, percent=percent, data=data)
        self.history.append(event)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # A broken listener must not abort the job
                logger.warning(f"Progress listener failed on {stage.value}: {e}")

        for queue in self._queues:
            queue.put_nowait(event)

        return event

    async def stream(self) -> AsyncIterator[ProgressEvent]:
        """Yield events as they are published until a terminal event."""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        try:
            while True:
                event = await queue.get()
                yield event
                if event.stage.is_terminal:
                    break
        finally:
            self._queues.remove(queue)

    @property
    def last_event(self) -> Optional[ProgressEvent]:
        return self.history[-1] if self.history else None


def callback_listener(callback: Callable[[str, str], Any]) -> ProgressListener:
    """Adapt a ``(stage_name, message)`` callback to a channel listener."""

    def listener(event: ProgressEvent) -> None:
        callback(event.stage.value, event.message)

    return listener
