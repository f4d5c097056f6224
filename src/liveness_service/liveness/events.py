"""
Listener events emitted by a liveness session.

Events form a single tagged union (LivenessEvent with an EventKind) so the
presentation layer can switch on ``kind`` exhaustively. Sinks are plain
callables; the ones defined here never block the caller.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .challenge_engine import FaceAction


class EventKind(str, Enum):
    NO_FACE_DETECTED = "no_face_detected"
    MULTIPLE_FACES_DETECTED = "multiple_faces_detected"
    TOO_FAR_DETECTED = "too_far_detected"
    FACE_NOT_CENTERED = "face_not_centered"
    ACTION_REQUESTED = "action_requested"
    ACTION_COMPLETED = "action_completed"
    ALL_ACTIONS_COMPLETED = "all_actions_completed"
    CAPTURE_SUCCEEDED = "capture_succeeded"
    CAPTURE_FAILED = "capture_failed"


# User-facing messages for framing problems
NO_FACE_MESSAGE = "No face detected. Please move into the frame."
MULTIPLE_FACES_MESSAGE = "Multiple faces detected. Only one person allowed."
TOO_FAR_MESSAGE = "You are too far. Please come to 1 meter."
NOT_CENTERED_MESSAGE = "Please center your face in the frame."


@dataclass(frozen=True)
class LivenessEvent:
    kind: EventKind
    message: str
    action: Optional[FaceAction] = None
    image_handle: Optional[str] = None
    created_at: float = field(default_factory=time.time)


EventSink = Callable[[LivenessEvent], None]


class EventBuffer:
    """Thread-safe bounded event buffer, drained by polling clients."""

    def __init__(self, maxlen: int = 256):
        self._events: deque[LivenessEvent] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __call__(self, event: LivenessEvent) -> None:
        with self._lock:
            self._events.append(event)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def drain(self) -> list[LivenessEvent]:
        with self._lock:
            events = list(self._events)
            self._events.clear()
        return events


class AsyncEventChannel:
    """
    Hand events to an asyncio consumer from any thread.

    Events are queued with ``call_soon_threadsafe`` so cooldown callbacks
    running on timer threads never touch the loop directly. Other messages
    for the same consumer can be interleaved with ``publish`` from the
    loop thread, keeping a single writer downstream.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = 256):
        self._loop = loop
        self.queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)

    def _put(self, item: Any) -> None:
        if self.queue.full():
            # slow consumer: keep the newest messages
            self.queue.get_nowait()
        self.queue.put_nowait(item)

    def __call__(self, event: LivenessEvent) -> None:
        self._loop.call_soon_threadsafe(self._put, event)

    def publish(self, item: Any) -> None:
        """Queue a non-event message; loop thread only."""
        self._put(item)

    async def get(self) -> Any:
        return await self.queue.get()


class FanOut:
    """Deliver each event to every registered sink."""

    def __init__(self, *sinks: EventSink):
        self._sinks: list[EventSink] = list(sinks)
        self._lock = threading.Lock()

    def add(self, sink: EventSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove(self, sink: EventSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def __call__(self, event: LivenessEvent) -> None:
        with self._lock:
            sinks = list(self._sinks)
        for sink in sinks:
            sink(event)
