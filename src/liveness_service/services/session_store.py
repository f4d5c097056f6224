"""
In-memory registry of liveness sessions.

Each session couples a SessionController with the event plumbing the API
needs: a buffer for polling clients and a fan-out that WebSocket streams
subscribe to. Expired sessions are swept whenever a new one is created.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from ..liveness.events import EventBuffer, FanOut
from ..liveness.framing import FramingConfig
from ..liveness.observation import Rect
from ..liveness.scheduler import Scheduler
from ..liveness.session import SessionController
from ..settings import LivenessSettings

logger = logging.getLogger(__name__)

DEFAULT_VIEW_BOUNDS = Rect(0.0, 0.0, 720.0, 1280.0)


def framing_for_view(view_bounds: Rect, settings: LivenessSettings) -> FramingConfig:
    return FramingConfig.for_view(
        view_bounds,
        inset=settings.framing_inset,
        max_distance_meters=settings.max_distance_meters,
    )


@dataclass
class LivenessSession:
    session_id: str
    controller: SessionController
    events: EventBuffer
    fanout: FanOut
    created_at: float = field(default_factory=time.time)


class SessionStore:
    """Thread-safe session registry with age-based expiry."""

    def __init__(self, settings: LivenessSettings, scheduler: Optional[Scheduler] = None):
        self.settings = settings
        self._scheduler = scheduler
        self._sessions: dict[str, LivenessSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, view_bounds: Rect = DEFAULT_VIEW_BOUNDS) -> LivenessSession:
        events = EventBuffer()
        fanout = FanOut(events)
        controller = SessionController(
            framing_for_view(view_bounds, self.settings),
            fanout,
            self._scheduler,
            required_actions=self.settings.required_actions,
            next_action_delay=self.settings.next_action_delay_seconds,
            completion_delay=self.settings.completion_delay_seconds,
            confirmation_frames=self.settings.confirmation_frames,
            reset_progress_on_face_loss=self.settings.reset_progress_on_face_loss,
        )
        session = LivenessSession(
            session_id=secrets.token_hex(16),
            controller=controller,
            events=events,
            fanout=fanout,
        )

        with self._lock:
            self._sessions[session.session_id] = session
            self._expire_locked()

        logger.info("Created liveness session %s", session.session_id)
        return session

    def get(self, session_id: str) -> Optional[LivenessSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        # cancels any pending cooldown timer
        session.controller.reset()
        return True

    def _expire_locked(self) -> None:
        cutoff = time.time() - self.settings.session_ttl_seconds
        expired = [sid for sid, s in self._sessions.items() if s.created_at < cutoff]
        for sid in expired:
            self._sessions.pop(sid).controller.reset()
        if expired:
            logger.info("Expired %d liveness sessions", len(expired))
