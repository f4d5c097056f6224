"""
Session controller for a liveness verification attempt.

Walks each incoming observation through the verification flow:

    awaiting_face -> awaiting_single_face -> confirming
        -> awaiting_distance -> in_challenge -> all_challenges_complete

Framing problems are transient: the session steps back to an earlier
stage and reports why, it never aborts. Challenge progress survives a
brief face loss unless ``reset_progress_on_face_loss`` is set.

All state lives behind one lock, shared with the challenge engine so
cooldown callbacks cannot interleave with frame processing.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .challenge_engine import (
    COMPLETION_DELAY_SECONDS,
    NEXT_ACTION_DELAY_SECONDS,
    REQUIRED_ACTIONS,
    ChallengeEngine,
    FaceAction,
    RandomSource,
)
from .events import (
    MULTIPLE_FACES_MESSAGE,
    NO_FACE_MESSAGE,
    NOT_CENTERED_MESSAGE,
    TOO_FAR_MESSAGE,
    EventKind,
    EventSink,
    LivenessEvent,
)
from .framing import FramingConfig, FramingGate, FramingResult
from .observation import FaceObservation
from .scheduler import Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)


class SessionStep(str, Enum):
    AWAITING_FACE = "awaiting_face"
    AWAITING_SINGLE_FACE = "awaiting_single_face"
    CONFIRMING = "confirming"
    AWAITING_DISTANCE = "awaiting_distance"
    IN_CHALLENGE = "in_challenge"
    ALL_CHALLENGES_COMPLETE = "all_challenges_complete"


@dataclass
class SessionState:
    step: SessionStep = SessionStep.AWAITING_FACE
    confirmation_counter: int = 0


@dataclass(frozen=True)
class SessionSnapshot:
    step: SessionStep
    confirmation_counter: int
    current_action: Optional[FaceAction]
    action_completed: bool
    completed_count: int
    required_actions: int
    capture_unlocked: bool

    @property
    def is_complete(self) -> bool:
        return self.step is SessionStep.ALL_CHALLENGES_COMPLETE


class SessionController:
    """
    Orchestrates the framing gate and challenge engine for one attempt.

    Args:
        framing: framing configuration for the current view
        sink: receives every emitted event; must not block
        scheduler: runs challenge cooldowns (threading timers by default)
        confirmation_frames: consecutive single-face frames needed to
            leave the confirming step
        reset_progress_on_face_loss: drop challenge progress when the face
            is lost mid-challenge instead of pausing
        rng: random source for action selection
    """

    def __init__(
        self,
        framing: FramingConfig,
        sink: EventSink,
        scheduler: Optional[Scheduler] = None,
        *,
        required_actions: int = REQUIRED_ACTIONS,
        next_action_delay: float = NEXT_ACTION_DELAY_SECONDS,
        completion_delay: float = COMPLETION_DELAY_SECONDS,
        confirmation_frames: int = 1,
        reset_progress_on_face_loss: bool = False,
        rng: Optional[RandomSource] = None,
    ):
        self._lock = threading.RLock()
        self._sink = sink
        self.gate = FramingGate(framing)
        self.confirmation_frames = max(1, confirmation_frames)
        self.reset_progress_on_face_loss = reset_progress_on_face_loss
        self.state = SessionState()
        self.engine = ChallengeEngine(
            scheduler or ThreadingScheduler(),
            required_actions=required_actions,
            next_action_delay=next_action_delay,
            completion_delay=completion_delay,
            rng=rng,
            on_all_completed=self._on_all_completed,
            lock=self._lock,
        )

    @property
    def step(self) -> SessionStep:
        return self.state.step

    @property
    def completed_count(self) -> int:
        return self.engine.state.completed_count

    @property
    def is_complete(self) -> bool:
        return self.state.step is SessionStep.ALL_CHALLENGES_COMPLETE

    def set_framing(self, framing: FramingConfig) -> None:
        """Swap the framing configuration, e.g. after the view was resized."""
        with self._lock:
            if framing != self.gate.config:
                self.gate = FramingGate(framing)

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            challenge = self.engine.state
            return SessionSnapshot(
                step=self.state.step,
                confirmation_counter=self.state.confirmation_counter,
                current_action=challenge.current_action,
                action_completed=challenge.completed,
                completed_count=challenge.completed_count,
                required_actions=self.engine.required_actions,
                capture_unlocked=self.is_complete and challenge.announced,
            )

    def reset(self) -> None:
        """Return session and challenge state to their initial values."""
        with self._lock:
            self.engine.reset()
            self.state = SessionState()
        logger.info("Liveness session reset")

    def process(self, observation: FaceObservation) -> list[LivenessEvent]:
        """
        Advance the flow by one observation.

        Returns the events emitted for this observation; they are also
        delivered to the sink.
        """
        with self._lock:
            events = self._advance(observation)
            for event in events:
                self._sink(event)
        return events

    def _advance(self, observation: FaceObservation) -> list[LivenessEvent]:
        step = self.state.step
        if step is SessionStep.ALL_CHALLENGES_COMPLETE:
            return []

        framing = self.gate.classify(observation)

        if step is SessionStep.AWAITING_FACE:
            if framing is FramingResult.NO_FACE:
                return [LivenessEvent(EventKind.NO_FACE_DETECTED, NO_FACE_MESSAGE)]
            self._transition(SessionStep.AWAITING_SINGLE_FACE)
            return []

        if framing is FramingResult.NO_FACE:
            return self._regress(
                SessionStep.AWAITING_FACE,
                LivenessEvent(EventKind.NO_FACE_DETECTED, NO_FACE_MESSAGE),
            )

        if framing is FramingResult.MULTIPLE_FACES:
            event = LivenessEvent(EventKind.MULTIPLE_FACES_DETECTED, MULTIPLE_FACES_MESSAGE)
            if step is SessionStep.AWAITING_SINGLE_FACE:
                return [event]
            if step is SessionStep.IN_CHALLENGE:
                return self._regress(SessionStep.AWAITING_FACE, event)
            return self._regress(SessionStep.AWAITING_SINGLE_FACE, event)

        # Exactly one face from here on
        if step is SessionStep.AWAITING_SINGLE_FACE:
            self._transition(SessionStep.CONFIRMING)
            return []

        if step is SessionStep.CONFIRMING:
            self.state.confirmation_counter += 1
            if self.state.confirmation_counter >= self.confirmation_frames:
                self._transition(SessionStep.AWAITING_DISTANCE)
            return []

        if framing is FramingResult.TOO_FAR:
            event = LivenessEvent(EventKind.TOO_FAR_DETECTED, TOO_FAR_MESSAGE)
        elif framing is FramingResult.OUT_OF_FRAME:
            event = LivenessEvent(EventKind.FACE_NOT_CENTERED, NOT_CENTERED_MESSAGE)
        else:
            event = None

        if step is SessionStep.AWAITING_DISTANCE:
            if event is not None:
                return [event]
            self._transition(SessionStep.IN_CHALLENGE)
            return []

        # In challenge
        if event is not None:
            return self._regress(SessionStep.AWAITING_DISTANCE, event)
        return self._challenge(observation)

    def _challenge(self, observation: FaceObservation) -> list[LivenessEvent]:
        result = self.engine.evaluate(observation)

        events = []
        if result.newly_completed:
            events.append(LivenessEvent(EventKind.ACTION_COMPLETED, result.message, result.action))
        elif not result.completed:
            events.append(LivenessEvent(EventKind.ACTION_REQUESTED, result.message, result.action))

        if self.engine.is_finished:
            self._transition(SessionStep.ALL_CHALLENGES_COMPLETE)
        return events

    def _regress(self, target: SessionStep, event: LivenessEvent) -> list[LivenessEvent]:
        if (
            self.state.step is SessionStep.IN_CHALLENGE
            and target is SessionStep.AWAITING_FACE
            and self.reset_progress_on_face_loss
        ):
            logger.info("Face lost mid-challenge; discarding challenge progress")
            self.engine.reset()
        self._transition(target)
        return [event]

    def _transition(self, step: SessionStep) -> None:
        logger.debug("Session step %s -> %s", self.state.step.value, step.value)
        self.state.step = step
        self.state.confirmation_counter = 0

    def _on_all_completed(self, message: str) -> None:
        # Runs under the session lock from the engine's cooldown callback
        self._sink(LivenessEvent(EventKind.ALL_ACTIONS_COMPLETED, message))
