"""
Liveness Challenge Engine.

Requests randomized physical actions and scores each frame against the
detector signals until the action is performed.

Supported actions:
- smile: smiling probability above threshold in a single frame
- head_shake: head yaw beyond threshold in a single frame
- blink: open -> closed -> open with a natural blink duration
- head_nod: repeated pitch reversals (see head_pose.HeadNodTracker)

After each completed action the engine waits for a cooldown before
drawing the next one. Once the required number of actions is done it
waits a shorter cooldown and announces full completion. Unmet conditions
are not failures: the caller just keeps prompting.

The engine is not reentrant. Frame evaluation must be serialized by the
caller, and the lock passed in is taken by cooldown callbacks so they
serialize with frame processing.
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence

from .blink import BlinkTracker
from .head_pose import HeadNodTracker, is_head_shake
from .observation import FaceObservation
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

SMILE_THRESHOLD = 0.8
REQUIRED_ACTIONS = 3
NEXT_ACTION_DELAY_SECONDS = 3.0
COMPLETION_DELAY_SECONDS = 2.0

ALL_DONE_MESSAGE = "All done! Let's take a photo."


class FaceAction(str, Enum):
    """Available challenge actions."""
    SMILE = "smile"
    HEAD_SHAKE = "head_shake"
    BLINK = "blink"
    HEAD_NOD = "head_nod"


# Action instructions for the presentation layer
ACTION_INSTRUCTIONS = {
    FaceAction.SMILE: {
        "title": "Smile",
        "instruction": "Please smile.",
        "detected": "Detected: Smile",
        "icon": "smile",
    },
    FaceAction.HEAD_SHAKE: {
        "title": "Shake Head",
        "instruction": "Please shake your head left and right.",
        "detected": "Detected: Head shake (left and right)",
        "icon": "arrows-horizontal",
    },
    FaceAction.BLINK: {
        "title": "Blink",
        "instruction": "Please blink your eyes.",
        "detected": "Detected: Blink",
        "icon": "eye",
    },
    FaceAction.HEAD_NOD: {
        "title": "Nod",
        "instruction": "Please nod your head up and down.",
        "detected": "Detected: Head nod (up and down)",
        "icon": "arrows-vertical",
    },
}


class RandomSource(Protocol):
    def choice(self, seq: Sequence[FaceAction]) -> FaceAction: ...


@dataclass
class ChallengeState:
    current_action: Optional[FaceAction] = None
    completed: bool = False
    completed_count: int = 0
    blink: BlinkTracker = field(default_factory=BlinkTracker)
    nod: HeadNodTracker = field(default_factory=HeadNodTracker)
    pending: Optional[TimerHandle] = None
    announced: bool = False

    def clear_buffers(self) -> None:
        self.blink.reset()
        self.nod.reset()


@dataclass(frozen=True)
class ChallengeResult:
    action: Optional[FaceAction]
    completed: bool
    count: int
    newly_completed: bool = False
    message: Optional[str] = None


class ChallengeEngine:
    """
    Sequences randomized actions and detects them frame by frame.

    Args:
        scheduler: runs the cooldown callbacks
        required_actions: actions needed for full completion
        next_action_delay: cooldown before the next action is drawn
        completion_delay: cooldown before full completion is announced
        rng: random source with ``choice``; injectable for replay in tests
        on_all_completed: called with the completion message after the
            final cooldown
        lock: lock shared with the owner of the frame pipeline
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        required_actions: int = REQUIRED_ACTIONS,
        next_action_delay: float = NEXT_ACTION_DELAY_SECONDS,
        completion_delay: float = COMPLETION_DELAY_SECONDS,
        smile_threshold: float = SMILE_THRESHOLD,
        rng: Optional[RandomSource] = None,
        on_all_completed: Optional[Callable[[str], None]] = None,
        lock: Optional[threading.RLock] = None,
    ):
        self.required_actions = required_actions
        self.next_action_delay = next_action_delay
        self.completion_delay = completion_delay
        self.smile_threshold = smile_threshold
        self.state = ChallengeState()

        self._scheduler = scheduler
        self._rng = rng or secrets.SystemRandom()
        self._on_all_completed = on_all_completed
        self._lock = lock or threading.RLock()
        self._generation = 0

    @property
    def is_finished(self) -> bool:
        return self.state.completed_count >= self.required_actions

    def reset(self) -> None:
        """Cancel any pending cooldown and return to the initial state."""
        with self._lock:
            self._generation += 1
            if self.state.pending is not None:
                self.state.pending.cancel()
            self.state = ChallengeState()

    def request_next_action(self) -> Optional[FaceAction]:
        """Draw a new action uniformly at random and clear its buffers."""
        if self.is_finished:
            logger.debug("All actions already completed; not requesting another")
            return None

        action = self._rng.choice(list(FaceAction))
        self.state.current_action = action
        self.state.completed = False
        self.state.clear_buffers()
        logger.debug("Requested action %s", action.value)
        return action

    def evaluate(self, observation: FaceObservation) -> ChallengeResult:
        """
        Score one observation against the current action.

        While a cooldown is pending (or everything is done) the completed
        state is reported without looking at the observation.
        """
        state = self.state
        if self.is_finished or state.completed:
            return ChallengeResult(state.current_action, True, state.completed_count)

        if state.current_action is None:
            self.request_next_action()

        action = state.current_action
        instructions = ACTION_INSTRUCTIONS[action]

        if self._detect(action, observation):
            self._complete(action)
            return ChallengeResult(
                action,
                True,
                state.completed_count,
                newly_completed=True,
                message=instructions["detected"],
            )

        return ChallengeResult(
            action,
            False,
            state.completed_count,
            message=instructions["instruction"],
        )

    def _detect(self, action: FaceAction, observation: FaceObservation) -> bool:
        if action is FaceAction.SMILE:
            smiling = observation.smiling_probability
            return smiling is not None and smiling > self.smile_threshold

        if action is FaceAction.HEAD_SHAKE:
            return is_head_shake(observation.head_yaw_degrees)

        if action is FaceAction.BLINK:
            return self.state.blink.update(
                observation.left_eye_open_probability,
                observation.right_eye_open_probability,
                observation.timestamp,
            )

        return self.state.nod.update(observation.head_pitch_degrees)

    def _complete(self, action: FaceAction) -> None:
        state = self.state
        state.completed = True
        state.completed_count += 1
        state.clear_buffers()
        logger.info(
            "Completed action %s (%d/%d)",
            action.value,
            state.completed_count,
            self.required_actions,
        )

        if self.is_finished:
            self._schedule(self.completion_delay, self._announce_completion)
        else:
            self._schedule(self.next_action_delay, self.request_next_action)

    def _announce_completion(self) -> None:
        self.state.announced = True
        logger.info("All %d actions completed", self.required_actions)
        if self._on_all_completed:
            self._on_all_completed(ALL_DONE_MESSAGE)

    def _schedule(self, delay: float, callback: Callable[[], object]) -> None:
        generation = self._generation

        def fire() -> None:
            with self._lock:
                if generation != self._generation:
                    logger.debug("Discarding stale challenge callback")
                    return
                self.state.pending = None
                callback()

        self.state.pending = self._scheduler.call_later(delay, fire)
