"""
Head movement checks from detector Euler angles.

- Head shake: a single frame with enough yaw either way.
- Head nod: oscillation in pitch. A static photo tilted once produces a
  single displacement; a live nod reverses direction repeatedly.

Pitch sign follows the detector convention: pitch decreases when the user
looks up.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

HEAD_SHAKE_YAW_DEGREES = 15.0
PITCH_HISTORY_SIZE = 10
PITCH_NOISE_FLOOR_DEGREES = 3.0
MIN_PITCH_SAMPLES = 3
REQUIRED_DIRECTION_CHANGES = 3


class PitchDirection(str, Enum):
    UP = "up"
    DOWN = "down"


def is_head_shake(yaw_degrees: float, threshold: float = HEAD_SHAKE_YAW_DEGREES) -> bool:
    return abs(yaw_degrees) > threshold


@dataclass
class HeadNodTracker:
    """
    Count pitch direction reversals over a bounded history.

    Every consecutive pair of samples is classified once. Pairs that move
    less than the noise floor are ignored and do not break a run.
    """

    noise_floor: float = PITCH_NOISE_FLOOR_DEGREES
    required_changes: int = REQUIRED_DIRECTION_CHANGES
    min_samples: int = MIN_PITCH_SAMPLES

    history: deque = field(default_factory=lambda: deque(maxlen=PITCH_HISTORY_SIZE))
    last_direction: Optional[PitchDirection] = None
    direction_changes: int = 0
    _started: bool = field(default=False, init=False, repr=False)

    def reset(self) -> None:
        self.history.clear()
        self.last_direction = None
        self.direction_changes = 0
        self._started = False

    def _classify(self, previous: float, current: float) -> None:
        if abs(current - previous) <= self.noise_floor:
            return
        direction = PitchDirection.UP if current < previous else PitchDirection.DOWN
        if self.last_direction is not None and direction != self.last_direction:
            self.direction_changes += 1
        self.last_direction = direction

    def update(self, pitch_degrees: float) -> bool:
        """Add a pitch sample and report whether the nod is complete."""
        self.history.append(float(pitch_degrees))

        if len(self.history) < self.min_samples:
            return False

        samples = list(self.history)
        if not self._started:
            # First evaluation: classify every pair collected so far
            for previous, current in zip(samples, samples[1:]):
                self._classify(previous, current)
            self._started = True
        else:
            self._classify(samples[-2], samples[-1])

        return self.direction_changes >= self.required_changes
