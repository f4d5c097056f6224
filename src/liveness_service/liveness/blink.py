"""
Blink detection from eye-open probabilities.

A blink counts only when both eyes go from clearly open to clearly closed
and back, and the closure lasts a natural blink duration. Momentary
probability dips (detector flutter) and deliberate long closures (a photo
with closed eyes swapped in) are both rejected.

Thresholds use probability bands rather than exact zero, so sensor noise
around the extremes does not flip the state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

EYE_OPEN_THRESHOLD = 0.9     # Both eyes above this = open
EYE_CLOSED_THRESHOLD = 0.1   # Both eyes below this = closed
MIN_BLINK_SECONDS = 0.1
MAX_BLINK_SECONDS = 0.4


@dataclass
class BlinkTracker:
    """
    Stateful open -> closed -> open detector.

    Timestamps are monotonic seconds taken from the observations, so the
    measured duration reflects frame time, not processing time.
    """

    open_threshold: float = EYE_OPEN_THRESHOLD
    closed_threshold: float = EYE_CLOSED_THRESHOLD
    min_duration: float = MIN_BLINK_SECONDS
    max_duration: float = MAX_BLINK_SECONDS

    eyes_were_open: bool = False
    blink_start_time: Optional[float] = None
    last_duration: Optional[float] = None

    def reset(self) -> None:
        self.eyes_were_open = False
        self.blink_start_time = None
        self.last_duration = None

    def update(
        self,
        left_open: Optional[float],
        right_open: Optional[float],
        timestamp: float,
    ) -> bool:
        """
        Feed one frame and report whether a valid blink just finished.

        Frames without both probabilities are ignored entirely.
        """
        if left_open is None or right_open is None:
            return False

        eyes_open = left_open > self.open_threshold and right_open > self.open_threshold
        eyes_closed = left_open < self.closed_threshold and right_open < self.closed_threshold

        detected = False
        if self.eyes_were_open and eyes_closed:
            self.blink_start_time = timestamp
        elif self.blink_start_time is not None and eyes_open:
            duration = timestamp - self.blink_start_time
            self.last_duration = duration
            detected = self.min_duration < duration < self.max_duration
            self.blink_start_time = None

        self.eyes_were_open = eyes_open
        return detected
