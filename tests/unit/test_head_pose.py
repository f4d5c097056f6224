"""
Unit tests for head shake and head nod checks.
"""

import pytest

from liveness_service.liveness.head_pose import (
    PITCH_HISTORY_SIZE,
    HeadNodTracker,
    PitchDirection,
    is_head_shake,
)


class TestIsHeadShake:
    @pytest.mark.parametrize("yaw", [15.1, 20.0, -16.0, -45.0])
    def test_beyond_threshold(self, yaw):
        assert is_head_shake(yaw)

    @pytest.mark.parametrize("yaw", [0.0, 10.0, 15.0, -15.0])
    def test_within_threshold(self, yaw):
        assert not is_head_shake(yaw)


class TestHeadNodTracker:
    """Tests for pitch-reversal nod detection."""

    def test_oscillation_completes_nod(self):
        tracker = HeadNodTracker()
        results = [tracker.update(p) for p in [0, 10, -10, 10, -10]]

        assert results == [False, False, False, False, True]
        assert tracker.direction_changes == 3

    def test_needs_minimum_samples(self):
        tracker = HeadNodTracker()
        assert tracker.update(0) is False
        assert tracker.update(10) is False
        assert tracker.last_direction is None

    def test_monotonic_pitch_never_completes(self):
        """A single tilt, like a photo rotated once, has no reversals."""
        tracker = HeadNodTracker()
        results = [tracker.update(p) for p in range(0, 50, 5)]

        assert not any(results)
        assert tracker.direction_changes == 0

    def test_movement_within_noise_floor_is_ignored(self):
        tracker = HeadNodTracker()
        results = [tracker.update(p) for p in [0, 2, 0, 2, 0, 2, 0, 2]]

        assert not any(results)
        assert tracker.last_direction is None

    def test_direction_follows_pitch_sign(self):
        """Pitch decreases when looking up."""
        tracker = HeadNodTracker()
        for p in [10, 5, 0]:
            tracker.update(p)
        assert tracker.last_direction == PitchDirection.UP

        tracker.reset()
        for p in [0, 5, 10]:
            tracker.update(p)
        assert tracker.last_direction == PitchDirection.DOWN

    def test_small_jitter_does_not_break_a_run(self):
        tracker = HeadNodTracker()
        results = [tracker.update(p) for p in [0, 10, 11, -10, -9, 10, -10]]

        assert results[-1] is True

    def test_each_pair_counted_once(self):
        """Repeated evaluation must not recount reversals already seen."""
        tracker = HeadNodTracker()
        for p in [0, 10, -10]:
            tracker.update(p)
        assert tracker.direction_changes == 1

        # flat samples add no new reversals
        for p in [-10, -10, -10]:
            tracker.update(p)
        assert tracker.direction_changes == 1

    def test_history_is_bounded(self):
        tracker = HeadNodTracker()
        for p in range(PITCH_HISTORY_SIZE * 3):
            tracker.update(float(p))

        assert len(tracker.history) == PITCH_HISTORY_SIZE
        assert tracker.history[0] == float(PITCH_HISTORY_SIZE * 2)

    def test_reset(self):
        tracker = HeadNodTracker()
        for p in [0, 10, -10, 10]:
            tracker.update(p)

        tracker.reset()

        assert len(tracker.history) == 0
        assert tracker.direction_changes == 0
        assert tracker.last_direction is None
        assert [tracker.update(p) for p in [0, 10, -10]] == [False, False, False]
