"""
Unit tests for the challenge engine.

Cooldowns run on a manual scheduler and action selection is scripted, so
every sequence here is deterministic.
"""

from hypothesis import given, settings, strategies as st

from liveness_service.liveness.challenge_engine import (
    ACTION_INSTRUCTIONS,
    ALL_DONE_MESSAGE,
    ChallengeEngine,
    FaceAction,
)
from liveness_service.liveness.observation import FaceObservation


def _smile(make_observation, probability, timestamp=0.0):
    return make_observation(smiling_probability=probability, timestamp=timestamp)


class TestActionSelection:
    def test_first_evaluation_draws_an_action(self, scheduler, scripted_random, make_observation):
        rng = scripted_random(FaceAction.BLINK)
        engine = ChallengeEngine(scheduler, rng=rng)

        result = engine.evaluate(make_observation())

        assert result.action == FaceAction.BLINK
        assert result.completed is False
        assert result.message == ACTION_INSTRUCTIONS[FaceAction.BLINK]["instruction"]
        assert rng.calls == 1

    def test_action_is_kept_until_completed(self, scheduler, scripted_random, make_observation):
        rng = scripted_random(FaceAction.SMILE, FaceAction.HEAD_NOD)
        engine = ChallengeEngine(scheduler, rng=rng)

        for _ in range(5):
            assert engine.evaluate(_smile(make_observation, 0.2)).action == FaceAction.SMILE

        assert rng.calls == 1

    def test_request_next_action_clears_buffers(self, scheduler, scripted_random):
        engine = ChallengeEngine(scheduler, rng=scripted_random(FaceAction.HEAD_NOD))
        engine.state.nod.update(0)
        engine.state.nod.update(10)
        engine.state.blink.update(0.95, 0.95, 0.0)

        engine.request_next_action()

        assert len(engine.state.nod.history) == 0
        assert engine.state.blink.eyes_were_open is False

    def test_default_rng_draws_every_action(self, scheduler):
        engine = ChallengeEngine(scheduler)
        seen = {engine.request_next_action() for _ in range(200)}

        assert seen == set(FaceAction)


class TestSmile:
    def test_smile_sequence(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(
            scheduler, rng=scripted_random(FaceAction.SMILE, FaceAction.HEAD_SHAKE)
        )

        results = [engine.evaluate(_smile(make_observation, p)) for p in [0.3, 0.5, 0.85]]

        assert [r.completed for r in results] == [False, False, True]
        assert [r.count for r in results] == [0, 0, 1]
        assert results[2].newly_completed is True
        assert results[2].message == "Detected: Smile"

    def test_threshold_is_exclusive(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(scheduler, rng=scripted_random(FaceAction.SMILE))

        assert engine.evaluate(_smile(make_observation, 0.8)).completed is False

    def test_missing_smile_probability(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(scheduler, rng=scripted_random(FaceAction.SMILE))

        assert engine.evaluate(_smile(make_observation, None)).completed is False


class TestOtherActions:
    def test_head_shake(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(scheduler, rng=scripted_random(FaceAction.HEAD_SHAKE))

        assert engine.evaluate(make_observation(head_yaw_degrees=10.0)).completed is False
        assert engine.evaluate(make_observation(head_yaw_degrees=-20.0)).completed is True

    def test_blink(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(scheduler, rng=scripted_random(FaceAction.BLINK))
        frames = [(0.95, 0.05), (0.02, 0.1), (0.02, 0.25), (0.95, 0.32)]

        results = [
            engine.evaluate(
                make_observation(
                    left_eye_open_probability=p,
                    right_eye_open_probability=p,
                    timestamp=ts,
                )
            )
            for p, ts in frames
        ]

        assert [r.completed for r in results] == [False, False, False, True]

    def test_head_nod(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(scheduler, rng=scripted_random(FaceAction.HEAD_NOD))

        results = [
            engine.evaluate(make_observation(head_pitch_degrees=p)) for p in [0, 10, -10, 10, -10]
        ]

        assert [r.completed for r in results] == [False, False, False, False, True]


class TestCooldowns:
    """Tests for the delayed next-action and completion callbacks."""

    def test_next_action_after_cooldown(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(
            scheduler, rng=scripted_random(FaceAction.SMILE, FaceAction.HEAD_SHAKE)
        )
        engine.evaluate(_smile(make_observation, 0.9))

        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].due == 3.0

        scheduler.advance(2.9)
        assert engine.state.current_action == FaceAction.SMILE
        assert engine.state.completed is True

        scheduler.advance(0.2)
        assert engine.state.current_action == FaceAction.HEAD_SHAKE
        assert engine.state.completed is False
        assert engine.state.pending is None

    def test_frames_during_cooldown_are_not_scored(
        self, scheduler, scripted_random, make_observation
    ):
        engine = ChallengeEngine(scheduler, rng=scripted_random(FaceAction.SMILE))
        engine.evaluate(_smile(make_observation, 0.9))

        result = engine.evaluate(_smile(make_observation, 0.95))

        assert result.completed is True
        assert result.newly_completed is False
        assert result.message is None
        assert result.count == 1

    def test_completion_announced_after_delay(self, scheduler, scripted_random, make_observation):
        announced = []
        engine = ChallengeEngine(
            scheduler,
            rng=scripted_random(FaceAction.SMILE),
            on_all_completed=announced.append,
        )

        for _ in range(2):
            engine.evaluate(_smile(make_observation, 0.9))
            scheduler.advance(3.0)
        engine.evaluate(_smile(make_observation, 0.9))

        assert engine.is_finished
        assert engine.state.completed_count == 3
        assert scheduler.pending[0].due == scheduler.now + 2.0

        scheduler.advance(1.9)
        assert announced == []
        assert engine.state.announced is False

        scheduler.advance(0.2)
        assert announced == [ALL_DONE_MESSAGE]
        assert engine.state.announced is True

    def test_no_action_requested_after_finishing(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(
            scheduler, required_actions=1, rng=scripted_random(FaceAction.SMILE)
        )
        engine.evaluate(_smile(make_observation, 0.9))

        assert engine.request_next_action() is None
        assert engine.evaluate(_smile(make_observation, 0.1)).completed is True

    def test_custom_delays(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(
            scheduler,
            required_actions=2,
            next_action_delay=1.0,
            completion_delay=0.5,
            rng=scripted_random(FaceAction.SMILE),
        )
        engine.evaluate(_smile(make_observation, 0.9))
        assert scheduler.pending[0].due == 1.0

        scheduler.advance(1.0)
        engine.evaluate(_smile(make_observation, 0.9))
        assert scheduler.pending[0].due == 1.5


class TestReset:
    def test_reset_restores_initial_state(self, scheduler, scripted_random, make_observation):
        engine = ChallengeEngine(scheduler, rng=scripted_random(FaceAction.SMILE))
        engine.evaluate(_smile(make_observation, 0.9))

        engine.reset()

        assert engine.state.completed_count == 0
        assert engine.state.current_action is None
        assert engine.state.completed is False
        assert scheduler.pending == []

    def test_stale_next_action_callback_is_ignored(
        self, scheduler, scripted_random, make_observation
    ):
        rng = scripted_random(FaceAction.SMILE)
        engine = ChallengeEngine(scheduler, rng=rng)
        engine.evaluate(_smile(make_observation, 0.9))

        engine.reset()
        scheduler.fire_all()

        assert engine.state.current_action is None
        assert engine.state.completed_count == 0
        assert rng.calls == 1

    def test_stale_completion_callback_is_ignored(
        self, scheduler, scripted_random, make_observation
    ):
        announced = []
        engine = ChallengeEngine(
            scheduler,
            required_actions=1,
            rng=scripted_random(FaceAction.SMILE),
            on_all_completed=announced.append,
        )
        engine.evaluate(_smile(make_observation, 0.9))

        engine.reset()
        scheduler.fire_all()

        assert announced == []
        assert engine.state.announced is False


class _InstantScheduler:
    """Runs every cooldown immediately."""

    class _Handle:
        def cancel(self):
            pass

    def call_later(self, delay, callback):
        callback()
        return self._Handle()


class _FixedRandom:
    def choice(self, seq):
        return FaceAction.SMILE


class TestCompletedCountProperty:
    @given(st.lists(st.floats(min_value=0.0, max_value=1.0), max_size=40))
    @settings(max_examples=100)
    def test_count_is_monotonic_and_bounded(self, probabilities):
        engine = ChallengeEngine(_InstantScheduler(), rng=_FixedRandom())

        previous = 0
        for p in probabilities:
            observation = FaceObservation(face_count=1, smiling_probability=p, timestamp=0.0)
            result = engine.evaluate(observation)
            assert previous <= result.count <= engine.required_actions
            previous = result.count

        expected = min(sum(1 for p in probabilities if p > 0.8), engine.required_actions)
        assert engine.state.completed_count == expected
