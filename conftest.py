"""
Pytest configuration for liveness service tests.

Provides fixtures for:
- Deterministic cooldown scheduling (ManualScheduler)
- Scripted action selection (ScriptedRandom)
- Observation factories for framed / unframed faces
- Sample capture images
"""

import base64
import io
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).parent
SRC_DIR = ROOT_DIR / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

from liveness_service.liveness.framing import FramingConfig  # noqa: E402
from liveness_service.liveness.observation import FaceObservation, Rect  # noqa: E402

VIEW_BOUNDS = Rect(0.0, 0.0, 720.0, 1280.0)
# 200x250 box: area 50000, estimated distance 0.5 m, centered in the view
FRAMED_BOX = Rect(260.0, 515.0, 200.0, 250.0)


# =============================================================================
# Scheduling and randomness
# =============================================================================


class ManualHandle:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when the test says so."""

    def __init__(self):
        self.now = 0.0
        self.handles: list[ManualHandle] = []

    def call_later(self, delay, callback):
        handle = ManualHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [h for h in self.pending if h.due <= self.now]
        for handle in sorted(due, key=lambda h: h.due):
            self.handles.remove(handle)
            handle.callback()

    def fire_all(self) -> None:
        """Fire every handle, cancelled or not, as a late timer thread would."""
        handles, self.handles = self.handles, []
        for handle in handles:
            handle.callback()


class ScriptedRandom:
    """Random source returning a fixed sequence of choices."""

    def __init__(self, *choices):
        self._choices = list(choices)
        self.calls = 0

    def choice(self, seq):
        value = self._choices[self.calls % len(self._choices)]
        self.calls += 1
        assert value in seq
        return value


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def scripted_random():
    return ScriptedRandom


# =============================================================================
# Observations
# =============================================================================


@pytest.fixture
def view_bounds():
    return VIEW_BOUNDS


@pytest.fixture
def framing_config():
    return FramingConfig.for_view(VIEW_BOUNDS)


@pytest.fixture
def framed_box():
    return FRAMED_BOX


@pytest.fixture
def make_observation():
    """Factory for a single, well-framed face with overridable signals."""

    def _make(**overrides) -> FaceObservation:
        values = {
            "face_count": 1,
            "bounding_box": FRAMED_BOX,
            "left_eye_open_probability": 0.95,
            "right_eye_open_probability": 0.95,
            "smiling_probability": 0.1,
            "head_yaw_degrees": 0.0,
            "head_pitch_degrees": 0.0,
            "timestamp": 0.0,
        }
        values.update(overrides)
        return FaceObservation(**values)

    return _make


# =============================================================================
# Capture images
# =============================================================================


def _encode_image(color, size) -> str:
    from PIL import Image

    img = Image.new("RGB", size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("utf-8")


@pytest.fixture
def sample_base64_image():
    """A 200x200 red PNG, base64 encoded."""
    return _encode_image("red", (200, 200))


@pytest.fixture
def tiny_base64_image():
    return _encode_image("red", (16, 16))


@pytest.fixture
def blank_base64_image():
    return _encode_image("black", (200, 200))
