"""Liveness challenge core: framing gate, challenge engine and session controller."""

from .challenge_engine import ACTION_INSTRUCTIONS, ChallengeEngine, ChallengeResult, FaceAction
from .events import EventKind, LivenessEvent
from .framing import FramingConfig, FramingGate, FramingResult
from .observation import CoordinateMapper, FaceDetection, FaceObservation, Rect
from .session import SessionController, SessionSnapshot, SessionStep

__all__ = [
    "ACTION_INSTRUCTIONS",
    "ChallengeEngine",
    "ChallengeResult",
    "CoordinateMapper",
    "EventKind",
    "FaceAction",
    "FaceDetection",
    "FaceObservation",
    "FramingConfig",
    "FramingGate",
    "FramingResult",
    "LivenessEvent",
    "Rect",
    "SessionController",
    "SessionSnapshot",
    "SessionStep",
]
