"""
Per-frame face observations.

Converts the output of an external face detector into the normalized
FaceObservation record consumed by the framing gate and challenge engine.

The detector itself is an external capability: anything with a
``detect(frame)`` method returning a sequence of FaceDetection works.
Bounding boxes arrive in frame (pixel) coordinates and are mapped into
view coordinates with a CoordinateMapper, mirroring how a front-camera
preview is displayed with aspect-fill scaling.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle."""

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return max(self.width, 0.0) * max(self.height, 0.0)

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def contains_point(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def inset(self, dx: float, dy: float) -> Rect:
        return Rect(self.x + dx, self.y + dy, self.width - 2 * dx, self.height - 2 * dy)


@dataclass(frozen=True)
class FaceObservation:
    """Normalized detector signals for a single frame."""

    face_count: int = 0
    bounding_box: Rect | None = None
    left_eye_open_probability: float | None = None
    right_eye_open_probability: float | None = None
    smiling_probability: float | None = None
    head_yaw_degrees: float = 0.0
    head_pitch_degrees: float = 0.0
    timestamp: float = field(default_factory=time.monotonic)

    @classmethod
    def empty(cls, timestamp: float | None = None) -> FaceObservation:
        if timestamp is None:
            return cls()
        return cls(timestamp=timestamp)


@dataclass(frozen=True)
class FaceDetection:
    """One face as reported by the detector, in frame coordinates."""

    bounding_box: Rect
    left_eye_open_probability: float | None = None
    right_eye_open_probability: float | None = None
    smiling_probability: float | None = None
    head_yaw_degrees: float = 0.0
    head_pitch_degrees: float = 0.0


class FaceDetector(Protocol):
    def detect(self, frame: Any) -> Sequence[FaceDetection]: ...


@dataclass(frozen=True)
class CoordinateMapper:
    """
    Map frame-space rectangles into an aspect-fill preview.

    The frame is scaled uniformly until it covers the view, then centered;
    the overflow is cropped. With ``mirrored`` set, the x axis is flipped
    the way a front-camera preview is shown.
    """

    frame_width: float
    frame_height: float
    view_width: float
    view_height: float
    mirrored: bool = False

    @property
    def view_bounds(self) -> Rect:
        return Rect(0.0, 0.0, self.view_width, self.view_height)

    @property
    def scale(self) -> float:
        if self.frame_width <= 0 or self.frame_height <= 0:
            return 1.0
        return max(self.view_width / self.frame_width, self.view_height / self.frame_height)

    def to_view(self, rect: Rect) -> Rect:
        scale = self.scale
        offset_x = (self.view_width - self.frame_width * scale) / 2
        offset_y = (self.view_height - self.frame_height * scale) / 2

        x = rect.x * scale + offset_x
        y = rect.y * scale + offset_y
        width = rect.width * scale
        height = rect.height * scale

        if self.mirrored:
            x = self.view_width - (x + width)

        return Rect(x, y, width, height)


def _clamp_probability(value: float | None) -> float | None:
    if value is None:
        return None
    return max(0.0, min(1.0, float(value)))


def observation_from_detections(
    detections: Sequence[FaceDetection] | None,
    mapper: CoordinateMapper | None = None,
    timestamp: float | None = None,
) -> FaceObservation:
    """
    Build a FaceObservation from raw detector output.

    Args:
        detections: faces reported for the frame (None is treated as no faces)
        mapper: frame-to-view mapper; boxes are passed through when omitted
        timestamp: monotonic capture time of the frame

    Returns:
        FaceObservation. Only a single face carries box and probabilities.
    """
    ts = time.monotonic() if timestamp is None else timestamp

    if not detections:
        return FaceObservation.empty(ts)

    if len(detections) > 1:
        return FaceObservation(face_count=len(detections), timestamp=ts)

    face = detections[0]
    box = mapper.to_view(face.bounding_box) if mapper else face.bounding_box

    return FaceObservation(
        face_count=1,
        bounding_box=box,
        left_eye_open_probability=_clamp_probability(face.left_eye_open_probability),
        right_eye_open_probability=_clamp_probability(face.right_eye_open_probability),
        smiling_probability=_clamp_probability(face.smiling_probability),
        head_yaw_degrees=float(face.head_yaw_degrees),
        head_pitch_degrees=float(face.head_pitch_degrees),
        timestamp=ts,
    )


def observe_frame(
    detector: FaceDetector,
    frame: Any,
    mapper: CoordinateMapper | None = None,
    timestamp: float | None = None,
) -> FaceObservation:
    """
    Run the detector on a frame and normalize the result.

    Detector failures are reported as an empty observation so the session
    falls back to waiting for a face instead of aborting.
    """
    try:
        detections = detector.detect(frame)
    except Exception as e:
        logger.warning("Face detection failed: %s", e)
        return FaceObservation.empty(timestamp)
    return observation_from_detections(detections, mapper, timestamp)
