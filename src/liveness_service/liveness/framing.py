"""
Framing gate.

Decides whether the face in a FaceObservation is usable for the challenge:
exactly one face, close enough to the camera, and inside the on-screen
target region.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from .observation import FaceObservation, Rect

# Distance calibration: a face box of REFERENCE_AREA view points^2
# corresponds to a face REFERENCE_DISTANCE_METERS from the camera.
REFERENCE_AREA = 50000.0
REFERENCE_DISTANCE_METERS = 0.5
MAX_DISTANCE_METERS = 1.5
DEFAULT_FRAMING_INSET = 10.0


class FramingResult(str, Enum):
    """Classification of a single observation."""
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    TOO_FAR = "too_far"
    OUT_OF_FRAME = "out_of_frame"
    FRAMED = "framed"


def estimate_distance(
    box: Rect | None,
    reference_area: float = REFERENCE_AREA,
    reference_distance: float = REFERENCE_DISTANCE_METERS,
) -> float:
    """
    Estimate camera distance in meters from the face box area.

    Distance scales with the inverse of the box area against a fixed
    calibration point. A missing or empty box is infinitely far.
    """
    if box is None or box.area <= 0:
        return math.inf
    return reference_distance * (reference_area / box.area)


@dataclass(frozen=True)
class FramingConfig:
    region: Rect
    max_distance_meters: float = MAX_DISTANCE_METERS
    reference_area: float = REFERENCE_AREA
    reference_distance_meters: float = REFERENCE_DISTANCE_METERS

    @classmethod
    def for_view(
        cls,
        view_bounds: Rect,
        inset: float = DEFAULT_FRAMING_INSET,
        max_distance_meters: float = MAX_DISTANCE_METERS,
    ) -> FramingConfig:
        """Target region is the view inset by ``inset`` on every side."""
        return cls(region=view_bounds.inset(inset, inset), max_distance_meters=max_distance_meters)


def is_inside_region(box: Rect, region: Rect) -> bool:
    """Center inside the region and the box strictly smaller on both axes."""
    cx, cy = box.center
    return (
        region.contains_point(cx, cy)
        and box.width < region.width
        and box.height < region.height
    )


class FramingGate:
    """Pure classifier of observations against a framing configuration."""

    def __init__(self, config: FramingConfig):
        self.config = config

    def distance(self, observation: FaceObservation) -> float:
        return estimate_distance(
            observation.bounding_box,
            self.config.reference_area,
            self.config.reference_distance_meters,
        )

    def classify(self, observation: FaceObservation) -> FramingResult:
        if observation.face_count <= 0:
            return FramingResult.NO_FACE
        if observation.face_count > 1:
            return FramingResult.MULTIPLE_FACES

        if self.distance(observation) > self.config.max_distance_meters:
            return FramingResult.TOO_FAR

        # distance check above guarantees a non-empty box
        if not is_inside_region(observation.bounding_box, self.config.region):
            return FramingResult.OUT_OF_FRAME

        return FramingResult.FRAMED
