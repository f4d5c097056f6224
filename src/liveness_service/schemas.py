"""API request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


def _to_camel(string: str) -> str:
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)


class BoundingBox(APIModel):
    """Face bounding box in frame coordinates (or view coordinates without frame size)."""

    x: float
    y: float
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)


class FaceDetectionPayload(APIModel):
    """One face as reported by the client-side detector."""

    bounding_box: BoundingBox
    left_eye_open_probability: float | None = Field(None, ge=0, le=1)
    right_eye_open_probability: float | None = Field(None, ge=0, le=1)
    smiling_probability: float | None = Field(None, ge=0, le=1)
    head_yaw_degrees: float = 0.0
    head_pitch_degrees: float = 0.0


class FramePayload(APIModel):
    """Detector output for a single video frame."""

    faces: list[FaceDetectionPayload] = Field(default_factory=list)
    frame_width: float | None = Field(None, gt=0)
    frame_height: float | None = Field(None, gt=0)
    view_width: float | None = Field(None, gt=0)
    view_height: float | None = Field(None, gt=0)
    mirrored: bool = False
    timestamp: float | None = Field(
        None, description="Monotonic capture time of the frame in seconds"
    )
    error: str | None = Field(None, description="Detector error for this frame, if any")


class CreateSessionRequest(APIModel):
    view_width: float | None = Field(None, gt=0)
    view_height: float | None = Field(None, gt=0)


class EventResponse(APIModel):
    kind: str
    message: str
    action: str | None = None
    image_handle: str | None = None
    created_at: float


class SessionStateResponse(APIModel):
    session_id: str
    step: str
    completed_count: int
    required_actions: int
    current_action: str | None = None
    instruction: str | None = None
    action_completed: bool
    is_complete: bool
    capture_unlocked: bool


class FrameResponse(APIModel):
    state: SessionStateResponse
    events: list[EventResponse]


class EventsResponse(APIModel):
    session_id: str
    events: list[EventResponse]


class CaptureRequest(APIModel):
    image: str = Field(..., description="Base64 encoded photo")


class CaptureResponse(APIModel):
    success: bool
    image_handle: str | None = None
    width: int | None = None
    height: int | None = None
    event: EventResponse


class HealthResponse(APIModel):
    status: str
    service: str
    version: str
    uptime_seconds: float
    active_sessions: int


class BuildInfoResponse(APIModel):
    """Build information for deployment verification."""

    service: str
    version: str
    git_sha: str
    build_time: str
