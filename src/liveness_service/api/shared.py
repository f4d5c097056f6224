"""Shared API helpers for payload and response mapping."""

from __future__ import annotations

import logging

from fastapi import HTTPException
from starlette import status

from ..liveness.challenge_engine import ACTION_INSTRUCTIONS
from ..liveness.events import LivenessEvent
from ..liveness.observation import (
    CoordinateMapper,
    FaceDetection,
    FaceObservation,
    Rect,
    observation_from_detections,
)
from ..schemas import EventResponse, FramePayload, SessionStateResponse
from ..services.session_store import LivenessSession, SessionStore, framing_for_view

logger = logging.getLogger(__name__)


def require_session(store: SessionStore, session_id: str) -> LivenessSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found or expired",
        )
    return session


def build_event_response(event: LivenessEvent) -> EventResponse:
    return EventResponse(
        kind=event.kind.value,
        message=event.message,
        action=event.action.value if event.action else None,
        image_handle=event.image_handle,
        created_at=event.created_at,
    )


def build_state_response(session: LivenessSession) -> SessionStateResponse:
    snapshot = session.controller.snapshot()
    action = snapshot.current_action
    return SessionStateResponse(
        session_id=session.session_id,
        step=snapshot.step.value,
        completed_count=snapshot.completed_count,
        required_actions=snapshot.required_actions,
        current_action=action.value if action else None,
        instruction=ACTION_INSTRUCTIONS[action]["instruction"] if action else None,
        action_completed=snapshot.action_completed,
        is_complete=snapshot.is_complete,
        capture_unlocked=snapshot.capture_unlocked,
    )


def _mapper_for(payload: FramePayload) -> CoordinateMapper | None:
    sizes = (payload.frame_width, payload.frame_height, payload.view_width, payload.view_height)
    if any(size is None for size in sizes):
        return None
    return CoordinateMapper(
        frame_width=payload.frame_width,
        frame_height=payload.frame_height,
        view_width=payload.view_width,
        view_height=payload.view_height,
        mirrored=payload.mirrored,
    )


def observation_from_payload(payload: FramePayload) -> FaceObservation:
    """
    Convert a client frame into a FaceObservation.

    A frame that carries a detector error counts as a frame without faces.
    """
    if payload.error:
        logger.warning("Client reported detector error: %s", payload.error)
        return FaceObservation.empty(payload.timestamp)

    detections = [
        FaceDetection(
            bounding_box=Rect(
                face.bounding_box.x,
                face.bounding_box.y,
                face.bounding_box.width,
                face.bounding_box.height,
            ),
            left_eye_open_probability=face.left_eye_open_probability,
            right_eye_open_probability=face.right_eye_open_probability,
            smiling_probability=face.smiling_probability,
            head_yaw_degrees=face.head_yaw_degrees,
            head_pitch_degrees=face.head_pitch_degrees,
        )
        for face in payload.faces
    ]
    return observation_from_detections(detections, _mapper_for(payload), payload.timestamp)


def process_frame(
    store: SessionStore, session: LivenessSession, payload: FramePayload
) -> list[LivenessEvent]:
    """Apply view-size changes, then run the frame through the session."""
    if payload.view_width is not None and payload.view_height is not None:
        view_bounds = Rect(0.0, 0.0, payload.view_width, payload.view_height)
        session.controller.set_framing(framing_for_view(view_bounds, store.settings))
    return session.controller.process(observation_from_payload(payload))
