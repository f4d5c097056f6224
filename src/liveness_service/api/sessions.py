"""Liveness session endpoints: lifecycle, frame submission and photo capture."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Response
from starlette import status

from ..core.logging import session_log_context
from ..liveness.observation import Rect
from ..schemas import (
    CaptureRequest,
    CaptureResponse,
    CreateSessionRequest,
    EventsResponse,
    FramePayload,
    FrameResponse,
    SessionStateResponse,
)
from ..services.capture import CaptureError, capture_failed_event, save_capture
from ..services.session_store import DEFAULT_VIEW_BOUNDS, SessionStore
from ..settings import Settings
from ..telemetry import liveness_span, record_session_state
from .shared import build_event_response, build_state_response, process_frame, require_session

logger = logging.getLogger(__name__)


def get_router(settings: Settings, store: SessionStore) -> APIRouter:
    router = APIRouter(prefix="/sessions")

    @router.post("", response_model=SessionStateResponse, status_code=status.HTTP_201_CREATED)
    async def create_session(request: Optional[CreateSessionRequest] = None):
        view_bounds = DEFAULT_VIEW_BOUNDS
        if request and request.view_width and request.view_height:
            view_bounds = Rect(0.0, 0.0, request.view_width, request.view_height)
        session = store.create(view_bounds)
        return build_state_response(session)

    @router.get("/{session_id}", response_model=SessionStateResponse)
    async def get_session_state(session_id: str):
        return build_state_response(require_session(store, session_id))

    @router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_session(session_id: str):
        if not store.delete(session_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Session not found or expired",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/{session_id}/frames", response_model=FrameResponse)
    async def submit_frame(session_id: str, payload: FramePayload):
        session = require_session(store, session_id)

        with session_log_context(session_id), liveness_span(
            "liveness.process_frame", session_id
        ) as span:
            span.set_attribute("liveness.face_count", len(payload.faces))
            events = process_frame(store, session, payload)
            record_session_state(span, session.controller.snapshot())
            state = build_state_response(session)

        return FrameResponse(
            state=state,
            events=[build_event_response(event) for event in events],
        )

    @router.get("/{session_id}/events", response_model=EventsResponse)
    async def drain_events(session_id: str):
        """Return and clear buffered events, including cooldown-driven ones."""
        session = require_session(store, session_id)
        return EventsResponse(
            session_id=session_id,
            events=[build_event_response(event) for event in session.events.drain()],
        )

    @router.post("/{session_id}/reset", response_model=SessionStateResponse)
    async def reset_session(session_id: str):
        session = require_session(store, session_id)
        with session_log_context(session_id):
            session.controller.reset()
            session.events.drain()
        return build_state_response(session)

    @router.post("/{session_id}/capture", response_model=CaptureResponse)
    async def capture_photo(session_id: str, request: CaptureRequest):
        session = require_session(store, session_id)
        if not request.image:
            raise HTTPException(status_code=400, detail="Image is required")

        if not session.controller.snapshot().capture_unlocked:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Liveness challenges are not complete",
            )

        with session_log_context(session_id), liveness_span("liveness.capture", session_id) as span:
            span.set_attribute("liveness.image_bytes", len(request.image))
            try:
                result = save_capture(request.image, settings.liveness.capture_dir)
            except CaptureError as e:
                logger.warning("Capture failed: %s", e)
                session.fanout(capture_failed_event(f"Photo capture failed: {e}"))
                raise HTTPException(status_code=400, detail=str(e)) from e

            event = result.event
            session.fanout(event)

        return CaptureResponse(
            success=True,
            image_handle=result.image_handle,
            width=result.width,
            height=result.height,
            event=build_event_response(event),
        )

    return router
