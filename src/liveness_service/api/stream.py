"""
WebSocket frame stream.

The client sends one FramePayload JSON message per video frame; the
server pushes back every event as it happens (including the delayed
next-action and completion events) followed by the session state after
each processed frame. A single forwarding task owns all sends.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette import status

from ..core.auth import is_websocket_authorized
from ..core.logging import session_log_context
from ..liveness.events import AsyncEventChannel, LivenessEvent
from ..schemas import FramePayload
from ..services.session_store import SessionStore
from ..settings import Settings
from ..telemetry import liveness_span, record_session_state
from .shared import build_event_response, build_state_response, process_frame

logger = logging.getLogger(__name__)


async def _forward(websocket: WebSocket, channel: AsyncEventChannel) -> None:
    while True:
        item = await channel.get()
        if isinstance(item, LivenessEvent):
            message = {"type": "event", **build_event_response(item).model_dump(by_alias=True)}
        else:
            message = item
        await websocket.send_json(message)


async def _stop_forwarder(forwarder: asyncio.Task) -> None:
    """Cancel the forwarder and collect its outcome; sends fail once the peer is gone."""
    forwarder.cancel()
    with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
        await forwarder


def get_router(settings: Settings, store: SessionStore) -> APIRouter:
    router = APIRouter()

    @router.websocket("/sessions/{session_id}/stream")
    async def stream_frames(websocket: WebSocket, session_id: str):
        if not is_websocket_authorized(websocket, settings.internal_service_token):
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        session = store.get(session_id)
        if session is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        channel = AsyncEventChannel(asyncio.get_running_loop())
        session.fanout.add(channel)
        forwarder = asyncio.create_task(_forward(websocket, channel))

        try:
            with session_log_context(session_id):
                while True:
                    data = await websocket.receive_text()
                    try:
                        payload = FramePayload.model_validate_json(data)
                    except ValidationError:
                        # Privacy: do not echo the frame back
                        channel.publish({"type": "error", "error": "Invalid frame"})
                        continue

                    with liveness_span("liveness.stream_frame", session_id) as span:
                        span.set_attribute("liveness.face_count", len(payload.faces))
                        process_frame(store, session, payload)
                        record_session_state(span, session.controller.snapshot())
                    # events were queued via call_soon_threadsafe; let them land first
                    await asyncio.sleep(0)
                    state = build_state_response(session).model_dump(by_alias=True)
                    channel.publish({"type": "state", **state})
        except WebSocketDisconnect:
            logger.debug("Stream for session %s disconnected", session_id)
        finally:
            session.fanout.remove(channel)
            await _stop_forwarder(forwarder)

    return router
