"""
Liveness Challenge Service - FastAPI Application.

Runs randomized challenge-response liveness sessions (smile, head shake,
blink, head nod) over per-frame face detections streamed by the client.

IMPORTANT: The service never sees video frames. Clients run their own
face detector and send only face boxes, probabilities and head angles.
The single still photo accepted after completion is written to the
capture directory and never echoed back.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from .api import health, sessions, stream
from .core.auth import add_internal_auth_middleware
from .core.logging import configure_logging
from .services.session_store import SessionStore
from .settings import Settings
from .telemetry import instrument_app

configure_logging()
logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, store: SessionStore | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    settings.validate()
    if store is None:
        store = SessionStore(settings.liveness)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info(
            "Liveness service ready (%d actions per session)",
            settings.liveness.required_actions,
        )
        yield

    app = FastAPI(
        title="Liveness Challenge Service",
        description="Challenge-response face liveness verification",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.session_store = store

    instrument_app(app)

    # Privacy: Avoid echoing request bodies (e.g., base64 images) back in 422 responses.
    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_request: Request, _exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": "Invalid request"},
        )

    add_internal_auth_middleware(app, token=settings.internal_service_token)

    app.include_router(health.get_router(settings, store))
    app.include_router(sessions.get_router(settings, store))
    app.include_router(stream.get_router(settings, store))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=Settings.from_env().port)
