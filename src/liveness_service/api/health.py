"""Health and build info endpoints."""

from __future__ import annotations

import time

from fastapi import APIRouter

from ..schemas import BuildInfoResponse, HealthResponse
from ..services.session_store import SessionStore
from ..settings import Settings

SERVICE_NAME = "liveness-service"


def get_router(settings: Settings, store: SessionStore) -> APIRouter:
    start_time = time.time()
    router = APIRouter()

    @router.get("/health", response_model=HealthResponse)
    async def health_check():
        return HealthResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=settings.version,
            uptime_seconds=round(time.time() - start_time, 2),
            active_sessions=len(store),
        )

    @router.get("/build-info", response_model=BuildInfoResponse)
    async def build_info():
        return BuildInfoResponse(
            service=SERVICE_NAME,
            version=settings.version,
            git_sha=settings.git_sha,
            build_time=settings.build_time,
        )

    return router
