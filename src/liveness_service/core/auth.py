"""Internal service authentication for HTTP routes and WebSocket streams."""

from __future__ import annotations

import logging
import secrets

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)

TOKEN_HEADER = "x-zentity-internal-token"

_PUBLIC_PATHS = frozenset({"/health", "/build-info", "/openapi.json"})


def _is_public_path(path: str) -> bool:
    return path in _PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc")


def _validate_internal_token(provided: str | None, expected: str) -> bool:
    if not expected:
        return True
    if not provided:
        return False
    return secrets.compare_digest(provided, expected)


def _mask_ip(ip: str) -> str:
    if not ip:
        return "unknown"
    if ":" in ip:
        parts = ip.split(":")
        return ":".join(parts[:3]) + ":..."
    parts = ip.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.x.x"
    return "unknown"


def is_websocket_authorized(websocket: WebSocket, token: str) -> bool:
    """
    Check a WebSocket handshake against the internal token.

    Browsers cannot set headers on WebSocket handshakes, so the token is
    also accepted as a ``token`` query parameter.
    """
    provided = websocket.headers.get(TOKEN_HEADER) or websocket.query_params.get("token")
    if _validate_internal_token(provided, token):
        return True
    client_host = websocket.client.host if websocket.client else ""
    logger.warning(
        "Unauthorized stream attempt to %s from %s",
        websocket.url.path,
        _mask_ip(client_host),
    )
    return False


def add_internal_auth_middleware(app: FastAPI, *, token: str) -> None:
    """Attach auth middleware when a token is configured."""
    if not token:
        return

    @app.middleware("http")
    async def internal_auth_middleware(request: Request, call_next):
        if _is_public_path(request.url.path):
            return await call_next(request)

        provided = request.headers.get(TOKEN_HEADER)
        if not _validate_internal_token(provided, token):
            client_host = request.client.host if request.client else ""
            logger.warning(
                "Unauthorized access attempt to %s from %s",
                request.url.path,
                _mask_ip(client_host),
            )
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Unauthorized"},
            )

        return await call_next(request)
