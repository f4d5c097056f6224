"""Structured logging helpers with liveness session correlation."""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Iterator

_session_id: contextvars.ContextVar[str] = contextvars.ContextVar("session_id", default="-")


class SessionIdFilter(logging.Filter):
    """Inject session_id into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - standard filter
        record.session_id = _session_id.get("-")
        return True


def set_session_id(value: str | None) -> contextvars.Token[str]:
    """Bind the liveness session id to the current context."""
    return _session_id.set(value or "-")


@contextmanager
def session_log_context(session_id: str) -> Iterator[None]:
    """Tag log records emitted inside the block with ``session_id``."""
    token = set_session_id(session_id)
    try:
        yield
    finally:
        _session_id.reset(token)


def configure_logging() -> None:
    """Attach session id filter and ensure format includes it."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] [session:%(session_id)s] %(message)s"
    )

    for handler in root.handlers:
        handler.addFilter(SessionIdFilter())
        handler.setFormatter(formatter)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            handler.addFilter(SessionIdFilter())
            handler.setFormatter(formatter)
