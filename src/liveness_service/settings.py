"""Application settings and environment parsing."""

from __future__ import annotations

import os
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime

TRUTHY_VALUES = frozenset({"1", "true", "yes"})


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in TRUTHY_VALUES


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise SystemExit(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise SystemExit(f"{name} must be an integer, got {raw!r}") from None


def _get_git_sha() -> str:
    """Resolve git SHA from env or git command."""
    if sha := _env("GIT_SHA"):
        return sha
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        pass
    return "unknown"


def _get_build_time() -> str:
    """Resolve build time from env or current time."""
    if build_time := _env("BUILD_TIME"):
        return build_time
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class LivenessSettings:
    """Tuning knobs for the challenge flow."""

    required_actions: int = 3
    next_action_delay_seconds: float = 3.0
    completion_delay_seconds: float = 2.0
    max_distance_meters: float = 1.5
    framing_inset: float = 10.0
    confirmation_frames: int = 1
    reset_progress_on_face_loss: bool = False
    session_ttl_seconds: float = 600.0
    capture_dir: str = ""

    def validate(self) -> None:
        if self.required_actions < 1:
            raise SystemExit("LIVENESS_REQUIRED_ACTIONS must be at least 1.")
        if self.confirmation_frames < 1:
            raise SystemExit("LIVENESS_CONFIRMATION_FRAMES must be at least 1.")
        if self.next_action_delay_seconds < 0 or self.completion_delay_seconds < 0:
            raise SystemExit("Liveness cooldown delays cannot be negative.")
        if self.max_distance_meters <= 0:
            raise SystemExit("LIVENESS_MAX_DISTANCE_METERS must be positive.")
        if self.framing_inset < 0:
            raise SystemExit("LIVENESS_FRAMING_INSET cannot be negative.")

    @classmethod
    def from_env(cls) -> LivenessSettings:
        return cls(
            required_actions=_env_int("LIVENESS_REQUIRED_ACTIONS", 3),
            next_action_delay_seconds=_env_float("LIVENESS_NEXT_ACTION_DELAY_SECONDS", 3.0),
            completion_delay_seconds=_env_float("LIVENESS_COMPLETION_DELAY_SECONDS", 2.0),
            max_distance_meters=_env_float("LIVENESS_MAX_DISTANCE_METERS", 1.5),
            framing_inset=_env_float("LIVENESS_FRAMING_INSET", 10.0),
            confirmation_frames=_env_int("LIVENESS_CONFIRMATION_FRAMES", 1),
            reset_progress_on_face_loss=_is_truthy(_env("LIVENESS_RESET_PROGRESS_ON_FACE_LOSS")),
            session_ttl_seconds=_env_float("LIVENESS_SESSION_TTL_SECONDS", 600.0),
            capture_dir=_env("LIVENESS_CAPTURE_DIR") or tempfile.gettempdir(),
        )


@dataclass(frozen=True)
class Settings:
    port: int
    internal_service_token: str
    internal_service_token_required: bool
    node_env: str
    app_env: str
    rust_env: str
    version: str
    git_sha: str
    build_time: str
    liveness: LivenessSettings

    @property
    def is_production(self) -> bool:
        return any(env == "production" for env in (self.node_env, self.app_env, self.rust_env))

    def validate(self) -> None:
        requires_token = self.is_production or self.internal_service_token_required
        if requires_token and not self.internal_service_token:
            raise SystemExit(
                "INTERNAL_SERVICE_TOKEN is required in production. "
                "Set INTERNAL_SERVICE_TOKEN or INTERNAL_SERVICE_TOKEN_REQUIRED=0."
            )
        self.liveness.validate()

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            port=int(_env("PORT", "5005")),
            internal_service_token=_env("INTERNAL_SERVICE_TOKEN"),
            internal_service_token_required=_is_truthy(_env("INTERNAL_SERVICE_TOKEN_REQUIRED")),
            node_env=_env("NODE_ENV").lower(),
            app_env=_env("APP_ENV").lower(),
            rust_env=_env("RUST_ENV").lower(),
            version="1.0.0",
            git_sha=_get_git_sha(),
            build_time=_get_build_time(),
            liveness=LivenessSettings.from_env(),
        )
