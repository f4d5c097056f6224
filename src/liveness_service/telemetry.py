"""OpenTelemetry setup for the liveness service."""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .liveness.session import SessionSnapshot

DEFAULT_OTLP_ENDPOINT = "http://localhost:4318/v1/traces"
TRACER_NAME = "liveness_service"


def _is_enabled() -> bool:
    return os.getenv("OTEL_ENABLED", "").lower() in {"true", "1", "yes"} or bool(
        os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "").strip()
    )


def _parse_headers(raw: str | None) -> dict[str, str] | None:
    if not raw:
        return None
    headers: dict[str, str] = {}
    for entry in raw.split(","):
        if "=" not in entry:
            continue
        key, value = entry.split("=", 1)
        key = key.strip()
        value = value.strip()
        if key and value:
            headers[key] = value
    return headers or None


def _service_name() -> str:
    return os.getenv("OTEL_SERVICE_NAME", "zentity-liveness")


def _service_version() -> str:
    return os.getenv("APP_VERSION") or os.getenv("GIT_SHA", "unknown")


def _environment_name() -> str:
    return os.getenv("APP_ENV") or os.getenv("NODE_ENV") or os.getenv("RUST_ENV") or "development"


def configure_telemetry() -> TracerProvider | None:
    if not _is_enabled():
        return None

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT)
    headers = _parse_headers(os.getenv("OTEL_EXPORTER_OTLP_HEADERS"))

    resource = Resource.create(
        {
            "service.name": _service_name(),
            "service.version": _service_version(),
            "deployment.environment": _environment_name(),
        }
    )

    exporter = OTLPSpanExporter(endpoint=endpoint, headers=headers)
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    return provider


def instrument_app(app) -> None:
    provider = configure_telemetry()
    if not provider:
        return

    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def liveness_span(
    name: str, session_id: str, tracer: trace.Tracer | None = None
) -> Iterator[trace.Span]:
    """
    Span around one liveness operation, tagged with the session id.

    No biometric values are recorded; callers add counts and step names only.
    """
    tracer = tracer or get_tracer()
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("liveness.session_id", session_id)
        yield span


def record_session_state(span: trace.Span, snapshot: SessionSnapshot) -> None:
    span.set_attribute("liveness.step", snapshot.step.value)
    span.set_attribute("liveness.completed_count", snapshot.completed_count)
    span.set_attribute("liveness.required_actions", snapshot.required_actions)
    span.set_attribute("liveness.capture_unlocked", snapshot.capture_unlocked)
