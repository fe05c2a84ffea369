"""OpenTelemetry tracing bootstrap."""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

SERVICE_NAME = "cube-sessions"

logger = logging.getLogger("cube_sessions.observability")

_configured = False


def _otlp_endpoint() -> str | None:
    return os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")


def configure_tracing(*, service_name: str = SERVICE_NAME) -> bool:
    """Install an OTLP tracer provider when an endpoint is configured.

    Without an endpoint this is a no-op and spans stay non-recording. Setting
    ``OTEL_TRACES_EXPORTER`` to anything but ``none`` without an endpoint is
    a configuration error. Returns whether a provider was installed.
    """
    global _configured
    if _configured:
        return False

    exporter_name = (os.getenv("OTEL_TRACES_EXPORTER") or "").strip().lower()
    endpoint = _otlp_endpoint()
    if exporter_name == "none" or (not endpoint and not exporter_name):
        _configured = True
        return False
    if not endpoint:
        raise RuntimeError(
            "OTEL_TRACES_EXPORTER is set but no OTLP endpoint is configured: set "
            "OTEL_EXPORTER_OTLP_ENDPOINT or OTEL_TRACES_EXPORTER=none"
        )

    name = (os.getenv("OTEL_SERVICE_NAME") or service_name).strip()
    if not name:
        raise RuntimeError("service_name must be a non-empty string")

    provider = TracerProvider(resource=Resource.create({"service.name": name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    _configured = True
    logger.info("tracing enabled", extra={"data": {"service": name, "endpoint": endpoint}})
    return True


__all__ = ["SERVICE_NAME", "configure_tracing"]
