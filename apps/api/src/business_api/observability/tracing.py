from __future__ import annotations

import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.semconv.resource import ResourceAttributes

_PROVIDER: TracerProvider | None = None

# Probes would otherwise dominate the exported spans.
_EXCLUDED_URLS = "health,readyz"


def _parse_headers(raw: str | None) -> dict[str, str] | None:
    if not raw:
        return None
    headers: dict[str, str] = {}
    for pair in raw.split(","):
        key, sep, value = pair.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers or None


def _build_exporter() -> SpanExporter:
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        return ConsoleSpanExporter()
    return OTLPSpanExporter(
        endpoint=endpoint,
        headers=_parse_headers(os.getenv("OTEL_EXPORTER_OTLP_HEADERS")),
    )


def configure_tracing(
    app: FastAPI,
    *,
    service_name: str,
    service_version: str,
    environment: str,
    enabled: bool = True,
) -> None:
    """Install the OpenTelemetry tracer provider once and instrument ``app``."""

    global _PROVIDER

    if not enabled:
        return

    if _PROVIDER is None:
        resource = Resource.create(
            {
                ResourceAttributes.SERVICE_NAME: service_name,
                ResourceAttributes.SERVICE_VERSION: service_version,
                ResourceAttributes.DEPLOYMENT_ENVIRONMENT: environment,
            }
        )
        _PROVIDER = TracerProvider(resource=resource)
        _PROVIDER.add_span_processor(BatchSpanProcessor(_build_exporter()))
        trace.set_tracer_provider(_PROVIDER)
        LoggingInstrumentor().instrument(set_logging_format=False)

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=_PROVIDER,
        excluded_urls=_EXCLUDED_URLS,
    )


__all__ = ["configure_tracing"]
