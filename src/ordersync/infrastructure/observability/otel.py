from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

logger = logging.getLogger(__name__)

_provider: TracerProvider | None = None

UNTRACED_PATHS = "health/live,health/ready,metrics"


def build_tracer_provider(service_name: str, endpoint: str | None) -> TracerProvider:
    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: service_name,
                "deployment.environment": os.getenv("APP_ENV", "dev"),
            }
        )
    )
    if endpoint:
        try:
            exporter = OTLPSpanExporter(endpoint=endpoint, insecure=endpoint.startswith("http://"))
        except (TypeError, ValueError):
            logger.exception("otel_exporter_setup_failed", extra={"reason": endpoint})
        else:
            provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def configure_otel(app: FastAPI) -> None:
    global _provider
    if _provider is None:
        _provider = build_tracer_provider(
            service_name=os.getenv("OTEL_SERVICE_NAME", "ordersync-backend"),
            endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"),
        )
        trace.set_tracer_provider(_provider)
        set_global_textmap(TraceContextTextMapPropagator())
    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=_provider,
        excluded_urls=UNTRACED_PATHS,
    )


def shutdown_otel() -> None:
    if _provider is not None:
        _provider.force_flush()
