"""
OpenTelemetry tracing setup.
"""

from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Tracer

from egress_worker import __version__
from egress_worker.config import get_settings


def setup_tracing() -> Tracer:
    """
    Set up OpenTelemetry tracing.

    Returns:
        Tracer: The tracer instance.
    """
    settings = get_settings()

    resource = Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.version": __version__,
        }
    )

    provider = TracerProvider(resource=resource)

    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(
                endpoint=settings.otel_exporter_otlp_endpoint,
                insecure=True,
            )
        )
    )

    trace.set_tracer_provider(provider)

    return trace.get_tracer(settings.otel_service_name)


def instrument_sqlalchemy(engine: Any) -> None:
    """
    Instrument SQLAlchemy engine with OpenTelemetry.

    Args:
        engine: The SQLAlchemy engine instance (sync engine of an AsyncEngine).
    """
    SQLAlchemyInstrumentor().instrument(engine=engine)


def get_tracer(name: str = "egress_worker") -> Tracer:
    """
    Get a tracer.

    Until setup_tracing() installs a provider this returns a proxy tracer whose
    spans are no-ops, so library code and tests can trace unconditionally.
    """
    return trace.get_tracer(name)
