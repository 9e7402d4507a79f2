"""
Opsdesk OpenTelemetry Setup

Observability for task mutations:
- One span per service operation (create, toggle, nudge, comment, ...)
- Span attributes carry task and viewer ids
- OTLP export when OTEL_EXPORTER_OTLP_ENDPOINT is set
"""
from __future__ import annotations
from typing import Optional
import os


def setup_otel(
    service_name: str = "opsdesk",
    endpoint: Optional[str] = None,
):
    """Initialize OpenTelemetry with OTLP exporter."""
    try:
        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.sdk.resources import Resource

        resource = Resource.create({"service.name": service_name})
        provider = TracerProvider(resource=resource)

        otlp_endpoint = endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        if otlp_endpoint:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
            exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
            provider.add_span_processor(BatchSpanProcessor(exporter))

        trace.set_tracer_provider(provider)
        return trace.get_tracer(service_name)

    except ImportError:
        # Graceful degradation if the OTLP exporter is not installed
        return None


def create_operation_span(tracer, operation: str, task_id: str | None, viewer_id: str):
    """Create a span for a task operation. Returns None without a tracer."""
    if tracer is None:
        return None
    attributes = {"task.operation": operation, "viewer.id": viewer_id}
    if task_id is not None:
        attributes["task.id"] = task_id
    return tracer.start_span(f"tasks.{operation}", attributes=attributes)
