from __future__ import annotations

import os
from contextlib import asynccontextmanager

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter,
)

otel_url = os.getenv("AXIS_OTEL_TRACE_URL")
if otel_url:
    resource = Resource.create({"service.name": "axis-kernel"})
    provider = TracerProvider(resource=resource)
    processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_url, timeout=5))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)

tracer = trace.get_tracer("axis_kernel")


@asynccontextmanager
async def async_span(name: str, tracer_obj=tracer, **attrs):
    """Async context manager wrapping ``tracer.start_as_current_span``.

    Yields the span so callers can attach attributes discovered mid-flight.
    """
    with tracer_obj.start_as_current_span(name, **attrs) as span:
        yield span


__all__ = ["async_span", "tracer"]
