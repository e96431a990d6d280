"""
Observability and monitoring setup for the face access control service.
"""

import asyncio
from functools import wraps
from typing import Optional, Dict, Any, Callable

import structlog
from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor

logger = structlog.get_logger()

# Global tracer and meter
tracer: Optional[trace.Tracer] = None
meter: Optional[metrics.Meter] = None

# Metrics instruments
scan_counter: Optional[metrics.Counter] = None
scan_duration: Optional[metrics.Histogram] = None
match_confidence_histogram: Optional[metrics.Histogram] = None
enrollment_counter: Optional[metrics.Counter] = None


def setup_observability(
    service_name: str = "face-access-control",
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    enable_console_export: bool = False
) -> None:
    """
    Set up OpenTelemetry tracing and metrics.

    Args:
        service_name: Name of the service for tracing
        service_version: Version of the service
        otlp_endpoint: OTLP endpoint for trace/metric export
        enable_console_export: Whether to enable console export for development
    """
    global tracer, meter
    global scan_counter, scan_duration, match_confidence_histogram, enrollment_counter

    logger.info(
        "Setting up observability",
        service_name=service_name,
        service_version=service_version,
        otlp_endpoint=otlp_endpoint
    )

    resource = Resource.create({
        "service.name": service_name,
        "service.version": service_version,
    })

    # Set up tracing
    trace_provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))

    if enable_console_export:
        trace_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer(__name__)

    # Set up metrics
    metric_readers = []

    if otlp_endpoint:
        metric_readers.append(
            PeriodicExportingMetricReader(
                exporter=OTLPMetricExporter(endpoint=otlp_endpoint),
                export_interval_millis=30000  # 30 seconds
            )
        )

    if enable_console_export:
        metric_readers.append(
            PeriodicExportingMetricReader(
                exporter=ConsoleMetricExporter(),
                export_interval_millis=60000  # 60 seconds
            )
        )

    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=metric_readers))
    meter = metrics.get_meter(__name__)

    scan_counter = meter.create_counter(
        name="access_scans_total",
        description="Total number of access scans by resolved status",
        unit="1"
    )

    scan_duration = meter.create_histogram(
        name="access_scan_duration_seconds",
        description="Scan processing time in seconds",
        unit="s"
    )

    match_confidence_histogram = meter.create_histogram(
        name="access_match_confidence",
        description="Confidence of accepted matches",
        unit="1"
    )

    enrollment_counter = meter.create_counter(
        name="identity_enrollments_total",
        description="Total number of identity enrollments",
        unit="1"
    )

    logger.info("Observability setup completed")


def instrument_fastapi_app(app) -> None:
    """
    Instrument FastAPI application with OpenTelemetry.

    Args:
        app: FastAPI application instance
    """
    if tracer is None:
        logger.warning("Tracer not initialized, call setup_observability() first")
        return

    FastAPIInstrumentor.instrument_app(app)

    # Supabase talks to PostgREST over httpx
    HTTPXClientInstrumentor().instrument()

    LoggingInstrumentor().instrument(set_logging_format=True)

    logger.info("FastAPI application instrumented with OpenTelemetry")


def _record_span_error(span, error: Exception) -> None:
    span.record_exception(error)
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)
    span.set_attribute("error.message", str(error))


def trace_function(operation_name: Optional[str] = None):
    """
    Decorator to trace function execution.

    Args:
        operation_name: Optional custom operation name for the span
    """
    def decorator(func: Callable) -> Callable:
        span_name = operation_name or f"{func.__module__}.{func.__name__}"

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            if tracer is None:
                return await func(*args, **kwargs)

            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("function.name", func.__name__)
                span.set_attribute("function.module", func.__module__)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record_span_error(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            if tracer is None:
                return func(*args, **kwargs)

            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("function.name", func.__name__)
                span.set_attribute("function.module", func.__module__)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _record_span_error(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def record_scan_metrics(
    status: str,
    processing_time: float,
    confidence: Optional[float]
) -> None:
    """
    Record metrics for scan operations.

    Args:
        status: Resolved access status, or an error type for failed scans
        processing_time: Time taken for the scan in seconds
        confidence: Match confidence (if a match was accepted)
    """
    if scan_counter is None or scan_duration is None:
        return

    attributes = {"operation": "scan", "status": status}

    scan_counter.add(1, attributes)
    scan_duration.record(processing_time, attributes)

    if confidence is not None and match_confidence_histogram is not None:
        match_confidence_histogram.record(confidence, {"status": status})


def record_enrollment_metrics(success: bool, identity_type: str) -> None:
    """
    Record metrics for enrollment operations.

    Args:
        success: Whether enrollment was successful
        identity_type: PERMANENT or TEMPORARY
    """
    if enrollment_counter is None:
        return

    enrollment_counter.add(1, {
        "operation": "enrollment",
        "success": str(success).lower(),
        "identity_type": identity_type
    })


def get_trace_context() -> Dict[str, Any]:
    """
    Get current trace context information.

    Returns:
        Dict with trace ID and span ID if available
    """
    current_span = trace.get_current_span()
    if current_span is None or not current_span.is_recording():
        return {}

    span_context = current_span.get_span_context()
    return {
        "trace_id": f"{span_context.trace_id:032x}",
        "span_id": f"{span_context.span_id:016x}",
    }


class TracingContextMiddleware:
    """
    ASGI middleware that binds the active trace and span IDs into the
    structlog context, so scan and enrollment logs can be joined to traces.
    """

    def __init__(self, app, service_name: str = "face-access-control"):
        self.app = app
        self.service_name = service_name

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(service=self.service_name, **get_trace_context())

        try:
            await self.app(scope, receive, send)
        finally:
            structlog.contextvars.clear_contextvars()
