"""Tracing, metrics and structured logging setup for the POS service."""

import logging
import os
import sys
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

SERVICE_VERSION = "1.0.0"

# Third-party loggers that flood INFO with per-request chatter
QUIET_LOGGERS = ("botocore", "boto3", "urllib3")


def _otlp_endpoint() -> str:
    return os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318").rstrip("/")


def get_service_resource() -> Resource:
    """Build the OpenTelemetry resource identifying this deployment.

    Returns:
        Resource carrying service name, version and environment
    """
    return Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", "cafe-pos"),
            "service.version": SERVICE_VERSION,
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }
    )


def setup_tracing(resource: Resource) -> None:
    """Export spans over OTLP/HTTP in batches."""
    endpoint = _otlp_endpoint()

    exporter = OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces")

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    logger.info(f"Tracing exports to {endpoint}")


def setup_metrics(resource: Resource) -> None:
    """Export cart and checkout metrics over OTLP/HTTP.

    The export interval comes from OTEL_METRIC_EXPORT_INTERVAL (milliseconds, default 60000).
    """
    endpoint = _otlp_endpoint()
    interval = int(os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "60000"))

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"),
        export_interval_millis=interval,
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))

    logger.info(f"Metrics export to {endpoint} every {interval} ms")


def setup_auto_instrumentation(app: Any = None) -> None:
    """Instrument botocore (DynamoDB calls) and, if given, the FastAPI app.

    Health checks are excluded from request spans.
    """
    instrumentor = BotocoreInstrumentor()
    if not instrumentor.is_instrumented_by_opentelemetry:
        instrumentor.instrument()

    if app is not None:
        FastAPIInstrumentor.instrument_app(app, excluded_urls="health")

    logger.info(f"Auto-instrumentation enabled (botocore{', fastapi' if app is not None else ''})")


def setup_observability(app: Any = None, enable_exporters: bool = True) -> None:
    """Initialize tracing, metrics and auto-instrumentation.

    Exporters are always off when ENVIRONMENT=test; providers are still
    installed so @traced spans and metric instruments keep working.

    Args:
        app: Optional FastAPI application to instrument
        enable_exporters: Whether to export over OTLP
    """
    if os.getenv("ENVIRONMENT", "development") == "test":
        enable_exporters = False

    resource = get_service_resource()

    if enable_exporters:
        setup_tracing(resource)
        setup_metrics(resource)
    else:
        trace.set_tracer_provider(TracerProvider(resource=resource))
        metrics.set_meter_provider(MeterProvider(resource=resource))

    setup_auto_instrumentation(app)


def configure_logging(log_level: str = "INFO") -> None:
    """Send all logs to stdout as JSON, one object per line.

    LOG_LEVEL overrides `log_level`. Every record carries the service name.

    Args:
        log_level: Logging level name used when LOG_LEVEL is unset
    """
    level_name = os.getenv("LOG_LEVEL", log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            timestamp=True,
            static_fields={"service": os.getenv("OTEL_SERVICE_NAME", "cafe-pos")},
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.info(f"JSON logging configured at {level_name}")
