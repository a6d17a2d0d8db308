"""OpenTelemetry configuration for ModelVault."""

import os
import sys

from opentelemetry import metrics, trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)

METRICS_EXPORT_INTERVAL_MS = 60_000


def setup_telemetry(app):
    """Configure OpenTelemetry tracing and metrics for the FastAPI application."""
    try:
        if not settings.enable_telemetry:
            return

        if "pytest" in sys.modules or os.getenv("TESTING"):
            logger.info("Skipping OpenTelemetry setup during tests")
            return

        # Console exporters until an OTLP collector is deployed
        metric_reader = PeriodicExportingMetricReader(
            ConsoleMetricExporter(),
            export_interval_millis=METRICS_EXPORT_INTERVAL_MS,
        )
        metrics.set_meter_provider(MeterProvider(metric_readers=[metric_reader]))

        trace.set_tracer_provider(TracerProvider())
        tracer_provider = trace.get_tracer_provider()
        span_processor = BatchSpanProcessor(ConsoleSpanExporter())
        tracer_provider.add_span_processor(span_processor)  # type: ignore[attr-defined]

        FastAPIInstrumentor.instrument_app(app)
        logger.info("OpenTelemetry tracing and metrics setup completed")

    except Exception as e:
        # Telemetry is optional; the API keeps serving without it
        logger.error("Failed to setup OpenTelemetry", error=str(e))
