"""
Logging and tracing bootstrap.

``init_observability`` runs once from the app factory. Everything else only
asks for ``logging.getLogger(__name__)`` or ``get_tracer()``; with tracing
disabled the tracer is the no-op default and spans cost nothing.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from paperdesk import __version__
from paperdesk.settings import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Driver chatter that drowns out paper lifecycle logs at INFO.
_QUIET_LOGGERS = ("pymongo", "botocore", "urllib3", "rq.worker")

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _tracer_provider(cfg: Settings) -> TracerProvider:
    resource = Resource.create(
        {
            "service.name": cfg.otel_service_name,
            "service.version": __version__,
            "deployment.environment": cfg.env,
        }
    )
    # Child spans follow the parent's sampling decision.
    provider = TracerProvider(resource=resource, sampler=ParentBased(TraceIdRatioBased(cfg.otel_sample_rate)))

    if cfg.otel_exporter_console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    if cfg.otel_exporter_otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=cfg.otel_exporter_otlp_endpoint)))
    return provider


def init_observability(app: FastAPI, cfg: Settings) -> None:
    """Configure logging, then tracing and HTTP instrumentation when enabled."""
    _configure_logging(cfg.log_level)
    if not cfg.observability_enabled:
        logger.info("Tracing disabled")
        return

    trace.set_tracer_provider(_tracer_provider(cfg))
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health")
    HTTPXClientInstrumentor().instrument()
    logger.info(f"Tracing enabled for {cfg.otel_service_name} (sample rate {cfg.otel_sample_rate})")


def get_tracer() -> trace.Tracer:
    return trace.get_tracer("paperdesk", __version__)
