"""Distributed Tracing — OpenTelemetry tracer provider exporting spans to a Zipkin collector.

Invariants:
    - init_tracing() returns None when tracing is disabled; callers treat None as "no tracing"
    - A provider that cannot be built raises TracingUnavailableError (non-fatal, logged by caller)
    - Every span started through start_span() is ended by finish_span() exactly once

Design Decisions:
    - Provider is returned to the app factory and lives on app.state, never set as the
      OpenTelemetry global, so several apps can coexist in one process
    - ParentBased(TraceIdRatioBased(sample_rate)) sampler
"""

import logging
from urllib.parse import urlsplit, urlunsplit

import httpx
from opentelemetry.exporter.zipkin.json import ZipkinExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from webtemplate.config import TracingSettings
from webtemplate.core.errors import TracingUnavailableError

logger = logging.getLogger(__name__)

TRACER_NAME = "webtemplate"


def init_tracing(cfg: TracingSettings, version: str = "") -> TracerProvider | None:
    """Build a tracer provider for the configured collector, or None when disabled."""
    if not cfg.enabled:
        return None
    try:
        provider = TracerProvider(
            resource=Resource.create({
                SERVICE_NAME: cfg.service_name,
                SERVICE_VERSION: version,
            }),
            sampler=ParentBased(TraceIdRatioBased(cfg.sample_rate)),
        )
        provider.add_span_processor(
            BatchSpanProcessor(ZipkinExporter(endpoint=cfg.endpoint)),
        )
    except Exception as e:
        raise TracingUnavailableError(f"Failed to create tracer: {e}") from e

    logger.info(
        f"Tracer created for {cfg.service_name} -> {cfg.endpoint} "
        f"(sample rate {cfg.sample_rate})",
    )
    return provider


def get_tracer(provider: TracerProvider | None) -> Tracer | None:
    if provider is None:
        return None
    return provider.get_tracer(TRACER_NAME)


def shutdown_tracing(provider: TracerProvider | None) -> None:
    """Flush pending spans and release the exporter."""
    if provider is None:
        return
    provider.force_flush()
    provider.shutdown()
    logger.info("Tracer provider shut down")


def collector_health_url(endpoint: str) -> str:
    """Zipkin serves /health at the root of the host receiving /api/v2/spans."""
    parts = urlsplit(endpoint)
    return urlunsplit((parts.scheme, parts.netloc, "/health", "", ""))


def check_collector(endpoint: str, timeout: float = 5.0) -> bool:
    """Check the collector's health endpoint. Never raises."""
    url = collector_health_url(endpoint)
    try:
        resp = httpx.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.warning(f"Tracing collector unreachable at {url}: {e}")
        return False
    ok = resp.status_code == 200
    if ok:
        logger.info(f"Tracing collector reachable at {url}")
    else:
        logger.warning(
            f"Tracing collector at {url} answered {resp.status_code}",
            extra={"status_code": resp.status_code},
        )
    return ok


def mark_error(span: Span, message: str) -> None:
    span.set_attribute("error", "true")
    if message:
        span.set_attribute("error.message", message)
    span.set_status(Status(StatusCode.ERROR, message or None))


def start_span(tracer: Tracer | None, name: str) -> Span | None:
    """Start a child of the current span; None when tracing is off."""
    if tracer is None:
        return None
    return tracer.start_span(name)


def finish_span(span: Span | None, error: BaseException | str | None = None) -> None:
    """End *span*, tagging *error* first when given."""
    if span is None:
        return
    if error:
        mark_error(span, str(error))
    span.end()
