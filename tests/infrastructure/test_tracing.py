"""Tracing Emitter — provider construction, collector health check, manual span helpers."""

import httpx
import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import StatusCode

from webtemplate.config import TracingSettings
from webtemplate.core.errors import TracingUnavailableError
from webtemplate.infrastructure import tracing
from webtemplate.infrastructure.tracing import (
    check_collector,
    collector_health_url,
    finish_span,
    get_tracer,
    init_tracing,
    start_span,
)


def test_disabled_returns_none():
    assert init_tracing(TracingSettings(enabled=False)) is None
    assert get_tracer(None) is None


def test_enabled_builds_provider():
    provider = init_tracing(
        TracingSettings(enabled=True, service_name="svc", sample_rate=0.5), version="1.2.3",
    )
    try:
        assert isinstance(provider, TracerProvider)
        assert provider.resource.attributes["service.name"] == "svc"
        assert provider.resource.attributes["service.version"] == "1.2.3"
    finally:
        provider.shutdown()


def test_build_failure_raises_tracing_unavailable(monkeypatch):
    def broken_exporter(**kwargs):
        raise RuntimeError("no exporter")

    monkeypatch.setattr(tracing, "ZipkinExporter", broken_exporter)
    with pytest.raises(TracingUnavailableError):
        init_tracing(TracingSettings(enabled=True))


def test_collector_health_url():
    assert collector_health_url("http://zipkin:9411/api/v2/spans") == "http://zipkin:9411/health"


def test_check_collector_reachable(monkeypatch):
    seen = {}

    def fake_get(url, timeout):
        seen["url"] = url
        return httpx.Response(200)

    monkeypatch.setattr(tracing.httpx, "get", fake_get)
    assert check_collector("http://zipkin:9411/api/v2/spans") is True
    assert seen["url"] == "http://zipkin:9411/health"


def test_check_collector_bad_status(monkeypatch):
    monkeypatch.setattr(tracing.httpx, "get", lambda url, timeout: httpx.Response(503))
    assert check_collector("http://zipkin:9411/api/v2/spans") is False


def test_check_collector_unreachable_never_raises(monkeypatch):
    def refuse(url, timeout):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(tracing.httpx, "get", refuse)
    assert check_collector("http://zipkin:9411/api/v2/spans") is False


def test_manual_span_helpers(tracer, span_exporter):
    ok = start_span(tracer, "work")
    finish_span(ok)
    failed = start_span(tracer, "failing-work")
    finish_span(failed, ValueError("broken"))

    spans = {s.name: s for s in span_exporter.get_finished_spans()}
    assert spans["work"].status.status_code == StatusCode.UNSET
    assert spans["failing-work"].status.status_code == StatusCode.ERROR
    assert spans["failing-work"].attributes["error"] == "true"
    assert spans["failing-work"].attributes["error.message"] == "broken"


def test_helpers_are_noops_without_tracer():
    span = start_span(None, "nothing")
    assert span is None
    finish_span(span, "ignored")
