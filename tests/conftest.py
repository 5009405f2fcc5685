"""Root conftest — shared fixtures: settings, in-memory tracing, SQLite database, app client.

Invariants:
    - Every test gets a fresh app, a fresh in-memory SQLite database and an empty span exporter
    - Tracer provider is local to the test (never installed as the OpenTelemetry global)
    - Spans emitted while building fixtures (create_all) are cleared before the test runs

Design Decisions:
    - create_app() receives the prebuilt tracer provider and DB manager; httpx's ASGITransport
      does not run the lifespan, so nothing else is created behind the test's back
    - SimpleSpanProcessor exports synchronously: spans are readable as soon as the response arrives
"""

import pytest
from httpx import ASGITransport, AsyncClient
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind

from webtemplate.config import Settings
from webtemplate.core.tokens import TokenCodec
from webtemplate.db.base import Base
from webtemplate.infrastructure.database import DatabaseSessionManager
from webtemplate.infrastructure.tracing import get_tracer
from webtemplate.main import create_app

TEST_SECRET = "test-secret-key-with-at-least-32-bytes-of-entropy"


@pytest.fixture
def settings():
    return Settings(
        app={"version": "9.9.9", "environment": "test", "timezone": "UTC"},
        jwt={"secret": TEST_SECRET, "expire_hours": 24, "issuer": "web-template"},
    )


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    provider.shutdown()


@pytest.fixture
def tracer(tracer_provider):
    return get_tracer(tracer_provider)


@pytest.fixture
async def db_manager(tracer):
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:", tracer=tracer)
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.close()


@pytest.fixture
def codec(settings):
    return TokenCodec(settings.jwt)


@pytest.fixture
def auth_headers(codec):
    """Bearer header for user 42 / alice."""
    return {"Authorization": f"Bearer {codec.issue(42, 'alice')}"}


@pytest.fixture
def make_app(settings, tracer_provider, db_manager, span_exporter):
    """Factory so tests can pass their own route registry."""

    def _make(**kwargs):
        kwargs.setdefault("tracer_provider", tracer_provider)
        kwargs.setdefault("db_manager", db_manager)
        app = create_app(settings, **kwargs)
        span_exporter.clear()
        return app

    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c


@pytest.fixture
def server_spans(span_exporter):
    """Finished request spans, oldest first."""

    def _spans():
        return [s for s in span_exporter.get_finished_spans() if s.kind == SpanKind.SERVER]

    return _spans
