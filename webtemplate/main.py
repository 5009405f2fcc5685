"""web-template API — FastAPI application factory.

Invariants:
    - Routes bound only through the route registry: public bucket under /api,
      private bucket under /api/private behind the JWT dependency
    - Middleware chain fixed by build_middleware() (CORS outermost, tracing innermost)
    - Settings, token codec, clock, tracer provider and DB manager live on app.state;
      nothing is process-global, so independent apps can coexist (tests do this)
    - Tracing failures never stop startup: the app serves without tracing

Design Decisions:
    - Lifespan context manager owns the DB engine and tracer provider lifecycle
    - create_app() accepts a prebuilt tracer provider / DB manager / registry for tests
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI
from opentelemetry.sdk.trace import TracerProvider

from webtemplate.api.dependencies import require_user
from webtemplate.api.error_handlers import register_error_handlers
from webtemplate.api.middleware import build_middleware
from webtemplate.api.registry import Bucket, RouteRegistry
from webtemplate.api.routes import build_registry
from webtemplate.config import Settings, get_settings
from webtemplate.core.errors import TracingUnavailableError
from webtemplate.core.timezone import Clock
from webtemplate.core.tokens import TokenCodec
from webtemplate.infrastructure.database import DatabaseSessionManager
from webtemplate.infrastructure.observability import flush_logging
from webtemplate.infrastructure.tracing import (
    check_collector, get_tracer, init_tracing, shutdown_tracing,
)
from webtemplate.services.health import HealthChecker, database_check

logger = logging.getLogger(__name__)


def _build_tracer_provider(settings: Settings) -> TracerProvider | None:
    try:
        provider = init_tracing(settings.tracing, settings.app.version)
    except TracingUnavailableError as e:
        logger.warning(f"Tracing disabled: {e.message}")
        return None
    if provider is not None:
        check_collector(settings.tracing.endpoint)
    return provider


def _mount_routes(app: FastAPI, registry: RouteRegistry) -> None:
    api = APIRouter(prefix="/api")

    public = APIRouter()
    registry.apply(Bucket.PUBLIC, public)

    private = APIRouter(prefix="/private", dependencies=[Depends(require_user)])
    registry.apply(Bucket.PRIVATE, private)

    api.include_router(public)
    api.include_router(private)
    app.include_router(api)

    stats = registry.stats()
    logger.info(
        f"Routes set up: {stats['public']} public, {stats['private']} private registrar(s)",
        extra={"count": stats["total"]},
    )


def create_app(
    settings: Settings | None = None,
    *,
    tracer_provider: TracerProvider | None = None,
    db_manager: DatabaseSessionManager | None = None,
    registry: RouteRegistry | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    if tracer_provider is None:
        tracer_provider = _build_tracer_provider(settings)
    tracer = get_tracer(tracer_provider)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle."""
        owns_db = app.state.db_manager is None
        if owns_db:
            app.state.db_manager = DatabaseSessionManager.from_settings(
                settings.database, tracer=tracer,
            )
        logger.info(
            f"web-template API started (version {settings.app.version})",
            extra={"environment": settings.app.environment},
        )
        yield
        logger.info("web-template API shutting down")
        if owns_db:
            await app.state.db_manager.close()
            app.state.db_manager = None
        shutdown_tracing(app.state.tracer_provider)
        flush_logging()

    app = FastAPI(
        title="web-template API",
        version=settings.app.version,
        debug=settings.app.debug,
        lifespan=lifespan,
        middleware=build_middleware(settings, tracer),
    )
    app.state.settings = settings
    app.state.token_codec = TokenCodec(settings.jwt)
    app.state.clock = Clock(settings.app.timezone)
    app.state.tracer_provider = tracer_provider
    app.state.tracer = tracer
    app.state.db_manager = db_manager
    app.state.health_checker = HealthChecker(
        settings.app.version, [database_check(lambda: app.state.db_manager)],
    )

    register_error_handlers(app)

    registry = registry or build_registry()
    app.state.route_registry = registry
    _mount_routes(app, registry)
    return app
