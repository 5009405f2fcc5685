"""Request Pipeline — the fixed middleware chain wrapped around every route.

Invariants:
    - Order, outermost first: CORS -> access log -> recovery -> error-status log -> tracing
    - CORS runs outside everything else, so aborted responses still carry CORS headers
    - Recovery turns any downstream exception into a 500 envelope; the server keeps serving
    - Tracing ends its span exactly once, including when the handler raises
    - Any stage may short-circuit by returning a response without calling downstream

Design Decisions:
    - Starlette BaseHTTPMiddleware per stage, passed to FastAPI(middleware=[...]) in
      outermost-first order
    - Handler error text travels on request.state.errors so tracing can tag it
    - The request span is opened under the raw path and renamed once routing has run,
      from what routing left in the scope rather than from the app's route table
"""

import logging
import time

from fastapi import Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.trace import SpanKind, Tracer
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from webtemplate.config import Settings
from webtemplate.infrastructure.tracing import mark_error

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Origin", "Content-Type", "Authorization"]
CORS_MAX_AGE = 12 * 60 * 60


# ─── Request helpers ────────────────────────────────────────────

def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else ""


def record_request_error(request: Request, message: str) -> None:
    """Attach handler error text to the request for tracing and logs."""
    errors = getattr(request.state, "errors", None)
    if errors is None:
        errors = []
        request.state.errors = errors
    errors.append(message)


def request_errors(request: Request) -> list[str]:
    return list(getattr(request.state, "errors", None) or [])


def route_template(request: Request) -> str | None:
    """Path template of the route that served *request*, e.g. /api/private/users/{user_id}.

    Routing records the matched route in the shared ASGI scope, so this is only
    known once the request has been routed. Routes reached through included routers
    also leave FastAPI's effective route context, whose template carries every
    include prefix; scope["route"] then holds the route as its own router bound it.
    """
    context = request.scope.get("fastapi", {}).get("effective_route_context")
    template = getattr(context, "path_format", None)
    if template:
        return template
    route = request.scope.get("route")
    return getattr(route, "path_format", None) or getattr(route, "path", None)


def _request_fields(request: Request) -> dict:
    return {
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_ip(request),
        "user_agent": request.headers.get("User-Agent", ""),
    }


# ─── Stages ─────────────────────────────────────────────────────

class AccessLogMiddleware(BaseHTTPMiddleware):
    """One log record per request: method, path, status, latency."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {latency_ms}ms",
            extra={
                **_request_fields(request),
                "status_code": response.status_code,
                "latency_ms": latency_ms,
            },
        )
        return response


class RecoveryMiddleware(BaseHTTPMiddleware):
    """Convert any unhandled downstream exception into a 500 response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                f"Recovered from unhandled exception on {request.url.path}: {e}",
                exc_info=True,
                extra=_request_fields(request),
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"code": 500, "message": "Internal server error"},
            )


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Warn about every response with status >= 400."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            response = await call_next(request)
        except Exception:
            self._log(request, status.HTTP_500_INTERNAL_SERVER_ERROR)
            raise
        if response.status_code >= 400:
            self._log(request, response.status_code)
        return response

    @staticmethod
    def _log(request: Request, status_code: int) -> None:
        logger.warning(
            f"HTTP error response {status_code} for {request.method} {request.url.path}",
            extra={**_request_fields(request), "status_code": status_code},
        )


class TracingMiddleware(BaseHTTPMiddleware):
    """Open a server span per request; pass-through when no tracer is configured."""

    def __init__(self, app, tracer: Tracer | None = None):
        super().__init__(app)
        self.tracer = tracer

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.tracer is None:
            return await call_next(request)

        span_name = f"{request.method} {request.url.path}"
        with self.tracer.start_as_current_span(
            span_name, kind=SpanKind.SERVER,
        ) as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.url", str(request.url))
            span.set_attribute("http.path", request.url.path)
            span.set_attribute("user_agent", request.headers.get("User-Agent", ""))
            span.set_attribute("client_ip", client_ip(request))

            try:
                response = await call_next(request)
            except Exception as e:
                span_name = self._rename(span, request, span_name)
                span.set_attribute("http.status_code", "500")
                mark_error(span, "; ".join(request_errors(request) + [str(e)]))
                raise

            span_name = self._rename(span, request, span_name)
            span.set_attribute("http.status_code", str(response.status_code))
            if response.status_code >= 400:
                mark_error(span, "; ".join(request_errors(request)))

            logger.debug(
                f"Trace recorded for {span_name}",
                extra={
                    "span_name": span_name,
                    "trace_id": format(span.get_span_context().trace_id, "032x"),
                    "status_code": response.status_code,
                },
            )
            return response

    @staticmethod
    def _rename(span, request: Request, fallback: str) -> str:
        """Name the span after the matched route; keep the raw path when nothing matched."""
        template = route_template(request)
        if template is None:
            return fallback
        name = f"{request.method} {template}"
        span.update_name(name)
        return name


def build_middleware(settings: Settings, tracer: Tracer | None = None) -> list[Middleware]:
    """The shared chain, outermost first."""
    return [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.app.cors_origins,
            allow_methods=CORS_METHODS,
            allow_headers=CORS_HEADERS,
            expose_headers=["Content-Length"],
            allow_credentials=True,
            max_age=CORS_MAX_AGE,
        ),
        Middleware(AccessLogMiddleware),
        Middleware(RecoveryMiddleware),
        Middleware(ErrorLoggingMiddleware),
        Middleware(TracingMiddleware, tracer=tracer),
    ]
