"""Error Handlers — exception handlers producing the {"code", "message"} envelope.

Invariants:
    - WebTemplateError → its http_status and to_response() envelope
    - RequestValidationError → 400 with field-level details
    - Starlette HTTPException (404, 405, ...) → same envelope shape
    - Anything else propagates to RecoveryMiddleware (500, never leaks internals)
    - Every handled error records its text on the request for the tracing span
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from webtemplate.api.middleware import record_request_error
from webtemplate.core.errors import AuthError, WebTemplateError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""
    _register_domain_error_handler(app)
    _register_validation_error_handler(app)
    _register_http_error_handler(app)


def _register_domain_error_handler(app: FastAPI) -> None:

    @app.exception_handler(WebTemplateError)
    async def domain_error_handler(request: Request, exc: WebTemplateError):
        # Auth failures are logged by the auth dependency itself.
        if not isinstance(exc, AuthError):
            logger.error(
                f"{type(exc).__name__}: {exc.message}",
                extra={"error_code": exc.code, "path": request.url.path},
            )
            record_request_error(request, exc.message)
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        record_request_error(request, "invalid request data")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_http_error_handler(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = str(exc.detail)
        record_request_error(request, message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.status_code, "message": message},
            headers=getattr(exc, "headers", None),
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "code": status.HTTP_400_BAD_REQUEST,
        "message": "Invalid request data",
        "details": [
            {
                "field": ".".join(str(loc) for loc in e["loc"]),
                "message": e["msg"],
                "type": e["type"],
            }
            for e in exc.errors()
        ],
    }
