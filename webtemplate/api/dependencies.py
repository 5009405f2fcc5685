"""Auth dependencies for the private route group.

Attached at router level (APIRouter(dependencies=[Depends(require_user)])), so every
route a registrar binds under /api/private runs it before its handler.
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, Request

from webtemplate.api.middleware import client_ip, record_request_error
from webtemplate.core.errors import (
    AuthError,
    ErrorContext,
    InvalidTokenError,
    MalformedAuthHeaderError,
    MissingAuthHeaderError,
)
from webtemplate.core.tokens import TokenCodec

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    username: str


def _reject(request: Request, exc: AuthError, reason: str) -> AuthError:
    logger.warning(
        f"JWT authentication failed: {reason}",
        extra={
            "path": request.url.path,
            "client_ip": client_ip(request),
            "error_code": exc.code,
            "reason": reason,
        },
    )
    record_request_error(request, reason)
    return exc


def extract_bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization")
    context = ErrorContext(path=request.url.path)
    if not header:
        raise _reject(
            request, MissingAuthHeaderError(context), "missing Authorization header",
        )
    if not header.startswith(BEARER_PREFIX):
        raise _reject(
            request, MalformedAuthHeaderError(context), "Authorization header is not a Bearer token",
        )
    return header[len(BEARER_PREFIX):]


async def require_user(request: Request) -> CurrentUser:
    """Verify the bearer token and attach the caller's identity to the request."""
    token = extract_bearer_token(request)
    codec: TokenCodec = request.app.state.token_codec
    try:
        claims = codec.verify(token)
    except InvalidTokenError as e:
        e.context.path = request.url.path
        raise _reject(request, e, e.reason)

    user = CurrentUser(user_id=claims.user_id, username=claims.username)
    request.state.user = user
    logger.debug(
        f"JWT authentication succeeded for {claims.username}",
        extra={
            "user_id": claims.user_id,
            "username": claims.username,
            "path": request.url.path,
        },
    )
    return user


async def current_user(
    request: Request, _: CurrentUser = Depends(require_user),
) -> CurrentUser:
    """Identity of the authenticated caller (for handlers under /api/private)."""
    return request.state.user
