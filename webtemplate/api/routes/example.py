"""Example feature module — liveness, health report, and private identity/user endpoints.

Public bucket:  GET /api/ping, GET /api/health
Private bucket: GET /api/private/me, GET /api/private/users/{user_id}
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from webtemplate.api.dependencies import CurrentUser, current_user
from webtemplate.api.middleware import client_ip
from webtemplate.api.registry import RouteRegistry
from webtemplate.core.errors import ResourceNotFoundError
from webtemplate.infrastructure.database import get_db
from webtemplate.models.user import User
from webtemplate.schemas.example import (
    APIResponse, HealthResponse, PingResponse, UserIdentity, UserOut,
)

logger = logging.getLogger(__name__)


async def ping(request: Request) -> PingResponse:
    """Liveness: answers as long as the process is up."""
    settings = request.app.state.settings
    clock = request.app.state.clock
    logger.debug("Ping request")
    return PingResponse(
        message="pong",
        version=settings.app.version,
        environment=settings.app.environment,
        timezone=clock.name,
        current_time=clock.now_string(),
    )


async def health(request: Request) -> HealthResponse:
    logger.debug(
        "Health check request",
        extra={
            "client_ip": client_ip(request),
            "user_agent": request.headers.get("User-Agent", ""),
        },
    )
    return await request.app.state.health_checker.check()


async def me(user: CurrentUser = Depends(current_user)) -> APIResponse:
    return APIResponse(
        data=UserIdentity(user_id=user.user_id, username=user.username),
    )


async def get_user(
    user_id: int,
    _: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    result = await db.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None)),
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise ResourceNotFoundError("User", str(user_id))
    return APIResponse(data=UserOut.model_validate(user))


def register_public_routes(router: APIRouter) -> None:
    router.add_api_route("/ping", ping, methods=["GET"], response_model=PingResponse)
    router.add_api_route("/health", health, methods=["GET"], response_model=HealthResponse)


def register_private_routes(router: APIRouter) -> None:
    router.add_api_route("/me", me, methods=["GET"], response_model=APIResponse)
    router.add_api_route(
        "/users/{user_id}", get_user, methods=["GET"], response_model=APIResponse,
    )


def register_routes(registry: RouteRegistry) -> None:
    registry.register_public(register_public_routes)
    registry.register_private(register_private_routes)
