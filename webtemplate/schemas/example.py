"""Response schemas for the example feature module (ping, health, private user endpoints)."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthCheckResult(BaseModel):
    name: str
    status: HealthStatus
    message: str = ""
    duration: str = ""


class HealthResponse(BaseModel):
    status: HealthStatus
    version: str
    timestamp: datetime
    checks: list[HealthCheckResult]


class PingResponse(BaseModel):
    message: str
    version: str
    environment: str
    timezone: str
    current_time: str


class APIResponse(BaseModel):
    """Generic success envelope: same code/message keys as error responses, plus data."""
    code: int = 200
    message: str = "ok"
    data: Any = None


class UserIdentity(BaseModel):
    user_id: int
    username: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    nickname: str | None = None
    avatar: str | None = None
    status: int
    created_at: datetime
