"""Health Checker — runs registered dependency checks and aggregates their status.

Invariants:
    - Every check yields a HealthCheckResult; a check that raises becomes an
      unhealthy result for that check alone and never aborts the report
    - Aggregate: any unhealthy -> unhealthy, else any degraded -> degraded, else healthy
    - Exception text is logged, never put in the report
"""

import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable

from webtemplate.infrastructure.database import DatabaseSessionManager
from webtemplate.schemas.example import (
    HealthCheckResult, HealthResponse, HealthStatus,
)

logger = logging.getLogger(__name__)

CheckFn = Callable[[], Awaitable[HealthCheckResult]]


class HealthChecker:
    def __init__(self, version: str, checks: list[CheckFn] | None = None):
        self.version = version
        self._checks: list[CheckFn] = list(checks or [])

    def add_check(self, check: CheckFn) -> None:
        self._checks.append(check)

    async def _execute(self, check: CheckFn) -> HealthCheckResult:
        start = time.perf_counter()
        try:
            result = await check()
        except Exception as e:
            logger.error(
                f"Health check {getattr(check, '__name__', check)!r} raised: {e}",
                exc_info=True,
            )
            result = HealthCheckResult(
                name=getattr(check, "check_name", getattr(check, "__name__", "unknown")),
                status=HealthStatus.UNHEALTHY,
                message="check raised an exception",
            )
        elapsed_ms = (time.perf_counter() - start) * 1000
        return result.model_copy(update={"duration": f"{elapsed_ms:.2f}ms"})

    async def check(self) -> HealthResponse:
        results = [await self._execute(check) for check in self._checks]
        overall = HealthStatus.HEALTHY
        for result in results:
            if result.status == HealthStatus.UNHEALTHY:
                overall = HealthStatus.UNHEALTHY
            elif result.status == HealthStatus.DEGRADED and overall == HealthStatus.HEALTHY:
                overall = HealthStatus.DEGRADED

        logger.debug(
            f"Health check finished: {overall.value} ({len(results)} checks)",
            extra={"count": len(results)},
        )
        return HealthResponse(
            status=overall,
            version=self.version,
            timestamp=datetime.now(timezone.utc),
            checks=results,
        )


def database_check(
    get_manager: Callable[[], DatabaseSessionManager | None],
) -> CheckFn:
    """Check backed by whichever session manager *get_manager* returns at check time."""

    async def check_database() -> HealthCheckResult:
        db_manager = get_manager()
        if db_manager is None:
            return HealthCheckResult(
                name="database", status=HealthStatus.UNHEALTHY,
                message="database not initialized",
            )
        if await db_manager.health_check():
            return HealthCheckResult(
                name="database", status=HealthStatus.HEALTHY,
                message="database connection ok",
            )
        return HealthCheckResult(
            name="database", status=HealthStatus.UNHEALTHY,
            message="database unreachable",
        )

    check_database.check_name = "database"
    return check_database
