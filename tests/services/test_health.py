"""Health Checker — per-check results and status aggregation.

Invariants:
    - A raising check becomes an unhealthy result for that check only
    - any unhealthy -> unhealthy, else any degraded -> degraded, else healthy
"""

from webtemplate.schemas.example import HealthCheckResult, HealthStatus
from webtemplate.services.health import HealthChecker, database_check


def _check(name: str, status: HealthStatus):
    async def check():
        return HealthCheckResult(name=name, status=status)
    return check


async def test_all_healthy():
    checker = HealthChecker("1.0.0", [_check("a", HealthStatus.HEALTHY), _check("b", HealthStatus.HEALTHY)])
    report = await checker.check()
    assert report.status == HealthStatus.HEALTHY
    assert report.version == "1.0.0"
    assert [c.name for c in report.checks] == ["a", "b"]


async def test_degraded_wins_over_healthy():
    checker = HealthChecker("1.0.0", [_check("a", HealthStatus.HEALTHY), _check("b", HealthStatus.DEGRADED)])
    assert (await checker.check()).status == HealthStatus.DEGRADED


async def test_unhealthy_wins_over_degraded():
    checker = HealthChecker("1.0.0", [
        _check("a", HealthStatus.UNHEALTHY), _check("b", HealthStatus.DEGRADED),
    ])
    assert (await checker.check()).status == HealthStatus.UNHEALTHY


async def test_raising_check_is_isolated():
    async def explode():
        raise RuntimeError("socket closed")
    explode.check_name = "cache"

    checker = HealthChecker("1.0.0", [explode, _check("db", HealthStatus.HEALTHY)])
    report = await checker.check()

    assert report.status == HealthStatus.UNHEALTHY
    failed, ok = report.checks
    assert failed.name == "cache"
    assert failed.status == HealthStatus.UNHEALTHY
    assert "socket closed" not in failed.message
    assert ok.status == HealthStatus.HEALTHY


async def test_every_result_has_duration():
    checker = HealthChecker("1.0.0")
    checker.add_check(_check("a", HealthStatus.HEALTHY))
    report = await checker.check()
    assert report.checks[0].duration.endswith("ms")


async def test_no_checks_is_healthy():
    assert (await HealthChecker("1.0.0").check()).status == HealthStatus.HEALTHY


async def test_database_check(db_manager):
    result = await database_check(lambda: db_manager)()
    assert result.name == "database"
    assert result.status == HealthStatus.HEALTHY


async def test_database_check_without_manager():
    result = await database_check(lambda: None)()
    assert result.status == HealthStatus.UNHEALTHY
