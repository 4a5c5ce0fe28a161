"""Liveness and readiness probes."""

import time
from typing import Any, Awaitable

from fastapi import APIRouter, Response, status

from src.core.mural import check_mural_connection
from src.core.runtime import get_payment_runtime
from src.core.supabase import check_database_connection
from src.schemas.common import CheckResult, HealthResponse, HealthStatus, ReadinessResponse
from src.services.lifecycle_worker import get_lifecycle_workers

router = APIRouter(tags=["health"])


async def _timed_check(name: str, probe: Awaitable[dict[str, Any]]) -> CheckResult:
    start_time = time.perf_counter()
    result = await probe
    return CheckResult(
        name=name,
        healthy=result["healthy"],
        latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        error=result.get("error"),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Returns 200 while the process is up. Dependencies are not checked.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "All dependencies healthy"},
        503: {"description": "One or more dependencies unhealthy"},
    },
    summary="Readiness check",
    description="Checks Supabase and Mural. Used for readiness probes.",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Check that orders can be stored and the settlement account reached.

    The Mural check always passes in simulation mode, when no API key is
    configured. Any failing check turns the response into a 503.

    Args:
        response: FastAPI response object for setting status code.

    Returns:
        ReadinessResponse: Status of all dependency checks.
    """
    runtime = get_payment_runtime()
    checks = [
        await _timed_check("database", check_database_connection()),
        await _timed_check("mural", check_mural_connection(runtime.mural, runtime.config.account_id)),
    ]

    all_healthy = all(check.healthy for check in checks)
    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status=HealthStatus.HEALTHY if all_healthy else HealthStatus.UNHEALTHY,
        checks=checks,
        lifecycle_backlog=get_lifecycle_workers().pending_count,
    )
