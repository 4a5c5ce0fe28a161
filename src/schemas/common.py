"""Health and error schemas shared by every router."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Liveness payload. Never touches Supabase or Mural."""

    status: HealthStatus
    service: str = Field(default="stablecoin-checkout", description="Service name")
    version: str = Field(default="0.1.0", description="API version")
    timestamp: datetime = Field(default_factory=_utcnow)


class CheckResult(BaseModel):
    """Outcome of probing one dependency during a readiness check."""

    name: str = Field(description="Dependency name, e.g. database or mural")
    healthy: bool
    latency_ms: float | None = Field(default=None, description="Probe duration in milliseconds")
    error: str | None = Field(default=None, description="Failure reason when unhealthy")


class ReadinessResponse(BaseModel):
    """Readiness payload with per-dependency results and the worker backlog."""

    status: HealthStatus
    checks: list[CheckResult] = Field(default_factory=list)
    lifecycle_backlog: int = Field(default=0, description="Orders queued or running in lifecycle workers")
    timestamp: datetime = Field(default_factory=_utcnow)


class ErrorDetail(BaseModel):
    loc: list[str] | None = Field(default=None, description="Field path for validation errors")
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Body returned for every APIError and unhandled exception."""

    error: str = Field(description="Machine-readable error type")
    message: str = Field(description="Human-readable description")
    details: list[ErrorDetail] | None = None
    request_id: str | None = Field(default=None, description="Value of the X-Request-ID header")
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        """Build a response from an error type, message and raw detail dicts.

        Detail dicts missing ``msg`` or ``type`` are stringified and typed
        as a generic ``error``.
        """
        return cls(
            error=error_type,
            message=message,
            details=[
                ErrorDetail(loc=d.get("loc"), msg=d.get("msg", str(d)), type=d.get("type", "error"))
                for d in details
            ]
            if details
            else None,
            request_id=request_id,
        )
