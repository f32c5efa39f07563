"""Common schemas used across the application."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Response schema for basic health check endpoint.

    Used for liveness probes to verify the service is running.
    """

    model_config = ConfigDict(from_attributes=True)

    status: HealthStatus = Field(description="Current health status")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    version: str = Field(default="0.1.0", description="API version")


class CheckResult(BaseModel):
    """Result of an individual dependency check.

    Used in readiness checks to report status of each dependency.
    """

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(description="Name of the dependency being checked")
    healthy: bool = Field(description="Whether the dependency is healthy")
    latency_ms: float | None = Field(default=None, description="Response time in milliseconds")
    error: str | None = Field(default=None, description="Error message if unhealthy")


class ReadinessResponse(BaseModel):
    """Response schema for readiness check endpoint.

    Used for readiness probes to verify all dependencies are available.
    """

    model_config = ConfigDict(from_attributes=True)

    status: HealthStatus = Field(description="Overall readiness status")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    checks: list[CheckResult] = Field(default_factory=list, description="Individual check results")


class ErrorDetail(BaseModel):
    """A single field-level error."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    field_path: str = Field(description="Dotted path of the offending field")
    message: str = Field(description="Human-readable error message")


class ErrorResponse(BaseModel):
    """Standard error response schema.

    All API errors are returned as {success: false, error, ...}.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = Field(default=False, description="Always false for errors")
    error: str = Field(description="Human-readable error description")
    details: list[ErrorDetail] | None = Field(default=None, description="Field-level errors")
    retry_after: int | None = Field(default=None, description="Seconds until a retry is allowed")
    request_id: str | None = Field(default=None, description="Request ID for tracing")

    @classmethod
    def from_exception(
        cls,
        message: str,
        details: list[dict[str, Any]] | None = None,
        retry_after: int | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from exception details.

        Args:
            message: Human-readable error description.
            details: Optional list of {fieldPath, message} dictionaries.
            retry_after: Optional retry delay in seconds.
            request_id: Optional request ID for tracing.

        Returns:
            ErrorResponse: Formatted error response.
        """
        error_details = None
        if details:
            error_details = [
                ErrorDetail(
                    field_path=d.get("fieldPath") or d.get("field_path") or "body",
                    message=d.get("message", str(d)),
                )
                for d in details
            ]

        return cls(
            error=message,
            details=error_details,
            retry_after=retry_after,
            request_id=request_id,
        )
