"""Health, metrics and error schemas."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

API_VERSION = "0.1.0"


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Liveness check response."""

    status: HealthStatus = Field(description="Current health status")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")
    version: str = Field(default=API_VERSION, description="API version")


class MetricsResponse(BaseModel):
    """Upstream and HTTP request statistics."""

    upstream: dict[str, Any] = Field(default_factory=dict, description="Upstream call stats")
    requests: dict[str, Any] = Field(default_factory=dict, description="HTTP request latency stats")
    mock_mode: bool = Field(default=False, description="Whether upstream responses are mocked")


class ErrorDetail(BaseModel):
    """One field-level or general error entry."""

    model_config = ConfigDict(from_attributes=True)

    loc: list[str] | None = Field(default=None, description="Location of error (e.g., field path)")
    msg: str = Field(description="Human-readable error message")
    type: str = Field(description="Error type identifier")

    @classmethod
    def from_dict(cls, detail: dict[str, Any]) -> "ErrorDetail":
        loc = detail.get("loc")
        return cls(
            loc=[str(part) for part in loc] if loc else None,
            msg=detail.get("msg", str(detail)),
            type=detail.get("type", "error"),
        )


class ErrorResponse(BaseModel):
    """Body of every error returned by the API."""

    error: str = Field(description="Error type or category")
    message: str = Field(description="Human-readable error description")
    details: list[ErrorDetail] | None = Field(default=None, description="Additional error details")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        """Build the response from an error's parts.

        Args:
            error_type: Category or type of error.
            message: Human-readable error description.
            details: Optional list of error detail dictionaries.
            request_id: Optional request ID for tracing.
        """
        return cls(
            error=error_type,
            message=message,
            details=[ErrorDetail.from_dict(d) for d in details] if details else None,
            request_id=request_id,
        )
