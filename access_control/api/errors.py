"""Standard error responses shared by the API routers."""

from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from access_control.models.api_models import ErrorResponse


def get_correlation_id(request: Request) -> str:
    """Correlation ID supplied by the caller, if any."""
    return request.headers.get("X-Call-ID", "unknown")


def create_error_response(
    error_type: str,
    message: str,
    correlation_id: str,
    status_code: int = 500,
    headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    """Create standardized error response."""
    error_response = ErrorResponse(
        error=error_type,
        message=message,
        correlation_id=correlation_id,
        timestamp=datetime.now(timezone.utc)
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json"),
        headers=headers
    )


def storage_unavailable_response(message: str, correlation_id: str) -> JSONResponse:
    """503 response telling the caller the operation may be retried."""
    return create_error_response(
        "StorageUnavailable",
        message,
        correlation_id,
        status_code=503,
        headers={"Retry-After": "5"}
    )
