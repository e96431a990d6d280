"""Data models for the face access control service."""

from .api_models import (
    ScanRequest,
    ScanResponse,
    IdentityCreateRequest,
    IdentityUpdateRequest,
    IdentityResponse,
    ScanEventResponse,
    EventStatsResponse,
    HealthResponse,
    ErrorResponse
)
from .internal_models import (
    AccessStatus,
    EventStats,
    Identity,
    IdentityType,
    MatchResult,
    ScanEvent,
    ScanOutcome
)

__all__ = [
    "ScanRequest",
    "ScanResponse",
    "IdentityCreateRequest",
    "IdentityUpdateRequest",
    "IdentityResponse",
    "ScanEventResponse",
    "EventStatsResponse",
    "HealthResponse",
    "ErrorResponse",
    "AccessStatus",
    "EventStats",
    "Identity",
    "IdentityType",
    "MatchResult",
    "ScanEvent",
    "ScanOutcome"
]
