"""
Scan API endpoints: access decisions and the scan event history.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request

from access_control.api.errors import (
    create_error_response,
    get_correlation_id,
    storage_unavailable_response,
)
from access_control.models.api_models import (
    EventStatsResponse,
    IdentityResponse,
    ScanEventListResponse,
    ScanEventResponse,
    ScanRequest,
    ScanResponse,
)
from access_control.observability import trace_function, record_scan_metrics
from access_control.services.access_service import (
    AccessControlService,
    StorageUnavailable,
    get_access_service,
)
from access_control.utils.encoding_utils import FormatError

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1", tags=["scan"])


@router.post("/scan", response_model=ScanResponse)
@trace_function("scan_endpoint")
async def scan(
    request: ScanRequest,
    http_request: Request,
    service: AccessControlService = Depends(get_access_service)
):
    """
    Resolve access for a presented face encoding.

    Validates the encoding, matches it against every currently eligible
    identity, records one scan event and returns the resolved status.
    A non-match is a normal DENIED response, not an error.
    """
    correlation_id = get_correlation_id(http_request)
    start_time = time.time()

    try:
        outcome = await service.scan(request.faceEncoding)

    except FormatError as e:
        record_scan_metrics("InvalidEncoding", time.time() - start_time, None)
        logger.warning("Scan rejected: invalid encoding", error=str(e))
        return create_error_response("InvalidEncoding", str(e), correlation_id, status_code=400)

    except StorageUnavailable as e:
        record_scan_metrics("StorageUnavailable", time.time() - start_time, None)
        logger.error("Scan aborted: storage unavailable", error=str(e))
        return storage_unavailable_response(str(e), correlation_id)

    except Exception as e:
        logger.error("Unexpected scan error", error=str(e), error_type=type(e).__name__)
        return create_error_response(
            "InternalServerError",
            "An unexpected error occurred during scan",
            correlation_id
        )

    record_scan_metrics(outcome.status.value, time.time() - start_time, outcome.confidence)

    logger.info(
        "Scan completed",
        status=outcome.status.value,
        identity_id=outcome.identity.id if outcome.identity else None,
        confidence=outcome.confidence,
        quality=outcome.quality,
        event_id=outcome.event_id
    )

    return ScanResponse(
        status=outcome.status,
        user=IdentityResponse.from_identity(outcome.identity) if outcome.identity else None,
        confidence=round(outcome.confidence, 4) if outcome.confidence is not None else None,
        quality=outcome.quality,
        distance=round(outcome.distance, 6) if outcome.distance is not None else None,
        eventId=outcome.event_id
    )


@router.get("/scan/events", response_model=ScanEventListResponse)
async def list_scan_events(
    http_request: Request,
    limit: Optional[int] = Query(None, ge=1, le=500),
    service: AccessControlService = Depends(get_access_service)
):
    """Most recent scan events, newest first."""
    correlation_id = get_correlation_id(http_request)

    try:
        events = await service.list_recent_events(limit)
    except StorageUnavailable as e:
        logger.error("Failed to fetch scan events", error=str(e))
        return storage_unavailable_response(str(e), correlation_id)

    return ScanEventListResponse(events=[ScanEventResponse.from_event(event) for event in events])


@router.get("/scan/stats", response_model=EventStatsResponse)
async def scan_stats(
    http_request: Request,
    service: AccessControlService = Depends(get_access_service)
):
    """Scan event counts per access status."""
    correlation_id = get_correlation_id(http_request)

    try:
        stats = await service.get_event_stats()
    except StorageUnavailable as e:
        logger.error("Failed to fetch scan stats", error=str(e))
        return storage_unavailable_response(str(e), correlation_id)

    return EventStatsResponse(
        total=stats.total,
        identified=stats.identified,
        visitor=stats.visitor,
        denied=stats.denied
    )


@router.get("/health", response_model=Dict[str, Any])
async def access_health_check(
    service: AccessControlService = Depends(get_access_service)
) -> Dict[str, Any]:
    """
    Health check endpoint specific to the access control service.

    Returns:
        Dict with service health status and component checks
    """
    db_healthy = await service.db.health_check()

    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "database": {
                "status": "healthy" if db_healthy else "unhealthy",
                "details": "Database connectivity check"
            },
            "matcher": {
                "status": "healthy",
                "details": {"threshold": service.matcher.threshold}
            }
        }
    }
