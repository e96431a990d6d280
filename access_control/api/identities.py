"""
Identity management API endpoints: enrollment, edits and removal.
"""

import structlog
from fastapi import APIRouter, Depends, Request

from access_control.api.errors import (
    create_error_response,
    get_correlation_id,
    storage_unavailable_response,
)
from access_control.models.api_models import (
    DeleteResponse,
    IdentityCreateRequest,
    IdentityEnvelope,
    IdentityListResponse,
    IdentityResponse,
    IdentityUpdateRequest,
)
from access_control.observability import trace_function, record_enrollment_metrics
from access_control.services.access_service import (
    AccessControlService,
    DuplicateIdentifier,
    IdentityNotFound,
    StorageUnavailable,
    get_access_service,
)
from access_control.utils.encoding_utils import FormatError

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1", tags=["identities"])

# API field names mapped to service field names
_UPDATE_FIELD_NAMES = {
    "cardId": "card_id",
    "name": "name",
    "email": "email",
    "faceEncoding": "face_encoding",
    "userType": "identity_type",
    "expiresAt": "expires_at",
}


def _not_found(identity_id: str, correlation_id: str):
    return create_error_response(
        "UserNotFoundError",
        f"User {identity_id} not found",
        correlation_id,
        status_code=404
    )


@router.get("/users", response_model=IdentityListResponse)
async def list_identities(
    http_request: Request,
    service: AccessControlService = Depends(get_access_service)
):
    """All enrolled identities, newest first."""
    correlation_id = get_correlation_id(http_request)

    try:
        identities = await service.list_identities()
    except StorageUnavailable as e:
        logger.error("Failed to list users", error=str(e))
        return storage_unavailable_response(str(e), correlation_id)

    return IdentityListResponse(users=[IdentityResponse.from_identity(i) for i in identities])


@router.post("/users", response_model=IdentityEnvelope, status_code=201)
@trace_function("enrollment_endpoint")
async def create_identity(
    request: IdentityCreateRequest,
    http_request: Request,
    service: AccessControlService = Depends(get_access_service)
):
    """
    Enroll a new identity.

    The card ID must not already be in use and the face encoding must be a
    valid 128-value encoding.
    """
    correlation_id = get_correlation_id(http_request)

    logger.info(
        "Enrollment request received",
        card_id=request.cardId,
        user_type=request.userType.value
    )

    try:
        identity = await service.create_identity(
            card_id=request.cardId,
            name=request.name,
            face_encoding=request.faceEncoding,
            identity_type=request.userType,
            email=request.email,
            expires_at=request.expiresAt
        )

    except FormatError as e:
        record_enrollment_metrics(False, request.userType.value)
        logger.warning("Enrollment rejected: invalid encoding", card_id=request.cardId, error=str(e))
        return create_error_response("InvalidEncoding", str(e), correlation_id, status_code=400)

    except DuplicateIdentifier as e:
        record_enrollment_metrics(False, request.userType.value)
        logger.warning("Enrollment rejected: duplicate card ID", card_id=request.cardId)
        return create_error_response("DuplicateIdentifier", str(e), correlation_id, status_code=409)

    except StorageUnavailable as e:
        record_enrollment_metrics(False, request.userType.value)
        logger.error("Enrollment failed", card_id=request.cardId, error=str(e))
        return storage_unavailable_response(str(e), correlation_id)

    record_enrollment_metrics(True, identity.identity_type.value)
    logger.info("Enrollment completed successfully", identity_id=identity.id, card_id=identity.card_id)

    return IdentityEnvelope(user=IdentityResponse.from_identity(identity))


@router.get("/users/{identity_id}", response_model=IdentityEnvelope)
async def get_identity(
    identity_id: str,
    http_request: Request,
    service: AccessControlService = Depends(get_access_service)
):
    """Fetch a single identity."""
    correlation_id = get_correlation_id(http_request)

    try:
        identity = await service.get_identity(identity_id)
    except IdentityNotFound:
        return _not_found(identity_id, correlation_id)
    except StorageUnavailable as e:
        logger.error("Failed to fetch user", identity_id=identity_id, error=str(e))
        return storage_unavailable_response(str(e), correlation_id)

    return IdentityEnvelope(user=IdentityResponse.from_identity(identity))


@router.put("/users/{identity_id}", response_model=IdentityEnvelope)
async def update_identity(
    identity_id: str,
    request: IdentityUpdateRequest,
    http_request: Request,
    service: AccessControlService = Depends(get_access_service)
):
    """Edit an identity; fields left out of the body are unchanged."""
    correlation_id = get_correlation_id(http_request)

    changes = {
        _UPDATE_FIELD_NAMES[field]: value
        for field, value in request.model_dump(exclude_unset=True).items()
    }

    try:
        identity = await service.update_identity(identity_id, changes)

    except IdentityNotFound:
        return _not_found(identity_id, correlation_id)

    except (FormatError, ValueError) as e:
        logger.warning("Update rejected: invalid field", identity_id=identity_id, error=str(e))
        error_type = "InvalidEncoding" if isinstance(e, FormatError) else "ValidationError"
        return create_error_response(error_type, str(e), correlation_id, status_code=400)

    except DuplicateIdentifier as e:
        logger.warning("Update rejected: duplicate card ID", identity_id=identity_id)
        return create_error_response("DuplicateIdentifier", str(e), correlation_id, status_code=409)

    except StorageUnavailable as e:
        logger.error("Failed to update user", identity_id=identity_id, error=str(e))
        return storage_unavailable_response(str(e), correlation_id)

    logger.info("User updated", identity_id=identity_id, fields=sorted(changes))
    return IdentityEnvelope(user=IdentityResponse.from_identity(identity))


@router.delete("/users/{identity_id}", response_model=DeleteResponse)
async def delete_identity(
    identity_id: str,
    http_request: Request,
    service: AccessControlService = Depends(get_access_service)
):
    """Delete an identity. Scan events that reference it are kept."""
    correlation_id = get_correlation_id(http_request)

    try:
        await service.delete_identity(identity_id)
    except IdentityNotFound:
        return _not_found(identity_id, correlation_id)
    except StorageUnavailable as e:
        logger.error("Failed to delete user", identity_id=identity_id, error=str(e))
        return storage_unavailable_response(str(e), correlation_id)

    logger.info("User deleted", identity_id=identity_id)
    return DeleteResponse(success=True)
