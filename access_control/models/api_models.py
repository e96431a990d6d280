"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .internal_models import AccessStatus, Identity, IdentityType, ScanEvent


class ScanRequest(BaseModel):
    """Request model for the scan endpoint."""

    faceEncoding: str = Field(..., min_length=1, description="Base64 transport form of a 128-value face encoding")


class IdentityCreateRequest(BaseModel):
    """Request model for enrolling a new identity."""

    cardId: str = Field(..., min_length=1, max_length=64, description="Unique external card identifier")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    email: Optional[str] = Field(None, max_length=320, description="Optional contact address")
    faceEncoding: str = Field(..., min_length=1, description="Base64 transport form of a 128-value face encoding")
    userType: IdentityType = Field(IdentityType.PERMANENT, description="PERMANENT or TEMPORARY")
    expiresAt: Optional[datetime] = Field(None, description="Access expiry, meaningful for TEMPORARY identities")

    @field_validator('cardId', 'name')
    @classmethod
    def validate_not_blank(cls, v):
        """Reject values that are only whitespace."""
        if not v.strip():
            raise ValueError('Value must not be blank')
        return v.strip()

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate contact address format."""
        if v is not None and '@' not in v:
            raise ValueError('Email must contain "@"')
        return v


class IdentityUpdateRequest(BaseModel):
    """Request model for editing an identity; only supplied fields are changed."""

    cardId: Optional[str] = Field(None, min_length=1, max_length=64)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=320)
    faceEncoding: Optional[str] = Field(None, min_length=1)
    userType: Optional[IdentityType] = None
    expiresAt: Optional[datetime] = None

    @field_validator('cardId', 'name')
    @classmethod
    def validate_not_blank(cls, v):
        """Reject explicit nulls and values that are only whitespace."""
        if v is None or not v.strip():
            raise ValueError('Value must not be blank')
        return v.strip()

    @field_validator('userType')
    @classmethod
    def validate_user_type(cls, v):
        """A user type may be changed but not cleared."""
        if v is None:
            raise ValueError('userType must not be null')
        return v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate contact address format."""
        if v is not None and '@' not in v:
            raise ValueError('Email must contain "@"')
        return v


class IdentityResponse(BaseModel):
    """Public representation of an enrolled identity."""

    id: str
    cardId: str
    name: str
    email: Optional[str] = None
    userType: IdentityType
    expiresAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(
            id=identity.id,
            cardId=identity.card_id,
            name=identity.name,
            email=identity.email,
            userType=identity.identity_type,
            expiresAt=identity.expires_at,
            createdAt=identity.created_at,
            updatedAt=identity.updated_at,
        )


class IdentityListResponse(BaseModel):
    """Response model for the identity list endpoint."""

    users: List[IdentityResponse]


class IdentityEnvelope(BaseModel):
    """Response model wrapping a single identity."""

    user: IdentityResponse


class DeleteResponse(BaseModel):
    """Response model for deletions."""

    success: bool


class ScanResponse(BaseModel):
    """Response model for the scan endpoint."""

    success: bool = Field(True, description="Whether the scan was processed")
    status: AccessStatus = Field(..., description="Resolved access status")
    user: Optional[IdentityResponse] = Field(None, description="Matched identity, if any")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Match confidence")
    quality: Optional[str] = Field(None, description="Human-readable match quality")
    distance: Optional[float] = Field(None, ge=0.0, description="Raw distance, for diagnostics")
    eventId: str = Field(..., description="ID of the recorded scan event")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "status": "IDENTIFIED",
                "user": {"id": "0b7c...", "cardId": "EMP001", "name": "John Doe", "userType": "PERMANENT"},
                "confidence": 0.93,
                "quality": "Excellent",
                "distance": 0.07,
                "eventId": "42"
            }
        }
    )


class ScanEventResponse(BaseModel):
    """Public representation of a scan event."""

    id: Optional[str] = None
    timestamp: datetime
    status: AccessStatus
    confidence: Optional[float] = None
    userId: Optional[str] = None
    user: Optional[IdentityResponse] = None

    @classmethod
    def from_event(cls, event: ScanEvent) -> "ScanEventResponse":
        return cls(
            id=event.id,
            timestamp=event.timestamp,
            status=event.status,
            confidence=event.confidence,
            userId=event.identity_id,
            user=IdentityResponse.from_identity(event.identity) if event.identity else None,
        )


class ScanEventListResponse(BaseModel):
    """Response model for the recent events endpoint."""

    events: List[ScanEventResponse]


class EventStatsResponse(BaseModel):
    """Response model for scan statistics."""

    total: int
    identified: int
    visitor: int
    denied: int


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field("1.0.0", description="Service version")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    correlation_id: str = Field(..., description="Request correlation ID for tracing")
    timestamp: datetime = Field(..., description="Error timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "InvalidEncoding",
                "message": "Encoding must contain exactly 128 values, got 3",
                "correlation_id": "req_123456789",
                "timestamp": "2024-01-01T12:00:00Z"
            }
        }
    )
