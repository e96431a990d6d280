"""Internal data models for the face access control service."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class IdentityType(str, Enum):
    """Classification of an enrolled identity."""

    PERMANENT = "PERMANENT"
    TEMPORARY = "TEMPORARY"


class AccessStatus(str, Enum):
    """Resolved outcome of a scan."""

    IDENTIFIED = "IDENTIFIED"
    VISITOR = "VISITOR"
    DENIED = "DENIED"


@dataclass
class Identity:
    """Internal model for an enrolled subject."""

    id: str
    card_id: str  # Unique external card identifier
    name: str
    face_encoding: str  # Transport text of the 128-value encoding
    identity_type: IdentityType = IdentityType.PERMANENT
    email: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Normalize the identity type and check timestamps are timezone-aware."""
        self.identity_type = IdentityType(self.identity_type)
        if self.expires_at is not None and self.expires_at.tzinfo is None:
            raise ValueError("expires_at must be timezone-aware")

    def is_eligible(self, now: datetime) -> bool:
        """Whether this identity may be matched at the instant ``now``."""
        if self.identity_type is IdentityType.PERMANENT:
            return True
        return self.expires_at is None or self.expires_at > now


@dataclass
class MatchResult:
    """Best candidate accepted by the matcher for one scan."""

    identity: Identity
    distance: float
    confidence: float


@dataclass
class ScanEvent:
    """Immutable audit record of one scan."""

    status: AccessStatus
    timestamp: datetime
    identity_id: Optional[str] = None
    confidence: Optional[float] = None
    id: Optional[str] = None  # Database-generated ID
    identity: Optional[Identity] = None  # Resolved on read, None once deleted

    def __post_init__(self):
        """Validate confidence range after initialization."""
        self.status = AccessStatus(self.status)
        if self.confidence is not None and not (0.0 <= self.confidence <= 1.0):
            raise ValueError(f"Confidence must be between 0.0 and 1.0, got {self.confidence}")


@dataclass
class ScanOutcome:
    """Result of a scan returned to the caller."""

    status: AccessStatus
    event_id: str
    identity: Optional[Identity] = None
    confidence: Optional[float] = None
    quality: Optional[str] = None
    distance: Optional[float] = None


@dataclass
class EventStats:
    """Scan event counts per access status."""

    total: int
    identified: int
    visitor: int
    denied: int
