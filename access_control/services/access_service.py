"""
Access control service for scans and identity enrollment.

This module provides the core business logic for:
- Scanning a presented face encoding against the eligible identities
- Resolving the access status and recording exactly one scan event
- Enrolling, editing and removing identities with unique card IDs
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from access_control.clients.supabase_client import DatabaseManager, DuplicateCardIdError
from access_control.config import settings
from access_control.models.internal_models import (
    EventStats,
    Identity,
    IdentityType,
    ScanEvent,
    ScanOutcome,
)
from access_control.services.access_policy import decide_access
from access_control.services.matching_service import FaceMatcher, classify_match_quality
from access_control.utils.encoding_utils import FormatError, parse_face_encoding

logger = logging.getLogger(__name__)


class AccessControlError(Exception):
    """Base exception for access control service errors."""
    pass


class StorageUnavailable(AccessControlError):
    """Raised when the storage collaborator fails; the operation may be retried."""
    pass


class DuplicateIdentifier(AccessControlError):
    """Raised when a card ID is already used by another identity."""
    pass


class IdentityNotFound(AccessControlError):
    """Raised when an identity ID does not exist."""
    pass


# Identity columns an edit may change
_UPDATABLE_FIELDS = frozenset({
    "card_id",
    "name",
    "email",
    "face_encoding",
    "identity_type",
    "expires_at",
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AccessControlService:
    """
    Core access control service handling scans and identity management.

    Holds no per-scan state: the candidate set is fetched fresh for every
    scan and discarded afterwards, so concurrent scans need no coordination.
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        matcher: Optional[FaceMatcher] = None
    ):
        """
        Initialize access control service.

        Args:
            db_manager: Database manager instance. If None, creates a new one.
            matcher: Face matcher. If None, uses the configured threshold.
        """
        self.db = db_manager or DatabaseManager()
        self.matcher = matcher or FaceMatcher(threshold=settings.match_threshold)

        logger.info(f"Access control service initialized with match threshold: {self.matcher.threshold}")

    async def scan(self, face_encoding: str) -> ScanOutcome:
        """
        Resolve access for a presented face encoding.

        Workflow:
        1. Validate the encoding (rejected before any storage access)
        2. Load the identities eligible right now
        3. Find the best match above the threshold
        4. Resolve the access status
        5. Record the scan event

        Args:
            face_encoding: Transport text of the presented encoding

        Returns:
            ScanOutcome with status, matched identity, confidence and event ID

        Raises:
            FormatError: If the encoding is malformed or out of range
            StorageUnavailable: If candidates cannot be loaded or the event
                cannot be recorded; no event is written in that case
        """
        input_encoding = parse_face_encoding(face_encoding)
        now = _utcnow()

        try:
            candidates = await self.db.identities.load_eligible_candidates(now)
        except Exception as e:
            logger.error(f"Failed to load scan candidates: {e}")
            raise StorageUnavailable(f"Failed to load identities: {e}") from e

        if candidates:
            match = self.matcher.find_best_match(input_encoding, candidates)
        else:
            logger.info("No eligible identities enrolled, scan resolves to DENIED")
            match = None

        status = decide_access(match)

        identity = match.identity if match else None
        confidence = match.confidence if match else None

        try:
            event_id = await self.db.scan_events.append_scan_event(
                status,
                identity.id if identity else None,
                confidence
            )
        except Exception as e:
            logger.error(f"Failed to record scan event: {e}")
            raise StorageUnavailable(f"Failed to record scan event: {e}") from e

        logger.info(
            f"Scan resolved: status={status.value}, candidates={len(candidates)}, "
            f"identity={identity.id if identity else None}, confidence={confidence}"
        )

        return ScanOutcome(
            status=status,
            event_id=event_id,
            identity=identity,
            confidence=confidence,
            quality=classify_match_quality(confidence) if match else None,
            distance=match.distance if match else None
        )

    async def create_identity(
        self,
        card_id: str,
        name: str,
        face_encoding: str,
        identity_type: IdentityType = IdentityType.PERMANENT,
        email: Optional[str] = None,
        expires_at: Optional[datetime] = None
    ) -> Identity:
        """
        Enroll a new identity.

        Raises:
            FormatError: If the encoding is malformed or out of range
            DuplicateIdentifier: If the card ID is already enrolled
            StorageUnavailable: If the database operation fails
        """
        parse_face_encoding(face_encoding)

        try:
            if await self.db.identities.identity_exists(card_id):
                raise DuplicateIdentifier(f"User with card ID {card_id} already exists")
        except DuplicateIdentifier:
            raise
        except Exception as e:
            logger.error(f"Failed to check card ID {card_id}: {e}")
            raise StorageUnavailable(f"Failed to check card ID: {e}") from e

        now = _utcnow()
        identity = Identity(
            id=str(uuid.uuid4()),
            card_id=card_id,
            name=name,
            email=email,
            face_encoding=face_encoding,
            identity_type=identity_type,
            expires_at=_as_aware(expires_at),
            created_at=now,
            updated_at=now
        )

        try:
            created = await self.db.identities.create_identity(identity)
        except DuplicateCardIdError as e:
            raise DuplicateIdentifier(f"User with card ID {card_id} already exists") from e
        except Exception as e:
            logger.error(f"Failed to store identity {card_id}: {e}")
            raise StorageUnavailable(f"Failed to store identity: {e}") from e

        logger.info(f"Enrolled identity {created.id} with card ID {card_id} ({identity_type.value})")
        return created

    async def update_identity(self, identity_id: str, changes: Dict[str, Any]) -> Identity:
        """
        Apply a partial update to an identity.

        Args:
            identity_id: ID of the identity to edit
            changes: Field name to new value; only supplied fields change

        Raises:
            FormatError: If a new encoding is malformed or out of range
            DuplicateIdentifier: If a new card ID belongs to another identity
            IdentityNotFound: If the identity does not exist
            StorageUnavailable: If the database operation fails
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown identity fields: {sorted(unknown)}")

        fields: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "face_encoding":
                if value is None:
                    raise FormatError("Encoding text is empty")
                parse_face_encoding(value)
            elif key == "identity_type":
                if value is None:
                    raise ValueError("identity_type must not be empty")
                value = IdentityType(value).value
            elif key == "expires_at" and value is not None:
                value = _as_aware(value).isoformat()
            elif key in ("card_id", "name"):
                value = value.strip() if value else value
                if not value:
                    raise ValueError(f"{key} must not be empty")
            fields[key] = value

        try:
            if await self.db.identities.get_identity(identity_id) is None:
                raise IdentityNotFound(f"User {identity_id} not found")

            card_id = fields.get("card_id")
            if card_id and await self.db.identities.identity_exists(card_id, excluding=identity_id):
                raise DuplicateIdentifier(f"Another user with card ID {card_id} already exists")
        except AccessControlError:
            raise
        except Exception as e:
            logger.error(f"Failed to prepare update for identity {identity_id}: {e}")
            raise StorageUnavailable(f"Failed to load identity: {e}") from e

        fields["updated_at"] = _utcnow().isoformat()

        try:
            updated = await self.db.identities.update_identity(identity_id, fields)
        except DuplicateCardIdError as e:
            raise DuplicateIdentifier(f"Another user with card ID {fields.get('card_id')} already exists") from e
        except Exception as e:
            logger.error(f"Failed to update identity {identity_id}: {e}")
            raise StorageUnavailable(f"Failed to update identity: {e}") from e

        if updated is None:
            raise IdentityNotFound(f"User {identity_id} not found")

        logger.info(f"Updated identity {identity_id}: fields={sorted(changes)}")
        return updated

    async def get_identity(self, identity_id: str) -> Identity:
        """Fetch one identity or raise IdentityNotFound."""
        try:
            identity = await self.db.identities.get_identity(identity_id)
        except Exception as e:
            logger.error(f"Failed to get identity {identity_id}: {e}")
            raise StorageUnavailable(f"Failed to retrieve identity: {e}") from e

        if identity is None:
            raise IdentityNotFound(f"User {identity_id} not found")
        return identity

    async def list_identities(self) -> List[Identity]:
        """List all enrolled identities, newest first."""
        try:
            return await self.db.identities.list_identities()
        except Exception as e:
            logger.error(f"Failed to list identities: {e}")
            raise StorageUnavailable(f"Failed to retrieve identities: {e}") from e

    async def delete_identity(self, identity_id: str) -> None:
        """Delete an identity; its past scan events are kept."""
        try:
            deleted = await self.db.identities.delete_identity(identity_id)
        except Exception as e:
            logger.error(f"Failed to delete identity {identity_id}: {e}")
            raise StorageUnavailable(f"Failed to delete identity: {e}") from e

        if not deleted:
            raise IdentityNotFound(f"User {identity_id} not found")

    async def list_recent_events(self, limit: Optional[int] = None) -> List[ScanEvent]:
        """
        Get the most recent scan events.

        Args:
            limit: Maximum number of events to return, defaults to the configured limit

        Returns:
            Scan events, newest first; identity is None once deleted
        """
        limit = limit or settings.recent_events_limit
        try:
            events = await self.db.scan_events.list_recent_events(limit)
            logger.info(f"Retrieved {len(events)} recent scan events")
            return events
        except Exception as e:
            logger.error(f"Failed to get recent scan events: {e}")
            raise StorageUnavailable(f"Failed to retrieve scan events: {e}") from e

    async def get_event_stats(self) -> EventStats:
        """Count scan events per access status."""
        try:
            return await self.db.scan_events.count_events_by_status()
        except Exception as e:
            logger.error(f"Failed to count scan events: {e}")
            raise StorageUnavailable(f"Failed to count scan events: {e}") from e


# Global service instance
_access_service: Optional[AccessControlService] = None


def get_access_service() -> AccessControlService:
    """
    Get the global access control service instance.

    Returns:
        AccessControlService: The global access control service instance
    """
    global _access_service
    if _access_service is None:
        _access_service = AccessControlService()
    return _access_service
