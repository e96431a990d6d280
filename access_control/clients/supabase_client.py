"""Supabase client for database operations."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import create_client, Client
from postgrest.exceptions import APIError

from ..config import settings
from ..models.internal_models import (
    AccessStatus,
    EventStats,
    Identity,
    IdentityType,
    ScanEvent,
)

logger = logging.getLogger(__name__)

IDENTITIES_TABLE = "identities"
SCAN_EVENTS_TABLE = "scan_events"

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"

# Matches the default PostgREST max-rows cap
CANDIDATE_PAGE_SIZE = 1000


class DuplicateCardIdError(Exception):
    """Raised when the database rejects a write on the card_id unique constraint."""
    pass


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp from the database into an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_identity(row: Dict[str, Any]) -> Identity:
    return Identity(
        id=str(row["id"]),
        card_id=row["card_id"],
        name=row["name"],
        email=row.get("email"),
        face_encoding=row.get("face_encoding") or "",
        identity_type=IdentityType(row.get("identity_type") or IdentityType.PERMANENT),
        expires_at=_parse_timestamp(row.get("expires_at")),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )


def _identity_to_row(identity: Identity) -> Dict[str, Any]:
    return {
        "id": identity.id,
        "card_id": identity.card_id,
        "name": identity.name,
        "email": identity.email,
        "face_encoding": identity.face_encoding,
        "identity_type": identity.identity_type.value,
        "expires_at": identity.expires_at.isoformat() if identity.expires_at else None,
        "created_at": identity.created_at.isoformat() if identity.created_at else None,
        "updated_at": identity.updated_at.isoformat() if identity.updated_at else None,
    }


def _is_unique_violation(error: APIError) -> bool:
    return getattr(error, "code", None) == UNIQUE_VIOLATION


class SupabaseClient:
    """Client for Supabase database operations."""

    def __init__(self):
        """Initialize Supabase client with configuration."""
        self._client: Optional[Client] = None
        self._url = settings.supabase_url
        self._key = settings.supabase_anon_key

    @property
    def client(self) -> Client:
        """Get or create Supabase client instance."""
        if self._client is None:
            self._client = create_client(self._url, self._key)
        return self._client

    def table(self, name: str):
        return self.client.table(name)

    async def health_check(self) -> bool:
        """Check if database connection is healthy."""
        try:
            self.table(IDENTITIES_TABLE).select("id", count="exact").limit(0).execute()
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


class IdentityRepository:
    """Repository for enrolled identity database operations."""

    def __init__(self, supabase_client: SupabaseClient):
        """Initialize repository with Supabase client."""
        self.client = supabase_client

    async def load_eligible_candidates(self, now: datetime) -> List[Identity]:
        """
        Load identities that may be matched at ``now``, in enrollment order.

        Permanent identities are always eligible; temporary ones only while
        their expiry is absent or strictly in the future. Rows are fetched in
        pages because PostgREST caps the size of a single response.
        """
        rows: List[Dict[str, Any]] = []
        offset = 0
        try:
            while True:
                result = (
                    self.client.table(IDENTITIES_TABLE)
                    .select("*")
                    .or_(
                        f"identity_type.eq.{IdentityType.PERMANENT.value},"
                        f"expires_at.is.null,"
                        f"expires_at.gt.{now.isoformat()}"
                    )
                    .order("created_at")
                    .order("id")
                    .range(offset, offset + CANDIDATE_PAGE_SIZE - 1)
                    .execute()
                )
                rows.extend(result.data)
                if len(result.data) < CANDIDATE_PAGE_SIZE:
                    break
                offset += CANDIDATE_PAGE_SIZE

            identities = [_row_to_identity(row) for row in rows]
            eligible = [identity for identity in identities if identity.is_eligible(now)]

            logger.debug(f"Loaded {len(eligible)} eligible candidates")
            return eligible

        except APIError as e:
            logger.error(f"Database error loading candidates: {e}")
            raise

    async def list_identities(self) -> List[Identity]:
        """Retrieve all identities, newest first."""
        try:
            result = (
                self.client.table(IDENTITIES_TABLE)
                .select("*")
                .order("created_at", desc=True)
                .execute()
            )
            return [_row_to_identity(row) for row in result.data]

        except APIError as e:
            logger.error(f"Database error listing identities: {e}")
            raise

    async def get_identity(self, identity_id: str) -> Optional[Identity]:
        """Retrieve identity by ID."""
        try:
            result = self.client.table(IDENTITIES_TABLE).select("*").eq("id", identity_id).execute()

            if not result.data:
                return None

            return _row_to_identity(result.data[0])

        except APIError as e:
            logger.error(f"Database error retrieving identity {identity_id}: {e}")
            raise

    async def find_identity_by_card_id(self, card_id: str) -> Optional[Identity]:
        """Retrieve identity by card ID."""
        try:
            result = self.client.table(IDENTITIES_TABLE).select("*").eq("card_id", card_id).execute()

            if not result.data:
                return None

            return _row_to_identity(result.data[0])

        except APIError as e:
            logger.error(f"Database error retrieving identity by card ID {card_id}: {e}")
            raise

    async def identity_exists(self, card_id: str, excluding: Optional[str] = None) -> bool:
        """Check whether a card ID is in use, optionally ignoring one identity."""
        try:
            query = self.client.table(IDENTITIES_TABLE).select("id").eq("card_id", card_id)
            if excluding is not None:
                query = query.neq("id", excluding)
            result = query.limit(1).execute()
            return bool(result.data)

        except APIError as e:
            logger.error(f"Database error checking card ID {card_id}: {e}")
            raise

    async def create_identity(self, identity: Identity) -> Identity:
        """Insert a new identity; the card_id unique constraint backs the uniqueness check."""
        try:
            result = self.client.table(IDENTITIES_TABLE).insert(_identity_to_row(identity)).execute()

            if not result.data:
                raise ValueError("Failed to create identity")

            logger.info(f"Successfully created identity {identity.id}")
            return _row_to_identity(result.data[0])

        except APIError as e:
            if _is_unique_violation(e):
                raise DuplicateCardIdError(identity.card_id) from e
            logger.error(f"Database error creating identity {identity.id}: {e}")
            raise

    async def update_identity(self, identity_id: str, fields: Dict[str, Any]) -> Optional[Identity]:
        """Apply a partial update; returns None when the identity does not exist."""
        try:
            result = self.client.table(IDENTITIES_TABLE).update(fields).eq("id", identity_id).execute()

            if not result.data:
                return None

            logger.info(f"Successfully updated identity {identity_id}")
            return _row_to_identity(result.data[0])

        except APIError as e:
            if _is_unique_violation(e):
                raise DuplicateCardIdError(fields.get("card_id")) from e
            logger.error(f"Database error updating identity {identity_id}: {e}")
            raise

    async def delete_identity(self, identity_id: str) -> bool:
        """Delete identity by ID; scan events keep their rows."""
        try:
            result = self.client.table(IDENTITIES_TABLE).delete().eq("id", identity_id).execute()

            success = len(result.data) > 0
            if success:
                logger.info(f"Successfully deleted identity {identity_id}")
            else:
                logger.warning(f"Identity {identity_id} not found for deletion")

            return success

        except APIError as e:
            logger.error(f"Database error deleting identity {identity_id}: {e}")
            raise


class ScanEventRepository:
    """Repository for append-only scan event operations."""

    def __init__(self, supabase_client: SupabaseClient):
        """Initialize repository with Supabase client."""
        self.client = supabase_client

    async def append_scan_event(
        self,
        status: AccessStatus,
        identity_id: Optional[str] = None,
        confidence: Optional[float] = None
    ) -> str:
        """Append a scan event and return its database-generated ID."""
        try:
            event_data = {
                "status": AccessStatus(status).value,
                "identity_id": identity_id,
                "confidence": confidence,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

            result = self.client.table(SCAN_EVENTS_TABLE).insert(event_data).execute()

            if not result.data:
                raise ValueError("Failed to create scan event")

            event_id = str(result.data[0]["id"])
            logger.info(f"Recorded scan event {event_id}: status={event_data['status']}")
            return event_id

        except APIError as e:
            logger.error(f"Database error recording scan event: {e}")
            raise

    async def list_recent_events(self, limit: int = 50) -> List[ScanEvent]:
        """Retrieve the most recent scan events with their identities, if still present."""
        try:
            result = (
                self.client.table(SCAN_EVENTS_TABLE)
                .select(f"*, {IDENTITIES_TABLE}(*)")
                .order("timestamp", desc=True)
                .limit(limit)
                .execute()
            )

            events = []
            for event_data in result.data:
                identity_row = event_data.get(IDENTITIES_TABLE)
                events.append(ScanEvent(
                    id=str(event_data["id"]),
                    status=AccessStatus(event_data["status"]),
                    timestamp=_parse_timestamp(event_data["timestamp"]),
                    identity_id=event_data.get("identity_id"),
                    confidence=event_data.get("confidence"),
                    identity=_row_to_identity(identity_row) if identity_row else None
                ))

            return events

        except APIError as e:
            logger.error(f"Database error retrieving scan events: {e}")
            raise

    async def count_events_by_status(self) -> EventStats:
        """Count scan events per access status."""
        try:
            counts = {}
            for status in AccessStatus:
                result = (
                    self.client.table(SCAN_EVENTS_TABLE)
                    .select("id", count="exact")
                    .eq("status", status.value)
                    .limit(0)
                    .execute()
                )
                counts[status] = result.count or 0

            return EventStats(
                total=sum(counts.values()),
                identified=counts[AccessStatus.IDENTIFIED],
                visitor=counts[AccessStatus.VISITOR],
                denied=counts[AccessStatus.DENIED]
            )

        except APIError as e:
            logger.error(f"Database error counting scan events: {e}")
            raise


class DatabaseManager:
    """High-level database manager that coordinates repositories."""

    def __init__(self):
        """Initialize database manager with client and repositories."""
        self.client = SupabaseClient()
        self.identities = IdentityRepository(self.client)
        self.scan_events = ScanEventRepository(self.client)

    async def health_check(self) -> bool:
        """Check overall database health."""
        return await self.client.health_check()
