"""Client modules for external service integrations."""

from access_control.clients.supabase_client import (
    SupabaseClient,
    IdentityRepository,
    ScanEventRepository,
    DatabaseManager,
    DuplicateCardIdError
)

__all__ = [
    "SupabaseClient",
    "IdentityRepository",
    "ScanEventRepository",
    "DatabaseManager",
    "DuplicateCardIdError"
]
