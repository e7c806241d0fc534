"""
Repository Layer Package.

Data-access abstractions over the SQLite document store and the Supabase
Auth admin API.  Services never touch ``db.sqlite`` or ``db.supabase``
directly for domain data.
"""

from claimsync.repositories.base_repository import BaseRepository
from claimsync.repositories.claims_repository import ClaimsRepository, ClaimsSyncError
from claimsync.repositories.event_repository import EventRepository, StoredEvent
from claimsync.repositories.metadata_repository import MetadataRepository
from claimsync.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "ClaimsRepository",
    "ClaimsSyncError",
    "EventRepository",
    "MetadataRepository",
    "StoredEvent",
    "UserRepository",
]
