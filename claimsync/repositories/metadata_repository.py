"""
System Metadata Repository.

Data access for the singleton ``system/metadata`` record holding
``userCount``.  Reads and writes are meant to be issued inside a
``DatabaseManager.transaction()`` opened by the caller; see
``UserCounterService`` for the transactional read-modify-write.
"""

from __future__ import annotations

from typing import Optional

from claimsync.models.user import SystemMetadata
from claimsync.repositories.base_repository import SERVER_TIMESTAMP_SQL, BaseRepository

METADATA_KEY: str = "metadata"


class MetadataRepository(BaseRepository):
    """Data access layer for the SystemMetadata singleton."""

    TABLE = "system_metadata"

    def get_metadata(self) -> Optional[SystemMetadata]:
        """Return the metadata record, or ``None`` if it was never created."""
        row = self.sqlite.execute(
            f"SELECT user_count, updated_at FROM {self.TABLE} WHERE key = ?",
            (METADATA_KEY,),
        ).fetchone()
        return SystemMetadata(**dict(row)) if row else None

    def get_user_count(self) -> int:
        """Return ``userCount``, treating an absent record as 0."""
        metadata = self.get_metadata()
        return metadata.user_count if metadata else 0

    def set_user_count(self, user_count: int) -> None:
        """Upsert the record with *user_count*.

        Raises:
            ValueError: If *user_count* is negative.
        """
        if user_count < 0:
            raise ValueError(f"userCount cannot be negative: {user_count}")
        with self._db.transaction() as conn:
            conn.execute(
                f"""
                INSERT INTO {self.TABLE} (key, user_count, updated_at)
                VALUES (?, ?, {SERVER_TIMESTAMP_SQL})
                ON CONFLICT(key) DO UPDATE SET
                    user_count = excluded.user_count,
                    updated_at = excluded.updated_at
                """,
                (METADATA_KEY, user_count),
            )
