"""
User Repository.

Data access for ``users/{uid}`` profile documents in the local store.
Array fields are persisted as JSON text and surfaced as lists.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional

from claimsync.models.user import UserProfile
from claimsync.repositories.base_repository import SERVER_TIMESTAMP_SQL, BaseRepository

_JSON_COLUMNS: frozenset[str] = frozenset({"assigned_modules", "assigned_projects"})

# Columns an administrator edit may touch.  ``uid``, ``email`` and
# ``created_at`` are immutable after creation.
_EDITABLE_COLUMNS: frozenset[str] = frozenset({
    "first_name",
    "last_name",
    "role",
    "status",
    "assigned_modules",
    "assigned_projects",
})


class UserRepository(BaseRepository):
    """Data access layer for UserProfile documents."""

    TABLE = "users"

    def get_by_id(self, uid: str) -> Optional[UserProfile]:
        """Fetch a profile by uid, or ``None`` if no document exists."""
        row = self.sqlite.execute(
            f"SELECT * FROM {self.TABLE} WHERE uid = ?", (uid,)
        ).fetchone()
        return self._to_model(row) if row else None

    def get_document(self, uid: str) -> Optional[dict[str, Any]]:
        """Fetch the camelCase document snapshot used in update events."""
        profile = self.get_by_id(uid)
        return profile.to_document() if profile else None

    def get_all(self) -> list[UserProfile]:
        """Fetch every profile, oldest first."""
        rows = self.sqlite.execute(
            f"SELECT * FROM {self.TABLE} ORDER BY created_at, uid"
        ).fetchall()
        return [self._to_model(row) for row in rows]

    def count(self) -> int:
        row = self.sqlite.execute(f"SELECT COUNT(*) FROM {self.TABLE}").fetchone()
        return int(row[0])

    def merge(self, profile: UserProfile) -> UserProfile:
        """Merge-write a profile document (create or update in place).

        Every profile field is written except ``created_at``, which is
        server-assigned on the first write and preserved afterwards.
        Columns outside the model are left untouched on an existing row.
        """
        values = self._to_row(profile)
        columns = list(values.keys())
        placeholders = ", ".join("?" for _ in columns)
        assignments = ", ".join(f"{col} = excluded.{col}" for col in columns if col != "uid")

        with self._db.transaction() as conn:
            conn.execute(
                f"""
                INSERT INTO {self.TABLE} ({", ".join(columns)}, created_at, updated_at)
                VALUES ({placeholders}, {SERVER_TIMESTAMP_SQL}, {SERVER_TIMESTAMP_SQL})
                ON CONFLICT(uid) DO UPDATE SET
                    {assignments},
                    created_at = COALESCE({self.TABLE}.created_at, excluded.created_at),
                    updated_at = excluded.updated_at
                """,
                tuple(values.values()),
            )
            stored = self.get_by_id(profile.uid)

        if stored is None:
            raise sqlite3.DatabaseError(f"Profile {profile.uid} missing after merge.")
        self._logger.bind(uid=profile.uid).debug("Profile merged: %s", profile.uid)
        return stored

    def update_fields(self, uid: str, fields: dict[str, object]) -> Optional[UserProfile]:
        """Apply an administrator edit to the editable columns.

        Returns the updated profile, or ``None`` if no document exists.

        Raises:
            ValueError: If *fields* names a non-editable column.
        """
        illegal = set(fields) - _EDITABLE_COLUMNS
        if illegal:
            raise ValueError(f"Fields not editable: {', '.join(sorted(illegal))}")
        if not fields:
            return self.get_by_id(uid)

        assignments = ", ".join(f"{col} = ?" for col in fields)
        params = [
            json.dumps(value) if col in _JSON_COLUMNS else value
            for col, value in fields.items()
        ]

        with self._db.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE {self.TABLE} SET {assignments}, "
                f"updated_at = {SERVER_TIMESTAMP_SQL} WHERE uid = ?",
                (*params, uid),
            )
            if cursor.rowcount == 0:
                return None
            return self.get_by_id(uid)

    def delete(self, uid: str) -> bool:
        """Delete a profile document.  Returns ``True`` if a row was removed."""
        with self._db.transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {self.TABLE} WHERE uid = ?", (uid,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_row(profile: UserProfile) -> dict[str, object]:
        return {
            "uid": profile.uid,
            "first_name": profile.first_name,
            "last_name": profile.last_name,
            "email": profile.email,
            "role": str(profile.role),
            "status": str(profile.status),
            "assigned_modules": json.dumps(profile.assigned_modules),
            "assigned_projects": json.dumps(profile.assigned_projects),
        }

    @staticmethod
    def _to_model(row: sqlite3.Row) -> UserProfile:
        data = dict(row)
        for col in _JSON_COLUMNS:
            data[col] = json.loads(data[col] or "[]")
        return UserProfile(**data)
