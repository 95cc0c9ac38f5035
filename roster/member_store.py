"""
Member store using SQLite.

Durable backing for member records and the notes they own. Notes
reference their member with ON DELETE CASCADE, so deleting a member row
removes its notes in the same statement.

This layer raises on failure (sqlite3.Error). Best-effort semantics,
logging and in-memory state live one level up in records.py.
"""

import json
import sqlite3
from pathlib import Path
from typing import Optional

from .types import Member, Note


_MEMBER_COLUMNS = (
    "id, first_name, last_name, email, phone, status, tags_json, "
    "birthday_month, birthday_day, joined_at"
)


def _row_to_member(row: sqlite3.Row) -> Member:
    # status is passed through raw; Member keeps it for repair detection
    return Member(
        id=row["id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        phone=row["phone"],
        status=row["status"],
        tags=json.loads(row["tags_json"] or "[]"),
        birthday_month=row["birthday_month"],
        birthday_day=row["birthday_day"],
        joined_at=row["joined_at"],
    )


def _row_to_note(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        member_id=row["member_id"],
        content=row["content"],
        created_at=row["created_at"],
    )


class MemberStore:
    """
    SQLite-backed store for members and notes.

    Two entity kinds with one-to-many ownership:
    - members: one row per member, tags serialized as a JSON array
    - notes: append-only, keyed by an integer id chosen by the caller
    """

    def __init__(self, store_path: Path):
        """
        Args:
            store_path: Path to SQLite database file
        """
        self._db_path = store_path
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")

        # status is nullable on purpose: legacy rows may carry null or
        # garbage and are repaired by the metrics pass
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS members (
                id TEXT PRIMARY KEY,
                first_name TEXT NOT NULL DEFAULT '',
                last_name TEXT NOT NULL DEFAULT '',
                email TEXT,
                phone TEXT,
                status TEXT,
                tags_json TEXT NOT NULL DEFAULT '[]',
                birthday_month INTEGER,
                birthday_day INTEGER,
                joined_at TEXT NOT NULL
            )
        """)

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS notes (
                id INTEGER PRIMARY KEY,
                member_id TEXT NOT NULL
                    REFERENCES members(id) ON DELETE CASCADE,
                content TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_notes_member
            ON notes(member_id, created_at)
        """)

        self._conn.commit()

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    def upsert_member(self, member: Member) -> None:
        """
        Insert a member row, or update every field but joined_at.

        An update never deletes the row, so owned notes are untouched.
        """
        self._conn.execute(f"""
            INSERT INTO members ({_MEMBER_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                first_name = excluded.first_name,
                last_name = excluded.last_name,
                email = excluded.email,
                phone = excluded.phone,
                status = excluded.status,
                tags_json = excluded.tags_json,
                birthday_month = excluded.birthday_month,
                birthday_day = excluded.birthday_day
        """, (
            member.id,
            member.first_name,
            member.last_name,
            member.email,
            member.phone,
            member.status.value,
            json.dumps(member.tags, ensure_ascii=False),
            member.birthday_month,
            member.birthday_day,
            member.joined_at,
        ))
        self._conn.commit()

    def delete_member(self, id: str) -> bool:
        """
        Delete a member and, by cascade, all of its notes.

        Returns:
            True if the member existed and was deleted
        """
        cursor = self._conn.execute("DELETE FROM members WHERE id = ?", (id,))
        self._conn.commit()
        return cursor.rowcount > 0

    def get_member(self, id: str) -> Optional[Member]:
        """Get a member by ID, or None."""
        cursor = self._conn.execute(
            f"SELECT {_MEMBER_COLUMNS} FROM members WHERE id = ?", (id,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return _row_to_member(row)

    def load_members(self) -> list[Member]:
        """All members in join order."""
        cursor = self._conn.execute(
            f"SELECT {_MEMBER_COLUMNS} FROM members ORDER BY joined_at, id"
        )
        return [_row_to_member(row) for row in cursor]

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def insert_note(self, note: Note) -> None:
        """Append a note. The owning member row must already exist."""
        self._conn.execute("""
            INSERT INTO notes (id, member_id, content, created_at)
            VALUES (?, ?, ?, ?)
        """, (note.id, note.member_id, note.content, note.created_at))
        self._conn.commit()

    def load_notes(self) -> list[Note]:
        """All notes, oldest first."""
        cursor = self._conn.execute("""
            SELECT id, member_id, content, created_at FROM notes
            ORDER BY created_at, id
        """)
        return [_row_to_note(row) for row in cursor]

    def notes_for(self, member_id: str) -> list[Note]:
        """Notes owned by one member, newest first."""
        cursor = self._conn.execute("""
            SELECT id, member_id, content, created_at FROM notes
            WHERE member_id = ?
            ORDER BY created_at DESC, id DESC
        """, (member_id,))
        return [_row_to_note(row) for row in cursor]

    def delete_notes(self, member_id: str) -> int:
        """Delete every note owned by a member. Returns rows removed."""
        cursor = self._conn.execute(
            "DELETE FROM notes WHERE member_id = ?", (member_id,)
        )
        self._conn.commit()
        return cursor.rowcount

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()
