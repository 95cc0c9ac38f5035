"""
Key-value settings store using SQLite.

Holds small directory-wide values (the user-created global tag list)
as JSON under string keys.
"""

import json
import sqlite3
from pathlib import Path
from typing import Any, Optional

# Key of the persisted list of user-created tags
CUSTOM_TAGS_KEY = "custom_tags"


class SettingsStore:
    """SQLite-backed key-value store. Values are JSON-serializable."""

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
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value_json TEXT NOT NULL
            )
        """)
        self._conn.commit()

    def get(self, key: str, default: Any = None) -> Any:
        cursor = self._conn.execute(
            "SELECT value_json FROM settings WHERE key = ?", (key,)
        )
        row = cursor.fetchone()
        if row is None:
            return default
        return json.loads(row[0])

    def set(self, key: str, value: Any) -> None:
        self._conn.execute("""
            INSERT OR REPLACE INTO settings (key, value_json)
            VALUES (?, ?)
        """, (key, json.dumps(value, ensure_ascii=False)))
        self._conn.commit()

    def get_string_list(self, key: str) -> list[str]:
        """Read a list of strings, ignoring non-string entries."""
        value = self.get(key, [])
        if not isinstance(value, list):
            return []
        return [v for v in value if isinstance(v, str)]

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
