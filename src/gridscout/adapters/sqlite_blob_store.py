"""SQLite blob store adapter.

Implements the core BlobStorePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from gridscout.core.errors import PersistenceError


class SQLiteBlobStore:
    """Thin SQLite wrapper that satisfies the BlobStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create the blobs table if it does not exist.

        Fields:
        - key: collection key, e.g. sightings:<tenant> (PRIMARY KEY)
        - value: serialized collection
        - updated_at: timestamp of the last write, for debugging
        """

        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[bytes]:
        """Return the stored blob for a key, if any."""

        with self._connect() as conn:
            row = conn.execute("SELECT value FROM blobs WHERE key = ?", (key,)).fetchone()
        return bytes(row["value"]) if row else None

    def set(self, key: str, value: bytes) -> None:
        """Upsert a blob; the transaction is committed before returning."""

        now = datetime.now(timezone.utc)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO blobs (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, sqlite3.Binary(value), now.isoformat()),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"SQLite write failed for {key}: {exc}") from exc

    def list_keys(self, prefix: str = "") -> List[str]:
        """Return stored keys starting with ``prefix``."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM blobs WHERE key LIKE ? ORDER BY key",
                (f"{prefix}%",),
            ).fetchall()
        return [row["key"] for row in rows]
