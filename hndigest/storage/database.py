import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from hndigest.errors import DuplicateKeyError, StoreError
from hndigest.models import Source, StoredItem

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS seen_items (
    source TEXT NOT NULL,
    external_id TEXT NOT NULL,
    first_seen_at TEXT NOT NULL,
    PRIMARY KEY (source, external_id)
);
CREATE INDEX IF NOT EXISTS idx_first_seen_at ON seen_items(first_seen_at);
"""

IN_MEMORY = ":memory:"


def _to_db_time(value: datetime) -> str:
    """Fixed-width UTC ISO string, so text comparison orders like time."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _is_key_violation(error: sqlite3.IntegrityError) -> bool:
    message = str(error)
    return "UNIQUE constraint failed" in message or "PRIMARY KEY" in message


class ItemStore:
    """Table of processed items, keyed by (source, external_id)."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        try:
            if db_path != IN_MEMORY:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(db_path)
            self.conn.row_factory = sqlite3.Row
            self._init_schema()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Cannot open item store at {db_path}: {e}") from e

    def _init_schema(self):
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def exists(self, source: Source, external_id: str) -> bool:
        try:
            row = self.conn.execute(
                "SELECT 1 FROM seen_items WHERE source = ? AND external_id = ?",
                (source.key, external_id),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Lookup failed for {source.key}/{external_id}: {e}") from e
        return row is not None

    def insert(self, item: StoredItem) -> None:
        """Record an item as seen.

        Raises DuplicateKeyError when the identity is already stored; the
        store never overwrites ``first_seen_at``.
        """
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT INTO seen_items (source, external_id, first_seen_at) VALUES (?, ?, ?)",
                    (item.source.key, item.external_id, _to_db_time(item.first_seen_at)),
                )
        except sqlite3.IntegrityError as e:
            if _is_key_violation(e):
                raise DuplicateKeyError(item.source.key, item.external_id) from e
            raise StoreError(f"Insert failed for {item.source.key}/{item.external_id}: {e}") from e
        except sqlite3.Error as e:
            raise StoreError(f"Insert failed for {item.source.key}/{item.external_id}: {e}") from e

    def purge(self, older_than: timedelta, now: Optional[datetime] = None) -> int:
        """Delete every item first seen before ``now - older_than``.

        Runs in a single transaction: on failure nothing is deleted and
        StoreError is raised.
        """
        now = now or datetime.now(timezone.utc)
        try:
            cutoff = _to_db_time(now - older_than)
        except OverflowError:
            # Window reaches past year 1: nothing can be older
            cutoff = _to_db_time(datetime.min.replace(tzinfo=timezone.utc))
        try:
            with self.conn:
                cursor = self.conn.execute(
                    "DELETE FROM seen_items WHERE first_seen_at < ?", (cutoff,)
                )
        except sqlite3.Error as e:
            raise StoreError(f"Purge failed: {e}") from e
        return cursor.rowcount

    def get(self, source: Source, external_id: str) -> Optional[StoredItem]:
        row = self.conn.execute(
            "SELECT * FROM seen_items WHERE source = ? AND external_id = ?",
            (source.key, external_id),
        ).fetchone()
        return self._row_to_item(row) if row else None

    def query_ids(self, source: Source) -> set[str]:
        """All stored external ids for one source."""
        try:
            rows = self.conn.execute(
                "SELECT external_id FROM seen_items WHERE source = ?", (source.key,)
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Lookup failed for {source.key}: {e}") from e
        return {r["external_id"] for r in rows}

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) AS cnt FROM seen_items").fetchone()["cnt"]

    def _row_to_item(self, row: sqlite3.Row) -> StoredItem:
        return StoredItem(
            external_id=row["external_id"],
            source=Source.from_key(row["source"]),
            first_seen_at=_from_db_time(row["first_seen_at"]),
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.conn.close()
