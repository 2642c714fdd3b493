"""SQLite-backed blob storage."""

import logging
import sqlite3
from collections.abc import Collection
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path

from eidos.domain.errors import PersistenceError
from eidos.services.storage import BlobStorage, Blobs, Merge

_logger = logging.getLogger(__name__)

_CREATE_TABLE = (
    "CREATE TABLE IF NOT EXISTS blobs (key TEXT PRIMARY KEY, value BLOB NOT NULL)"
)
_UPSERT = (
    "INSERT INTO blobs (key, value) VALUES (?, ?) "
    "ON CONFLICT(key) DO UPDATE SET value = excluded.value"
)
_DELETE = "DELETE FROM blobs WHERE key = ?"
_SELECT = "SELECT value FROM blobs WHERE key = ?"


@dataclass
class SqliteBlobStorage(BlobStorage):
    """SQLite implementation storing each key as one row.

    Every batch runs inside a single ``BEGIN IMMEDIATE`` transaction, so
    multi-key writes are all-or-nothing and read-merge-write cycles from
    separate connections or processes are serialized.
    """

    path: str

    @classmethod
    def create(cls, path: str | Path) -> "SqliteBlobStorage":
        """Create the database file and table if needed."""
        db_path = Path(path)
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(
                f"Cannot create storage directory for {db_path}"
            ) from exc
        storage = cls(path=str(db_path))
        try:
            with closing(storage._connect()) as conn:
                conn.execute(_CREATE_TABLE)
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to initialize storage at {db_path}"
            ) from exc
        _logger.info("SQLite storage ready at %s", db_path)
        return storage

    def read(self, key: str) -> bytes | None:
        """Return the stored blob for a key."""
        try:
            with closing(self._connect()) as conn:
                return _select(conn, key)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to read {key!r}") from exc

    def write(self, entries: Blobs) -> None:
        """Apply upserts and deletions in one transaction."""
        self.update((), lambda _current: entries)

    def update(self, keys: Collection[str], merge: Merge) -> None:
        """Read, merge and write while holding the database write lock."""
        written: list[str] = []
        try:
            with closing(self._connect()) as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    current = {key: _select(conn, key) for key in keys}
                    entries = merge(current)
                    written.extend(sorted(entries))
                    for key, value in entries.items():
                        if value is None:
                            conn.execute(_DELETE, (key,))
                        else:
                            conn.execute(_UPSERT, (key, sqlite3.Binary(value)))
                except BaseException:
                    conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to write {', '.join(written or sorted(keys))}"
            ) from exc

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path, timeout=10.0, isolation_level=None)


def _select(conn: sqlite3.Connection, key: str) -> bytes | None:
    row = conn.execute(_SELECT, (key,)).fetchone()
    if row is None:
        return None
    return bytes(row[0])
