"""SQLite database layer: connection management, schema, transactions.

One ``Database`` owns one connection shared by the ledger and the record
store.  Access is serialised by a lock so the connection can be used
from the worker threads the MCP handlers run in.  Every mutation runs
inside ``transaction()`` which issues ``BEGIN IMMEDIATE`` so the write
lock is taken before any row is read.

``sqlite3.Error`` never leaves this package: it is logged and re-raised
as ``DatabaseError``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from letterman_sync.errors import DatabaseError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"

_SCHEMA_SQL = """\
-- Post revisions (version chain)
CREATE TABLE IF NOT EXISTS post_versions (
    seq          INTEGER PRIMARY KEY AUTOINCREMENT,
    post_id      INTEGER NOT NULL,
    version      TEXT NOT NULL UNIQUE,
    prev_version TEXT NOT NULL,
    head         INTEGER NOT NULL DEFAULT 0 CHECK(head IN (0, 1)),
    title        TEXT NOT NULL,
    metadata     TEXT NOT NULL DEFAULT '{}',
    content      TEXT NOT NULL,
    create_time  TEXT NOT NULL,
    update_time  TEXT NOT NULL,
    UNIQUE(post_id, version)
);

-- Remote publish log (append-only)
CREATE TABLE IF NOT EXISTS sync_records (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    post_id     INTEGER NOT NULL,
    platform    TEXT NOT NULL,
    version     TEXT NOT NULL,
    action      TEXT NOT NULL,
    path        TEXT NOT NULL,
    sha         TEXT NOT NULL,
    repository  TEXT NOT NULL,
    url         TEXT NOT NULL DEFAULT '',
    create_time TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- At most one head per post
CREATE UNIQUE INDEX IF NOT EXISTS idx_post_versions_head
    ON post_versions(post_id) WHERE head = 1;
CREATE INDEX IF NOT EXISTS idx_post_versions_post
    ON post_versions(post_id, create_time);
CREATE INDEX IF NOT EXISTS idx_sync_records_post
    ON sync_records(post_id, platform, create_time);
"""


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.execute("ROLLBACK")


class Database:
    """Shared SQLite connection with schema bootstrap.

    Args:
        path: Database file path, or ``":memory:"``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        if self.path != ":memory:":
            self.path = str(Path(self.path).expanduser())
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open the connection and create the schema if needed."""
        if self._conn is not None:
            return

        if self.path != ":memory:":
            Path(self.path).parent.mkdir(
                parents=True, exist_ok=True
            )

        try:
            conn = sqlite3.connect(
                self.path,
                check_same_thread=False,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            if self.path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA_SQL)
            conn.execute(
                "INSERT INTO meta (key, value) VALUES ('schema_version', ?) "
                "ON CONFLICT(key) DO NOTHING",
                (SCHEMA_VERSION,),
            )
        except sqlite3.Error as exc:
            logger.error("Failed to open database %s: %s", self.path, exc)
            raise DatabaseError(f"Cannot open database: {exc}") from exc

        self._conn = conn
        logger.info("Database connected: %s", self.path)

    def close(self) -> None:
        """Close the connection.  Safe to call twice."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        assert self._conn is not None
        return self._conn

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block in one write transaction.

        Commits on success and rolls back on any exception, including
        the engine's own ``SyncError``s raised from inside the block.
        """
        with self._lock:
            conn = self._ensure_connected()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                logger.error("Failed to begin transaction: %s", exc)
                raise DatabaseError(str(exc)) from exc
            try:
                yield conn
            except sqlite3.Error as exc:
                _rollback(conn)
                logger.error("Transaction rolled back: %s", exc)
                raise DatabaseError(str(exc)) from exc
            except BaseException:
                _rollback(conn)
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error as exc:
                    _rollback(conn)
                    logger.error("Commit failed: %s", exc)
                    raise DatabaseError(str(exc)) from exc

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Run read-only queries under the connection lock."""
        with self._lock:
            conn = self._ensure_connected()
            try:
                yield conn
            except sqlite3.Error as exc:
                logger.error("Query failed: %s", exc)
                raise DatabaseError(str(exc)) from exc

    def get_meta(self, key: str, default: str | None = None) -> str | None:
        """Read a value from the ``meta`` table."""
        with self.read() as conn:
            row = conn.execute(
                "SELECT value FROM meta WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return default
        return str(row[0])
