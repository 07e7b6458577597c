"""Append-only log of remote writes.

Every push (create or update) and every pull appends one row to
``sync_records``.  Rows are never updated or deleted; the newest row per
``(post_id, platform)`` is the current remote pointer.  "Newest" means
greatest ``create_time``, with insertion order breaking ties.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from letterman_sync.storage.db import Database
from letterman_sync.sync.models import (
    Page,
    Platform,
    SyncOperation,
    SyncRecord,
)

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, post_id, platform, version, action, path, sha, repository, url, "
    "create_time"
)
_NEWEST_FIRST = "ORDER BY create_time DESC, id DESC"


def _row_to_record(row: sqlite3.Row) -> SyncRecord:
    return SyncRecord(
        id=row["id"],
        post_id=row["post_id"],
        platform=Platform(row["platform"]),
        version=row["version"],
        action=SyncOperation(row["action"]),
        path=row["path"],
        sha=row["sha"],
        repository=row["repository"],
        url=row["url"],
        create_time=datetime.fromisoformat(row["create_time"]),
    )


class SyncRecordStore:
    """Insert-only access to ``sync_records``."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def append(self, record: SyncRecord) -> SyncRecord:
        """Insert ``record`` and return it with its storage id set."""
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO sync_records (post_id, platform, version, "
                "action, path, sha, repository, url, create_time) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.post_id,
                    record.platform.value,
                    record.version,
                    record.action.value,
                    record.path,
                    record.sha,
                    record.repository,
                    record.url,
                    record.create_time.isoformat(timespec="microseconds"),
                ),
            )
            row_id = cursor.lastrowid
        logger.debug(
            "Appended %s record for post %d on %s (sha %s)",
            record.action.value,
            record.post_id,
            record.platform.value,
            record.sha,
        )
        return record.model_copy(update={"id": row_id})

    def list(self, post_id: int, platform: Platform) -> list[SyncRecord]:
        """All records for the pair, newest first."""
        with self._db.read() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM sync_records "
                f"WHERE post_id = ? AND platform = ? {_NEWEST_FIRST}",
                (post_id, platform.value),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def latest_per_platform(self, post_id: int) -> dict[Platform, SyncRecord]:
        """Current remote pointer of ``post_id`` on each platform."""
        with self._db.read() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM sync_records "
                f"WHERE post_id = ? {_NEWEST_FIRST}",
                (post_id,),
            ).fetchall()
        latest: dict[Platform, SyncRecord] = {}
        for row in rows:
            record = _row_to_record(row)
            latest.setdefault(record.platform, record)
        return latest

    def page(
        self,
        post_id: int,
        platform: Platform,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[SyncRecord]:
        """One page of ``list``."""
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")
        with self._db.read() as conn:
            total = conn.execute(
                "SELECT COUNT(*) FROM sync_records "
                "WHERE post_id = ? AND platform = ?",
                (post_id, platform.value),
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM sync_records "
                f"WHERE post_id = ? AND platform = ? {_NEWEST_FIRST} "
                "LIMIT ? OFFSET ?",
                (post_id, platform.value, page_size, (page - 1) * page_size),
            ).fetchall()
        return Page.build(
            total, page, page_size, [_row_to_record(row) for row in rows]
        )
