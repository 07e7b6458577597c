"""Version ledger: the per-post chain of immutable revisions.

Each post is a linear chain of rows in ``post_versions`` linked by
``prev_version``.  Exactly one row per post carries ``head = 1``.  Rows
are never modified except for the head flag; ``update`` appends,
``revert`` truncates and ``delete`` drops the whole chain.

Creation order is the ``seq`` column, so ancestry and truncation are
plain comparisons on it rather than walks over the chain.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from letterman_sync.errors import NotFoundError, NotLatestVersionError
from letterman_sync.storage.db import Database
from letterman_sync.storage.ids import (
    IdGenerator,
    canonical_metadata,
    compute_version,
)
from letterman_sync.sync.models import NO_PARENT, Page, Post

logger = logging.getLogger(__name__)

_COLUMNS = (
    "post_id, version, prev_version, head, title, metadata, content, "
    "create_time, update_time"
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_post(row: sqlite3.Row) -> Post:
    return Post(
        post_id=row["post_id"],
        version=row["version"],
        prev_version=row["prev_version"],
        head=bool(row["head"]),
        title=row["title"],
        metadata=json.loads(row["metadata"]),
        content=row["content"],
        create_time=datetime.fromisoformat(row["create_time"]),
        update_time=datetime.fromisoformat(row["update_time"]),
    )


class VersionLedger:
    """Stores post revisions and maintains the single-head invariant.

    Args:
        db: Shared database.
        id_generator: Source of new post ids.
        clock: Returns the timestamp stamped on new revisions.
    """

    def __init__(
        self,
        db: Database,
        id_generator: IdGenerator,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db = db
        self._ids = id_generator
        self._clock = clock

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self, title: str, metadata: dict[str, str], content: str
    ) -> Post:
        """Create a new post whose first revision is the head."""
        post = self._new_revision(
            self._ids.next_id(), NO_PARENT, title, metadata, content
        )
        with self._db.transaction() as conn:
            self._insert(conn, post)
        logger.info("Created post %d at %s", post.post_id, post.version)
        return post

    def update(
        self,
        base_version: str,
        title: str,
        metadata: dict[str, str],
        content: str,
    ) -> Post:
        """Append a revision on top of ``base_version``.

        The head check and the head flip are one conditional ``UPDATE``
        inside the same transaction as the insert, so two updates from
        the same base cannot both succeed.

        Raises:
            NotFoundError: ``base_version`` does not exist.
            NotLatestVersionError: ``base_version`` is not the head.
        """
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT post_id FROM post_versions WHERE version = ?",
                (base_version,),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Version '{base_version}' not found")

            flipped = conn.execute(
                "UPDATE post_versions SET head = 0 "
                "WHERE version = ? AND head = 1",
                (base_version,),
            ).rowcount
            if flipped == 0:
                raise NotLatestVersionError(base_version)

            post = self._new_revision(
                row["post_id"], base_version, title, metadata, content
            )
            self._insert(conn, post)

        logger.info(
            "Updated post %d: %s -> %s",
            post.post_id,
            base_version,
            post.version,
        )
        return post

    def revert(self, version: str) -> Post:
        """Make ``version`` the head again, deleting every later revision.

        Raises:
            NotFoundError: ``version`` does not exist.
        """
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT seq, post_id FROM post_versions WHERE version = ?",
                (version,),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Version '{version}' not found")

            deleted = conn.execute(
                "DELETE FROM post_versions WHERE post_id = ? AND seq > ?",
                (row["post_id"], row["seq"]),
            ).rowcount
            conn.execute(
                "UPDATE post_versions SET head = 0 "
                "WHERE post_id = ? AND head = 1 AND seq != ?",
                (row["post_id"], row["seq"]),
            )
            conn.execute(
                "UPDATE post_versions SET head = 1 WHERE seq = ?",
                (row["seq"],),
            )
            restored = conn.execute(
                f"SELECT {_COLUMNS} FROM post_versions WHERE seq = ?",
                (row["seq"],),
            ).fetchone()

        logger.info(
            "Reverted post %d to %s (%d revisions dropped)",
            row["post_id"],
            version,
            deleted,
        )
        return _row_to_post(restored)

    def delete(self, post_id: int) -> int:
        """Delete every revision of a post and return how many were removed.

        Sync records are left in place.

        Raises:
            NotFoundError: The post does not exist.
        """
        with self._db.transaction() as conn:
            deleted = conn.execute(
                "DELETE FROM post_versions WHERE post_id = ?", (post_id,)
            ).rowcount
            if deleted == 0:
                raise NotFoundError(f"Post {post_id} not found")

        logger.info("Deleted post %d (%d revisions)", post_id, deleted)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_head(self, post_id: int) -> Post:
        with self._db.read() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM post_versions "
                "WHERE post_id = ? AND head = 1",
                (post_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Post {post_id} not found")
        return _row_to_post(row)

    def get_by_version(self, post_id: int, version: str) -> Post:
        with self._db.read() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM post_versions "
                "WHERE post_id = ? AND version = ?",
                (post_id, version),
            ).fetchone()
        if row is None:
            raise NotFoundError(
                f"Version '{version}' of post {post_id} not found"
            )
        return _row_to_post(row)

    def get_heads(self, post_ids: Iterable[int]) -> dict[int, Post]:
        """Batch ``get_head``.  Unknown ids are omitted."""
        ids = list(dict.fromkeys(post_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        with self._db.read() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM post_versions "
                f"WHERE head = 1 AND post_id IN ({placeholders})",
                ids,
            ).fetchall()
        return {row["post_id"]: _row_to_post(row) for row in rows}

    def get_by_versions(
        self, post_id: int, versions: Iterable[str]
    ) -> dict[str, Post]:
        """Batch ``get_by_version``.  Unknown versions are omitted."""
        wanted = list(dict.fromkeys(versions))
        if not wanted:
            return {}
        placeholders = ",".join("?" * len(wanted))
        with self._db.read() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM post_versions "
                f"WHERE post_id = ? AND version IN ({placeholders})",
                [post_id, *wanted],
            ).fetchall()
        return {row["version"]: _row_to_post(row) for row in rows}

    def list_versions(self, post_id: int) -> list[Post]:
        """All revisions of a post, newest first."""
        with self._db.read() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM post_versions "
                "WHERE post_id = ? ORDER BY seq DESC",
                (post_id,),
            ).fetchall()
        if not rows:
            raise NotFoundError(f"Post {post_id} not found")
        return [_row_to_post(row) for row in rows]

    def list_heads(self, page: int = 1, page_size: int = 20) -> Page[Post]:
        """Current head of every post, most recently changed first."""
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")
        with self._db.read() as conn:
            total = conn.execute(
                "SELECT COUNT(*) FROM post_versions WHERE head = 1"
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM post_versions WHERE head = 1 "
                "ORDER BY seq DESC LIMIT ? OFFSET ?",
                (page_size, (page - 1) * page_size),
            ).fetchall()
        return Page.build(
            total, page, page_size, [_row_to_post(row) for row in rows]
        )

    def is_ancestor(
        self, post_id: int, ancestor: str, descendant: str
    ) -> bool:
        """True when ``ancestor`` precedes ``descendant`` in the chain.

        Chains are linear, so among surviving revisions of one post
        creation order is ancestry.  A version that has been reverted
        away is never an ancestor.
        """
        with self._db.read() as conn:
            rows = conn.execute(
                "SELECT version, seq FROM post_versions "
                "WHERE post_id = ? AND version IN (?, ?)",
                (post_id, ancestor, descendant),
            ).fetchall()
        seqs = {row["version"]: row["seq"] for row in rows}
        if ancestor not in seqs or descendant not in seqs:
            return False
        return seqs[ancestor] < seqs[descendant]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_revision(
        self,
        post_id: int,
        prev_version: str,
        title: str,
        metadata: dict[str, str],
        content: str,
    ) -> Post:
        now = self._clock()
        return Post(
            post_id=post_id,
            version=compute_version(
                post_id, prev_version, title, metadata, content
            ),
            prev_version=prev_version,
            head=True,
            title=title,
            metadata=metadata,
            content=content,
            create_time=now,
            update_time=now,
        )

    @staticmethod
    def _insert(conn: sqlite3.Connection, post: Post) -> None:
        conn.execute(
            f"INSERT INTO post_versions ({_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                post.post_id,
                post.version,
                post.prev_version,
                1,
                post.title,
                canonical_metadata(post.metadata),
                post.content,
                post.create_time.isoformat(timespec="microseconds"),
                post.update_time.isoformat(timespec="microseconds"),
            ),
        )
