"""Per-platform sync actions.

A ``SyncAction`` knows how to compare a post with one platform and how
to push or pull it.  ``GithubSyncAction`` is the only implementation;
``create_sync_action()`` picks the implementation for a request's
``Platform``.

All remote reads go through the ``SyncContext`` passed in by the caller,
so one coordinator call fetches the record history and the remote file
at most once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol

from letterman_sync.errors import SyncError, UserError
from letterman_sync.storage.ids import compute_version
from letterman_sync.sync.codec import extract, package
from letterman_sync.sync.models import (
    Platform,
    PlatformRequest,
    Post,
    RemoteArticle,
    RemoteWrite,
    SyncContext,
    SyncOperation,
    SyncRecord,
    SyncStatus,
)
from letterman_sync.sync.reconcile import classify

if TYPE_CHECKING:
    from letterman_sync.storage.ledger import VersionLedger
    from letterman_sync.storage.records import SyncRecordStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class ContentClient(Protocol):
    """Remote file operations a platform client provides."""

    def get_content(self, repository: str, path: str) -> RemoteArticle: ...

    def create_content(
        self, repository: str, path: str, message: str, body: bytes
    ) -> RemoteWrite: ...

    def update_content(
        self,
        repository: str,
        path: str,
        message: str,
        body: bytes,
        expected_sha: str,
    ) -> RemoteWrite: ...


class SyncAction(Protocol):
    """Operations the coordinator needs from one platform."""

    platform: Platform

    def history(self, post: Post, ctx: SyncContext) -> list[SyncRecord]:
        """Sync records for the post on this platform, newest first."""
        ...  # pragma: no cover

    def check_changed(self, post: Post, ctx: SyncContext) -> SyncStatus:
        """Classify the post against what the platform last received."""
        ...  # pragma: no cover

    def fetch_remote(self, post: Post, ctx: SyncContext) -> RemoteArticle:
        """Current remote file as the platform returned it."""
        ...  # pragma: no cover

    def read_remote(self, post: Post, ctx: SyncContext) -> RemoteArticle:
        """Current remote file with its text decoded."""
        ...  # pragma: no cover

    def push_create(self, post: Post, ctx: SyncContext) -> SyncRecord:
        """Create the remote file and record the write."""
        ...  # pragma: no cover

    def push_update(
        self,
        post: Post,
        ctx: SyncContext,
        expected_sha: str | None = None,
    ) -> SyncRecord:
        """Overwrite the remote file and record the write."""
        ...  # pragma: no cover

    def pull(self, post: Post, ctx: SyncContext) -> Post:
        """Build an unsaved revision from the remote file."""
        ...  # pragma: no cover

    def record_pull(self, post: Post, ctx: SyncContext) -> SyncRecord:
        """Record that ``post`` holds the remote file's content."""
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GithubSyncAction:
    """Sync a post with a file in a GitHub repository.

    Args:
        request: Platform tag plus the location used for a first push.
        client: Contents API client.
        records: Sync record store.
        ledger: Version ledger, used for ancestry checks.
        clock: Timestamp source for new records and pulled revisions.
    """

    platform = Platform.GITHUB

    def __init__(
        self,
        request: PlatformRequest,
        client: ContentClient,
        records: SyncRecordStore,
        ledger: VersionLedger,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.request = request
        self.client = client
        self.records = records
        self.ledger = ledger
        self._clock = clock

    # ------------------------------------------------------------------
    # Memoized reads
    # ------------------------------------------------------------------

    def history(self, post: Post, ctx: SyncContext) -> list[SyncRecord]:
        if ctx.records is None:
            ctx.records = self.records.list(post.post_id, self.platform)
        return ctx.records

    def fetch_remote(self, post: Post, ctx: SyncContext) -> RemoteArticle:
        if ctx.remote_article is None:
            repository, path = self._remote_location(post, ctx)
            ctx.remote_article = self.client.get_content(repository, path)
        return ctx.remote_article

    def read_remote(self, post: Post, ctx: SyncContext) -> RemoteArticle:
        """Decode the memoized remote file.

        Only callers that need the text decode it; the sha of an
        undecodable file is still available through ``fetch_remote``.

        Raises:
            UnsupportedEncodingError: The file was returned without
                inline content (files over 1 MB).
            DecodeError: The content is not valid base64 or UTF-8.
        """
        ctx.remote_article = self.fetch_remote(post, ctx).decode()
        return ctx.remote_article

    def _remote_location(
        self, post: Post, ctx: SyncContext
    ) -> tuple[str, str]:
        """Location of the remote file: last record first, then request."""
        history = self.history(post, ctx)
        if history:
            return history[0].repository, history[0].path
        if self.request.repository and self.request.path:
            return self.request.repository, self.request.path
        raise UserError(
            f"Post {post.post_id} has never been synced to "
            f"{self.platform.value}; repository and path are required"
        )

    # ------------------------------------------------------------------
    # SyncAction
    # ------------------------------------------------------------------

    def check_changed(self, post: Post, ctx: SyncContext) -> SyncStatus:
        return classify(
            post,
            self.history(post, ctx),
            lambda ancestor, descendant: self.ledger.is_ancestor(
                post.post_id, ancestor, descendant
            ),
        )

    def push_create(self, post: Post, ctx: SyncContext) -> SyncRecord:
        if not self.request.repository or not self.request.path:
            raise UserError(
                "repository and path are required to publish post "
                f"{post.post_id} for the first time"
            )
        repository, path = self.request.repository, self.request.path
        written = self.client.create_content(
            repository,
            path,
            f"Create {path} from post {post.post_id} ({post.version[:12]})",
            package(post),
        )
        return self._record_write(
            post, SyncOperation.PUSH_CREATE, repository, written
        )

    def push_update(
        self,
        post: Post,
        ctx: SyncContext,
        expected_sha: str | None = None,
    ) -> SyncRecord:
        history = self.history(post, ctx)
        if not history:
            raise UserError(
                f"Post {post.post_id} has no sync record on "
                f"{self.platform.value}; publish it before updating"
            )
        last = history[0]
        written = self.client.update_content(
            last.repository,
            last.path,
            f"Update {last.path} to post {post.post_id} "
            f"({post.version[:12]})",
            package(post),
            expected_sha or last.sha,
        )
        return self._record_write(
            post, SyncOperation.PUSH_UPDATE, last.repository, written
        )

    def pull(self, post: Post, ctx: SyncContext) -> Post:
        article = self.read_remote(post, ctx)
        extracted = extract(article.content)
        title = extracted.title if extracted.title is not None else post.title
        now = self._clock()
        return Post(
            post_id=post.post_id,
            version=compute_version(
                post.post_id,
                post.version,
                title,
                extracted.metadata,
                extracted.body,
            ),
            prev_version=post.version,
            head=False,
            title=title,
            metadata=extracted.metadata,
            content=extracted.body,
            create_time=now,
            update_time=now,
        )

    def record_pull(
        self, post: Post, ctx: SyncContext
    ) -> SyncRecord:
        """Record that ``post`` now matches the remote file just pulled."""
        article = self.fetch_remote(post, ctx)
        repository, path = self._remote_location(post, ctx)
        written = RemoteWrite(
            sha=article.sha,
            path=article.path or path,
            url=article.html_url or article.url,
        )
        return self._record_write(
            post, SyncOperation.PULL, repository, written
        )

    def _record_write(
        self,
        post: Post,
        action: SyncOperation,
        repository: str,
        written: RemoteWrite,
    ) -> SyncRecord:
        record = SyncRecord(
            post_id=post.post_id,
            platform=self.platform,
            version=post.version,
            action=action,
            path=written.path,
            sha=written.sha,
            repository=repository,
            url=written.url,
            create_time=self._clock(),
        )
        try:
            return self.records.append(record)
        except SyncError:
            # Remote already changed; leave enough to reconcile by hand
            logger.error(
                "Remote %s succeeded but the sync record was not saved: "
                "post=%d version=%s repository=%s path=%s sha=%s",
                action.value,
                post.post_id,
                post.version,
                repository,
                written.path,
                written.sha,
            )
            raise


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_ACTION_MAP = {
    Platform.GITHUB: GithubSyncAction,
}


def create_sync_action(
    request: PlatformRequest,
    client_factory: Callable[[Platform], ContentClient],
    records: SyncRecordStore,
    ledger: VersionLedger,
    clock: Callable[[], datetime] = _utc_now,
) -> SyncAction:
    """Build the ``SyncAction`` for ``request.platform``.

    Args:
        request: The caller's platform request.
        client_factory: Returns the remote client for a platform; may
            raise ``ClientBuilderError`` when it is not configured.
        records: Sync record store.
        ledger: Version ledger.
        clock: Timestamp source.

    Raises:
        UserError: If the platform has no implementation.
    """
    cls = _ACTION_MAP.get(request.platform)
    if cls is None:
        raise UserError(
            f"Unsupported platform: '{request.platform}'. Supported platforms: {sorted(p.value for p in _ACTION_MAP)}"
        )
    return cls(
        request, client_factory(request.platform), records, ledger, clock
    )
