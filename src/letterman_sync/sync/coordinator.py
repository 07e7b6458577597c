"""Public sync operations.

``SyncCoordinator`` loads a post's head, builds the platform's
``SyncAction`` and drives it:

- ``synchronize`` pushes when the state machine allows it and never pulls.
- ``force_push`` overwrites the remote with the local head.
- ``force_pull`` makes the remote content the new local head.

Each call creates one ``SyncContext`` and passes it to every step, so
records and the remote file are read at most once per call.  Remote
writes that succeed stay in place if a later local step fails; there is
no cross-store rollback.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from letterman_sync.errors import AmbiguousError
from letterman_sync.storage.ledger import VersionLedger
from letterman_sync.storage.records import SyncRecordStore
from letterman_sync.sync.actions import (
    ContentClient,
    SyncAction,
    create_sync_action,
)
from letterman_sync.sync.models import (
    Page,
    Platform,
    PlatformRequest,
    SyncContext,
    SyncOperation,
    SyncRecord,
    SyncRecordView,
    SyncResult,
    SyncStatus,
)
from letterman_sync.sync.reconcile import classify

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncCoordinator:
    """Entry point for synchronizing posts with external platforms.

    Args:
        ledger: Version ledger.
        records: Sync record store.
        client_factory: Returns the remote client for a platform.  Called
            lazily so local-only operations work without credentials.
        clock: Timestamp source for records and pulled revisions.
    """

    def __init__(
        self,
        ledger: VersionLedger,
        records: SyncRecordStore,
        client_factory: Callable[[Platform], ContentClient],
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.ledger = ledger
        self.records = records
        self.client_factory = client_factory
        self._clock = clock

    def _action(self, request: PlatformRequest) -> SyncAction:
        return create_sync_action(
            request, self.client_factory, self.records, self.ledger, self._clock
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def synchronize(
        self, post_id: int, request: PlatformRequest
    ) -> SyncResult:
        """Bring the platform up to the local head, if that is safe.

        Raises:
            NotFoundError: the post does not exist.
            AmbiguousError: local and remote history diverged.
            UserError: a first push without repository and path.
        """
        post = self.ledger.get_head(post_id)
        action = self._action(request)
        ctx = SyncContext()

        status = action.check_changed(post, ctx)
        logger.info(
            "Post %d on %s is %s",
            post_id,
            request.platform.value,
            status.value,
        )

        if status == SyncStatus.IN_SYNC:
            return SyncResult(
                post_id=post_id,
                platform=request.platform,
                status=status,
                action=SyncOperation.SKIP,
                post=post,
            )
        if status == SyncStatus.NEVER_SYNCED:
            record = action.push_create(post, ctx)
            operation = SyncOperation.PUSH_CREATE
        elif status == SyncStatus.LOCAL_AHEAD:
            record = action.push_update(post, ctx)
            operation = SyncOperation.PUSH_UPDATE
        else:
            raise AmbiguousError(post_id, request.platform.value)

        return SyncResult(
            post_id=post_id,
            platform=request.platform,
            status=status,
            action=operation,
            record=record,
            post=post,
        )

    def force_push(
        self, post_id: int, request: PlatformRequest
    ) -> SyncResult:
        """Overwrite the remote with the local head.

        With no history this is a first push.  Otherwise the remote's
        current sha is read first, so the write replaces whatever the
        remote holds now.
        """
        post = self.ledger.get_head(post_id)
        action = self._action(request)
        ctx = SyncContext()

        if not action.history(post, ctx):
            record = action.push_create(post, ctx)
            operation = SyncOperation.PUSH_CREATE
        else:
            current = action.fetch_remote(post, ctx)
            record = action.push_update(post, ctx, expected_sha=current.sha)
            operation = SyncOperation.PUSH_UPDATE

        logger.info(
            "Force-pushed post %d to %s (%s)",
            post_id,
            request.platform.value,
            operation.value,
        )
        return SyncResult(
            post_id=post_id,
            platform=request.platform,
            action=operation,
            record=record,
            post=post,
        )

    def force_pull(
        self, post_id: int, request: PlatformRequest
    ) -> SyncResult:
        """Replace the local head with the remote content.

        The pulled content becomes a new revision on top of the current
        head, and a ``pull`` record ties that revision to the remote sha.
        """
        head = self.ledger.get_head(post_id)
        action = self._action(request)
        ctx = SyncContext()

        candidate = action.pull(head, ctx)
        post = self.ledger.update(
            head.version,
            candidate.title,
            candidate.metadata,
            candidate.content,
        )
        record = action.record_pull(post, ctx)

        logger.info(
            "Force-pulled post %d from %s: %s -> %s",
            post_id,
            request.platform.value,
            head.version,
            post.version,
        )
        return SyncResult(
            post_id=post_id,
            platform=request.platform,
            action=SyncOperation.PULL,
            record=record,
            post=post,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def check(self, post_id: int, platform: Platform) -> SyncStatus:
        """Classify the post from storage alone; no client is built."""
        post = self.ledger.get_head(post_id)
        return classify(
            post,
            self.records.list(post_id, platform),
            lambda ancestor, descendant: self.ledger.is_ancestor(
                post_id, ancestor, descendant
            ),
        )

    def list_sync_history(
        self,
        post_id: int,
        platform: Platform,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[SyncRecordView]:
        """Records for one platform, newest first, joined with the ledger."""
        head = self.ledger.get_head(post_id)
        records = self.records.page(post_id, platform, page, page_size)
        return Page(
            total=records.total,
            prev=records.prev,
            next=records.next,
            data=self._views(post_id, records.data, head.version),
        )

    def latest_sync_records(self, post_id: int) -> list[SyncRecordView]:
        """The current remote pointer on every platform the post reached."""
        head = self.ledger.get_head(post_id)
        latest = self.records.latest_per_platform(post_id)
        ordered = [latest[p] for p in Platform if p in latest]
        return self._views(post_id, ordered, head.version)

    def _views(
        self,
        post_id: int,
        records: list[SyncRecord],
        head_version: str,
    ) -> list[SyncRecordView]:
        posts = self.ledger.get_by_versions(
            post_id, [record.version for record in records]
        )
        return [
            SyncRecordView(
                record=record,
                post=posts.get(record.version),
                latest_version=head_version,
            )
            for record in records
        ]
