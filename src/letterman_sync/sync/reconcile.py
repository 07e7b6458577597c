"""Reconciliation state machine.

``classify`` decides how a post's local head relates to the last version
written to a platform.  It is pure: the ancestry query is injected so
the function can be tested without storage.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from letterman_sync.sync.models import (
    Post,
    SyncOperation,
    SyncRecord,
    SyncStatus,
)

# (ancestor_version, descendant_version) -> bool
AncestryCheck = Callable[[str, str], bool]


def classify(
    post: Post,
    history: Sequence[SyncRecord],
    is_ancestor: AncestryCheck,
) -> SyncStatus:
    """Classify ``post`` against its sync history (newest record first).

    - no history: ``NEVER_SYNCED``
    - remote holds the head: ``IN_SYNC``
    - remote holds an ancestor of the head: ``LOCAL_AHEAD``
    - anything else: ``AMBIGUOUS``.  No direction is guessed.
    """
    if not history:
        return SyncStatus.NEVER_SYNCED
    remote_version = history[0].version
    if remote_version == post.version:
        return SyncStatus.IN_SYNC
    if is_ancestor(remote_version, post.version):
        return SyncStatus.LOCAL_AHEAD
    return SyncStatus.AMBIGUOUS


def planned_operation(status: SyncStatus) -> SyncOperation | None:
    """Operation ``synchronize`` performs for ``status``.

    Returns ``None`` for ``AMBIGUOUS``, where no operation is allowed.
    """
    return {
        SyncStatus.NEVER_SYNCED: SyncOperation.PUSH_CREATE,
        SyncStatus.IN_SYNC: SyncOperation.SKIP,
        SyncStatus.LOCAL_AHEAD: SyncOperation.PUSH_UPDATE,
    }.get(status)
