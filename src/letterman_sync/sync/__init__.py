"""Post synchronization engine.

Modules:

- ``models``      -- data contracts (``Post``, ``SyncRecord``, ``Page`` ...).
- ``codec``       -- frontmatter packaging and extraction.
- ``reconcile``   -- ``classify``: the reconciliation state machine.
- ``actions``     -- ``SyncAction`` protocol and the GitHub implementation.
- ``coordinator`` -- ``SyncCoordinator``: the public sync operations.

``actions`` and ``coordinator`` depend on the storage package and are
imported from their modules directly.
"""

from .codec import ExtractedContent, extract, package
from .models import (
    NO_PARENT,
    Page,
    Platform,
    PlatformRequest,
    Post,
    SyncOperation,
    SyncRecord,
    SyncRecordView,
    SyncResult,
    SyncStatus,
)
from .reconcile import classify

__all__ = [
    "NO_PARENT",
    "ExtractedContent",
    "Page",
    "Platform",
    "PlatformRequest",
    "Post",
    "SyncOperation",
    "SyncRecord",
    "SyncRecordView",
    "SyncResult",
    "SyncStatus",
    "classify",
    "extract",
    "package",
]
