"""Pydantic models for the synchronization engine.

Defines the data contracts shared by the ledger, the record store, the
remote client and the coordinator:

- ``Platform``: Enum of supported publishing platforms.
- ``SyncStatus``: Reconciliation state of a post on one platform.
- ``SyncOperation``: What a coordinator call actually did.
- ``Post``: One immutable revision of a post.
- ``SyncRecord``: One append-only entry of the remote publish log.
- ``RemoteArticle`` / ``RemoteWrite``: Remote file contents and the
  identity returned by a remote write.
- ``PlatformRequest``: Caller-supplied platform tag and location.
- ``SyncRecordView``: A record joined with the post version it names.
- ``SyncResult``: Outcome of one coordinator call.
- ``Page``: One page of a listing.
- ``SyncContext``: Per-invocation memo threaded through a sync call.

Everything except ``SyncContext`` is frozen.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from letterman_sync.errors import DecodeError, UnsupportedEncodingError

T = TypeVar("T")

# prev_version of the first revision in every chain
NO_PARENT = "0"


class Platform(str, Enum):
    """External publishing targets."""

    GITHUB = "github"


class SyncStatus(str, Enum):
    """Per ``(post_id, platform)`` reconciliation state."""

    NEVER_SYNCED = "never_synced"
    IN_SYNC = "in_sync"
    LOCAL_AHEAD = "local_ahead"
    AMBIGUOUS = "ambiguous"


class SyncOperation(str, Enum):
    """Operations a coordinator call can perform."""

    SKIP = "skip"
    PUSH_CREATE = "push_create"
    PUSH_UPDATE = "push_update"
    PULL = "pull"


class Post(BaseModel):
    """One revision of a post.

    Attributes:
        post_id: Logical identifier shared by every revision.
        version: Content hash identifying this revision.
        prev_version: Version of the parent revision (``NO_PARENT`` for
            the first one).
        head: True for the single authoritative revision.
        title: Post title.
        metadata: Flat string mapping, published as frontmatter.
        content: Body text.
        create_time: When this revision was written.
        update_time: Equal to ``create_time``; revisions are immutable.
    """

    post_id: int
    version: str
    prev_version: str = NO_PARENT
    head: bool = False
    title: str
    metadata: dict[str, str] = Field(default_factory=dict)
    content: str = ""
    create_time: datetime
    update_time: datetime

    model_config = {"frozen": True}


class SyncRecord(BaseModel):
    """One entry in the append-only remote publish log.

    Attributes:
        id: Storage row id, ``None`` before the record is appended.
        post_id: Post the record belongs to.
        platform: Platform the write went to.
        version: Local version that the remote file now holds.
        action: Operation that produced the record.
        path: File path inside the repository.
        sha: Remote blob sha after the write.
        repository: ``owner/name`` of the remote repository.
        url: Browsable URL of the remote file.
        create_time: When the record was appended.
    """

    id: int | None = None
    post_id: int
    platform: Platform
    version: str
    action: SyncOperation
    path: str
    sha: str
    repository: str
    url: str = ""
    create_time: datetime

    model_config = {"frozen": True}


class RemoteArticle(BaseModel):
    """A file as returned by the platform's contents API."""

    name: str = ""
    path: str
    content: str
    sha: str
    url: str = ""
    html_url: str | None = None
    encoding: str = "base64"
    decoded: bool = False

    model_config = {"frozen": True}

    def decode(self) -> RemoteArticle:
        """Return a copy whose ``content`` is the decoded UTF-8 text.

        Raises:
            UnsupportedEncodingError: If the encoding is not base64.
            DecodeError: If the payload is not valid base64 or UTF-8.
        """
        if self.decoded:
            return self
        if self.encoding != "base64":
            raise UnsupportedEncodingError(self.encoding)

        raw = self.content.replace("\n", "")
        raw += "=" * (-len(raw) % 4)
        try:
            data = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(f"Invalid base64 content: {exc}") from exc
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(
                f"Remote content is not valid UTF-8: {exc}"
            ) from exc

        return self.model_copy(update={"content": text, "decoded": True})


class RemoteWrite(BaseModel):
    """Remote identity returned by a create or update."""

    sha: str
    path: str
    url: str = ""

    model_config = {"frozen": True}


class PlatformRequest(BaseModel):
    """Platform tag plus the remote location for a first push."""

    platform: Platform
    path: str | None = None
    repository: str | None = None

    model_config = {"frozen": True}


class SyncRecordView(BaseModel):
    """A sync record joined with ledger information.

    Attributes:
        record: The stored record.
        post: The post revision the record names, ``None`` when that
            revision has been reverted away.
        latest_version: Current head version of the post.
    """

    record: SyncRecord
    post: Post | None = None
    latest_version: str | None = None

    model_config = {"frozen": True}

    @property
    def is_latest(self) -> bool:
        """True when the remote holds the current head."""
        return self.record.version == self.latest_version


class SyncResult(BaseModel):
    """Outcome of a single coordinator call."""

    post_id: int
    platform: Platform
    status: SyncStatus | None = None
    action: SyncOperation
    record: SyncRecord | None = None
    post: Post | None = None

    model_config = {"frozen": True}

    def summary(self) -> str:
        """Format a one-line human-readable summary."""
        status = self.status.value if self.status else "forced"
        text = (
            f"Post {self.post_id} on {self.platform.value}: "
            f"{self.action.value} (state: {status})"
        )
        if self.record is not None:
            text += (
                f" -> {self.record.repository}/{self.record.path}"
                f" @ {self.record.sha[:7]}"
            )
        return text


class Page(BaseModel, Generic[T]):
    """One page of a listing.

    ``prev`` is the previous page number (0 on the first page) and
    ``next`` is the following page number, or 0 when this is the last.
    """

    total: int
    prev: int
    next: int
    data: list[T]

    model_config = {"frozen": True}

    @classmethod
    def build(
        cls, total: int, page: int, page_size: int, data: list
    ) -> Page:
        return cls(
            total=total,
            prev=page - 1,
            next=0 if total <= page * page_size else page + 1,
            data=data,
        )


@dataclass
class SyncContext:
    """Values fetched once per external call and reused by its sub-steps.

    A fresh context is created for every coordinator entry point and
    passed down explicitly; it never outlives the call.
    """

    records: list[SyncRecord] | None = None
    remote_article: RemoteArticle | None = None
