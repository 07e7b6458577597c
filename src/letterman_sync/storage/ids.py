"""Post identifiers and revision hashes.

Post ids come from an injected ``IdGenerator``; the default is a
snowflake generator (41 bits of milliseconds, 10 bits of worker id, 12
bits of per-millisecond sequence).  Tests inject a counter instead.

Revision ids are content hashes, see ``compute_version``.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections.abc import Callable
from typing import Protocol

WORKER_ID_BITS = 10
SEQUENCE_BITS = 12
MAX_WORKER_ID = (1 << WORKER_ID_BITS) - 1
_SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1


class IdGenerator(Protocol):
    """Source of unique, roughly time-ordered post ids."""

    def next_id(self) -> int: ...


class SnowflakeIdGenerator:
    """Thread-safe snowflake id generator.

    Args:
        worker_id: Distinguishes processes writing to the same store
            (0-1023).
        clock: Millisecond clock, overridable for tests.
    """

    def __init__(
        self,
        worker_id: int = 1,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if not 0 <= worker_id <= MAX_WORKER_ID:
            raise ValueError(
                f"worker_id must be between 0 and {MAX_WORKER_ID}, "
                f"got {worker_id}"
            )
        self.worker_id = worker_id
        self._clock = clock or (lambda: time.time_ns() // 1_000_000)
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    def next_id(self) -> int:
        with self._lock:
            now = self._clock()
            # Clock went backwards: keep issuing from the last timestamp
            if now < self._last_ms:
                now = self._last_ms
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    while now <= self._last_ms:
                        now = max(self._clock(), self._last_ms + 1)
            else:
                self._sequence = 0
            self._last_ms = now
            return (
                (now << (WORKER_ID_BITS + SEQUENCE_BITS))
                | (self.worker_id << SEQUENCE_BITS)
                | self._sequence
            )


def canonical_metadata(metadata: dict[str, str]) -> str:
    """Serialize metadata deterministically (sorted keys, no spaces)."""
    return json.dumps(
        metadata, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def compute_version(
    post_id: int,
    prev_version: str,
    title: str,
    metadata: dict[str, str],
    content: str,
) -> str:
    """Return the SHA-256 hex id of a revision.

    The parent version is part of the digest, so re-submitting identical
    content still yields a fresh id within the chain, and the post id
    keeps ids distinct across posts.
    """
    digest = hashlib.sha256()
    for part in (
        str(post_id),
        prev_version,
        title,
        canonical_metadata(metadata),
        content,
    ):
        encoded = part.encode("utf-8")
        digest.update(len(encoded).to_bytes(8, "big"))
        digest.update(encoded)
    return digest.hexdigest()
