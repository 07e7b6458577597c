"""SQLite-backed storage for post revisions and the remote publish log."""

from .db import Database
from .ids import IdGenerator, SnowflakeIdGenerator, compute_version
from .ledger import VersionLedger
from .records import SyncRecordStore

__all__ = [
    "Database",
    "IdGenerator",
    "SnowflakeIdGenerator",
    "SyncRecordStore",
    "VersionLedger",
    "compute_version",
]
