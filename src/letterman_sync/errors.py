"""Exception hierarchy for the synchronization engine.

Every failure the engine reports derives from ``SyncError`` and carries
an ``error_type`` tag that the tool surface uses to pick a corrective
action:

- ``DatabaseError``       -- storage failure, surfaced as internal error.
- ``NotFoundError``       -- post, version or remote file does not exist.
- ``UserError``           -- business-rule rejection with an actionable
  message.  ``NotLatestVersionError`` and ``AmbiguousError`` are the two
  rules the engine enforces itself.
- ``NetworkError``        -- DNS, connection or timeout failure.
- ``RemoteServerError``   -- the platform answered with a non-2xx status.
- ``ClientBuilderError``  -- the remote client is misconfigured.
- ``DecodeError``         -- malformed remote payload.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all engine errors."""

    error_type = "sync_error"


class DatabaseError(SyncError):
    error_type = "database"


class NotFoundError(SyncError):
    error_type = "not_found"


class UserError(SyncError):
    error_type = "user_error"


class NotLatestVersionError(UserError):
    """The base version of an update is no longer the head."""

    error_type = "not_latest_version"

    def __init__(self, version: str) -> None:
        super().__init__(
            f"Version '{version}' is not the latest version of its post"
        )
        self.version = version


class AmbiguousError(UserError):
    """Local and remote history diverged; the engine refuses to pick a side."""

    error_type = "ambiguous"

    def __init__(self, post_id: int, platform: str) -> None:
        super().__init__(
            f"Cannot decide whether to push or pull post {post_id} "
            f"on {platform}: remote version is not an ancestor of the "
            "local head"
        )
        self.post_id = post_id
        self.platform = platform


class NetworkError(SyncError):
    error_type = "network_error"


class RemoteServerError(SyncError):
    """Non-2xx answer from the remote platform."""

    error_type = "remote_server"

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(
            f"Remote server returned {status_code}: {message}"
        )
        self.status_code = status_code
        self.message = message


class ClientBuilderError(SyncError):
    error_type = "client_builder"


class DecodeError(SyncError):
    error_type = "decode"


class UnsupportedEncodingError(DecodeError):
    def __init__(self, encoding: str) -> None:
        super().__init__(f"Unsupported encoding: {encoding}")
        self.encoding = encoding
