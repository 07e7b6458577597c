"""Shared pytest fixtures for letterman-sync tests."""

import base64
import itertools
from datetime import datetime, timedelta, timezone

import pytest

from letterman_sync.config import Config
from letterman_sync.errors import RemoteServerError
from letterman_sync.storage import Database, SyncRecordStore, VersionLedger
from letterman_sync.sync.coordinator import SyncCoordinator
from letterman_sync.sync.models import RemoteArticle, RemoteWrite


class CounterIdGenerator:
    """Predictable post ids: 1, 2, 3, ..."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)

    def next_id(self) -> int:
        return next(self._counter)


class FakeClock:
    """Clock that advances one second per call."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class FakeGithubClient:
    """In-memory stand-in for GithubClient keyed by (repository, path)."""

    def __init__(self):
        self.files: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.encodings: dict[tuple[str, str], str] = {}
        self.calls: list[tuple] = []
        self._shas = itertools.count(1)

    def _next_sha(self) -> str:
        return f"{next(self._shas):040x}"

    def get_content(self, repository, path):
        self.calls.append(("get", repository, path))
        if (repository, path) not in self.files:
            raise RemoteServerError(404, "Not Found")
        body, sha = self.files[(repository, path)]
        encoding = self.encodings.get((repository, path), "base64")
        content = (
            base64.b64encode(body).decode("ascii") if encoding == "base64" else ""
        )
        return RemoteArticle(
            name=path.rsplit("/", 1)[-1],
            path=path,
            content=content,
            sha=sha,
            encoding=encoding,
            html_url=f"https://github.com/{repository}/blob/main/{path}",
        )

    def create_content(self, repository, path, message, body):
        self.calls.append(("create", repository, path))
        if (repository, path) in self.files:
            raise RemoteServerError(422, "sha wasn't supplied")
        sha = self._next_sha()
        self.encodings.pop((repository, path), None)
        self.files[(repository, path)] = (body, sha)
        return RemoteWrite(
            sha=sha,
            path=path,
            url=f"https://github.com/{repository}/blob/main/{path}",
        )

    def update_content(self, repository, path, message, body, expected_sha):
        self.calls.append(("update", repository, path, expected_sha))
        current = self.files.get((repository, path))
        if current is None:
            raise RemoteServerError(404, "Not Found")
        if current[1] != expected_sha:
            raise RemoteServerError(409, "does not match")
        sha = self._next_sha()
        self.encodings.pop((repository, path), None)
        self.files[(repository, path)] = (body, sha)
        return RemoteWrite(
            sha=sha,
            path=path,
            url=f"https://github.com/{repository}/blob/main/{path}",
        )

    def set_remote(self, repository, path, text: str) -> str:
        """Replace a remote file out of band, as another editor would."""
        sha = self._next_sha()
        self.files[(repository, path)] = (text.encode("utf-8"), sha)
        self.encodings.pop((repository, path), None)
        return sha

    def set_remote_bytes(
        self, repository, path, data: bytes, encoding: str = "base64"
    ) -> str:
        """Replace a remote file with raw bytes.

        ``encoding="none"`` mimics a file too large for inline content.
        """
        sha = self._next_sha()
        self.files[(repository, path)] = (data, sha)
        self.encodings[(repository, path)] = encoding
        return sha

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        github_token="ghp_test",
        github_api_url="https://api.github.example.com",
        request_timeout=3.0,
        database_path=":memory:",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db():
    database = Database(":memory:")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def ledger(db, clock):
    return VersionLedger(db, CounterIdGenerator(), clock=clock)


@pytest.fixture
def records(db):
    return SyncRecordStore(db)


@pytest.fixture
def fake_client():
    return FakeGithubClient()


@pytest.fixture
def coordinator(ledger, records, fake_client, clock):
    return SyncCoordinator(
        ledger, records, lambda platform: fake_client, clock=clock
    )


@pytest.fixture
def app(mock_config, db, ledger, records, coordinator):
    """AppContext over the in-memory services and the fake client."""
    from letterman_sync.mcp.lifespan import AppContext

    return AppContext(
        config=mock_config,
        db=db,
        ledger=ledger,
        records=records,
        coordinator=coordinator,
    )
