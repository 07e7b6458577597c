"""Tests for letterman_sync.mcp.lifespan: server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Loads config from env vars (with optional CLI overrides)
- Opens the database and wires ledger, record store and coordinator
- Fails fast on config errors or database failures
- Prints status messages to stderr
"""

from unittest.mock import patch

import pytest

from letterman_sync.config import Config
from letterman_sync.core.client import GithubClient
from letterman_sync.errors import ClientBuilderError
from letterman_sync.mcp.lifespan import (
    AppContext,
    build_app,
    make_client_factory,
    server_lifespan,
)
from letterman_sync.sync.models import Platform


def _make_config(**overrides):
    defaults = {
        "github_token": "ghp_test",
        "github_api_url": "https://api.github.example.com",
        "database_path": ":memory:",
    }
    defaults.update(overrides)
    return Config(**defaults)


@pytest.fixture(autouse=True)
def no_config_files():
    with (
        patch(
            "letterman_sync.mcp.lifespan.discover_config_files",
            return_value=[],
        ),
        patch("letterman_sync.mcp.lifespan.load_dotenv"),
    ):
        yield


# -------------------------------------------------------------------------
# Wiring
# -------------------------------------------------------------------------


class TestBuildApp:
    def test_services_share_database(self):
        app = build_app(_make_config())
        try:
            post = app.ledger.create("Hello", {}, "body")
            assert app.coordinator.ledger is app.ledger
            assert app.coordinator.records is app.records
            assert app.ledger.get_head(post.post_id) == post
        finally:
            app.db.close()


class TestClientFactory:
    def test_lazy_and_cached(self):
        factory = make_client_factory(_make_config())
        client = factory(Platform.GITHUB)
        assert isinstance(client, GithubClient)
        assert factory(Platform.GITHUB) is client

    def test_missing_token_raises_on_use(self):
        factory = make_client_factory(_make_config(github_token=""))
        with pytest.raises(ClientBuilderError):
            factory(Platform.GITHUB)


# -------------------------------------------------------------------------
# server_lifespan()
# -------------------------------------------------------------------------


class TestServerLifespan:
    async def test_successful_startup(self, capsys):
        with patch(
            "letterman_sync.mcp.lifespan.load_config",
            return_value=_make_config(),
        ):
            async with server_lifespan() as app:
                assert isinstance(app, AppContext)
                assert app.db.get_meta("schema_version") == "1"

        err = capsys.readouterr().err
        assert "Server ready" in err
        assert "GitHub API: https://api.github.example.com" in err

    async def test_overrides_forwarded(self):
        with patch(
            "letterman_sync.mcp.lifespan.load_config",
            return_value=_make_config(),
        ) as mock_load:
            async with server_lifespan(
                config_overrides={"database": ":memory:", "debug": True}
            ):
                pass

        kwargs = mock_load.call_args.kwargs
        assert kwargs["database"] == ":memory:"
        assert kwargs["debug"] is True
        assert kwargs["token"] is None

    async def test_starts_without_token(self, capsys):
        with patch(
            "letterman_sync.mcp.lifespan.load_config",
            return_value=_make_config(github_token=""),
        ):
            async with server_lifespan() as app:
                post = app.ledger.create("Local only", {}, "works")
                assert post.head

        assert "GITHUB_TOKEN unset" in capsys.readouterr().err

    async def test_closes_database_on_exit(self):
        with patch(
            "letterman_sync.mcp.lifespan.load_config",
            return_value=_make_config(),
        ):
            async with server_lifespan() as app:
                db = app.db
        assert db._conn is None

    async def test_config_error(self, capsys):
        with patch(
            "letterman_sync.mcp.lifespan.load_config",
            side_effect=ValueError("Invalid GitHub API URL"),
        ):
            with pytest.raises(RuntimeError, match="Configuration error"):
                async with server_lifespan():
                    pass
        assert "Configuration error" in capsys.readouterr().err

    async def test_database_error(self, tmp_path):
        target = tmp_path / "is-a-directory"
        target.mkdir()
        with patch(
            "letterman_sync.mcp.lifespan.load_config",
            return_value=_make_config(database_path=str(target)),
        ):
            with pytest.raises(RuntimeError, match="Database initialization"):
                async with server_lifespan():
                    pass

    async def test_yaml_file_used_as_fallback(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yml"
        config_file.write_text(
            "storage:\n  database: ':memory:'\n  worker_id: 3\n",
            encoding="utf-8",
        )
        for name in ("GITHUB_TOKEN", "LETTERMAN_DATABASE", "LETTERMAN_WORKER_ID"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("LETTERMAN_CONFIG", str(config_file))

        with patch(
            "letterman_sync.mcp.lifespan.discover_config_files",
            return_value=[config_file],
        ), patch(
            "letterman_sync.config_loader.discover_config_files",
            return_value=[config_file],
        ):
            async with server_lifespan() as app:
                assert app.config.database_path == ":memory:"
                assert app.config.worker_id == 3
