"""Tests for letterman_sync.config_schema: Pydantic config models."""

import pytest
from pydantic import ValidationError

from letterman_sync.config import DEFAULT_API_URL, DEFAULT_DATABASE_PATH
from letterman_sync.config_schema import (
    GithubConfig,
    StorageConfig,
    UnifiedConfig,
    build_config,
    to_legacy_config,
    to_yaml_fallbacks,
)


class TestModels:
    def test_defaults(self):
        unified = UnifiedConfig()
        assert unified.github.token is None
        assert unified.github.timeout == 3.0
        assert unified.storage.worker_id == 1
        assert unified.logging.level == "INFO"

    def test_frozen(self):
        with pytest.raises(ValidationError):
            GithubConfig().token = "x"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            GithubConfig(timeout=0)

    def test_worker_id_range(self):
        with pytest.raises(ValidationError):
            StorageConfig(worker_id=5000)


class TestBuildConfig:
    def test_empty(self):
        assert build_config({}) == UnifiedConfig()

    def test_sections(self):
        unified = build_config(
            {
                "github": {"token": "t", "timeout": 5},
                "storage": {"database": "/tmp/a.db"},
                "logging": {"level": "DEBUG"},
            }
        )
        assert unified.github.token == "t"
        assert unified.github.timeout == 5.0
        assert unified.storage.database == "/tmp/a.db"
        assert unified.logging.level == "DEBUG"

    def test_invalid_section(self):
        with pytest.raises(ValidationError):
            build_config({"github": {"timeout": "soon"}})


class TestToYamlFallbacks:
    def test_only_set_values(self):
        unified = build_config({"github": {"token": "t"}})
        assert to_yaml_fallbacks(unified) == {"token": "t"}

    def test_all_values(self):
        unified = build_config(
            {
                "github": {
                    "token": "t",
                    "api_url": "https://ghe.example.com",
                    "timeout": 9,
                },
                "storage": {"database": "/tmp/a.db", "worker_id": 7},
                "logging": {"debug": True},
            }
        )
        assert to_yaml_fallbacks(unified) == {
            "token": "t",
            "api_url": "https://ghe.example.com",
            "database": "/tmp/a.db",
            "timeout": 9.0,
            "worker_id": 7,
            "debug": True,
        }


class TestToLegacyConfig:
    def test_defaults(self):
        config = to_legacy_config(UnifiedConfig())
        assert config.github_token == ""
        assert config.github_api_url == DEFAULT_API_URL
        assert config.database_path == DEFAULT_DATABASE_PATH

    def test_cli_overrides_win(self):
        unified = build_config(
            {"github": {"token": "yaml"}, "storage": {"database": "/y.db"}}
        )
        config = to_legacy_config(
            unified,
            cli_overrides={"token": "cli", "database": "/c.db", "debug": True},
        )
        assert config.github_token == "cli"
        assert config.database_path == "/c.db"
        assert config.debug is True

    def test_section_values(self):
        unified = build_config(
            {"github": {"timeout": 4}, "storage": {"worker_id": 12}}
        )
        config = to_legacy_config(unified)
        assert config.request_timeout == 4.0
        assert config.worker_id == 12
