"""Tests for configuration loading and models."""

from pathlib import Path

import pytest
from pydantic import SecretStr, ValidationError

from herald.config.loader import _resolve_env, load_config
from herald.config.models import (
    ConfigError,
    HeraldConfig,
    SchedulerConfig,
    SlackConfig,
)
from herald.config.paths import ENV_VAR, get_herald_home

ENV_VARS = [
    "SLACK_CLIENT_ID",
    "SLACK_CLIENT_SECRET",
    "SLACK_REDIRECT_URI",
    "SLACK_WEBHOOK_URL",
    "DATABASE_URL",
    "PORT",
    "FRONTEND_URL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path: Path):
    """Isolate tests from the host environment and default config paths."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv(ENV_VAR, str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    get_herald_home.cache_clear()
    yield
    get_herald_home.cache_clear()


class TestSlackConfig:
    """Tests for SlackConfig model."""

    def test_defaults(self):
        config = SlackConfig()
        assert config.client_id is None
        assert config.get_webhook_url() is None
        assert not config.oauth_configured
        assert config.timeout_seconds == 10.0

    def test_oauth_configured_needs_all_three(self):
        config = SlackConfig(client_id="1.2", client_secret=SecretStr("s"))
        assert not config.oauth_configured
        config = SlackConfig(
            client_id="1.2", client_secret=SecretStr("s"), redirect_uri="http://x"
        )
        assert config.oauth_configured

    def test_empty_webhook_is_unconfigured(self):
        assert SlackConfig(webhook_url=SecretStr("")).get_webhook_url() is None

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            SlackConfig(timeout_seconds=0)


class TestSchedulerConfig:
    """Tests for SchedulerConfig model."""

    def test_defaults(self):
        config = SchedulerConfig()
        assert config.poll_interval_seconds == 60.0
        assert config.batch_size == 5
        assert config.retention_days == 30
        assert config.retention_interval_seconds == 86400.0
        assert config.enabled

    def test_batch_size_positive(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(batch_size=0)

    def test_negative_days_rejected(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(retention_days=-1)

    @pytest.mark.parametrize(
        "field", ["poll_interval_seconds", "retention_interval_seconds"]
    )
    @pytest.mark.parametrize("value", [0, -5])
    def test_intervals_must_be_positive(self, field: str, value: float):
        with pytest.raises(ValidationError, match="intervals must be positive"):
            SchedulerConfig(**{field: value})


class TestResolveEnv:
    """Tests for environment fallbacks."""

    def test_env_fills_unset_values(self, monkeypatch):
        monkeypatch.setenv("SLACK_CLIENT_ID", "env-id")
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.slack.com/services/X")

        resolved = _resolve_env({})

        assert resolved["slack"]["client_id"] == "env-id"
        assert isinstance(resolved["slack"]["webhook_url"], SecretStr)

    def test_file_values_win(self, monkeypatch):
        monkeypatch.setenv("SLACK_CLIENT_ID", "env-id")

        resolved = _resolve_env({"slack": {"client_id": "file-id"}})

        assert resolved["slack"]["client_id"] == "file-id"

    def test_postgres_url_gets_async_driver(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db/herald")

        resolved = _resolve_env({})

        assert resolved["database"]["url"] == "postgresql+asyncpg://u:p@db/herald"


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self, tmp_path: Path):
        config = load_config()

        assert isinstance(config, HeraldConfig)
        assert config.server.port == 3001
        assert config.database.path == tmp_path / "home" / "data" / "herald.db"

    def test_loads_toml(self, tmp_path: Path):
        path = tmp_path / "herald.toml"
        path.write_text(
            """
[slack]
webhook_url = "https://hooks.slack.com/services/T/B/C"

[scheduler]
poll_interval_seconds = 5
retention_days = 7

[server]
port = 8080
"""
        )

        config = load_config(path)

        assert config.slack.get_webhook_url() == "https://hooks.slack.com/services/T/B/C"
        assert config.scheduler.poll_interval_seconds == 5
        assert config.scheduler.retention_days == 7
        assert config.server.port == 8080

    def test_finds_config_in_current_directory(self, tmp_path: Path):
        (tmp_path / "config.toml").write_text("[server]\nport = 9000\n")

        assert load_config().server.port == 9000

    def test_port_from_env(self, monkeypatch):
        monkeypatch.setenv("PORT", "4000")

        assert load_config().server.port == 4000

    def test_missing_explicit_path(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path: Path):
        path = tmp_path / "bad.toml"
        path.write_text("not valid toml [[[")

        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path)

    def test_invalid_values(self, tmp_path: Path):
        path = tmp_path / "bad.toml"
        path.write_text("[scheduler]\nbatch_size = 0\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)
