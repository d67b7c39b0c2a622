"""Unit tests for configuration loading and validation."""

from pathlib import Path

import pytest

from gmail_connector.lib.config import AppConfig, GmailConfig, StorageConfig


class TestGmailConfig:
    """Test GmailConfig."""

    def test_defaults(self, monkeypatch):
        for name in ("GMAIL_CLIENT_ID", "GMAIL_CLIENT_SECRET", "GMAIL_MAILBOX", "GMAIL_TOPIC", "GMAIL_ALERT"):
            monkeypatch.delenv(name, raising=False)

        config = GmailConfig.from_env()

        assert config.scopes == ["https://www.googleapis.com/auth/gmail.modify"]
        assert config.redirect_uri == "http://localhost:8080/gmail/callback"
        assert config.topic is None
        assert config.alert is None
        assert not config.is_configured

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GMAIL_CLIENT_ID", "client-123")
        monkeypatch.setenv("GMAIL_CLIENT_SECRET", "GOCSPX-secret")
        monkeypatch.setenv("GMAIL_MAILBOX", "admin@x.com")
        monkeypatch.setenv("GMAIL_TOPIC", "projects/p/topics/t")
        monkeypatch.setenv("GMAIL_ALERT", "True")
        monkeypatch.setenv("GMAIL_REQUEST_TIMEOUT", "5")

        config = GmailConfig.from_env()

        assert config.is_configured
        assert config.topic == "projects/p/topics/t"
        assert config.alert is True
        assert config.request_timeout == 5.0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"scopes": []},
            {"request_timeout": 0},
            {"max_retries": 0},
            {"initial_backoff": 0},
            {"backoff_multiplier": 1.0},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            GmailConfig(**overrides).validate()


class TestStorageConfig:
    """Test StorageConfig."""

    def test_paths_derive_from_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GMAIL_CONNECTOR_HOME", str(tmp_path))
        monkeypatch.setenv("GMAIL_CONNECTOR_STORE", "SQLite")

        config = StorageConfig.from_env()

        assert config.home_dir == tmp_path
        assert config.log_dir == tmp_path / "logs"
        assert config.store_db_path == tmp_path / "connector.db"
        assert config.backend == "sqlite"
        config.validate()

    def test_unknown_backend(self):
        config = StorageConfig(
            home_dir=Path("/tmp/gc"),
            log_dir=Path("/tmp/gc/logs"),
            store_db_path=Path("/tmp/gc/connector.db"),
            backend="redis",
        )

        with pytest.raises(ValueError, match="Store backend"):
            config.validate()

    def test_ensure_directories(self, tmp_path):
        config = StorageConfig(
            home_dir=tmp_path / "home",
            log_dir=tmp_path / "home" / "logs",
            store_db_path=tmp_path / "home" / "connector.db",
        )

        config.ensure_directories()

        assert config.log_dir.is_dir()


class TestAppConfig:
    """Test AppConfig."""

    def test_invalid_log_level(self):
        with pytest.raises(ValueError, match="LOG_LEVEL"):
            AppConfig(log_level="VERBOSE").validate()

    def test_invalid_port(self):
        with pytest.raises(ValueError, match="Port"):
            AppConfig(port=0).validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("GMAIL_CONNECTOR_PORT", "9090")

        config = AppConfig.from_env()
        config.validate()

        assert config.port == 9090
