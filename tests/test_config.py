"""
Tests for the configuration system.
"""

import os
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from nfc_console.config import (
    ConnectionConfig,
    LifecycleConfig,
    LoggingConfig,
    SessionConfig,
    Settings,
    load_env,
)
from nfc_console.errors import ConfigError


class TestConnectionConfig:
    """Test connection configuration."""

    def test_defaults(self):
        config = ConnectionConfig()

        assert config.base_url == "http://127.0.0.1:3011"
        assert config.locale == "en"
        assert config.app_key is None
        assert config.request_timeout == 10.0

    def test_validation(self):
        with pytest.raises(ValueError, match="HTTP"):
            ConnectionConfig(base_url="ftp://host")
        with pytest.raises(ValueError, match="Unsupported locale"):
            ConnectionConfig(locale="de")
        with pytest.raises(ValueError, match="request_timeout must be positive"):
            ConnectionConfig(request_timeout=0)

    def test_ws_url(self):
        assert ConnectionConfig(base_url="http://host:3011/").ws_url == "ws://host:3011/events"
        assert ConnectionConfig(base_url="https://nfc.example.com").ws_url == "wss://nfc.example.com/events"

    def test_blank_app_key_is_none(self):
        assert ConnectionConfig(app_key="   ").app_key is None


class TestSectionConfigs:
    def test_session_defaults(self):
        config = SessionConfig()

        assert config.ignore_host_license is False
        assert config.expire_after == 60

    def test_lifecycle_validation(self):
        assert LifecycleConfig().quiet_timeout_ms == 2000
        with pytest.raises(ValueError, match="poll_interval_ms must be positive"):
            LifecycleConfig(poll_interval_ms=0)

    def test_logging_validation(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            LoggingConfig(level="LOUD")


class TestSettingsFromEnv:
    """Test environment loading."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("NFC_CONSOLE_BASE_URL", "https://nfc.local:8443")
        monkeypatch.setenv("NFC_CONSOLE_LOCALE", "RU")
        monkeypatch.setenv("NFC_CONSOLE_X_APP_KEY", "key-1")
        monkeypatch.setenv("NFC_CONSOLE_IGNORE_HOST_LICENSE", "yes")
        monkeypatch.setenv("NFC_CONSOLE_QUIET_TIMEOUT_MS", "500")
        monkeypatch.setenv("NFC_CONSOLE_LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.connection.base_url == "https://nfc.local:8443"
        assert settings.connection.locale == "ru"
        assert settings.connection.app_key == "key-1"
        assert settings.session.ignore_host_license is True
        assert settings.lifecycle.quiet_timeout_ms == 500
        assert settings.logging.level == "DEBUG"

    def test_app_key_fallback(self, monkeypatch):
        monkeypatch.delenv("NFC_CONSOLE_X_APP_KEY", raising=False)
        monkeypatch.setenv("X_APP_KEY", "legacy-key")

        assert Settings.from_env().connection.app_key == "legacy-key"

    def test_invalid_env_raises_config_error(self, monkeypatch):
        monkeypatch.setenv("NFC_CONSOLE_LOCALE", "de")

        with pytest.raises(ConfigError):
            Settings.from_env()

    @pytest.mark.parametrize(
        "name,value",
        [
            ("LOG_LEVEL", "foo"),
            ("LOG_FORMAT", "xml"),
            ("EXPIRE_AFTER", "abc"),
            ("EXPIRE_AFTER", "-1"),
            ("QUIET_TIMEOUT_MS", "-5"),
            ("POLL_INTERVAL_MS", "0"),
            ("REQUEST_TIMEOUT", "soon"),
        ],
    )
    def test_every_section_validated_from_env(self, monkeypatch, name, value):
        monkeypatch.setenv(f"NFC_CONSOLE_{name}", value)

        with pytest.raises(ConfigError):
            Settings.from_env()

    def test_env_values_reach_every_section(self, monkeypatch):
        monkeypatch.setenv("NFC_CONSOLE_EXPIRE_AFTER", "120")
        monkeypatch.setenv("NFC_CONSOLE_POLL_INTERVAL_MS", "250")
        monkeypatch.setenv("NFC_CONSOLE_LOG_FORMAT", "JSON")

        settings = Settings.from_env()

        assert settings.session.expire_after == 120
        assert settings.lifecycle.poll_interval_ms == 250
        assert settings.logging.format == "json"

    def test_load_env(self, monkeypatch):
        monkeypatch.delenv("NFC_CONSOLE_TEST_VAR", raising=False)
        with TemporaryDirectory() as tmpdir:
            env_path = Path(tmpdir) / ".env"
            env_path.write_text("NFC_CONSOLE_TEST_VAR=from-dotenv\n")

            assert load_env(str(env_path)) is True

        assert os.environ["NFC_CONSOLE_TEST_VAR"] == "from-dotenv"
        monkeypatch.delenv("NFC_CONSOLE_TEST_VAR")


class TestSettingsFromFile:
    """Test YAML/TOML loading."""

    def test_yaml(self):
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "console.yaml"
            path.write_text(
                "connection:\n"
                "  base_url: http://10.0.0.2:3011\n"
                "  locale: ru\n"
                "session:\n"
                "  expire_after: 120\n"
                "logging:\n"
                "  format: json\n"
            )

            settings = Settings.from_file(path)

        assert settings.connection.base_url == "http://10.0.0.2:3011"
        assert settings.connection.locale == "ru"
        assert settings.session.expire_after == 120
        assert settings.logging.format == "json"

    def test_toml(self):
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "console.toml"
            path.write_text("[lifecycle]\nquiet_timeout_ms = 3000\n\n[session]\nignore_host_license = true\n")

            settings = Settings.from_file(path)

        assert settings.lifecycle.quiet_timeout_ms == 3000
        assert settings.session.ignore_host_license is True

    def test_schema_violation(self):
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "console.yaml"
            path.write_text("connection:\n  locale: fr\n")

            with pytest.raises(ConfigError, match="validation failed"):
                Settings.from_file(path)

    def test_unknown_section_rejected(self):
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "console.yaml"
            path.write_text("cache:\n  enabled: true\n")

            with pytest.raises(ConfigError):
                Settings.from_file(path)

    def test_missing_and_unsupported(self):
        with pytest.raises(FileNotFoundError):
            Settings.from_file("/nonexistent/console.yaml")
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "console.ini"
            path.write_text("")
            with pytest.raises(ValueError, match="Unsupported config file format"):
                Settings.from_file(path)

    def test_to_dict(self):
        d = Settings().to_dict()

        assert d["connection"]["locale"] == "en"
        assert d["lifecycle"]["poll_interval_ms"] == 1000
