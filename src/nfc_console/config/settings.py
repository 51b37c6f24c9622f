"""
Settings master configuration and env/file loading.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import ConfigError
from .connection import ConnectionConfig
from .logging import LoggingConfig
from .session import LifecycleConfig, SessionConfig

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class Settings:
    """
    Master configuration for a console session.

    Aggregates all configuration sections into a single object that can be
    loaded from environment variables, files, or constructed programmatically.
    The core only reads it.
    """

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "NFC_CONSOLE_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            NFC_CONSOLE_BASE_URL=http://127.0.0.1:3011
            NFC_CONSOLE_LOCALE=ru
            NFC_CONSOLE_X_APP_KEY=...
            NFC_CONSOLE_IGNORE_HOST_LICENSE=true
        """
        env = {k[len(prefix):]: v for k, v in os.environ.items() if k.startswith(prefix) and v}

        connection: dict[str, Any] = {}
        session: dict[str, Any] = {}
        lifecycle: dict[str, Any] = {}
        logging: dict[str, Any] = {}

        try:
            if "BASE_URL" in env:
                connection["base_url"] = env["BASE_URL"]
            if "LOCALE" in env:
                connection["locale"] = env["LOCALE"].lower()
            app_key = env.get("X_APP_KEY", "").strip() or (os.getenv("X_APP_KEY") or "").strip()
            if app_key:
                connection["app_key"] = app_key
            if "REQUEST_TIMEOUT" in env:
                connection["request_timeout"] = float(env["REQUEST_TIMEOUT"])

            if "IGNORE_HOST_LICENSE" in env:
                session["ignore_host_license"] = env["IGNORE_HOST_LICENSE"].strip().lower() in _TRUTHY
            if "EXPIRE_AFTER" in env:
                session["expire_after"] = int(env["EXPIRE_AFTER"])

            if "QUIET_TIMEOUT_MS" in env:
                lifecycle["quiet_timeout_ms"] = int(env["QUIET_TIMEOUT_MS"])
            if "POLL_INTERVAL_MS" in env:
                lifecycle["poll_interval_ms"] = int(env["POLL_INTERVAL_MS"])

            if "LOG_LEVEL" in env:
                logging["level"] = env["LOG_LEVEL"].upper()
            if "LOG_FORMAT" in env:
                logging["format"] = env["LOG_FORMAT"].lower()

            return cls(
                connection=ConnectionConfig(**connection),
                session=SessionConfig(**session),
                lifecycle=LifecycleConfig(**lifecycle),
                logging=LoggingConfig(**logging),
            )
        except ValueError as e:
            raise ConfigError(str(e), cause=e) from e

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            import yaml

            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            import tomllib

            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def default(cls) -> Settings:
        return cls()

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The dictionary is validated against the configuration schema first.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ConfigError(f"Configuration validation failed: {e.message}", cause=e) from e

        try:
            return cls(
                connection=ConnectionConfig(**data.get("connection", {})),
                session=SessionConfig(**data.get("session", {})),
                lifecycle=LifecycleConfig(**data.get("lifecycle", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except ValueError as e:
            raise ConfigError(str(e), cause=e) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""
        return dataclasses.asdict(self)


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "load_env"]
