"""
Configuration system for nfc-console.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
"""

from .base import SUPPORTED_LOCALES, Locale, LogFormat, LogLevel
from .connection import DEFAULT_BASE_URL, ConnectionConfig
from .logging import LoggingConfig
from .session import LifecycleConfig, SessionConfig
from .settings import Settings, load_env

__all__ = [
    "Locale",
    "LogLevel",
    "LogFormat",
    "SUPPORTED_LOCALES",
    "DEFAULT_BASE_URL",
    "ConnectionConfig",
    "SessionConfig",
    "LifecycleConfig",
    "LoggingConfig",
    "Settings",
    "load_env",
]
