"""
Base types for configuration.
"""

from __future__ import annotations

from typing import Literal

Locale = Literal["en", "ru"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]

SUPPORTED_LOCALES: tuple[str, ...] = ("en", "ru")


__all__ = ["Locale", "LogLevel", "LogFormat", "SUPPORTED_LOCALES"]
