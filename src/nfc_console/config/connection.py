"""
Connection configuration for the nfcd service.
"""

from __future__ import annotations

from dataclasses import dataclass

from .base import SUPPORTED_LOCALES, Locale

DEFAULT_BASE_URL = "http://127.0.0.1:3011"


@dataclass
class ConnectionConfig:
    """Endpoint, locale and credentials used to reach the service."""

    base_url: str = DEFAULT_BASE_URL
    locale: Locale = "en"
    app_key: str | None = None

    request_timeout: float = 10.0
    heartbeat: float | None = 30.0

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must be a valid HTTP(S) URL")
        self.base_url = self.base_url.rstrip("/")
        if self.locale not in SUPPORTED_LOCALES:
            raise ValueError(f"Unsupported locale: {self.locale}. Must be one of {SUPPORTED_LOCALES}")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.app_key is not None:
            self.app_key = self.app_key.strip() or None

    @property
    def ws_url(self) -> str:
        """Event stream endpoint derived from the HTTP base URL."""
        if self.base_url.startswith("https://"):
            return "wss://" + self.base_url[len("https://"):] + "/events"
        return "ws://" + self.base_url[len("http://"):] + "/events"


__all__ = ["ConnectionConfig", "DEFAULT_BASE_URL"]
