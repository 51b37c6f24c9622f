"""
Session-level behaviour configuration.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SessionConfig:
    """Per-session switches read by the submission path."""

    # Local diagnostics only: disables client-side enforcement and rate limiting.
    # The service still runs its own checks.
    ignore_host_license: bool = False
    expire_after: int = 60

    def __post_init__(self):
        if self.expire_after < 0:
            raise ValueError("expire_after cannot be negative")


@dataclass
class LifecycleConfig:
    """Timers used by job tracking and the event bridge."""

    quiet_timeout_ms: int = 2000
    poll_interval_ms: int = 1000

    def __post_init__(self):
        if self.quiet_timeout_ms < 0:
            raise ValueError("quiet_timeout_ms cannot be negative")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")


__all__ = ["SessionConfig", "LifecycleConfig"]
