"""Cancellable scheduled actions for debounced state transitions.

A ScheduledAction owns at most one pending callback. Scheduling always
cancels the previous one first, so an owner can never have two timers
in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class ScheduledAction:
    """Single-slot timer bound to the running event loop.

    Usage:
        revert = ScheduledAction("quiet-revert")
        revert.schedule(2.0, self._back_to_pending)
        ...
        revert.cancel()
    """

    def __init__(self, name: str = "action") -> None:
        self.name = name
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None and not self._handle.cancelled()

    def schedule(self, delay_s: float, callback: Callable[[], Any]) -> None:
        """Run `callback` after `delay_s` seconds, replacing any pending one."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(0.0, delay_s), self._fire, callback)

    def cancel(self) -> None:
        """Drop the pending callback (idempotent)."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], Any]) -> None:
        self._handle = None
        try:
            callback()
        except Exception:
            logger.exception("Scheduled action %r failed", self.name)


__all__ = ["ScheduledAction"]
