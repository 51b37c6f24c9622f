import math
import time
from dataclasses import dataclass
from typing import Callable, Literal

from .types import RateLimitPolicy, finite_or_none

RateLimitReason = Literal["min_interval", "window"]


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def _to_int(value) -> int | None:
    number = finite_or_none(value)
    if number is None:
        return None
    return math.trunc(number)


@dataclass(frozen=True)
class RateCheck:
    ok: bool
    wait_ms: int = 0
    reason: RateLimitReason | None = None

    @property
    def wait_seconds(self) -> int:
        return math.ceil(self.wait_ms / 1000)


ALLOWED = RateCheck(ok=True)


class RateLimiter:
    """
    Sliding-window plus minimum-interval admission control for job submission.

    Advisory only: it smooths the UX in front of the service's own limits.
    `record` must be called only after the service confirmed a submission,
    so rejected drafts and failed requests never consume budget.
    """

    def __init__(self, clock: Callable[[], int] = wall_clock_ms) -> None:
        self._clock = clock
        self._timestamps: list[int] = []
        self._last_submitted_at: int | None = None

    @property
    def timestamps(self) -> tuple[int, ...]:
        return tuple(self._timestamps)

    @property
    def last_submitted_at(self) -> int | None:
        return self._last_submitted_at

    def reset(self) -> None:
        self._timestamps = []
        self._last_submitted_at = None

    def check(self, config: RateLimitPolicy | None, now_ms: int | None = None) -> RateCheck:
        if config is None:
            return ALLOWED
        now = self._clock() if now_ms is None else now_ms

        min_interval = _to_int(config.min_interval_ms)
        window = _to_int(config.window_ms)
        max_in_window = _to_int(config.max_in_window)

        if min_interval is not None and self._last_submitted_at is not None:
            elapsed = now - self._last_submitted_at
            if elapsed < min_interval:
                return RateCheck(ok=False, wait_ms=min_interval - elapsed, reason="min_interval")

        if window is not None and max_in_window is not None and window > 0 and max_in_window > 0:
            cutoff = now - window
            self._timestamps = [t for t in self._timestamps if t > cutoff]

            if len(self._timestamps) >= max_in_window:
                oldest = self._timestamps[0]
                return RateCheck(ok=False, wait_ms=max(0, oldest + window - now), reason="window")

        return ALLOWED

    def record(self, now_ms: int | None = None) -> None:
        now = self._clock() if now_ms is None else now_ms
        self._last_submitted_at = now
        self._timestamps.append(now)


__all__ = ["RateLimiter", "RateCheck", "RateLimitReason", "wall_clock_ms"]
