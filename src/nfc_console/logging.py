"""
Structured Logging for the console core.

This module provides:
- Structured JSON logging with consistent fields
- Submission and lifecycle transition records tagged with the session
- Best-effort failure records carrying error codes and context
- Log level filtering and formatting options
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from .errors import ConsoleError, is_retryable

# =============================================================================
# Log Record Types
# =============================================================================


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class LogContext:
    """Context information attached to log records."""

    session_id: str | None = None
    adapter_id: str | None = None
    job_id: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in asdict(self).items() if v is not None and k != "extra"}
        d.update(self.extra)
        return d

    def with_update(self, **kwargs) -> LogContext:
        """Create a new context with updated values."""
        return LogContext(
            session_id=kwargs.get("session_id", self.session_id),
            adapter_id=kwargs.get("adapter_id", self.adapter_id),
            job_id=kwargs.get("job_id", self.job_id),
            operation=kwargs.get("operation", self.operation),
            extra={**self.extra, **kwargs.get("extra", {})},
        )


@dataclass
class SubmissionLog:
    """Log record for one submission attempt."""

    adapter_id: str
    job_name: str
    outcome: str  # "submitted", "blocked_by_policy", "rate_limited", "transport_failure"

    timestamp: str = field(default_factory=_utcnow)
    duration_ms: float | None = None

    job_id: str | None = None
    repeat: int | None = None
    step_count: int | None = None
    warning_count: int = 0
    reason: str | None = None
    bypassed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class TransitionLog:
    """Log record for a lifecycle status change."""

    job_id: str
    from_status: str
    to_status: str
    event: str | None = None

    timestamp: str = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Logger with structured JSON output and context tracking.

    Example:
        ```python
        logger = StructuredLogger("nfc_console")

        logger.set_context(session_id="sess_1")
        logger.log_submission(SubmissionLog(...))
        ```
    """

    def __init__(
        self,
        name: str = "nfc_console",
        level: str = "INFO",
        json_output: bool = True,
        include_timestamp: bool = True,
    ):
        self.name = name
        self.json_output = json_output
        self.include_timestamp = include_timestamp

        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper()))

        self._context: LogContext = LogContext()

        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            if json_output:
                handler.setFormatter(JSONFormatter())
            else:
                handler.setFormatter(TextFormatter())
            self._logger.addHandler(handler)

    @property
    def context(self) -> LogContext:
        return self._context

    def set_context(self, **kwargs) -> None:
        """Update the current log context."""
        self._context = self._context.with_update(**kwargs)

    def _log(
        self,
        level: int,
        message: str,
        event_type: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        record_data = {
            "message": message,
            **self._context.to_dict(),
        }

        if event_type:
            record_data["event_type"] = event_type

        if data:
            record_data.update(data)

        if self.json_output:
            self._logger.log(level, json.dumps(record_data, default=str))
        else:
            extras = " ".join(f"{k}={v}" for k, v in record_data.items() if k != "message")
            self._logger.log(level, f"{message} {extras}")

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, data=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, data=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, data=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, data=kwargs)

    # Typed logging methods

    def log_submission(self, submission: SubmissionLog) -> None:
        """Log the outcome of a submission attempt."""
        level = logging.INFO if submission.outcome == "submitted" else logging.WARNING
        message = f"Job '{submission.job_name}' on {submission.adapter_id}: {submission.outcome}"
        if submission.duration_ms:
            message += f" ({submission.duration_ms:.0f}ms)"
        self._log(level, message, event_type="submission", data=submission.to_dict())

    def log_transition(self, transition: TransitionLog) -> None:
        """Log a lifecycle status change."""
        self._log(
            logging.DEBUG,
            f"Job {transition.job_id}: {transition.from_status} -> {transition.to_status}",
            event_type="transition",
            data=transition.to_dict(),
        )

    def log_error(
        self,
        error: Exception,
        message: str | None = None,
        level: int = logging.ERROR,
        **kwargs,
    ) -> None:
        """
        Log an error with its code and context.

        Best-effort failures pass a lower `level`; they are recorded, never raised.
        """
        error_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "retryable": is_retryable(error),
            **kwargs,
        }

        if isinstance(error, ConsoleError):
            error_data["error_code"] = error.code.value
            context = {k: v for k, v in error.context.to_dict().items() if v is not None}
            if context:
                error_data["error_context"] = context
            if error.cause is not None:
                error_data["cause"] = f"{type(error.cause).__name__}: {error.cause}"

        self._log(level, message or str(error), event_type="error", data=error_data)


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _utcnow(),
            "level": record.levelname,
            "logger": record.name,
        }

        try:
            message_data = json.loads(record.getMessage())
            if isinstance(message_data, dict):
                log_data.update(message_data)
            else:
                log_data["message"] = record.getMessage()
        except (json.JSONDecodeError, TypeError):
            log_data["message"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        return f"{timestamp} {color}{record.levelname:8}{reset} {record.getMessage()}"


# =============================================================================
# Utilities
# =============================================================================


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return f"sess_{uuid.uuid4().hex[:12]}"


def redact_app_key(key: str | None) -> str:
    """Redact an X-App-Key for safe logging."""
    if not key:
        return "<not set>"
    if len(key) <= 8:
        return "***"
    return f"{key[:4]}...{key[-4:]}"


@dataclass
class Timer:
    """Simple timer for measuring durations."""

    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    def stop(self) -> float:
        """Stop the timer and return duration in milliseconds."""
        self.end_time = time.perf_counter()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        end = self.end_time or time.perf_counter()
        return (end - self.start_time) * 1000


@contextmanager
def timed() -> Iterator[Timer]:
    """Context manager for timing operations."""
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()


__all__ = [
    "LogContext",
    "SubmissionLog",
    "TransitionLog",
    "StructuredLogger",
    "JSONFormatter",
    "TextFormatter",
    "Timer",
    "timed",
    "generate_session_id",
    "redact_app_key",
]
