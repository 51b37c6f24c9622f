"""
Error taxonomy for nfc-console.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Retryable vs non-retryable classification
- Structured context for debugging
- HTTP status mapping for the job queue service
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the console core."""

    # Transport errors (1xxx)
    TRANSPORT_ERROR = "ERR_1000"
    RATE_LIMITED = "ERR_1001"
    UNAUTHORIZED = "ERR_1002"
    NOT_FOUND = "ERR_1004"
    SERVICE_UNAVAILABLE = "ERR_1007"
    SERVICE_TIMEOUT = "ERR_1008"

    # Policy errors (2xxx)
    POLICY_REJECTED = "ERR_2000"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"
    BEST_EFFORT_FAILED = "ERR_9100"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    adapter_id: str | None = None
    job_id: str | None = None
    operation: str | None = None
    url: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "adapter_id": self.adapter_id,
            "job_id": self.job_id,
            "operation": self.operation,
            "url": self.url,
            **self.extra,
        }


class ConsoleError(Exception):
    """
    Base exception for all console core errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        retryable: Whether the caller may retry the operation
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.job_id:
            parts.append(f"(job_id={self.context.job_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Policy Errors
# =============================================================================


class PolicyRejectedError(ConsoleError):
    """The job draft violates the host license. User-fixable, never retried."""

    code = ErrorCode.POLICY_REJECTED
    retryable = False


class RateLimitedError(ConsoleError):
    """Submission throttled on the client. Retry after `wait_seconds`."""

    code = ErrorCode.RATE_LIMITED
    retryable = True

    def __init__(
        self,
        message: str = "rate_limit",
        *,
        wait_seconds: int = 0,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.wait_seconds = wait_seconds


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(ConsoleError):
    """Network or service error from the job queue / event stream."""

    code = ErrorCode.TRANSPORT_ERROR
    retryable = True
    status: int | None = None

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        **kwargs,
    ):
        if status is not None and "retryable" not in kwargs:
            kwargs["retryable"] = status >= 500 or status == 429
        super().__init__(message, **kwargs)
        self.status = status


class UnauthorizedError(TransportError):
    """Missing or invalid X-App-Key, or scope denied by the service."""

    code = ErrorCode.UNAUTHORIZED


class NotFoundError(TransportError):
    """Adapter or job does not exist on the service."""

    code = ErrorCode.NOT_FOUND


class ServiceUnavailableError(TransportError):
    """The service is down or overloaded."""

    code = ErrorCode.SERVICE_UNAVAILABLE


class ServiceTimeoutError(TransportError):
    """The request did not complete in time."""

    code = ErrorCode.SERVICE_TIMEOUT
    retryable = True


# =============================================================================
# Misc
# =============================================================================


class BestEffortError(ConsoleError):
    """A side effect that must never interrupt the primary action failed."""

    code = ErrorCode.BEST_EFFORT_FAILED
    retryable = False


class ConfigError(ConsoleError):
    """Invalid configuration."""

    code = ErrorCode.CONFIG_ERROR
    retryable = False


# =============================================================================
# Utilities
# =============================================================================


def error_from_status(
    status: int,
    message: str,
    *,
    context: ErrorContext | None = None,
) -> TransportError:
    """
    Create an appropriate TransportError from an HTTP status code.

    Args:
        status: HTTP status code
        message: Error body or reason returned by the service
        context: Additional error context

    Returns:
        Appropriate TransportError subclass
    """
    error_map: dict[int, type[TransportError]] = {
        401: UnauthorizedError,
        403: UnauthorizedError,
        404: NotFoundError,
        502: ServiceUnavailableError,
        503: ServiceUnavailableError,
        504: ServiceTimeoutError,
    }

    error_class = error_map.get(status, TransportError)
    return error_class(message, status=status, context=context)


def is_retryable(error: Exception) -> bool:
    """
    Check if an error is retryable.

    Args:
        error: Exception to check

    Returns:
        True if the error is retryable
    """
    if isinstance(error, ConsoleError):
        return error.retryable

    retryable_types = (
        asyncio.TimeoutError,
        ConnectionError,
        TimeoutError,
    )
    return isinstance(error, retryable_types)


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "ConsoleError",
    "PolicyRejectedError",
    "RateLimitedError",
    "TransportError",
    "UnauthorizedError",
    "NotFoundError",
    "ServiceUnavailableError",
    "ServiceTimeoutError",
    "BestEffortError",
    "ConfigError",
    "error_from_status",
    "is_retryable",
]
