"""
Client-side policy and state layer for an nfcd job-queue service.

Validates proposed jobs against the host license, throttles submissions and
tracks the lifecycle of the job the user is watching from streamed events.
Call `load_env()` before `Settings.from_env()` to pick up a local `.env`.
"""

from .bridge import EventBridge
from .capabilities import enforce, normalize_draft
from .client import JobQueue, NfcClient
from .config import (
    ConnectionConfig,
    LifecycleConfig,
    LoggingConfig,
    SessionConfig,
    Settings,
    load_env,
)
from .connection import ConnectionKey, ConnectionRegistry
from .errors import (
    BestEffortError,
    ConfigError,
    ConsoleError,
    ErrorCode,
    PolicyRejectedError,
    RateLimitedError,
    TransportError,
)
from .events import EventName, JobRun, StreamEvent
from .lifecycle import CloseReason, JobLifecycle, LifecycleStatus
from .rate_limit import RateCheck, RateLimiter
from .runs import RunHistory
from .scopes import SCOPE_JOB_DELETE, has_scope
from .session import Session
from .stream import EventStream, EventStreamClient
from .submission import submit
from .types import (
    Accepted,
    AccessPolicy,
    BlockedByPolicy,
    JobCounters,
    JobDraft,
    JobStep,
    RateLimited,
    Rejected,
    Submitted,
)

__all__ = [
    # Core
    "enforce",
    "normalize_draft",
    "has_scope",
    "SCOPE_JOB_DELETE",
    "RateLimiter",
    "RateCheck",
    "submit",
    "JobLifecycle",
    "LifecycleStatus",
    "CloseReason",
    "EventBridge",
    "RunHistory",
    "Session",
    # Types
    "JobStep",
    "JobDraft",
    "JobCounters",
    "AccessPolicy",
    "Accepted",
    "Rejected",
    "Submitted",
    "BlockedByPolicy",
    "RateLimited",
    "StreamEvent",
    "EventName",
    "JobRun",
    # Transport
    "JobQueue",
    "NfcClient",
    "EventStream",
    "EventStreamClient",
    "ConnectionKey",
    "ConnectionRegistry",
    # Config
    "Settings",
    "ConnectionConfig",
    "SessionConfig",
    "LifecycleConfig",
    "LoggingConfig",
    "load_env",
    # Errors
    "ErrorCode",
    "ConsoleError",
    "PolicyRejectedError",
    "RateLimitedError",
    "TransportError",
    "BestEffortError",
    "ConfigError",
]

__version__ = "0.1.0"
