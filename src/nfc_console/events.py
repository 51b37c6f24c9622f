"""
Stream event types and payload normalization.

The service is not consistent about key spelling (`job_id` vs `jobID`,
`total_runs` vs `totalRuns`). Every lookup of a correlated id or a job
counter goes through the helpers in this module.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .types import JobCounters


class EventName(str, Enum):
    """Event names delivered on the live stream."""

    SERVER_STARTED = "server_started"
    SERVER_STOPPED = "server_stopped"
    ADAPTER_DISCOVERY = "adapter_discovery"
    ADAPTER_RELEASE = "adapter_release"
    TAG_DISCOVERY = "tag_discovery"
    TAG_RELEASE = "tag_release"

    JOB_SUBMITTED = "job_submitted"
    JOB_ACTIVATED = "job_activated"
    JOB_PENDING = "job_pending"
    JOB_DELETED = "job_deleted"
    JOB_FINISHED = "job_finished"

    RUN_STARTED = "run_started"
    RUN_SUCCESS = "run_success"
    RUN_ERROR = "run_error"

    @classmethod
    def parse(cls, value: Any) -> EventName | str:
        """Known names become members, unknown ones stay plain strings."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        try:
            return cls(text)
        except ValueError:
            return text


RUN_COMPLETION_EVENTS = frozenset({EventName.RUN_SUCCESS, EventName.RUN_ERROR})


class CommandStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


# =============================================================================
# Field-name normalization
# =============================================================================

_JOB_ID_KEYS = ("job_id", "jobID", "jobId")
_ADAPTER_ID_KEYS = ("adapter_id", "adapterID", "adapterId")

_COUNTER_KEYS: dict[str, tuple[str, ...]] = {
    "total_runs": ("totalRuns", "total_runs"),
    "success_runs": ("successRuns", "success_runs"),
    "error_runs": ("errorRuns", "error_runs"),
    "repeat": ("repeat",),
}


def _first(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_id(value: Any) -> str:
    return str(value if value is not None else "").strip()


def correlation_ids(data: Any) -> tuple[str, str]:
    """Return `(adapter_id, job_id)` from an event payload, '' when absent."""
    if not isinstance(data, Mapping):
        return "", ""
    return _as_id(_first(data, _ADAPTER_ID_KEYS)), _as_id(_first(data, _JOB_ID_KEYS))


def normalize_counters(job: Any) -> JobCounters:
    """Map a job document from the service onto canonical counters."""
    if not isinstance(job, Mapping):
        return JobCounters()
    return JobCounters(**{name: _as_int(_first(job, keys)) for name, keys in _COUNTER_KEYS.items()})


# =============================================================================
# Events
# =============================================================================


@dataclass
class StreamEvent:
    name: EventName | str
    data: Any = None
    received_at: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> StreamEvent:
        return cls(name=EventName.parse(payload.get("name")), data=payload.get("data"))

    @property
    def adapter_id(self) -> str:
        return correlation_ids(self.data)[0]

    @property
    def job_id(self) -> str:
        return correlation_ids(self.data)[1]

    def to_dict(self) -> dict[str, Any]:
        name = self.name.value if isinstance(self.name, EventName) else self.name
        return {"name": name, "data": self.data}


@dataclass
class CommandResult:
    command: str
    status: CommandStatus | str
    message: str = ""
    output: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CommandResult:
        if not isinstance(data, Mapping):
            raise ValueError(f"Command result must be an object, got {type(data).__name__}")
        status = str(data.get("status") or "")
        try:
            status = CommandStatus(status)
        except ValueError:
            pass
        message = data.get("message")
        return cls(
            command=str(data.get("command") or ""),
            status=status,
            message=str(message) if message is not None else "",
            output=data.get("output"),
        )


@dataclass
class JobRun:
    """One execution of a job, as carried by run_success / run_error payloads."""

    run_id: str
    job_id: str
    adapter_id: str
    job_name: str = ""
    success: bool = False
    results: list[CommandResult] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> JobRun:
        if not isinstance(data, Mapping):
            raise ValueError(f"Run payload must be an object, got {type(data).__name__}")
        results = data.get("results") or []
        if not isinstance(results, list):
            raise ValueError("Run payload 'results' must be a list")
        adapter_id, job_id = correlation_ids(data)
        return cls(
            run_id=_as_id(_first(data, ("run_id", "runID", "runId"))),
            job_id=job_id,
            adapter_id=adapter_id,
            job_name=_as_id(_first(data, ("job_name", "jobName"))),
            success=bool(data.get("success", False)),
            results=[CommandResult.from_dict(r) for r in results],
        )

    def error_messages(self) -> list[str]:
        """Non-empty messages of failed steps, in step order."""
        return [
            r.message.strip()
            for r in self.results
            if r.status == CommandStatus.ERROR and r.message.strip()
        ]


__all__ = [
    "EventName",
    "RUN_COMPLETION_EVENTS",
    "CommandStatus",
    "StreamEvent",
    "CommandResult",
    "JobRun",
    "correlation_ids",
    "normalize_counters",
]
