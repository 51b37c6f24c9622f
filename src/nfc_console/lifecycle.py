"""
Lifecycle tracking for the one job the user is watching.

State transitions:
- open() -> PENDING
- PENDING/any -> ACTIVATED (run_started)
- * -> FINISHED (run_success) -> PENDING after the quiet timeout
- * -> ERROR (run_error) -> PENDING after the quiet timeout
- * -> DELETED (job_deleted) -> closed after the quiet timeout
- job_finished closes tracking immediately

Only events whose job id matches the tracked job are applied. Every applied
event cancels the pending quiet timer first, so a new run preempts a
scheduled revert. All transitions are synchronous; remote calls (counter
refresh, delete on close) run as background tasks or after the state change.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Iterable
from enum import Enum
from typing import Any, Callable

from .client import JobQueue
from .errors import BestEffortError, ErrorContext
from .events import EventName, JobRun, StreamEvent, normalize_counters
from .logging import StructuredLogger, TransitionLog
from .scheduling import ScheduledAction
from .scopes import SCOPE_JOB_DELETE, has_scope
from .types import JobCounters

logger = logging.getLogger(__name__)

DEFAULT_QUIET_TIMEOUT_MS = 2000
JOB_DELETED_MESSAGE = "job_deleted"


class LifecycleStatus(str, Enum):
    PENDING = "pending"
    ACTIVATED = "activated"
    FINISHED = "finished"
    ERROR = "error"
    DELETED = "deleted"


class CloseReason(str, Enum):
    USER = "user"
    AUTO = "auto"


_DELETABLE_ON_CLOSE = frozenset({LifecycleStatus.PENDING, LifecycleStatus.ACTIVATED})


def extract_run_error(data: Any) -> str:
    """Failed-step messages of a run_error payload joined with ', ', or ''."""
    try:
        return ", ".join(JobRun.from_dict(data).error_messages())
    except (ValueError, TypeError, AttributeError):
        return ""


class JobLifecycle:
    """
    Tracks a single submitted job from stream events.

    Example:
        ```python
        tracker = JobLifecycle(client.jobs, scopes=lambda: policy.allowed_scopes)
        tracker.open("adapter-1", job_id, "Read tag")
        stream.on_event(tracker.ingest)
        ...
        await tracker.close(CloseReason.USER)
        ```
    """

    def __init__(
        self,
        jobs: JobQueue,
        *,
        scopes: Callable[[], Iterable[str] | None] = lambda: (),
        quiet_timeout_ms: int = DEFAULT_QUIET_TIMEOUT_MS,
        logger: StructuredLogger | None = None,
        log_transitions: bool = True,
    ) -> None:
        self._jobs = jobs
        self._scopes = scopes
        self.quiet_timeout_ms = quiet_timeout_ms
        self._logger = logger
        self._log_transitions = log_transitions

        self._open = False
        self._adapter_id = ""
        self._job_id = ""
        self._job_name = ""
        self._status = LifecycleStatus.PENDING
        self._error_message = ""
        self._counters = JobCounters()

        self._timer = ScheduledAction("job-lifecycle")
        self._refreshing_key: tuple[str, str] | None = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def status(self) -> LifecycleStatus:
        return self._status

    @property
    def counters(self) -> JobCounters:
        return JobCounters(**self._counters.to_dict())

    @property
    def error_message(self) -> str:
        return self._error_message

    @property
    def adapter_id(self) -> str:
        return self._adapter_id

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def job_name(self) -> str:
        return self._job_name

    @property
    def refreshing(self) -> bool:
        return self._refreshing_key is not None

    @property
    def timer_pending(self) -> bool:
        return self._timer.pending

    # ------------------------------------------------------------------
    # Open / close
    # ------------------------------------------------------------------

    def open(self, adapter_id: str, job_id: str, job_name: str) -> None:
        """Start tracking `job_id`, replacing whatever was tracked before."""
        self._timer.cancel()
        self._open = True
        self._adapter_id = adapter_id
        self._job_id = str(job_id).strip()
        self._job_name = job_name
        self._status = LifecycleStatus.PENDING
        self._error_message = ""
        self._counters = JobCounters()
        self._spawn(self.refresh_counters())

    async def close(self, reason: CloseReason | str = CloseReason.USER) -> None:
        """
        Stop tracking.

        A user close while the job is still pending or running also asks the
        service to delete it, when the session holds `job:delete`. The delete
        is best effort: closing never fails.
        """
        reason = CloseReason(reason)
        was_open, status, adapter_id, job_id = self._stop()

        if (
            reason is CloseReason.USER
            and was_open
            and status in _DELETABLE_ON_CLOSE
            and adapter_id
            and job_id
            and has_scope(self._scopes(), SCOPE_JOB_DELETE)
        ):
            try:
                await self._jobs.delete(adapter_id, job_id)
            except Exception as e:
                self._report_failure("Delete on close failed", "jobs.delete", (adapter_id, job_id), e)

    def stop_tracking(self) -> None:
        """Automatic close. Never deletes the job remotely."""
        self._stop()

    def _stop(self) -> tuple[bool, LifecycleStatus, str, str]:
        self._timer.cancel()
        snapshot = (self._open, self._status, self._adapter_id, self._job_id)
        self._open = False
        return snapshot

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def ingest(self, event: StreamEvent) -> None:
        """Apply one stream event. Uncorrelated events and closed tracking are ignored."""
        if not self._open or event is None:
            return
        job_id = event.job_id
        if not job_id or job_id != self._job_id:
            return

        self._timer.cancel()
        name = event.name

        if name == EventName.RUN_STARTED:
            self._set_status(LifecycleStatus.ACTIVATED, name)
            self._spawn(self.refresh_counters())

        elif name == EventName.RUN_SUCCESS:
            self._set_status(LifecycleStatus.FINISHED, name)
            self._spawn(self.refresh_counters())
            self._revert_later()

        elif name == EventName.RUN_ERROR:
            self._error_message = extract_run_error(event.data)
            self._set_status(LifecycleStatus.ERROR, name)
            self._spawn(self.refresh_counters())
            self._revert_later()

        elif name == EventName.JOB_SUBMITTED:
            self._spawn(self.refresh_counters())

        elif name == EventName.JOB_FINISHED:
            self.stop_tracking()

        elif name == EventName.JOB_DELETED:
            self._set_status(LifecycleStatus.DELETED, name)
            self._error_message = JOB_DELETED_MESSAGE
            self._spawn(self.refresh_counters())
            self._timer.schedule(self._quiet_seconds, self.stop_tracking)

    def _revert_later(self) -> None:
        self._timer.schedule(self._quiet_seconds, self._back_to_pending)

    def _back_to_pending(self) -> None:
        if not self._open:
            return
        self._set_status(LifecycleStatus.PENDING, "quiet_timeout")
        self._error_message = ""

    @property
    def _quiet_seconds(self) -> float:
        return self.quiet_timeout_ms / 1000

    def _set_status(self, status: LifecycleStatus, cause: Any) -> None:
        previous, self._status = self._status, status
        if self._logger is not None and self._log_transitions and previous is not status:
            self._logger.log_transition(
                TransitionLog(
                    job_id=self._job_id,
                    from_status=previous.value,
                    to_status=status.value,
                    event=getattr(cause, "value", str(cause)),
                )
            )

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    async def refresh_counters(self) -> None:
        """
        Overwrite cached counters with the service's. Failures keep the old ones.

        At most one refresh per tracked job is in flight. A result that arrives
        after the tracker moved on to another job is dropped; the new job's
        own refresh is not held back by it.
        """
        if not self._open or not self._adapter_id or not self._job_id:
            return
        key = (self._adapter_id, self._job_id)
        if self._refreshing_key == key:
            return

        self._refreshing_key = key
        try:
            job = await self._jobs.get(*key)
            if self._open and key == (self._adapter_id, self._job_id):
                self._counters = normalize_counters(job)
        except Exception as e:
            self._report_failure("Counter refresh failed", "jobs.get", key, e, level=logging.DEBUG)
        finally:
            if self._refreshing_key == key:
                self._refreshing_key = None

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for outstanding counter refreshes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self._timer.cancel()
        await self.drain()

    def _report_failure(
        self,
        message: str,
        operation: str,
        key: tuple[str, str],
        cause: Exception,
        level: int = logging.WARNING,
    ) -> None:
        error = BestEffortError(
            message,
            context=ErrorContext(adapter_id=key[0], job_id=key[1], operation=operation),
            cause=cause,
        )
        if self._logger is not None:
            self._logger.log_error(error, level=level)
        else:
            logger.log(level, "%s: %s", error, cause)


__all__ = [
    "LifecycleStatus",
    "CloseReason",
    "JobLifecycle",
    "DEFAULT_QUIET_TIMEOUT_MS",
    "JOB_DELETED_MESSAGE",
    "extract_run_error",
]
