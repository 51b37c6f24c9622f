"""
Run-history cache: the last completed run per adapter and per job.

Writes are last-write-wins in stream order. A payload that cannot be parsed
is kept as a readable `parse_error` instead of raising into the stream.
"""

from __future__ import annotations

from .events import RUN_COMPLETION_EVENTS, EventName, JobRun, StreamEvent


class RunHistory:
    def __init__(self) -> None:
        self.last_run_by_adapter_id: dict[str, JobRun] = {}
        self.last_run_by_job_id: dict[str, JobRun] = {}
        self.last_event_name_by_job_id: dict[str, EventName] = {}
        self.parse_error: str = ""

    def ingest(self, event: StreamEvent) -> None:
        if event.name not in RUN_COMPLETION_EVENTS or not event.data:
            return

        try:
            run = JobRun.from_dict(event.data)
        except (ValueError, TypeError) as e:
            self.parse_error = str(e) or type(e).__name__
            return

        if run.adapter_id:
            self.last_run_by_adapter_id[run.adapter_id] = run
        if run.job_id:
            self.last_run_by_job_id[run.job_id] = run
            self.last_event_name_by_job_id[run.job_id] = EventName(event.name)
        self.parse_error = ""

    def for_job(self, job_id: str) -> JobRun | None:
        return self.last_run_by_job_id.get(job_id)

    def for_adapter(self, adapter_id: str) -> JobRun | None:
        return self.last_run_by_adapter_id.get(adapter_id)

    def clear(self) -> None:
        self.last_run_by_adapter_id.clear()
        self.last_run_by_job_id.clear()
        self.last_event_name_by_job_id.clear()
        self.parse_error = ""


__all__ = ["RunHistory"]
