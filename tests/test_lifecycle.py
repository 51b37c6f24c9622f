"""
Tests for the job lifecycle state machine.
"""

import asyncio
import json
import logging

import pytest

from nfc_console.events import EventName, StreamEvent
from nfc_console.lifecycle import (
    JOB_DELETED_MESSAGE,
    CloseReason,
    JobLifecycle,
    LifecycleStatus,
    extract_run_error,
)
from nfc_console.logging import StructuredLogger
from nfc_console.types import JobCounters
from tests._testkit import FakeJobQueue

QUIET_MS = 20


def event(name, job_id="job-1", **data):
    return StreamEvent(name=name, data={"job_id": job_id, "adapter_id": "adapter-1", **data})


def make_tracker(jobs=None, scopes=("job:delete",)):
    return JobLifecycle(jobs or FakeJobQueue(), scopes=lambda: scopes, quiet_timeout_ms=QUIET_MS)


async def wait_quiet():
    await asyncio.sleep(QUIET_MS / 1000 * 3)


class TestOpen:
    """Test opening a tracker."""

    @pytest.mark.asyncio
    async def test_open_resets_and_refreshes(self):
        jobs = FakeJobQueue()
        jobs.get.return_value = {"totalRuns": 3, "successRuns": 2, "errorRuns": 1, "repeat": 5}
        tracker = make_tracker(jobs)

        tracker.open("adapter-1", "job-1", "Read tag")
        assert tracker.is_open is True
        assert tracker.status is LifecycleStatus.PENDING
        await tracker.drain()

        jobs.get.assert_awaited_once_with("adapter-1", "job-1")
        assert tracker.counters == JobCounters(total_runs=3, success_runs=2, error_runs=1, repeat=5)
        assert tracker.job_name == "Read tag"

    @pytest.mark.asyncio
    async def test_reopen_cancels_pending_timer(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")
        tracker.ingest(event(EventName.RUN_SUCCESS))
        assert tracker.timer_pending

        tracker.open("adapter-1", "job-2", "b")

        assert not tracker.timer_pending
        assert tracker.status is LifecycleStatus.PENDING
        assert tracker.job_id == "job-2"
        await tracker.aclose()


class TestIngest:
    """Test event handling."""

    @pytest.mark.asyncio
    async def test_run_started_activates(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")

        tracker.ingest(event(EventName.RUN_STARTED))

        assert tracker.status is LifecycleStatus.ACTIVATED
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_uncorrelated_events_ignored(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")

        tracker.ingest(event(EventName.RUN_STARTED, job_id="other"))
        tracker.ingest(StreamEvent(name=EventName.RUN_STARTED, data=None))
        tracker.ingest(StreamEvent(name=EventName.RUN_STARTED, data={"adapter_id": "adapter-1"}))

        assert tracker.status is LifecycleStatus.PENDING
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_camel_case_job_id_correlates(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")

        tracker.ingest(StreamEvent(name=EventName.RUN_STARTED, data={"jobID": "job-1"}))

        assert tracker.status is LifecycleStatus.ACTIVATED
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_closed_tracker_ignores_events(self):
        tracker = make_tracker()

        tracker.ingest(event(EventName.RUN_STARTED))

        assert tracker.is_open is False
        assert tracker.status is LifecycleStatus.PENDING

    @pytest.mark.asyncio
    async def test_success_reverts_to_pending_after_quiet_timeout(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")

        tracker.ingest(event(EventName.RUN_SUCCESS))
        assert tracker.status is LifecycleStatus.FINISHED

        await wait_quiet()
        assert tracker.status is LifecycleStatus.PENDING
        assert tracker.is_open is True
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_run_error_sets_message_then_clears(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")
        results = [
            {"command": "read", "status": "success", "message": "ok"},
            {"command": "write", "status": "error", "message": "  tag lost "},
            {"command": "lock", "status": "error", "message": ""},
            {"command": "auth", "status": "error", "message": "bad key"},
        ]

        tracker.ingest(event(EventName.RUN_ERROR, results=results))

        assert tracker.status is LifecycleStatus.ERROR
        assert tracker.error_message == "tag lost, bad key"
        await wait_quiet()
        assert tracker.status is LifecycleStatus.PENDING
        assert tracker.error_message == ""
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_new_run_preempts_revert(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")
        tracker.ingest(event(EventName.RUN_SUCCESS))

        tracker.ingest(event(EventName.RUN_STARTED))
        await wait_quiet()

        assert tracker.status is LifecycleStatus.ACTIVATED
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_job_finished_closes_immediately(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")
        tracker.ingest(event(EventName.RUN_SUCCESS))

        tracker.ingest(event(EventName.JOB_FINISHED))

        assert tracker.is_open is False
        assert not tracker.timer_pending
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_job_deleted_closes_after_quiet_timeout(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")

        tracker.ingest(event(EventName.JOB_DELETED))

        assert tracker.status is LifecycleStatus.DELETED
        assert tracker.error_message == JOB_DELETED_MESSAGE
        assert tracker.is_open is True
        await wait_quiet()
        assert tracker.is_open is False
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_job_submitted_refreshes_counters(self):
        jobs = FakeJobQueue()
        tracker = make_tracker(jobs)
        tracker.open("adapter-1", "job-1", "a")
        await tracker.drain()
        jobs.get.reset_mock()

        tracker.ingest(event(EventName.JOB_SUBMITTED))
        await tracker.drain()

        jobs.get.assert_awaited_once()
        assert tracker.status is LifecycleStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_event_is_noop(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")

        tracker.ingest(event("firmware_update"))

        assert tracker.status is LifecycleStatus.PENDING
        await tracker.aclose()


class TestClose:
    """Test user and automatic close."""

    @pytest.mark.asyncio
    async def test_user_close_deletes_pending_job(self):
        jobs = FakeJobQueue()
        tracker = make_tracker(jobs)
        tracker.open("adapter-1", "job-1", "a")

        await tracker.close(CloseReason.USER)

        assert tracker.is_open is False
        jobs.delete.assert_awaited_once_with("adapter-1", "job-1")
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_user_close_after_finish_does_not_delete(self):
        jobs = FakeJobQueue()
        tracker = make_tracker(jobs)
        tracker.open("adapter-1", "job-1", "a")
        tracker.ingest(event(EventName.RUN_SUCCESS))

        await tracker.close("user")

        jobs.delete.assert_not_awaited()
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_close_without_scope_does_not_delete(self):
        jobs = FakeJobQueue()
        tracker = make_tracker(jobs, scopes=("job:create",))
        tracker.open("adapter-1", "job-1", "a")

        await tracker.close(CloseReason.USER)

        jobs.delete.assert_not_awaited()
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_auto_close_never_deletes(self):
        jobs = FakeJobQueue()
        tracker = make_tracker(jobs)
        tracker.open("adapter-1", "job-1", "a")

        await tracker.close(CloseReason.AUTO)
        tracker.stop_tracking()

        jobs.delete.assert_not_awaited()
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_delete_failure_is_swallowed(self):
        jobs = FakeJobQueue()
        jobs.delete.side_effect = RuntimeError("gone")
        tracker = make_tracker(jobs)
        tracker.open("adapter-1", "job-1", "a")

        await tracker.close(CloseReason.USER)

        assert tracker.is_open is False
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_delete_failure_logged_as_best_effort(self, caplog):
        jobs = FakeJobQueue()
        jobs.delete.side_effect = RuntimeError("gone")
        logger = StructuredLogger("nfc_console.test.lifecycle.close", level="DEBUG")
        logger._logger.propagate = True
        caplog.set_level(logging.DEBUG, logger=logger.name)
        tracker = JobLifecycle(jobs, scopes=lambda: ("job:delete",), logger=logger, log_transitions=False)
        tracker.open("adapter-1", "job-1", "a")
        await tracker.drain()

        await tracker.close(CloseReason.USER)

        record = caplog.records[-1]
        data = json.loads(record.getMessage())
        assert record.levelno == logging.WARNING
        assert data["event_type"] == "error"
        assert data["error_code"] == "ERR_9100"
        assert data["error_context"] == {"adapter_id": "adapter-1", "job_id": "job-1", "operation": "jobs.delete"}
        assert data["retryable"] is False
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_close_cancels_timer(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")
        tracker.ingest(event(EventName.RUN_ERROR, results=[]))

        await tracker.close(CloseReason.AUTO)
        await wait_quiet()

        assert tracker.status is LifecycleStatus.ERROR
        assert not tracker.timer_pending
        await tracker.aclose()


class TestRefreshCounters:
    """Test the counter refresh."""

    @pytest.mark.asyncio
    async def test_failure_keeps_old_counters(self):
        jobs = FakeJobQueue()
        jobs.get.return_value = {"total_runs": 4, "success_runs": 4, "error_runs": 0, "repeat": 4}
        tracker = make_tracker(jobs)
        tracker.open("adapter-1", "job-1", "a")
        await tracker.drain()

        jobs.get.side_effect = RuntimeError("offline")
        await tracker.refresh_counters()

        assert tracker.counters.total_runs == 4
        assert tracker.refreshing is False

    @pytest.mark.asyncio
    async def test_reentrant_refresh_is_skipped(self):
        jobs = FakeJobQueue()
        release = asyncio.Event()

        async def slow_get(adapter_id, job_id):
            await release.wait()
            return {"totalRuns": 1}

        jobs.get.side_effect = slow_get
        tracker = make_tracker(jobs)
        tracker.open("adapter-1", "job-1", "a")
        await asyncio.sleep(0)
        assert tracker.refreshing is True

        await tracker.refresh_counters()
        release.set()
        await tracker.drain()

        assert jobs.get.await_count == 1
        assert tracker.counters.total_runs == 1

    @pytest.mark.asyncio
    async def test_result_for_replaced_job_is_dropped(self):
        jobs = FakeJobQueue()
        release = asyncio.Event()

        async def slow_get(adapter_id, job_id):
            await release.wait()
            return {"totalRuns": 9}

        jobs.get.side_effect = slow_get
        tracker = make_tracker(jobs)
        tracker.open("adapter-1", "job-1", "a")
        await asyncio.sleep(0)
        tracker.stop_tracking()

        release.set()
        await tracker.drain()

        assert tracker.counters.total_runs == 0

    @pytest.mark.asyncio
    async def test_new_job_refreshes_while_old_refresh_in_flight(self):
        jobs = FakeJobQueue()
        release = asyncio.Event()

        async def get(adapter_id, job_id):
            if job_id == "job-1":
                await release.wait()
                return {"totalRuns": 9}
            return {"totalRuns": 7, "successRuns": 7, "repeat": 7}

        jobs.get.side_effect = get
        tracker = make_tracker(jobs)
        tracker.open("adapter-1", "job-1", "a")
        await asyncio.sleep(0)
        tracker.open("adapter-1", "job-2", "b")
        await asyncio.sleep(0)

        release.set()
        await tracker.drain()

        jobs.get.assert_any_await("adapter-1", "job-2")
        assert tracker.counters.total_runs == 7
        assert tracker.counters.success_runs == 7
        assert tracker.refreshing is False

    @pytest.mark.asyncio
    async def test_refresh_failure_logged_as_best_effort(self, caplog):
        jobs = FakeJobQueue()
        jobs.get.side_effect = RuntimeError("offline")
        logger = StructuredLogger("nfc_console.test.lifecycle.refresh", level="DEBUG")
        logger._logger.propagate = True
        caplog.set_level(logging.DEBUG, logger=logger.name)
        tracker = JobLifecycle(jobs, quiet_timeout_ms=QUIET_MS, logger=logger)

        tracker.open("adapter-1", "job-1", "a")
        await tracker.drain()

        data = json.loads(caplog.records[-1].getMessage())
        assert caplog.records[-1].levelno == logging.DEBUG
        assert data["error_type"] == "BestEffortError"
        assert data["error_code"] == "ERR_9100"
        assert data["error_context"]["operation"] == "jobs.get"
        assert data["cause"] == "RuntimeError: offline"

    @pytest.mark.asyncio
    async def test_counters_property_is_a_copy(self):
        tracker = make_tracker()
        tracker.open("adapter-1", "job-1", "a")
        await tracker.drain()

        tracker.counters.total_runs = 100

        assert tracker.counters.total_runs == 0


class TestExtractRunError:
    def test_unparseable_payload(self):
        assert extract_run_error("not a run") == ""
        assert extract_run_error({"results": "nope"}) == ""
        assert extract_run_error(None) == ""
