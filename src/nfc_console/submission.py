"""
Job submission pipeline.

Stages run in a fixed order and each one can end the attempt:

1. resolve the effective policy (the session bypass flag substitutes None)
2. enforce the license against the draft -> BlockedByPolicy
3. client-side rate limit -> RateLimited
4. clear the adapter's queue, only when the session holds `job:delete`
5. add the job
6. record the submission with the rate limiter

Policy and rate-limit outcomes are returned. Failures in stages 4-5 raise
TransportError and leave the rate limiter untouched.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable

from .capabilities import enforce
from .errors import ErrorContext, TransportError
from .events import correlation_ids
from .logging import SubmissionLog, timed
from .scopes import SCOPE_JOB_DELETE, has_scope
from .types import (
    AccessPolicy,
    BlockedByPolicy,
    JobDraft,
    RateLimited,
    Rejected,
    Submitted,
    SubmitResult,
)

if TYPE_CHECKING:
    from .session import Session


async def submit(
    session: Session,
    adapter_id: str,
    job_name: str,
    draft: JobDraft | Mapping[str, Any],
    policy: AccessPolicy | None,
    *,
    expire_after: int | None = None,
    on_warning: Callable[[str], Any] | None = None,
) -> SubmitResult:
    """
    Validate, throttle and send one job.

    Args:
        session: Session owning the rate limiter and the job queue
        adapter_id: Target adapter
        job_name: Display name stored with the job
        draft: Proposed job
        policy: Current access policy, or None when the session has none
        expire_after: Seconds before the service drops the job (session default if None)
        on_warning: Called once per enforcement warning, before sending

    Returns:
        Submitted, BlockedByPolicy or RateLimited

    Raises:
        TransportError: The queue clear or the add request failed
    """
    bypassed = session.settings.session.ignore_host_license
    effective_policy = None if bypassed else policy
    if expire_after is None:
        expire_after = session.settings.session.expire_after
    logger = session.logger

    with timed() as timer:
        enforced = enforce(effective_policy, draft)
        if isinstance(enforced, Rejected):
            _log(session, SubmissionLog(
                adapter_id=adapter_id,
                job_name=job_name,
                outcome="blocked_by_policy",
                reason=enforced.reason,
                bypassed=bypassed,
            ))
            return BlockedByPolicy(enforced.reason)

        for warning in enforced.warnings:
            logger.warning(warning, adapter_id=adapter_id, job_name=job_name)
            if on_warning is not None:
                on_warning(warning)

        if not bypassed and policy is not None:
            check = session.rate_limiter.check(policy.rate_limit)
            if not check.ok:
                _log(session, SubmissionLog(
                    adapter_id=adapter_id,
                    job_name=job_name,
                    outcome="rate_limited",
                    reason=check.reason,
                ))
                return RateLimited(seconds=check.wait_seconds)

        job = enforced.job
        ctx = ErrorContext(adapter_id=adapter_id, operation="submit")
        try:
            # Many licenses allow creating jobs but not deleting them.
            if policy is not None and has_scope(policy.allowed_scopes, SCOPE_JOB_DELETE):
                await session.jobs.delete_all(adapter_id)
            created = await session.jobs.add(adapter_id, job.to_new_job(job_name, expire_after))
        except TransportError as e:
            _log_failure(session, adapter_id, job_name, e)
            raise
        except Exception as e:
            _log_failure(session, adapter_id, job_name, e)
            raise TransportError(str(e) or type(e).__name__, context=ctx, cause=e) from e

        job_id = correlation_ids(created)[1]
        if not job_id:
            raise TransportError("Service did not return a job id", context=ctx)

        if not bypassed:
            session.rate_limiter.record()

    _log(session, SubmissionLog(
        adapter_id=adapter_id,
        job_name=job_name,
        outcome="submitted",
        duration_ms=timer.elapsed_ms,
        job_id=job_id,
        repeat=job.repeat,
        step_count=len(job.steps),
        warning_count=len(enforced.warnings),
        bypassed=bypassed,
    ))
    return Submitted(job_id=job_id)


def _log(session: Session, record: SubmissionLog) -> None:
    if session.settings.logging.log_submissions:
        session.logger.log_submission(record)


def _log_failure(session: Session, adapter_id: str, job_name: str, error: Exception) -> None:
    _log(session, SubmissionLog(
        adapter_id=adapter_id,
        job_name=job_name,
        outcome="transport_failure",
        reason=str(error),
    ))


__all__ = ["submit"]
