"""
Client-side enforcement of the host license against a job draft.

`enforce` is pure: it normalizes the draft, then evaluates the license rules
in a fixed order. Later rules see values already clamped by earlier ones, so
the order is part of the contract (it decides which warning the user sees).
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from .types import (
    Accepted,
    AccessPolicy,
    EnforcementResult,
    JobDraft,
    JobStep,
    Rejected,
    finite_or_none,
)

COMMAND_SCOPE_PREFIX = "command:"


def _normalize_repeat(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.trunc(number))


def _normalize_step(step: JobStep | Mapping[str, Any]) -> JobStep:
    if isinstance(step, Mapping):
        return JobStep(command=str(step.get("command")), params=step.get("params"))
    return JobStep(command=str(step.command), params=step.params)


def normalize_draft(draft: JobDraft | Mapping[str, Any]) -> JobDraft:
    """Copy `draft` with repeat truncated to an int >= 0 and commands as strings."""
    if isinstance(draft, Mapping):
        repeat, steps = draft.get("repeat"), draft.get("steps")
    else:
        repeat, steps = draft.repeat, draft.steps
    if not isinstance(steps, (list, tuple)):
        steps = []
    return JobDraft(
        repeat=_normalize_repeat(repeat),
        steps=[_normalize_step(s) for s in steps],
    )


def _positive(value: Any) -> int | float | None:
    number = finite_or_none(value)
    if number is None or number <= 0:
        return None
    return number


def _command_allowed(command: str, allowed: frozenset[str]) -> bool:
    return command in allowed or f"{COMMAND_SCOPE_PREFIX}{command}" in allowed


def enforce(policy: AccessPolicy | None, draft: JobDraft | Mapping[str, Any]) -> EnforcementResult:
    """
    Validate and normalize `draft` against `policy`.

    Rules run in this order:
        1. allow_multistep=False with more than one step -> reject
        2. allow_repeat=False with repeat > 1 -> clamp to 1, warn
        3. repeat above a positive max_repeat -> clamp, warn
        4. step count above a positive max_steps -> reject
        5. non-empty allowed_command_scopes missing a command -> reject

    Args:
        policy: Access policy, or None for an unrestricted session
        draft: Proposed job

    Returns:
        Accepted with the normalized job and warnings, or Rejected with a
        message naming the violated limit.
    """
    job = normalize_draft(draft)
    warnings: list[str] = []

    if policy is None:
        return Accepted(job=job, warnings=warnings)

    caps = policy.job_capabilities
    constraints = policy.constraints

    if caps.allow_multistep is False and len(job.steps) > 1:
        return Rejected("This host license does not allow multi-step jobs.")

    if caps.allow_repeat is False and job.repeat > 1:
        job.repeat = 1
        warnings.append("Repeat is not allowed on this host license. Set to 1.")

    max_repeat = _positive(constraints.max_repeat)
    if max_repeat is not None and job.repeat > max_repeat:
        job.repeat = math.trunc(max_repeat)
        warnings.append(f"Repeat is limited by license. Clamped to {job.repeat}.")

    # Steps are never dropped to fit; the user has to fix the job.
    max_steps = _positive(constraints.max_steps)
    if max_steps is not None and len(job.steps) > max_steps:
        return Rejected(f"This host license limits job steps to {math.trunc(max_steps)}.")

    allowed = constraints.allowed_command_scopes
    if allowed:
        not_allowed = [s.command for s in job.steps if not _command_allowed(s.command, allowed)]
        if not_allowed:
            names = ", ".join(dict.fromkeys(not_allowed))
            return Rejected(f"This host license does not allow command(s): {names}.")

    return Accepted(job=job, warnings=warnings)


__all__ = ["COMMAND_SCOPE_PREFIX", "enforce", "normalize_draft"]
