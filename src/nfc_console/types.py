"""
Data model shared by the enforcement, submission and tracking layers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from .errors import PolicyRejectedError, RateLimitedError


def finite_or_none(value: Any) -> float | int | None:
    """Return `value` if it is a finite real number, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    return None


# =============================================================================
# Jobs
# =============================================================================


@dataclass
class JobStep:
    command: str
    params: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"command": self.command, "params": self.params}


@dataclass
class JobDraft:
    """A not-yet-submitted unit of work. Step order is significant."""

    repeat: int = 1
    steps: list[JobStep] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> JobDraft:
        steps = [
            JobStep(command=s.get("command"), params=s.get("params"))
            for s in data.get("steps") or []
        ]
        return cls(repeat=data.get("repeat", 0), steps=steps)

    def to_new_job(self, job_name: str, expire_after: int) -> dict[str, Any]:
        """Request body for the job queue `add` call."""
        return {
            "job_name": job_name,
            "repeat": self.repeat,
            "expire_after": expire_after,
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass
class JobCounters:
    total_runs: int = 0
    success_runs: int = 0
    error_runs: int = 0
    repeat: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_runs": self.total_runs,
            "success_runs": self.success_runs,
            "error_runs": self.error_runs,
            "repeat": self.repeat,
        }


# =============================================================================
# Access policy
# =============================================================================


@dataclass(frozen=True)
class JobCapabilities:
    """Boolean permissions from the host license. None means allowed."""

    allow_multistep: bool | None = None
    allow_repeat: bool | None = None
    allow_batch: bool | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> JobCapabilities:
        data = data or {}

        def flag(key: str) -> bool | None:
            value = data.get(key)
            return value if isinstance(value, bool) else None

        return cls(
            allow_multistep=flag("allow_multistep"),
            allow_repeat=flag("allow_repeat"),
            allow_batch=flag("allow_batch"),
        )


@dataclass(frozen=True)
class JobConstraints:
    """Numeric and set-valued limits. 0 or None means unlimited."""

    max_repeat: int | float | None = None
    max_steps: int | float | None = None
    allowed_command_scopes: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> JobConstraints:
        data = data or {}
        commands = data.get("allowed_command_scopes")
        if not isinstance(commands, (list, tuple, set, frozenset)):
            commands = ()
        return cls(
            max_repeat=finite_or_none(data.get("max_repeat")),
            max_steps=finite_or_none(data.get("max_steps")),
            allowed_command_scopes=frozenset(str(c) for c in commands),
        )


@dataclass(frozen=True)
class RateLimitPolicy:
    min_interval_ms: int | float | None = None
    window_ms: int | float | None = None
    max_in_window: int | float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> RateLimitPolicy:
        data = data or {}
        return cls(
            min_interval_ms=finite_or_none(data.get("min_interval_ms")),
            window_ms=finite_or_none(data.get("window_ms")),
            max_in_window=finite_or_none(data.get("max_in_window")),
        )


@dataclass(frozen=True)
class AccessPolicy:
    """
    Host-issued access policy for the current session.

    A session without a policy is represented by `None`, not by an empty
    AccessPolicy: `None` disables enforcement entirely while an empty policy
    still goes through every rule (and passes them).
    """

    job_capabilities: JobCapabilities = field(default_factory=JobCapabilities)
    constraints: JobConstraints = field(default_factory=JobConstraints)
    allowed_scopes: frozenset[str] = frozenset()
    rate_limit: RateLimitPolicy | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AccessPolicy:
        """Parse an access payload (`/licenses/access` shape)."""
        raw_constraints = data.get("create_job_constraints") or {}
        scopes = data.get("allowed_scopes")
        if scopes is None:
            scopes = raw_constraints.get("allowed_scopes")
        if "allowed_command_scopes" in data and "allowed_command_scopes" not in raw_constraints:
            raw_constraints = {**raw_constraints, "allowed_command_scopes": data["allowed_command_scopes"]}
        raw_rate = data.get("create_job_rate_limit")
        return cls(
            job_capabilities=JobCapabilities.from_dict(data.get("job_capabilities")),
            constraints=JobConstraints.from_dict(raw_constraints),
            allowed_scopes=frozenset(str(s) for s in scopes or []),
            rate_limit=RateLimitPolicy.from_dict(raw_rate) if raw_rate else None,
        )

    @classmethod
    def from_license(cls, license_doc: Mapping[str, Any] | None) -> AccessPolicy | None:
        """Derive the policy from the `policies.nfcd` block of a license."""
        if not license_doc:
            return None
        nfcd = (license_doc.get("policies") or {}).get("nfcd")
        if not nfcd:
            return None
        return cls.from_dict(nfcd)


# =============================================================================
# Results
# =============================================================================


@dataclass
class Accepted:
    job: JobDraft
    warnings: list[str] = field(default_factory=list)

    ok = True


@dataclass
class Rejected:
    reason: str

    ok = False


EnforcementResult = Union[Accepted, Rejected]


@dataclass
class Submitted:
    job_id: str

    ok = True


@dataclass
class BlockedByPolicy:
    reason: str

    ok = False

    def to_error(self) -> PolicyRejectedError:
        return PolicyRejectedError(self.reason)


@dataclass
class RateLimited:
    """Client-side throttle hit. `seconds` is the rounded-up wait."""

    seconds: int
    reason: str = "rate_limit"

    ok = False
    error_key = "errors.rateLimit"

    def to_error(self) -> RateLimitedError:
        return RateLimitedError(self.reason, wait_seconds=self.seconds)


SubmitResult = Union[Submitted, BlockedByPolicy, RateLimited]


__all__ = [
    "finite_or_none",
    "JobStep",
    "JobDraft",
    "JobCounters",
    "JobCapabilities",
    "JobConstraints",
    "RateLimitPolicy",
    "AccessPolicy",
    "Accepted",
    "Rejected",
    "EnforcementResult",
    "Submitted",
    "BlockedByPolicy",
    "RateLimited",
    "SubmitResult",
]
