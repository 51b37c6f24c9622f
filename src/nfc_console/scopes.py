"""
Wildcard scope matching for session permissions.

Scopes only gate optional side effects (queue pre-clear, delete on close),
never the submission itself.
"""

from __future__ import annotations

from collections.abc import Iterable

SCOPE_WILDCARD = "*"
SCOPE_JOB_DELETE = "job:delete"


def _norm(value: object) -> str:
    return str(value if value is not None else "").strip().lower()


def has_scope(granted: Iterable[str] | None, required: str) -> bool:
    """
    Check whether `granted` covers `required`.

    Matches on exact equality, the universal `*`, or a `prefix:*` token whose
    prefix (colon included) starts `required`, e.g. `job:*` covers `job:delete`.
    """
    req = _norm(required)
    if not req:
        return False

    for raw in granted or ():
        scope = _norm(raw)
        if not scope:
            continue
        if scope == req or scope == SCOPE_WILDCARD:
            return True
        if scope.endswith(":*") and req.startswith(scope[:-1]):
            return True
    return False


__all__ = ["SCOPE_WILDCARD", "SCOPE_JOB_DELETE", "has_scope"]
