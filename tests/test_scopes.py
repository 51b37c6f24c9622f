"""
Tests for wildcard scope matching.
"""

import pytest

from nfc_console.scopes import SCOPE_JOB_DELETE, has_scope


class TestHasScope:
    """Test has_scope()."""

    @pytest.mark.parametrize(
        "granted",
        [
            ["job:delete"],
            ["*"],
            ["job:*"],
            ["  JOB:DELETE  "],
            ["", "  ", "job:*"],
        ],
    )
    def test_grants_job_delete(self, granted):
        assert has_scope(granted, SCOPE_JOB_DELETE) is True

    @pytest.mark.parametrize(
        "granted",
        [
            [],
            None,
            ["job:create"],
            ["jobs:*"],
            ["job"],
            ["command:*"],
        ],
    )
    def test_denies_job_delete(self, granted):
        assert has_scope(granted, SCOPE_JOB_DELETE) is False

    def test_empty_required_never_matches(self):
        """Even the universal scope does not cover an empty requirement."""
        assert has_scope(["*"], "") is False
        assert has_scope(["*"], "   ") is False

    def test_prefix_includes_colon(self):
        """`job:*` must not match `jobqueue:clear`."""
        assert has_scope(["job:*"], "jobqueue:clear") is False
        assert has_scope(["job:*"], "job:queue:clear") is True

    def test_accepts_any_iterable(self):
        assert has_scope(frozenset({"job:delete"}), "job:delete") is True
        assert has_scope(("x", "job:delete"), "Job:Delete") is True
