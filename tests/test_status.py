"""Tests for vibesprint.status — the label transition table and how it is applied."""

from unittest.mock import MagicMock, call

import httpx
import pytest

from vibesprint.models import Issue, PlanTask
from vibesprint.providers.base import IssueProvider
from vibesprint.status import (
    FAILED,
    PLAN_POSTED,
    PR_OPENED,
    RETRY,
    RUNNING,
    IssueStatus,
    flags_from_labels,
    format_error_comment,
    format_plan_comment,
    is_no_curate,
    is_plan_issue,
    on_dispatch,
    on_failure,
    on_success,
)


def _provider(namespace: str = "") -> MagicMock:
    provider = MagicMock(spec=IssueProvider)
    provider.label_namespace = namespace
    return provider


class TestTransitions:
    def test_retry_chain(self) -> None:
        flags: frozenset[str] = frozenset()

        dispatch, is_retry = on_dispatch(flags)
        flags = dispatch.apply(flags)
        assert flags == {RUNNING} and not is_retry
        flags = on_failure(is_retry).apply(flags)
        assert flags == {RETRY}

        dispatch, is_retry = on_dispatch(flags)
        flags = dispatch.apply(flags)
        assert flags == {RUNNING} and is_retry
        flags = on_failure(is_retry).apply(flags)
        assert flags == {FAILED}

    @pytest.mark.parametrize("is_plan", [True, False])
    @pytest.mark.parametrize("start", [set(), {RETRY}, {FAILED, RETRY}])
    def test_success_clears_failure_markers(self, start: set[str], is_plan: bool) -> None:
        dispatch, _ = on_dispatch(start)
        flags = on_success(is_plan).apply(dispatch.apply(start))
        assert RETRY not in flags and FAILED not in flags and RUNNING not in flags
        assert len(flags & {PR_OPENED, PLAN_POSTED}) == 1

    def test_success_columns(self) -> None:
        assert on_success(is_plan=True).column == "in_progress"
        assert on_success(is_plan=False).column == "in_review"
        assert on_failure(False).column is None

    def test_flags_from_labels(self) -> None:
        labels = ["bug", "vibesprint:retry", "running", "vibesprint:failed"]
        assert flags_from_labels(labels, "vibesprint:") == {RETRY, FAILED}
        assert flags_from_labels(labels) == {RUNNING}


def test_plan_and_curate_markers_are_case_insensitive() -> None:
    assert is_plan_issue(["bug", "Plan"])
    assert not is_plan_issue(["planning"])
    assert is_no_curate(["No-Curate"])


class TestComments:
    def test_error_comment_truncates_combined_output(self) -> None:
        body = format_error_comment("abcd1234", 2, "x" * 3000, "boom")
        assert body.startswith("## ❌ VibeSprint Run Failed")
        assert "**Run ID:** `abcd1234`" in body
        assert "**Exit Code:** 2" in body
        assert "boom" in body
        assert "x" * 1995 in body
        assert "x" * 2001 not in body

    def test_error_comment_without_output(self) -> None:
        assert "No output captured" in format_error_comment("r", 1, "", "")

    def test_plan_comment(self) -> None:
        body = format_plan_comment([PlanTask(title="A", body="a"), PlanTask(title="B", body="b")])
        assert body.startswith("## 📋 Plan Generated")
        assert "## Task 1: A\na" in body
        assert "## Task 2: B\nb" in body
        assert body.endswith("*2 sub-issue(s) will be created in Backlog.*")


class TestIssueStatus:
    def test_start_consumes_retry(self, linear_issue: Issue) -> None:
        provider = _provider("vibesprint:")
        status = IssueStatus(provider, linear_issue)

        status.start()

        assert status.is_retry
        provider.remove_label.assert_called_once_with(linear_issue, "vibesprint:retry")
        provider.add_label.assert_called_once_with(linear_issue, "vibesprint:running")

    def test_failure_after_retry_marks_failed(self, linear_issue: Issue) -> None:
        provider = _provider("vibesprint:")
        status = IssueStatus(provider, linear_issue)
        status.start()
        provider.reset_mock()

        status.fail("run1", 3, "out", "err")

        provider.remove_label.assert_called_once_with(linear_issue, "vibesprint:running")
        provider.add_label.assert_called_once_with(linear_issue, "vibesprint:failed")
        comment = provider.post_comment.call_args.args[1]
        assert "**Exit Code:** 3" in comment

    def test_success_moves_column(self, github_issue: Issue) -> None:
        provider = _provider()
        status = IssueStatus(provider, github_issue)

        status.succeed(is_plan=False)

        assert provider.remove_label.call_args_list == [
            call(github_issue, "failed"),
            call(github_issue, "retry"),
            call(github_issue, "running"),
        ]
        provider.add_label.assert_called_once_with(github_issue, "pr-opened")
        provider.move_to_column.assert_called_once_with(github_issue, "in_review")

    def test_move_failure_is_logged(self, github_issue: Issue, caplog: pytest.LogCaptureFixture) -> None:
        provider = _provider()
        provider.move_to_column.side_effect = httpx.ConnectError("offline")

        IssueStatus(provider, github_issue).succeed(is_plan=True)

        provider.add_label.assert_called_once_with(github_issue, "plan-posted")
        assert "Failed to move #42 to in_progress" in caplog.text
