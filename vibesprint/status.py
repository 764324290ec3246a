"""Label-encoded issue status.

Each issue carries a small set of status flags as tracker labels. The transition
table below is pure: it maps the current flags and an outcome to the flags to
remove and add. ``IssueStatus`` applies a transition through a provider,
translating flags to the provider's label namespace.
"""

import logging
from collections.abc import Iterable

import httpx
from pydantic import BaseModel, ConfigDict

from vibesprint.models import Column, Issue, PlanTask
from vibesprint.parsing import render_plan
from vibesprint.providers.base import IssueProvider, ProviderError

logger = logging.getLogger(__name__)

RUNNING = "running"
RETRY = "retry"
FAILED = "failed"
PR_OPENED = "pr-opened"
PLAN_POSTED = "plan-posted"

STATUS_FLAGS = frozenset({RUNNING, RETRY, FAILED, PR_OPENED, PLAN_POSTED})

MAX_OUTPUT_CHARS = 2000


class Transition(BaseModel):
    model_config = ConfigDict(frozen=True)

    remove: frozenset[str] = frozenset()
    add: frozenset[str] = frozenset()
    column: Column | None = None

    def apply(self, flags: Iterable[str]) -> frozenset[str]:
        return (frozenset(flags) - self.remove) | self.add


def flags_from_labels(labels: Iterable[str], namespace: str = "") -> frozenset[str]:
    """Status flags present in a provider label set."""
    found = set()
    for label in labels:
        if label.startswith(namespace) and label[len(namespace) :] in STATUS_FLAGS:
            found.add(label[len(namespace) :])
    return frozenset(found)


def on_dispatch(flags: Iterable[str]) -> tuple[Transition, bool]:
    """Consume a pending retry and mark the issue running. Returns (transition, is_retry)."""
    is_retry = RETRY in frozenset(flags)
    remove = frozenset({RETRY}) if is_retry else frozenset()
    return Transition(remove=remove, add=frozenset({RUNNING})), is_retry


def on_failure(is_retry: bool) -> Transition:
    if is_retry:
        return Transition(remove=frozenset({RUNNING}), add=frozenset({FAILED}))
    return Transition(remove=frozenset({RUNNING}), add=frozenset({RETRY}))


def on_success(is_plan: bool) -> Transition:
    # A success clears any leftover retry/failed markers from earlier attempts.
    remove = frozenset({RUNNING, RETRY, FAILED})
    if is_plan:
        return Transition(remove=remove, add=frozenset({PLAN_POSTED}), column="in_progress")
    return Transition(remove=remove, add=frozenset({PR_OPENED}), column="in_review")


def is_plan_issue(labels: Iterable[str]) -> bool:
    return any(label.lower() == "plan" for label in labels)


def is_no_curate(labels: Iterable[str]) -> bool:
    return any(label.lower() == "no-curate" for label in labels)


def format_error_comment(run_id: str, exit_code: int, stdout: str, stderr: str) -> str:
    output = "\n".join(part for part in (stdout, stderr) if part)
    tail = output[-MAX_OUTPUT_CHARS:] if output else "No output captured"
    return (
        "## ❌ VibeSprint Run Failed\n\n"
        f"**Run ID:** `{run_id}`\n"
        f"**Exit Code:** {exit_code}\n\n"
        "<details>\n"
        "<summary>Output (last 2000 chars)</summary>\n\n"
        f"```\n{tail}\n```\n"
        "</details>"
    )


def format_plan_comment(tasks: list[PlanTask]) -> str:
    return (
        "## 📋 Plan Generated\n\n"
        f"{render_plan(tasks)}\n\n"
        "---\n"
        f"*{len(tasks)} sub-issue(s) will be created in Backlog.*"
    )


class IssueStatus:
    """Drives one issue through dispatch and its outcome on a provider."""

    def __init__(self, provider: IssueProvider, issue: Issue) -> None:
        self.provider = provider
        self.issue = issue
        self.is_retry = False

    def _label(self, flag: str) -> str:
        return f"{self.provider.label_namespace}{flag}"

    def _apply(self, transition: Transition) -> None:
        for flag in sorted(transition.remove):
            self.provider.remove_label(self.issue, self._label(flag))
        for flag in sorted(transition.add):
            self.provider.add_label(self.issue, self._label(flag))
        if transition.column is not None:
            self._move(transition.column)

    def _move(self, column: Column) -> None:
        try:
            self.provider.move_to_column(self.issue, column)
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("Failed to move %s to %s: %s", self.issue.ref, column, exc)

    def start(self) -> None:
        transition, self.is_retry = on_dispatch(flags_from_labels(self.issue.labels, self.provider.label_namespace))
        self._apply(transition)

    def fail(self, run_id: str, exit_code: int, stdout: str, stderr: str) -> None:
        self._apply(on_failure(self.is_retry))
        self.provider.post_comment(self.issue, format_error_comment(run_id, exit_code, stdout, stderr))
        if self.is_retry:
            logger.error("%s failed after retry, marked as failed", self.issue.ref)
        else:
            logger.warning("%s failed, marked for retry", self.issue.ref)

    def succeed(self, *, is_plan: bool) -> None:
        self._apply(on_success(is_plan))

    def post_plan(self, tasks: list[PlanTask]) -> None:
        self.provider.post_comment(self.issue, format_plan_comment(tasks))
