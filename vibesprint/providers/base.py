"""Abstract base class for issue-tracker providers."""

from abc import ABC, abstractmethod

from vibesprint.models import Column, Comment, Issue, SubIssue


class ProviderError(RuntimeError):
    pass


def sub_issue_body(body: str, parent_ref: str) -> str:
    return f"{body}\n\n---\n*Part of {parent_ref}*"


class IssueProvider(ABC):
    # Prefix applied to the status labels this provider writes ("" or "vibesprint:").
    label_namespace: str

    @abstractmethod
    def get_issues(self) -> list[Issue]:
        """Eligible issues in the Ready column/state, sorted by number."""

    @abstractmethod
    def get_comments(self, issue: Issue, limit: int = 10) -> list[Comment]: ...

    @abstractmethod
    def add_label(self, issue: Issue, label: str) -> None: ...

    @abstractmethod
    def remove_label(self, issue: Issue, label: str) -> None:
        """Remove label; a label that is not on the issue is not an error."""

    @abstractmethod
    def post_comment(self, issue: Issue, body: str) -> None:
        """Best-effort: failures are logged, never raised."""

    @abstractmethod
    def move_to_column(self, issue: Issue, column: Column) -> None:
        """No-op when the target column/state is not configured."""

    @abstractmethod
    def create_sub_issue(self, parent: Issue, title: str, body: str) -> SubIssue: ...

    @abstractmethod
    def link_pull_request(self, issue: Issue, pr_url: str) -> None: ...

    @abstractmethod
    def ensure_labels_exist(self) -> None: ...
