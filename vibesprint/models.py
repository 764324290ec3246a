"""Shared pydantic models passed between providers, executors and the runner."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

Column = Literal["backlog", "in_progress", "in_review"]
ProviderName = Literal["github", "linear"]


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # provider-native ID (GitHub node id, Linear issue id)
    number: int  # GitHub issue number or numeric suffix of ENG-123
    identifier: str | None = None  # Linear only
    title: str
    body: str = ""
    url: str
    project_item_id: str  # row/card key used for column moves
    labels: list[str] = []
    model: str | None = None  # from a model:<value> label
    executor: str | None = None  # from an executor:<value> label
    repo_name: str  # name of the owning RepoConfig

    @property
    def ref(self) -> str:
        """Human reference: ENG-123 for Linear, #42 for GitHub."""
        return self.identifier or f"#{self.number}"


class Comment(BaseModel):
    model_config = ConfigDict(frozen=True)

    author: str
    body: str


class PlanTask(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    body: str


class SubIssue(BaseModel):
    """What create_sub_issue returns to the caller."""

    model_config = ConfigDict(frozen=True)

    id: str
    number: int


class ExecutionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    credits: float | None = None  # kiro
    time_seconds: int | None = None  # kiro
    tokens_used: int | None = None  # codex
