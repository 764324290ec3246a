"""Shared test fixtures."""

import logging
from pathlib import Path

import pytest

import vibesprint.issue_logs as issue_logs_module
import vibesprint.settings as settings_module
from vibesprint.models import Issue
from vibesprint.settings import RepoConfig, VibeSprintSettings

_ENV_VARS = [
    "GITHUB_TOKEN",
    "LINEAR_API_KEY",
    "VIBESPRINT_GITHUB_TOKEN",
    "VIBESPRINT_LINEAR_API_KEY",
    "VIBESPRINT_EXECUTOR",
    "VIBESPRINT_MODEL",
    "VIBESPRINT_CODEX_MODEL",
    "VIBESPRINT_INTERVAL",
    "VIBESPRINT_GITHUB_AUTH",
]


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep real credentials, config and run logs out of every test."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)  # no stray .env
    monkeypatch.setattr(settings_module, "CONFIG_PATH", tmp_path / "config" / "config.toml")
    monkeypatch.setattr(issue_logs_module, "LOGS_DIR", tmp_path / "logs")
    # configure_logging() detaches the package logger from the root logger (and caplog).
    package_logger = logging.getLogger("vibesprint")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
    settings_module._load_toml.cache_clear()
    yield
    settings_module._load_toml.cache_clear()


@pytest.fixture
def github_repo(tmp_path: Path) -> RepoConfig:
    return RepoConfig(
        name="app",
        owner="acme",
        repo="app",
        path=tmp_path / "app",
        project_id="PVT_1",
        project_number=3,
        column_field_id="FIELD_status",
        ready_option_id="OPT_ready",
        ready_column_name="Ready",
        backlog_option_id="OPT_backlog",
        in_progress_option_id="OPT_wip",
        in_review_option_id="OPT_review",
    )


@pytest.fixture
def linear_repo(tmp_path: Path) -> RepoConfig:
    return RepoConfig(
        name="api",
        owner="acme",
        repo="api",
        path=tmp_path / "api",
        provider="linear",
        linear_team_id="team_eng",
        linear_team_name="Engineering",
        linear_ready_state_id="state_ready",
        linear_backlog_state_id="state_backlog",
        linear_in_progress_state_id="state_wip",
        linear_in_review_state_id="state_review",
    )


@pytest.fixture
def settings(github_repo: RepoConfig, linear_repo: RepoConfig) -> VibeSprintSettings:
    return VibeSprintSettings(
        github_token="ghp_test",
        linear_api_key="lin_api_test",
        repos=[github_repo, linear_repo],
    )  # type: ignore[call-arg]


@pytest.fixture
def github_issue() -> Issue:
    return Issue(
        id="I_kwDO42",
        number=42,
        title="Add login",
        body="Users need to sign in.",
        url="https://github.com/acme/app/issues/42",
        project_item_id="PVTI_42",
        labels=[],
        repo_name="app",
    )


@pytest.fixture
def linear_issue() -> Issue:
    return Issue(
        id="lin_issue_7",
        number=7,
        identifier="ENG-7",
        title="Fix crash on logout",
        body="Null session.",
        url="https://linear.app/acme/issue/ENG-7",
        project_item_id="lin_issue_7",
        labels=["vibesprint:failed", "vibesprint:retry"],
        repo_name="api",
    )
