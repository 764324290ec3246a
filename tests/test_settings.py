"""Tests for vibesprint.settings — precedence, validation and config file edits."""

from pathlib import Path

import pytest
import tomlkit

import vibesprint.settings as settings_module
from vibesprint.settings import (
    RepoConfig,
    VibeSprintSettings,
    add_repo,
    get_settings,
    remove_repo,
    save_settings_value,
    validate_settings,
)


def _write_config(config: dict) -> Path:
    path = settings_module.CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tomlkit.dumps(config))
    return path


class TestGetSettings:
    def test_no_config_file_returns_defaults(self) -> None:
        s = get_settings()
        assert s.executor == "kiro"
        assert s.model == "auto"
        assert s.codex_model is None
        assert s.interval == 60
        assert s.github_auth == "token"
        assert s.github_token is None
        assert s.repos == []

    def test_toml_values_loaded(self, tmp_path: Path) -> None:
        _write_config(
            {
                "executor": "codex",
                "codex_model": "gpt-5.2",
                "interval": 30,
                "linear_api_key": "lin_api_file",
                "repos": [
                    {"name": "app", "owner": "acme", "repo": "app", "path": str(tmp_path), "project_id": "PVT_1"},
                ],
            }
        )
        s = get_settings()
        assert s.executor == "codex"
        assert s.codex_model == "gpt-5.2"
        assert s.interval == 30
        assert s.linear_api_key is not None
        assert s.linear_api_key.get_secret_value() == "lin_api_file"
        assert s.repos[0].full_name == "acme/app"
        assert s.repos[0].provider == "github"

    def test_env_var_takes_precedence_over_toml(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_config({"executor": "codex", "interval": 30})
        monkeypatch.setenv("VIBESPRINT_EXECUTOR", "kiro")
        monkeypatch.setenv("VIBESPRINT_INTERVAL", "5")

        s = get_settings()
        assert s.executor == "kiro"
        assert s.interval == 5

    @pytest.mark.parametrize("var", ["GITHUB_TOKEN", "VIBESPRINT_GITHUB_TOKEN"])
    def test_github_token_from_env(self, monkeypatch: pytest.MonkeyPatch, var: str) -> None:
        monkeypatch.setenv(var, "ghp_env")
        s = get_settings()
        assert s.github_token is not None
        assert s.github_token.get_secret_value() == "ghp_env"

    def test_linear_key_env_beats_file(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_config({"linear_api_key": "lin_api_file"})
        monkeypatch.setenv("LINEAR_API_KEY", "lin_api_env")
        s = get_settings()
        assert s.linear_api_key is not None
        assert s.linear_api_key.get_secret_value() == "lin_api_env"

    def test_corrupt_file_falls_back_to_defaults(self, caplog: pytest.LogCaptureFixture) -> None:
        settings_module.CONFIG_PATH.parent.mkdir(parents=True)
        settings_module.CONFIG_PATH.write_text("executor = [unterminated\n")

        s = get_settings()
        assert s.executor == "kiro"
        assert "corrupted" in caplog.text

    def test_get_repo(self, settings: VibeSprintSettings) -> None:
        assert settings.get_repo("api") is not None
        assert settings.get_repo("missing") is None


class TestValidateSettings:
    def test_complete(self, settings: VibeSprintSettings) -> None:
        assert validate_settings(settings) == []

    def test_no_repos(self) -> None:
        assert validate_settings(VibeSprintSettings()) == ["No repos configured. Run: vibesprint add-repo"]

    def test_github_repo_missing_columns(self, tmp_path: Path) -> None:
        repo = RepoConfig(name="app", owner="acme", repo="app", path=tmp_path)
        errors = validate_settings(VibeSprintSettings(github_token="ghp_x", repos=[repo]))  # type: ignore[call-arg]
        assert "[app] Missing project_id - link a GitHub Project" in errors
        assert "[app] Missing column_field_id - select the Status field" in errors
        assert "[app] Missing Ready column (ready_option_id)" in errors
        assert "[app] Missing In Review column (in_review_option_id)" in errors

    def test_linear_repo_missing_team(self, linear_repo: RepoConfig) -> None:
        repo = linear_repo.model_copy(update={"linear_team_id": None, "linear_ready_state_id": None})
        errors = validate_settings(VibeSprintSettings(linear_api_key="k", repos=[repo]))  # type: ignore[call-arg]
        assert errors == [
            "[api] Missing linear_team_id",
            "[api] Missing linear_ready_state_id (the monitored Ready state)",
        ]

    def test_missing_credentials(self, github_repo: RepoConfig, linear_repo: RepoConfig) -> None:
        errors = validate_settings(VibeSprintSettings(repos=[github_repo, linear_repo]))
        assert any(e.startswith("Missing GitHub credentials") for e in errors)
        assert any(e.startswith("Missing Linear credentials") for e in errors)

    def test_gh_cli_auth_needs_no_token(self, github_repo: RepoConfig) -> None:
        s = VibeSprintSettings(github_auth="gh-cli", repos=[github_repo])
        assert validate_settings(s) == []


class TestConfigEdits:
    def test_add_then_load(self, github_repo: RepoConfig) -> None:
        assert add_repo(github_repo) is False
        loaded = get_settings().get_repo("app")
        assert loaded == github_repo

    def test_add_replaces_same_name(self, github_repo: RepoConfig) -> None:
        add_repo(github_repo)
        assert add_repo(github_repo.model_copy(update={"repo": "app2"})) is True
        s = get_settings()
        assert [r.repo for r in s.repos] == ["app2"]

    def test_remove(self, github_repo: RepoConfig, linear_repo: RepoConfig) -> None:
        add_repo(github_repo)
        add_repo(linear_repo)
        assert remove_repo("app") is True
        assert remove_repo("app") is False
        assert [r.name for r in get_settings().repos] == ["api"]

    def test_remove_last_repo_drops_table(self, github_repo: RepoConfig) -> None:
        add_repo(github_repo)
        remove_repo("app")
        assert "repos" not in tomlkit.parse(settings_module.CONFIG_PATH.read_text())

    def test_save_value_keeps_comments(self) -> None:
        settings_module.CONFIG_PATH.parent.mkdir(parents=True)
        settings_module.CONFIG_PATH.write_text("# my settings\ninterval = 10\n")
        save_settings_value("executor", "codex")

        text = settings_module.CONFIG_PATH.read_text()
        assert text.startswith("# my settings")
        s = get_settings()
        assert s.executor == "codex"
        assert s.interval == 10
