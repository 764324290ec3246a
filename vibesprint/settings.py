"""Settings: TOML config file, environment overrides, and the per-repo configuration."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import tomlkit
from pydantic import AliasChoices, BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from tomlkit.exceptions import ParseError

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".config" / "vibesprint" / "config.toml"

DEFAULT_INTERVAL = 60


class RepoConfig(BaseModel):
    name: str  # unique key in the repo list
    owner: str
    repo: str
    path: Path  # local clone
    provider: Literal["github", "linear"] = "github"

    # GitHub Projects v2
    project_id: str | None = None
    project_number: int | None = None
    column_field_id: str | None = None  # the "Status" single-select field
    ready_option_id: str | None = None
    ready_column_name: str | None = None
    backlog_option_id: str | None = None
    backlog_column_name: str | None = None
    in_progress_option_id: str | None = None
    in_progress_column_name: str | None = None
    in_review_option_id: str | None = None
    in_review_column_name: str | None = None

    # Linear
    linear_team_id: str | None = None
    linear_team_name: str | None = None
    linear_repo_label: str | None = None  # required label when several repos share a team
    linear_ready_state_id: str | None = None
    linear_backlog_state_id: str | None = None
    linear_in_progress_state_id: str | None = None
    linear_in_review_state_id: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class VibeSprintSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VIBESPRINT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Execution defaults
    executor: str = "kiro"  # "kiro" | "codex"
    model: str = "auto"  # kiro model, "auto" omits --model
    codex_model: str | None = None
    interval: int = DEFAULT_INTERVAL  # seconds between polls

    # Credentials
    github_auth: str = "token"  # "token" | "gh-cli"
    github_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("VIBESPRINT_GITHUB_TOKEN", "GITHUB_TOKEN", "github_token"),
    )
    linear_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("VIBESPRINT_LINEAR_API_KEY", "LINEAR_API_KEY", "linear_api_key"),
    )

    repos: list[RepoConfig] = []

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Values from config.toml arrive as init kwargs; the environment wins over them.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    def get_repo(self, name: str) -> RepoConfig | None:
        return next((r for r in self.repos if r.name == name), None)


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/vibesprint/config.toml, returning an empty document if missing or corrupt."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    try:
        return tomlkit.parse(CONFIG_PATH.read_text())
    except ParseError as exc:
        logger.warning("Config file %s is corrupted (%s), using defaults", CONFIG_PATH, exc)
        return tomlkit.document()


def get_settings() -> VibeSprintSettings:
    """Return settings from config.toml with environment variables and .env layered on top."""
    data: dict[str, Any] = _load_toml().unwrap()
    return VibeSprintSettings(**data)


def validate_settings(settings: VibeSprintSettings) -> list[str]:
    """Return a remediation message for every gap that would stop `run` from working."""
    errors: list[str] = []
    if not settings.repos:
        errors.append("No repos configured. Run: vibesprint add-repo")

    for repo in settings.repos:
        if repo.provider == "linear":
            if not repo.linear_team_id:
                errors.append(f"[{repo.name}] Missing linear_team_id")
            if not repo.linear_ready_state_id:
                errors.append(f"[{repo.name}] Missing linear_ready_state_id (the monitored Ready state)")
            continue
        if not repo.project_id:
            errors.append(f"[{repo.name}] Missing project_id - link a GitHub Project")
        if not repo.column_field_id:
            errors.append(f"[{repo.name}] Missing column_field_id - select the Status field")
        for field, label in (
            ("ready_option_id", "Ready"),
            ("backlog_option_id", "Backlog"),
            ("in_progress_option_id", "In Progress"),
            ("in_review_option_id", "In Review"),
        ):
            if not getattr(repo, field):
                errors.append(f"[{repo.name}] Missing {label} column ({field})")

    providers = {r.provider for r in settings.repos}
    if "github" in providers and settings.github_auth == "token" and not settings.github_token:
        errors.append(
            "Missing GitHub credentials. Set GITHUB_TOKEN, or set github_auth = \"gh-cli\" "
            f"in {CONFIG_PATH} to use the gh CLI."
        )
    if "linear" in providers and not settings.linear_api_key:
        errors.append(f"Missing Linear credentials. Set LINEAR_API_KEY or linear_api_key in {CONFIG_PATH}")
    return errors


# ---------------------------------------------------------------------------
# Config file mutation (round-trip preserves comments outside [[repos]])
# ---------------------------------------------------------------------------


def _load_doc() -> tomlkit.TOMLDocument:
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    return tomlkit.parse(CONFIG_PATH.read_text())


def _write_doc(doc: tomlkit.TOMLDocument) -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(tomlkit.dumps(doc))
    _load_toml.cache_clear()


def _repo_entries(doc: tomlkit.TOMLDocument) -> list[dict]:
    return [dict(entry) for entry in doc.unwrap().get("repos", [])]


def _set_repo_entries(doc: tomlkit.TOMLDocument, entries: list[dict]) -> None:
    if entries:
        doc["repos"] = tomlkit.item(entries)
    elif "repos" in doc:
        del doc["repos"]


def add_repo(repo: RepoConfig) -> bool:
    """Add repo to the config file, replacing an entry with the same name.

    Returns True if an existing entry was replaced.
    """
    doc = _load_doc()
    entry = repo.model_dump(mode="json", exclude_none=True)
    entries = _repo_entries(doc)
    replaced = False
    for i, existing in enumerate(entries):
        if existing.get("name") == repo.name:
            entries[i] = entry
            replaced = True
    if not replaced:
        entries.append(entry)
    _set_repo_entries(doc, entries)
    _write_doc(doc)
    return replaced


def remove_repo(name: str) -> bool:
    """Remove the repo called name. Returns False if no such repo exists."""
    doc = _load_doc()
    entries = _repo_entries(doc)
    kept = [e for e in entries if e.get("name") != name]
    if len(kept) == len(entries):
        return False
    _set_repo_entries(doc, kept)
    _write_doc(doc)
    return True


def save_settings_value(key: str, value: str | int) -> None:
    doc = _load_doc()
    doc[key] = value
    _write_doc(doc)
