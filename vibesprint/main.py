"""VibeSprint CLI — all commands."""

from pathlib import Path
from typing import Annotated

import typer
from rich import print as rprint
from rich.table import Table

from vibesprint import __version__
from vibesprint.executors import EXECUTORS
from vibesprint.issue_logs import read_issue_log
from vibesprint.log import configure_logging
from vibesprint.providers import ProviderError, create_provider
from vibesprint.runner import Poller
from vibesprint.settings import (
    CONFIG_PATH,
    RepoConfig,
    add_repo,
    get_settings,
    remove_repo,
    save_settings_value,
    validate_settings,
)

app = typer.Typer(help="VibeSprint: turn Ready issues into pull requests", no_args_is_help=True)

_NOT_SET = "[dim](not set)[/dim]"


def _check_executor(name: str | None) -> None:
    if name is not None and name not in EXECUTORS:
        rprint(f"[red]Unknown executor '{name}'. Valid: {', '.join(EXECUTORS)}[/red]")
        raise typer.Exit(1)


@app.command("run")
def run_cmd(
    dry_run: Annotated[bool, typer.Option("--dry-run", help="List eligible issues and exit")] = False,
    interval: Annotated[
        int | None, typer.Option("--interval", min=1, help="Seconds between polls (default from config)")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    executor: Annotated[str | None, typer.Option("--executor", "-e", help="kiro or codex")] = None,
) -> None:
    """Poll configured repos and process Ready issues one at a time."""
    configure_logging(verbose)
    _check_executor(executor)

    settings = get_settings()
    errors = validate_settings(settings)
    if errors:
        rprint("[red]Configuration incomplete:[/red]\n")
        for error in errors:
            rprint(f"  • {error}")
        raise typer.Exit(1)

    try:
        providers = {repo.name: create_provider(repo, settings) for repo in settings.repos}
    except ProviderError as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc

    Poller(settings, providers, executor=executor, dry_run=dry_run, interval=interval).run()


@app.command("repos")
def list_repos() -> None:
    """List configured repositories."""
    settings = get_settings()
    if not settings.repos:
        rprint("No repos configured. Run: vibesprint add-repo")
        return

    table = Table(title="Repositories")
    table.add_column("Name", style="cyan")
    table.add_column("Provider")
    table.add_column("Repo")
    table.add_column("Path", style="dim")
    table.add_column("Project / Team")
    table.add_column("Backlog / Ready / In Progress / In Review")

    for repo in settings.repos:
        if repo.provider == "linear":
            board = repo.linear_team_name or repo.linear_team_id or "—"
            columns = [
                repo.linear_backlog_state_id,
                repo.linear_ready_state_id,
                repo.linear_in_progress_state_id,
                repo.linear_in_review_state_id,
            ]
        else:
            board = f"#{repo.project_number}" if repo.project_number else (repo.project_id or "—")
            columns = [
                repo.backlog_column_name or repo.backlog_option_id,
                repo.ready_column_name or repo.ready_option_id,
                repo.in_progress_column_name or repo.in_progress_option_id,
                repo.in_review_column_name or repo.in_review_option_id,
            ]
        flow = " / ".join(c or "—" for c in columns)
        table.add_row(repo.name, repo.provider, repo.full_name, str(repo.path), board, flow)

    rprint(table)


@app.command("add-repo")
def add_repo_cmd(
    name: Annotated[str, typer.Argument(help="Unique name for this repo")],
    owner: Annotated[str, typer.Option("--owner", help="GitHub owner")],
    repo: Annotated[str, typer.Option("--repo", help="GitHub repository")],
    path: Annotated[Path, typer.Option("--path", help="Local clone")],
    linear: Annotated[bool, typer.Option("--linear", help="Track issues in Linear instead of GitHub")] = False,
    project_id: Annotated[str | None, typer.Option(help="GitHub Project (v2) node id")] = None,
    project_number: Annotated[int | None, typer.Option(help="GitHub Project number")] = None,
    column_field_id: Annotated[str | None, typer.Option(help="Project Status field id")] = None,
    ready: Annotated[str | None, typer.Option(help="Ready option id / Linear state id")] = None,
    backlog: Annotated[str | None, typer.Option(help="Backlog option id / Linear state id")] = None,
    in_progress: Annotated[str | None, typer.Option(help="In Progress option id / Linear state id")] = None,
    in_review: Annotated[str | None, typer.Option(help="In Review option id / Linear state id")] = None,
    backlog_name: Annotated[str | None, typer.Option(help="Backlog column display name (GitHub)")] = None,
    ready_name: Annotated[str | None, typer.Option(help="Ready column display name (GitHub)")] = None,
    in_progress_name: Annotated[str | None, typer.Option(help="In Progress column display name (GitHub)")] = None,
    in_review_name: Annotated[str | None, typer.Option(help="In Review column display name (GitHub)")] = None,
    team_id: Annotated[str | None, typer.Option(help="Linear team id")] = None,
    team_name: Annotated[str | None, typer.Option(help="Linear team name")] = None,
    repo_label: Annotated[str | None, typer.Option(help="Linear label that selects this repo's issues")] = None,
) -> None:
    """Register a repository (replaces an existing entry with the same name)."""
    resolved = path.expanduser().resolve()
    if not (resolved / ".git").exists():
        rprint(f"[yellow]Warning:[/yellow] {resolved} does not look like a git clone")

    if linear:
        config = RepoConfig(
            name=name,
            owner=owner,
            repo=repo,
            path=resolved,
            provider="linear",
            linear_team_id=team_id,
            linear_team_name=team_name,
            linear_repo_label=repo_label,
            linear_ready_state_id=ready,
            linear_backlog_state_id=backlog,
            linear_in_progress_state_id=in_progress,
            linear_in_review_state_id=in_review,
        )
    else:
        config = RepoConfig(
            name=name,
            owner=owner,
            repo=repo,
            path=resolved,
            project_id=project_id,
            project_number=project_number,
            column_field_id=column_field_id,
            ready_option_id=ready,
            ready_column_name=ready_name,
            backlog_option_id=backlog,
            backlog_column_name=backlog_name,
            in_progress_option_id=in_progress,
            in_progress_column_name=in_progress_name,
            in_review_option_id=in_review,
            in_review_column_name=in_review_name,
        )

    replaced = add_repo(config)
    action = "Updated" if replaced else "Added"
    rprint(f"[green]✓[/green] {action} repo '{name}' ({config.provider}) in {CONFIG_PATH}")


@app.command("remove-repo")
def remove_repo_cmd(name: Annotated[str, typer.Argument(help="Repo name")]) -> None:
    """Remove a repository from the config."""
    if not remove_repo(name):
        rprint(f"[red]Repo '{name}' not found in {CONFIG_PATH}[/red]")
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] Removed repo '{name}'")


@app.command("set-executor")
def set_executor(
    name: Annotated[str, typer.Argument(help="kiro or codex")],
    model: Annotated[str | None, typer.Option("--model", "-m", help="Default model for this executor")] = None,
) -> None:
    """Set the default executor (and optionally its model)."""
    _check_executor(name)
    save_settings_value("executor", name)
    if model:
        save_settings_value("codex_model" if name == "codex" else "model", model)
    suffix = f" (model: {model})" if model else ""
    rprint(f"[green]✓[/green] Default executor set to {name}{suffix}")


@app.command("config-show")
def config_show() -> None:
    """Show resolved configuration (masks credentials)."""
    settings = get_settings()

    def mask(val: str | None, prefix: str = "") -> str:
        if val is None:
            return _NOT_SET
        if len(val) <= 5:
            return "***"
        return f"{prefix}...{val[-5:]}"

    table = Table(title="VibeSprint Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("config_path", str(CONFIG_PATH))
    table.add_row("executor", settings.executor)
    table.add_row("model", settings.model)
    table.add_row("codex_model", settings.codex_model or _NOT_SET)
    table.add_row("interval", f"{settings.interval}s")
    table.add_row("github_auth", settings.github_auth)
    table.add_row(
        "github_token",
        mask(settings.github_token.get_secret_value() if settings.github_token else None, prefix="ghp_"),
    )
    table.add_row(
        "linear_api_key",
        mask(settings.linear_api_key.get_secret_value() if settings.linear_api_key else None, prefix="lin_api_"),
    )
    table.add_row("repos", ", ".join(r.name for r in settings.repos) or _NOT_SET)

    rprint(table)


@app.command("logs")
def logs_cmd(
    repo: Annotated[str, typer.Argument(help="Repo name")],
    number: Annotated[int, typer.Argument(help="Issue number (numeric part for Linear)")],
) -> None:
    """Print the log of the last run for an issue."""
    content = read_issue_log(repo, number)
    if content is None:
        rprint(f"No log found for {repo} #{number}")
        raise typer.Exit(1)
    typer.echo(content)


@app.command("version")
def version() -> None:
    typer.echo(__version__)
