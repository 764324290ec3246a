"""Turn a finished run into a branch, a commit and a pull request (git + gh CLI)."""

import json
import logging
import re
import subprocess
from pathlib import Path

from vibesprint.models import ExecutionResult, Issue
from vibesprint.settings import RepoConfig

logger = logging.getLogger(__name__)

_BRANCH_PREFIXES = [
    ({"bug", "fix"}, "fix"),
    ({"docs", "documentation"}, "docs"),
    ({"chore", "maintenance"}, "chore"),
    ({"refactor"}, "refactor"),
    ({"test", "testing"}, "test"),
]

_PR_URL_RE = re.compile(r"https://github\.com/\S+")

_IDENTITY_HINT = (
    "Ensure git user.name and user.email are configured:\n"
    '  git config --global user.name "Your Name"\n'
    '  git config --global user.email "your@email.com"'
)


class GitError(RuntimeError):
    pass


def slugify(text: str, max_len: int = 30) -> str:
    """Lower-case, collapse non-alphanumerics to "-", truncate, drop a trailing dash."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower())[:max_len].rstrip("-")
    return slug or "issue"


def branch_prefix(labels: list[str]) -> str:
    """Conventional-commit prefix derived from the issue labels."""
    label_set = {label.lower() for label in labels}
    for names, prefix in _BRANCH_PREFIXES:
        if label_set & names:
            return prefix
    return "feat"


def branch_name(issue: Issue) -> str:
    """fix/ENG-12-crash-on-login, feat/42-add-login."""
    ref = issue.identifier or str(issue.number)
    return f"{branch_prefix(issue.labels)}/{ref}-{slugify(issue.title)}"


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], capture_output=True, text=True, cwd=cwd)
    if result.returncode != 0:
        raise GitError(result.stderr.strip() or f"git {args[0]} failed")
    return result.stdout.strip()


def _gh(args: list[str], repo: RepoConfig) -> subprocess.CompletedProcess:
    return subprocess.run(["gh", *args, "-R", repo.full_name], capture_output=True, text=True, cwd=repo.path)


def _has_changes(cwd: Path) -> bool:
    return bool(_git(cwd, "status", "--porcelain"))


def default_branch(cwd: Path) -> str:
    """Branch that origin/HEAD points at, falling back to main."""
    try:
        ref = _git(cwd, "symbolic-ref", "refs/remotes/origin/HEAD")
    except GitError:
        return "main"
    return ref.removeprefix("refs/remotes/origin/")


def find_existing_pr(branch: str, repo: RepoConfig) -> int | None:
    """Number of the open PR whose head is branch, if any."""
    result = _gh(["pr", "list", "--head", branch, "--state", "open", "--json", "number,headRefName"], repo)
    if result.returncode != 0:
        return None
    try:
        prs = json.loads(result.stdout or "[]")
    except json.JSONDecodeError:
        logger.debug("Unparseable gh pr list output: %r", result.stdout)
        return None
    return prs[0]["number"] if prs else None


def _pr_url(repo: RepoConfig, number: int) -> str:
    return f"https://github.com/{repo.full_name}/pull/{number}"


def build_pr_body(issue: Issue, repo: RepoConfig, description: str | None, result: ExecutionResult) -> str:
    if description:
        body = description
    else:
        if repo.provider == "linear":
            reference = f"Refs Linear: [{issue.identifier}]({issue.url})"
        else:
            reference = f"Fixes #{issue.number}"
        body = f"## Summary\n\n{issue.body or 'Auto-generated from issue.'}\n\n{reference}"

    if result.credits is not None:
        body += f"\n\n---\n🤖 *Generated by VibeSprint* • Credits: {result.credits} • Time: {result.time_seconds}s"
    elif result.tokens_used is not None:
        body += f"\n\n---\n🤖 *Generated by VibeSprint* • Tokens: {result.tokens_used:,}"
    return body


def _sync_default_branch(cwd: Path, base: str) -> None:
    stashed = _has_changes(cwd)
    if stashed:
        _git(cwd, "stash", "--include-untracked")
    _git(cwd, "pull", "--rebase", "origin", base)
    if stashed:
        try:
            _git(cwd, "stash", "pop")
        except GitError:
            logger.debug("Stash pop conflicted, assuming changes are already applied")


def _checkout_branch(issue: Issue, repo: RepoConfig, branch: str, base: str) -> None:
    cwd = repo.path
    try:
        _git(cwd, "rev-parse", "--verify", branch)
    except GitError:
        pass  # no stale branch
    else:
        _git(cwd, "checkout", base)
        try:
            _git(cwd, "branch", "-D", branch)
        except GitError as exc:
            logger.debug("Could not delete stale branch %s: %s", branch, exc)

    if repo.provider == "github":
        # Links the branch to the issue in the GitHub UI.
        develop = _gh(["issue", "develop", str(issue.number), "--name", branch, "--checkout"], repo)
        if develop.returncode == 0:
            return
    try:
        _git(cwd, "checkout", "-b", branch)
    except GitError:
        _git(cwd, "checkout", branch)


def _push(cwd: Path, branch: str) -> None:
    try:
        _git(cwd, "push", "-u", "origin", branch, "--force-with-lease")
    except GitError:
        logger.debug("Lease check failed for %s, pushing with --force", branch)
        _git(cwd, "push", "-u", "origin", branch, "--force")


def create_branch_and_pr(
    issue: Issue,
    repo: RepoConfig,
    description: str | None,
    result: ExecutionResult,
) -> str:
    """Commit the working tree on a fresh branch and open (or update) its PR. Returns the PR URL."""
    cwd = repo.path
    prefix = branch_prefix(issue.labels)
    branch = branch_name(issue)
    base = default_branch(cwd)

    _sync_default_branch(cwd, base)
    try:
        _checkout_branch(issue, repo, branch, base)
        _git(cwd, "add", "-A")

        if not _has_changes(cwd):
            existing = find_existing_pr(branch, repo)
            if existing:
                return _pr_url(repo, existing)
            raise GitError(
                "No changes were made. Check if the issue was already resolved or needs clearer instructions."
            )

        reference = f"Refs {issue.identifier}" if repo.provider == "linear" else f"Refs #{issue.number}"
        try:
            _git(cwd, "commit", "-m", f"{prefix}: {issue.title}\n\n{reference}")
        except GitError as exc:
            raise GitError(f"Failed to commit changes: {exc}\n\n{_IDENTITY_HINT}") from exc

        _push(cwd, branch)

        body = build_pr_body(issue, repo, description, result)
        existing = find_existing_pr(branch, repo)
        if existing:
            edit = _gh(["pr", "edit", str(existing), "--body", body], repo)
            if edit.returncode != 0:
                logger.warning("Failed to update PR #%s body: %s", existing, edit.stderr.strip())
            return _pr_url(repo, existing)

        created = _gh(["pr", "create", "--title", issue.title, "--body", body, "--head", branch, "--base", base], repo)
        if created.returncode != 0:
            raise GitError(f"Failed to create PR: {created.stderr.strip()}")
        match = _PR_URL_RE.search(created.stdout)
        return match.group(0) if match else f"https://github.com/{repo.full_name}/pulls"
    finally:
        try:
            _git(cwd, "checkout", base)
        except GitError as exc:
            logger.warning("Could not return to %s: %s", base, exc)
