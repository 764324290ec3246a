"""Issue processing and the poll loop.

Exactly one issue is in flight at any time: ``Poller`` picks the first eligible
issue across all repos, ``IssueProcessor`` carries it from dispatch to a PR (or
a plan with sub-issues), and only then is the trackers' state polled again.
"""

import logging
import signal
import threading
import uuid

import httpx

from vibesprint.executors import Executor, create_executor
from vibesprint.git import create_branch_and_pr
from vibesprint.intake import order_pool
from vibesprint.issue_logs import append_issue_log, start_issue_log
from vibesprint.models import ExecutionResult, Issue
from vibesprint.parsing import parse_plan_output, parse_pr_description
from vibesprint.prompts import build_plan_prompt, build_prompt
from vibesprint.providers.base import IssueProvider, ProviderError
from vibesprint.settings import RepoConfig, VibeSprintSettings
from vibesprint.status import IssueStatus, is_no_curate, is_plan_issue

logger = logging.getLogger(__name__)

NO_TASKS_MESSAGE = "No tasks found in plan output"


def new_run_id() -> str:
    return uuid.uuid4().hex[:8]


def select_executor(issue: Issue, cli_executor: str | None, settings: VibeSprintSettings) -> str:
    """Issue label, then --executor, then config, then kiro."""
    return issue.executor or cli_executor or settings.executor or "kiro"


def select_model(executor_name: str, issue: Issue, settings: VibeSprintSettings) -> str | None:
    if executor_name == "codex":
        return settings.codex_model
    return issue.model or settings.model


def issue_tags(issue: Issue) -> list[str]:
    tags = []
    if is_plan_issue(issue.labels):
        tags.append("plan")
    tags.append("no-curate" if is_no_curate(issue.labels) else "curate")
    if issue.executor:
        tags.append(f"executor:{issue.executor}")
    return tags


class IssueProcessor:
    def __init__(self, settings: VibeSprintSettings) -> None:
        self.settings = settings

    def process(self, issue: Issue, repo: RepoConfig, provider: IssueProvider, executor: Executor) -> bool:
        """Run one issue end to end. Returns True if it reached a success state."""
        run_id = new_run_id()
        is_plan = is_plan_issue(issue.labels)
        status = IssueStatus(provider, issue)

        start_issue_log(repo.name, issue.number, issue.title)
        status.start()
        logger.info(
            "Processing %s: %s [%s] (run-id: %s, %s, executor: %s)",
            issue.ref,
            issue.title,
            repo.name,
            run_id,
            ", ".join((["retry"] if status.is_retry else []) + issue_tags(issue)),
            executor.name,
        )

        try:
            if is_plan:
                return self._run_plan(issue, repo, provider, executor, status, run_id)
            return self._run_implementation(issue, repo, provider, executor, status, run_id)
        except Exception as exc:
            logger.exception("%s: run %s aborted", issue.ref, run_id)
            status.fail(run_id, 1, "", str(exc))
            return False

    def _tracker(self, repo: RepoConfig) -> str:
        return "Linear" if repo.provider == "linear" else "GitHub"

    def _execute(self, issue: Issue, repo: RepoConfig, executor: Executor, prompt: str) -> ExecutionResult:
        model = select_model(executor.name, issue, self.settings)
        result = executor.execute(prompt, model=model, cwd=repo.path)
        append_issue_log(repo.name, issue.number, f"--- stdout ---\n{result.stdout}\n--- stderr ---\n{result.stderr}\n")
        if result.credits is not None:
            logger.info("Credits: %s • Time: %ss", result.credits, result.time_seconds)
        if result.tokens_used is not None:
            logger.info("Tokens: %s", result.tokens_used)
        return result

    def _run_implementation(
        self,
        issue: Issue,
        repo: RepoConfig,
        provider: IssueProvider,
        executor: Executor,
        status: IssueStatus,
        run_id: str,
    ) -> bool:
        comments = provider.get_comments(issue)
        curated = not is_no_curate(issue.labels)
        prompt = build_prompt(issue, comments, curated=curated, tracker=self._tracker(repo))
        logger.info("Built context%s, invoking %s", " (curated)" if curated else "", executor.name)

        result = self._execute(issue, repo, executor, prompt)
        if not result.success:
            logger.error("%s failed with exit code %s", executor.name, result.exit_code)
            status.fail(run_id, result.exit_code, result.stdout, result.stderr)
            return False

        pr_url = create_branch_and_pr(issue, repo, parse_pr_description(result.stdout), result)
        logger.info("PR ready: %s", pr_url)
        try:
            provider.link_pull_request(issue, pr_url)
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("Failed to link PR on %s: %s", issue.ref, exc)

        status.succeed(is_plan=False)
        logger.info("%s moved to In Review", issue.ref)
        return True

    def _run_plan(
        self,
        issue: Issue,
        repo: RepoConfig,
        provider: IssueProvider,
        executor: Executor,
        status: IssueStatus,
        run_id: str,
    ) -> bool:
        comments = provider.get_comments(issue)
        prompt = build_plan_prompt(issue, comments, tracker=self._tracker(repo))
        logger.info("Built plan context, invoking %s", executor.name)

        result = self._execute(issue, repo, executor, prompt)
        if not result.success:
            logger.error("%s failed with exit code %s", executor.name, result.exit_code)
            status.fail(run_id, result.exit_code, result.stdout, result.stderr)
            return False

        tasks = parse_plan_output(result.stdout)
        if not tasks:
            logger.error("%s: %s", issue.ref, NO_TASKS_MESSAGE)
            status.fail(run_id, 1, "", NO_TASKS_MESSAGE)
            return False

        logger.info("Plan generated with %d task(s)", len(tasks))
        status.post_plan(tasks)
        for task in tasks:
            try:
                sub = provider.create_sub_issue(issue, task.title, task.body)
            except (httpx.HTTPError, ProviderError) as exc:
                logger.warning("Failed to create sub-issue '%s': %s", task.title, exc)
                continue
            logger.info("Created sub-issue #%s: %s", sub.number, task.title)

        status.succeed(is_plan=True)
        logger.info("%s moved to In Progress", issue.ref)
        return True


class Poller:
    """Single-threaded poll loop over every configured repo."""

    def __init__(
        self,
        settings: VibeSprintSettings,
        providers: dict[str, IssueProvider],
        *,
        executor: str | None = None,
        dry_run: bool = False,
        interval: int | None = None,
    ) -> None:
        self.settings = settings
        self.providers = providers  # keyed by repo name
        self.cli_executor = executor
        self.dry_run = dry_run
        self.interval = interval or settings.interval
        self.processor = IssueProcessor(settings)
        self._stop = threading.Event()

    def ensure_labels(self) -> None:
        for name, provider in self.providers.items():
            try:
                provider.ensure_labels_exist()
            except (httpx.HTTPError, ProviderError) as exc:
                logger.warning("[%s] Could not verify labels: %s", name, exc)

    def collect(self) -> list[Issue]:
        """Eligible issues from every repo, in dispatch order."""
        pool: list[Issue] = []
        for name, provider in self.providers.items():
            try:
                pool.extend(provider.get_issues())
            except (httpx.HTTPError, ProviderError) as exc:
                logger.error("[%s] Failed to fetch issues: %s", name, exc)
        return order_pool(pool)

    def poll_once(self) -> bool:
        """Process at most one issue. Returns True if one was dispatched."""
        issues = self.collect()
        if not issues:
            logger.info("No issues to process")
            return False

        plans = sum(1 for i in issues if is_plan_issue(i.labels))
        summary = []
        if len(issues) > plans:
            summary.append(f"{len(issues) - plans} implement")
        if plans:
            summary.append(f"{plans} plan")
        logger.info("Found %d issue(s) to process [%s]", len(issues), ", ".join(summary))

        if self.dry_run:
            for i in issues:
                logger.info("  - %s: %s [%s] [%s]", i.ref, i.title, i.repo_name, ", ".join(issue_tags(i)))
            return False

        issue = issues[0]
        repo = self.settings.get_repo(issue.repo_name)
        if repo is None:
            logger.error("Issue %s belongs to unknown repo %s", issue.ref, issue.repo_name)
            return False

        executor = create_executor(select_executor(issue, self.cli_executor, self.settings))
        errors = executor.validate_setup()
        if errors:
            logger.error("%s setup issues: %s", executor.name, "; ".join(errors))
            return False

        self.processor.process(issue, repo, self.providers[issue.repo_name], executor)
        return True

    def poll(self) -> None:
        """Drain eligible work without waiting between issues."""
        while self.poll_once() and not self._stop.is_set():
            pass

    def stop(self, *_: object) -> None:
        logger.info("Shutting down...")
        self._stop.set()

    def run(self) -> None:
        repos = ", ".join(self.providers)
        logger.info(
            "VibeSprint started (default executor: %s, interval: %ss, dry-run: %s)",
            self.cli_executor or self.settings.executor,
            self.interval,
            self.dry_run,
        )
        logger.info("Monitoring %d repo(s): %s", len(self.providers), repos)
        self.ensure_labels()

        if self.dry_run:
            self.poll_once()
            return

        signal.signal(signal.SIGINT, self.stop)
        signal.signal(signal.SIGTERM, self.stop)
        self.poll()
        while not self._stop.wait(self.interval):
            self.poll()
