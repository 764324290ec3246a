"""Per-issue run logs under ~/.vibesprint/logs/<repo>-<number>.log.

Writing a run log is best-effort: an unwritable log directory is reported as a
warning and never interrupts the run itself.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

LOGS_DIR = Path.home() / ".vibesprint" / "logs"


def log_path(repo_name: str, number: int) -> Path:
    return LOGS_DIR / f"{repo_name}-{number}.log"


def start_issue_log(repo_name: str, number: int, title: str) -> Path | None:
    """Truncate the log for a new run and write its header. Returns None if it could not be written."""
    path = log_path(repo_name, number)
    started = datetime.now(timezone.utc).isoformat()
    try:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        path.write_text(f"=== Issue #{number}: {title} ===\n{started}\n\n")
    except OSError as exc:
        logger.warning("Could not write run log %s: %s", path, exc)
        return None
    return path


def append_issue_log(repo_name: str, number: int, text: str) -> None:
    path = log_path(repo_name, number)
    if not path.exists():
        return
    try:
        with path.open("a") as fh:
            fh.write(text)
    except OSError as exc:
        logger.warning("Could not append to run log %s: %s", path, exc)


def read_issue_log(repo_name: str, number: int) -> str | None:
    path = log_path(repo_name, number)
    return path.read_text() if path.exists() else None
