"""Scanners for the delimiter-framed blocks a generation backend prints.

Markers may be wrapped in any number of dashes (``---X---``, ``------X------``
or a bare ``X``). ANSI escape sequences are removed before matching.
"""

import re

from vibesprint.models import PlanTask

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[a-zA-Z]")

_PR_DESCRIPTION_RE = re.compile(r"-*PR_DESCRIPTION_START-*\n?(.*?)-*PR_DESCRIPTION_END-*", re.DOTALL)
_PLAN_RE = re.compile(r"-*PLAN_START-*\n?(.*?)-*PLAN_END-*", re.DOTALL)
_TASK_RE = re.compile(r"## Task \d+:[ \t]*([^\n]+)\n?(.*?)(?=## Task \d+:|\Z)", re.DOTALL)


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def parse_pr_description(output: str) -> str | None:
    """Return the trimmed text of the first PR_DESCRIPTION block, or None."""
    match = _PR_DESCRIPTION_RE.search(strip_ansi(output))
    if not match:
        return None
    return match.group(1).strip()


def parse_plan_output(output: str) -> list[PlanTask]:
    """Return the ``## Task <n>: <title>`` sections of the first PLAN block, in order."""
    match = _PLAN_RE.search(strip_ansi(output))
    if not match:
        return []
    return [
        PlanTask(title=title.strip(), body=body.strip())
        for title, body in _TASK_RE.findall(match.group(1))
    ]


def render_plan(tasks: list[PlanTask]) -> str:
    return "\n\n".join(f"## Task {i}: {t.title}\n{t.body}" for i, t in enumerate(tasks, start=1))
