"""Prompt templates handed to the generation backend on stdin."""

from vibesprint.models import Comment, Issue

MAX_COMMENTS = 10

_PR_DESCRIPTION_INSTRUCTIONS = """\
## PR Description
After completing the implementation, output a PR description in the following format:

---PR_DESCRIPTION_START---
<Your PR description here explaining what was done and why>
---PR_DESCRIPTION_END---"""

_SIMPLE_TASK = """\
## Task
Implement the changes described in this issue. Create or modify the necessary files.
When done, ensure all changes are saved."""

_CURATED_TASK = """\
## Task
Work through this issue in three phases.

### Phase 1: Analyze
- Read the issue and comments above and restate the goal in one or two sentences.
- Explore the codebase to find the files, functions and tests involved.
- Write down a short step-by-step plan before changing anything.

### Phase 2: Implement
- Follow your plan. Keep changes focused on this issue and match the existing code style.
- Add or update tests that cover the new behavior.

### Phase 3: Verify
- Run the project's tests and linters and fix any failures you introduced.
- Re-read the issue and confirm every requirement is addressed.
- Ensure all changes are saved. Do not commit, push or open a pull request."""

_PLAN_TASK = """\
## Task
Break down this feature request into PR-sized implementation tasks. Each task should be small enough to implement in a single PR.

For each task, write a proper issue/ticket that includes:
- Clear description of what needs to be implemented
- Acceptance criteria (what defines "done")
- Testing guidance (how to verify it works)

Output your plan in the following format:

---PLAN_START---
## Task 1: <title>

### Description
<What needs to be implemented and why>

### Acceptance Criteria
- [ ] <Criterion 1>
- [ ] <Criterion 2>

### Testing
<How to test/verify this works>

## Task 2: <title>

### Description
<What needs to be implemented and why>

### Acceptance Criteria
- [ ] <Criterion 1>

### Testing
<How to test/verify this works>
---PLAN_END---

Keep tasks focused and actionable. Include 2-6 tasks depending on complexity."""


def render_comments(comments: list[Comment]) -> str:
    return "\n\n".join(f"@{c.author}: {c.body}" for c in comments[-MAX_COMMENTS:])


def _issue_header(issue: Issue, comments: list[Comment], *, verb: str, tracker: str) -> str:
    sections = [
        f"You are {verb} {tracker} issue {issue.ref}: {issue.title}",
        f"## Issue Description\n{issue.body or 'No description provided.'}",
    ]
    if comments:
        sections.append(f"## Recent Comments\n{render_comments(comments)}")
    return "\n\n".join(sections)


def build_prompt(issue: Issue, comments: list[Comment], *, curated: bool = True, tracker: str = "GitHub") -> str:
    """Implementation prompt: the curated three-phase template unless curated is False."""
    task = _CURATED_TASK if curated else _SIMPLE_TASK
    header = _issue_header(issue, comments, verb="working on", tracker=tracker)
    return f"{header}\n\n{task}\n\n{_PR_DESCRIPTION_INSTRUCTIONS}"


def build_plan_prompt(issue: Issue, comments: list[Comment], *, tracker: str = "GitHub") -> str:
    header = _issue_header(issue, comments, verb="analyzing", tracker=tracker)
    return f"{header}\n\n{_PLAN_TASK}"
