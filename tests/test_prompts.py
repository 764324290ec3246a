"""Tests for vibesprint.prompts."""

from vibesprint.models import Comment, Issue
from vibesprint.prompts import build_plan_prompt, build_prompt, render_comments


def _comments(n: int) -> list[Comment]:
    return [Comment(author=f"user{i}", body=f"comment {i}") for i in range(n)]


class TestBuildPrompt:
    def test_curated_by_default(self, github_issue: Issue) -> None:
        prompt = build_prompt(github_issue, [])
        assert prompt.startswith("You are working on GitHub issue #42: Add login")
        assert "Users need to sign in." in prompt
        assert "Phase 1: Analyze" in prompt
        assert "Phase 3: Verify" in prompt
        assert "Recent Comments" not in prompt
        assert prompt.rstrip().endswith("---PR_DESCRIPTION_END---")

    def test_simple_template(self, github_issue: Issue) -> None:
        prompt = build_prompt(github_issue, [], curated=False)
        assert "Phase 1" not in prompt
        assert "Implement the changes described in this issue." in prompt
        assert "---PR_DESCRIPTION_START---" in prompt

    def test_linear_issue_uses_identifier(self, linear_issue: Issue) -> None:
        prompt = build_prompt(linear_issue, [], tracker="Linear")
        assert prompt.startswith("You are working on Linear issue ENG-7: Fix crash on logout")

    def test_missing_body(self, github_issue: Issue) -> None:
        issue = github_issue.model_copy(update={"body": ""})
        assert "No description provided." in build_prompt(issue, [])

    def test_comments_rendered(self, github_issue: Issue) -> None:
        prompt = build_prompt(github_issue, [Comment(author="alice", body="Use OAuth")])
        assert "## Recent Comments\n@alice: Use OAuth" in prompt


def test_render_comments_keeps_last_ten() -> None:
    rendered = render_comments(_comments(12))
    assert "@user0:" not in rendered
    assert "@user1:" not in rendered
    assert rendered.startswith("@user2: comment 2")
    assert rendered.endswith("@user11: comment 11")


def test_plan_prompt(github_issue: Issue) -> None:
    prompt = build_plan_prompt(github_issue, _comments(1))
    assert prompt.startswith("You are analyzing GitHub issue #42")
    assert "---PLAN_START---" in prompt
    assert "---PLAN_END---" in prompt
    assert "## Task 1: <title>" in prompt
    assert "2-6 tasks" in prompt
    assert "PR_DESCRIPTION" not in prompt
