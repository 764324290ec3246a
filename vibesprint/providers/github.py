"""GitHub provider: Projects v2 (GraphQL) for columns, REST v3 for issues, labels and comments."""

import logging
import subprocess
from urllib.parse import quote

import httpx

from vibesprint.executors import OVERRIDE_LABELS
from vibesprint.intake import extract_override, is_eligible
from vibesprint.models import Column, Comment, Issue, SubIssue
from vibesprint.providers.base import IssueProvider, ProviderError, sub_issue_body
from vibesprint.settings import RepoConfig, VibeSprintSettings

logger = logging.getLogger(__name__)

BASE_URL = "https://api.github.com"
GRAPHQL_URL = f"{BASE_URL}/graphql"

REQUIRED_LABELS = [
    "running",
    "retry",
    "failed",
    "pr-opened",
    "plan-posted",
    "plan",
    "no-curate",
    *OVERRIDE_LABELS,
]

_PROJECT_ITEMS = """
query ProjectItems($projectId: ID!, $after: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: 100, after: $after) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          fieldValueByName(name: "Status") {
            ... on ProjectV2ItemFieldSingleSelectValue { optionId }
          }
          content {
            __typename
            ... on Issue {
              id number title body url state
              repository { nameWithOwner }
              labels(first: 100) { nodes { name } }
            }
          }
        }
      }
    }
  }
}
"""

_ISSUE_COMMENTS = """
query IssueComments($issueId: ID!, $last: Int!) {
  node(id: $issueId) {
    ... on Issue {
      comments(last: $last) { nodes { body author { login } } }
    }
  }
}
"""

_SET_STATUS = """
mutation SetStatus($projectId: ID!, $itemId: ID!, $fieldId: ID!, $optionId: String!) {
  updateProjectV2ItemFieldValue(input: {
    projectId: $projectId
    itemId: $itemId
    fieldId: $fieldId
    value: { singleSelectOptionId: $optionId }
  }) { projectV2Item { id } }
}
"""

_ADD_TO_PROJECT = """
mutation AddToProject($projectId: ID!, $contentId: ID!) {
  addProjectV2ItemById(input: { projectId: $projectId, contentId: $contentId }) {
    item { id }
  }
}
"""


class GitHubProvider(IssueProvider):
    label_namespace = ""

    def __init__(self, repo: RepoConfig, settings: VibeSprintSettings) -> None:
        self._repo = repo
        self._token = self._resolve_token(settings)
        self._headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _resolve_token(self, settings: VibeSprintSettings) -> str:
        if settings.github_auth == "gh-cli":
            result = subprocess.run(
                ["gh", "auth", "token"],
                capture_output=True,
                text=True,
            )
            if result.returncode != 0:
                raise ProviderError("gh auth token failed. Run: gh auth login")
            return result.stdout.strip()
        if settings.github_token:
            return settings.github_token.get_secret_value()
        raise ProviderError("No GitHub credentials. Set GITHUB_TOKEN or github_auth = \"gh-cli\"")

    # -- transport ---------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = httpx.request(
            method,
            f"{BASE_URL}{path}",
            headers=self._headers,
            timeout=30,
            **kwargs,
        )
        if response.status_code == 401:
            raise ProviderError("GitHub API returned 401. Check GITHUB_TOKEN or run: gh auth login")
        response.raise_for_status()
        return response

    def _get(self, path: str, params: dict | None = None) -> dict | list:
        return self._request("GET", path, params=params or {}).json()

    def _post(self, path: str, body: dict) -> dict:
        return self._request("POST", path, json=body).json()

    def _graphql(self, query: str, variables: dict) -> dict:
        response = httpx.post(
            GRAPHQL_URL,
            headers=self._headers,
            json={"query": query, "variables": variables},
            timeout=30,
        )
        if response.status_code == 401:
            raise ProviderError("GitHub API returned 401. Check GITHUB_TOKEN or run: gh auth login")
        response.raise_for_status()
        data = response.json()
        if data.get("errors"):
            raise ProviderError(f"GitHub GraphQL error: {data['errors']}")
        return data["data"]

    @property
    def _issues_path(self) -> str:
        return f"/repos/{self._repo.owner}/{self._repo.repo}/issues"

    # -- intake ------------------------------------------------------------

    def _issue_from_item(self, item: dict) -> Issue | None:
        content = item.get("content")
        # Rule 1: project rows can also be pull requests or draft issues.
        if not content or content.get("__typename") != "Issue":
            return None
        if content.get("state") != "OPEN":
            return None
        repository = (content.get("repository") or {}).get("nameWithOwner", "")
        if repository.lower() != self._repo.full_name.lower():
            return None

        labels = [label["name"] for label in content.get("labels", {}).get("nodes", [])]
        column = (item.get("fieldValueByName") or {}).get("optionId")
        if not is_eligible(labels, column, ready=self._repo.ready_option_id, namespace=self.label_namespace):
            return None

        return Issue(
            id=content["id"],
            number=content["number"],
            title=content["title"],
            body=content.get("body") or "",
            url=content["url"],
            project_item_id=item["id"],
            labels=labels,
            model=extract_override(labels, "model"),
            executor=extract_override(labels, "executor"),
            repo_name=self._repo.name,
        )

    def get_issues(self) -> list[Issue]:
        if not self._repo.project_id or not self._repo.ready_option_id:
            raise ProviderError(f"[{self._repo.name}] GitHub Project or Ready column not configured")

        issues: list[Issue] = []
        after: str | None = None
        while True:
            data = self._graphql(_PROJECT_ITEMS, {"projectId": self._repo.project_id, "after": after})
            items = data["node"]["items"]
            for item in items["nodes"]:
                issue = self._issue_from_item(item)
                if issue is not None:
                    issues.append(issue)
            if not items["pageInfo"]["hasNextPage"]:
                break
            after = items["pageInfo"]["endCursor"]
        return sorted(issues, key=lambda i: i.number)

    def get_comments(self, issue: Issue, limit: int = 10) -> list[Comment]:
        data = self._graphql(_ISSUE_COMMENTS, {"issueId": issue.id, "last": limit})
        nodes = (data.get("node") or {}).get("comments", {}).get("nodes", [])
        return [Comment(author=(c.get("author") or {}).get("login", "unknown"), body=c["body"]) for c in nodes]

    # -- labels and comments -----------------------------------------------

    def add_label(self, issue: Issue, label: str) -> None:
        try:
            self._post(f"{self._issues_path}/{issue.number}/labels", {"labels": [label]})
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("Failed to add label '%s' to #%s: %s", label, issue.number, _describe(exc))

    def remove_label(self, issue: Issue, label: str) -> None:
        try:
            self._request("DELETE", f"{self._issues_path}/{issue.number}/labels/{quote(label, safe='')}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return  # label was not on the issue
            logger.warning("Failed to remove label '%s' from #%s: %s", label, issue.number, _describe(exc))
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("Failed to remove label '%s' from #%s: %s", label, issue.number, _describe(exc))

    def post_comment(self, issue: Issue, body: str) -> None:
        try:
            self._post(f"{self._issues_path}/{issue.number}/comments", {"body": body})
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("Failed to comment on #%s: %s", issue.number, _describe(exc))

    def ensure_labels_exist(self) -> None:
        existing = self._get(f"/repos/{self._repo.owner}/{self._repo.repo}/labels", params={"per_page": "100"})
        names = {label["name"] for label in existing}  # type: ignore[union-attr]
        for label in REQUIRED_LABELS:
            if label in names:
                continue
            try:
                self._post(f"/repos/{self._repo.owner}/{self._repo.repo}/labels", {"name": label, "color": "ededed"})
                logger.info("Created label: %s", label)
            except httpx.HTTPStatusError as exc:
                # 422: created concurrently by someone else
                logger.debug("Label '%s' not created: %s", label, _describe(exc))

    # -- project columns ---------------------------------------------------

    def _option_id(self, column: Column) -> str | None:
        return {
            "backlog": self._repo.backlog_option_id,
            "in_progress": self._repo.in_progress_option_id,
            "in_review": self._repo.in_review_option_id,
        }[column]

    def _set_status(self, item_id: str, option_id: str) -> None:
        self._graphql(
            _SET_STATUS,
            {
                "projectId": self._repo.project_id,
                "itemId": item_id,
                "fieldId": self._repo.column_field_id,
                "optionId": option_id,
            },
        )

    def move_to_column(self, issue: Issue, column: Column) -> None:
        option_id = self._option_id(column)
        if not option_id or not self._repo.column_field_id:
            return
        self._set_status(issue.project_item_id, option_id)

    def create_sub_issue(self, parent: Issue, title: str, body: str) -> SubIssue:
        node = self._post(self._issues_path, {"title": title, "body": sub_issue_body(body, f"#{parent.number}")})

        try:
            self._post(f"{self._issues_path}/{parent.number}/sub_issues", {"sub_issue_id": node["id"]})
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("Could not link #%s as sub-issue of #%s: %s", node["number"], parent.number, _describe(exc))

        data = self._graphql(_ADD_TO_PROJECT, {"projectId": self._repo.project_id, "contentId": node["node_id"]})
        item_id = data["addProjectV2ItemById"]["item"]["id"]
        if self._repo.backlog_option_id and self._repo.column_field_id:
            self._set_status(item_id, self._repo.backlog_option_id)

        return SubIssue(id=str(node["id"]), number=node["number"])

    def link_pull_request(self, issue: Issue, pr_url: str) -> None:
        # The PR body says "Fixes #N"; GitHub links the two on its own.
        logger.debug("PR %s references #%s", pr_url, issue.number)


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 404:
            return "Not found - check owner/repo and permissions"
        if status == 403:
            return "Forbidden - token may lack required permissions"
    return str(exc)
