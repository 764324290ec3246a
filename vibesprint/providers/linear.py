"""Linear GraphQL API provider."""

import logging

import httpx

from vibesprint.executors import OVERRIDE_LABELS
from vibesprint.intake import extract_override, is_eligible, number_from_identifier
from vibesprint.models import Column, Comment, Issue, SubIssue
from vibesprint.providers.base import IssueProvider, ProviderError, sub_issue_body
from vibesprint.settings import RepoConfig, VibeSprintSettings

logger = logging.getLogger(__name__)

ENDPOINT = "https://api.linear.app/graphql"

NAMESPACE = "vibesprint:"

# Status labels are namespaced so they cannot collide with a team's own workflow labels.
REQUIRED_LABELS = [
    f"{NAMESPACE}running",
    f"{NAMESPACE}retry",
    f"{NAMESPACE}failed",
    f"{NAMESPACE}pr-opened",
    f"{NAMESPACE}plan-posted",
    "plan",
    "no-curate",
    *OVERRIDE_LABELS,
]

_READY_ISSUES = """
query ReadyIssues($teamId: ID!, $stateId: ID!, $after: String) {
  issues(
    first: 100
    after: $after
    filter: { team: { id: { eq: $teamId } }, state: { id: { eq: $stateId } } }
  ) {
    pageInfo { hasNextPage endCursor }
    nodes {
      id
      identifier
      title
      description
      url
      state { id }
      labels { nodes { id name } }
    }
  }
}
"""

_ISSUE_LABELS = """
query IssueLabels($id: String!) {
  issue(id: $id) {
    labels { nodes { id name } }
  }
}
"""

_ISSUE_COMMENTS = """
query IssueComments($id: String!, $last: Int!) {
  issue(id: $id) {
    comments(last: $last) { nodes { body user { name } } }
  }
}
"""

_TEAM_LABELS = """
query TeamLabels($teamId: String!) {
  team(id: $teamId) {
    labels(first: 250) { nodes { id name } }
  }
}
"""

_CREATE_LABEL = """
mutation CreateLabel($name: String!, $teamId: String!, $color: String) {
  issueLabelCreate(input: { name: $name, teamId: $teamId, color: $color }) {
    success
    issueLabel { id name }
  }
}
"""

_UPDATE_ISSUE = """
mutation UpdateIssue($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) { success }
}
"""

_CREATE_COMMENT = """
mutation CreateComment($issueId: String!, $body: String!) {
  commentCreate(input: { issueId: $issueId, body: $body }) { success }
}
"""

_CREATE_ISSUE = """
mutation CreateIssue($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    success
    issue { id identifier url }
  }
}
"""

_CREATE_ATTACHMENT = """
mutation AttachUrl($issueId: String!, $url: String!, $title: String!) {
  attachmentCreate(input: { issueId: $issueId, url: $url, title: $title }) { success }
}
"""


def namespaced(label: str) -> str:
    return label if label.startswith(NAMESPACE) else f"{NAMESPACE}{label}"


class LinearProvider(IssueProvider):
    label_namespace = NAMESPACE

    def __init__(self, repo: RepoConfig, settings: VibeSprintSettings) -> None:
        if not settings.linear_api_key:
            raise ProviderError("Linear API key not found. Set LINEAR_API_KEY")
        self._api_key = settings.linear_api_key.get_secret_value()
        self._repo = repo
        self._label_ids: dict[str, str] = {}  # name -> id

    def _gql(self, query: str, variables: dict | None = None) -> dict:
        response = httpx.post(
            ENDPOINT,
            json={"query": query, "variables": variables or {}},
            headers={
                "Authorization": self._api_key,
                "Content-Type": "application/json",
            },
            timeout=30,
        )
        response.raise_for_status()
        data = response.json()
        if "errors" in data:
            raise ProviderError(f"Linear API error: {data['errors']}")
        return data["data"]

    # -- intake ------------------------------------------------------------

    def _issue_from_node(self, node: dict) -> Issue | None:
        labels = [label["name"] for label in node.get("labels", {}).get("nodes", [])]
        state = (node.get("state") or {}).get("id")
        if not is_eligible(
            labels,
            state,
            ready=self._repo.linear_ready_state_id,
            namespace=self.label_namespace,
            repo_label=self._repo.linear_repo_label,
        ):
            return None
        return Issue(
            id=node["id"],
            number=number_from_identifier(node["identifier"]),
            identifier=node["identifier"],
            title=node["title"],
            body=node.get("description") or "",
            url=node["url"],
            project_item_id=node["id"],  # Linear moves the issue itself
            labels=labels,
            model=extract_override(labels, "model"),
            executor=extract_override(labels, "executor"),
            repo_name=self._repo.name,
        )

    def get_issues(self) -> list[Issue]:
        if not self._repo.linear_team_id or not self._repo.linear_ready_state_id:
            return []

        issues: list[Issue] = []
        after: str | None = None
        while True:
            data = self._gql(
                _READY_ISSUES,
                {"teamId": self._repo.linear_team_id, "stateId": self._repo.linear_ready_state_id, "after": after},
            )
            page = data["issues"]
            for node in page["nodes"]:
                issue = self._issue_from_node(node)
                if issue is not None:
                    issues.append(issue)
            if not page["pageInfo"]["hasNextPage"]:
                break
            after = page["pageInfo"]["endCursor"]
        return sorted(issues, key=lambda i: i.number)

    def get_comments(self, issue: Issue, limit: int = 10) -> list[Comment]:
        data = self._gql(_ISSUE_COMMENTS, {"id": issue.id, "last": limit})
        nodes = (data.get("issue") or {}).get("comments", {}).get("nodes", [])
        return [Comment(author=(c.get("user") or {}).get("name", "unknown"), body=c["body"]) for c in nodes]

    # -- labels ------------------------------------------------------------

    def _label_id(self, name: str) -> str:
        """Return the team label id for name, creating the label if needed."""
        if name in self._label_ids:
            return self._label_ids[name]

        data = self._gql(_TEAM_LABELS, {"teamId": self._repo.linear_team_id})
        for node in data["team"]["labels"]["nodes"]:
            self._label_ids[node["name"]] = node["id"]
        if name in self._label_ids:
            return self._label_ids[name]

        data = self._gql(_CREATE_LABEL, {"name": name, "teamId": self._repo.linear_team_id, "color": "#808080"})
        created = data["issueLabelCreate"]
        if not created["success"] or not created["issueLabel"]:
            raise ProviderError(f"Failed to create label: {name}")
        self._label_ids[name] = created["issueLabel"]["id"]
        logger.info("Created label: %s", name)
        return self._label_ids[name]

    def _current_labels(self, issue: Issue) -> list[dict]:
        data = self._gql(_ISSUE_LABELS, {"id": issue.id})
        return (data.get("issue") or {}).get("labels", {}).get("nodes", [])

    def _set_label_ids(self, issue: Issue, label_ids: list[str]) -> None:
        self._gql(_UPDATE_ISSUE, {"id": issue.id, "input": {"labelIds": label_ids}})

    def add_label(self, issue: Issue, label: str) -> None:
        name = namespaced(label)
        if name in issue.labels:
            return
        try:
            label_id = self._label_id(name)
            current = [node["id"] for node in self._current_labels(issue)]
            if label_id not in current:
                self._set_label_ids(issue, [*current, label_id])
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("Failed to add label '%s' to %s: %s", name, issue.identifier, exc)

    def remove_label(self, issue: Issue, label: str) -> None:
        name = namespaced(label)
        try:
            current = self._current_labels(issue)
            kept = [node["id"] for node in current if node["name"] != name]
            if len(kept) != len(current):
                self._set_label_ids(issue, kept)
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("Failed to remove label '%s' from %s: %s", name, issue.identifier, exc)

    def ensure_labels_exist(self) -> None:
        for label in REQUIRED_LABELS:
            self._label_id(label)
        if self._repo.linear_repo_label:
            self._label_id(self._repo.linear_repo_label)
        logger.info("Labels verified for %s", self._repo.linear_team_name or self._repo.linear_team_id)

    # -- comments, states, sub-issues --------------------------------------

    def post_comment(self, issue: Issue, body: str) -> None:
        try:
            self._gql(_CREATE_COMMENT, {"issueId": issue.id, "body": body})
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("Failed to comment on %s: %s", issue.identifier, exc)

    def move_to_column(self, issue: Issue, column: Column) -> None:
        state_id = {
            "backlog": self._repo.linear_backlog_state_id,
            "in_progress": self._repo.linear_in_progress_state_id,
            "in_review": self._repo.linear_in_review_state_id,
        }[column]
        if not state_id:
            logger.debug("No Linear state configured for %s", column)
            return
        self._gql(_UPDATE_ISSUE, {"id": issue.id, "input": {"stateId": state_id}})

    def create_sub_issue(self, parent: Issue, title: str, body: str) -> SubIssue:
        payload = {
            "teamId": self._repo.linear_team_id,
            "title": title,
            "description": sub_issue_body(body, parent.ref),
            "parentId": parent.id,
        }
        if self._repo.linear_backlog_state_id:
            payload["stateId"] = self._repo.linear_backlog_state_id
        data = self._gql(_CREATE_ISSUE, {"input": payload})
        result = data["issueCreate"]
        if not result["success"] or not result["issue"]:
            raise ProviderError("Linear issueCreate returned success=false")
        created = result["issue"]
        return SubIssue(id=created["id"], number=number_from_identifier(created["identifier"]))

    def link_pull_request(self, issue: Issue, pr_url: str) -> None:
        self._gql(_CREATE_ATTACHMENT, {"issueId": issue.id, "url": pr_url, "title": "Pull Request"})
        self.post_comment(issue, f"🔗 PR created: {pr_url}")
