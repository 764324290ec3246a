"""Tracker backends and the factory that picks one per repo."""

from vibesprint.providers.base import IssueProvider, ProviderError
from vibesprint.providers.github import GitHubProvider
from vibesprint.providers.linear import LinearProvider
from vibesprint.settings import RepoConfig, VibeSprintSettings


def create_provider(repo: RepoConfig, settings: VibeSprintSettings) -> IssueProvider:
    match repo.provider:
        case "linear":
            return LinearProvider(repo, settings)
        case "github":
            return GitHubProvider(repo, settings)
        case _:
            raise ProviderError(f"Unknown provider '{repo.provider}'. Valid: linear, github")


__all__ = ["GitHubProvider", "IssueProvider", "LinearProvider", "ProviderError", "create_provider"]
