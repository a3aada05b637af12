"""GitHub REST access."""

from repolens.github.client import GitHubClient, parse_repo_url

__all__ = ["GitHubClient", "parse_repo_url"]
