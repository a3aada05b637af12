"""Exception hierarchy shared by the loader, pipeline, and commit sync."""

from __future__ import annotations


class RepolensError(Exception):
    """Base class for all repolens errors."""


class RepoUrlError(RepolensError, ValueError):
    """Raised when a repository URL has no owner/repo segments."""


class GitHubError(RepolensError):
    """Raised when a GitHub API call fails.

    Attributes:
        status_code: HTTP status, or None for transport failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(GitHubError):
    """Repository, path, or ref does not exist (or is not visible to the token)."""


class RateLimitError(GitHubError):
    """GitHub refused the call because the rate limit is exhausted."""


class ProjectNotFoundError(RepolensError):
    """No project with the given id, or the project has no GitHub URL."""


class InsufficientCreditsError(RepolensError):
    """The acting user cannot afford the quoted ingestion."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient credits: ingestion needs {required}, user has {available}."
        )
        self.required = required
        self.available = available
