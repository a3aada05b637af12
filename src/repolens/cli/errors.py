"""repolens rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from repolens.cli.errors import err_no_db
    console.print(err_no_db(".repolens.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from repolens.errors import (
    GitHubError,
    InsufficientCreditsError,
    NotFoundError,
    ProjectNotFoundError,
    RateLimitError,
    RepolensError,
    RepoUrlError,
)
from repolens.ingest.summarizer import api_key_env


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = api_key_env(provider) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".repolens.db") -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  repolens init"
    )


def err_config(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {message}\n"
        "  Fix repolens.yaml or ~/.repolens/config.yaml and retry."
    )


def err_bad_repo_url(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  Example:  https://github.com/<owner>/<repo>"
    )


def err_insufficient_credits(required: int, available: int) -> str:
    return (
        f"[red]Error:[/] Not enough credits: need {required}, have {available}.\n"
        "  Add credits:  repolens user add <user-id> --credits <n>"
    )


def err_project_not_found(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  Create it first:  repolens project create <name> <repo-url> --user <user-id>"
    )


def err_github(exc: GitHubError) -> str:
    if isinstance(exc, RateLimitError):
        hint = "Wait for the rate limit to reset, or set GITHUB_TOKEN for a higher limit."
    elif isinstance(exc, NotFoundError):
        hint = "Check the repository URL and that your token can read the repository."
    elif exc.status_code in (401, 403):
        hint = "Check the GitHub token:  export GITHUB_TOKEN=ghp_..."
    else:
        hint = "Check your network connection and retry."
    return f"[red]Error:[/] GitHub request failed: {exc}\n  {hint}"


def error_message(exc: RepolensError) -> str:
    """Map a domain error to its actionable message."""
    if isinstance(exc, InsufficientCreditsError):
        return err_insufficient_credits(exc.required, exc.available)
    if isinstance(exc, ProjectNotFoundError):
        return err_project_not_found(str(exc))
    if isinstance(exc, RepoUrlError):
        return err_bad_repo_url(str(exc))
    if isinstance(exc, GitHubError):
        return err_github(exc)
    return f"[red]Error:[/] {exc}"
