"""Tests for repolens rich error messages."""

from __future__ import annotations

import pytest

from repolens.cli.errors import (
    err_bad_repo_url,
    err_config,
    err_github,
    err_insufficient_credits,
    err_no_api_key,
    err_no_db,
    error_message,
)
from repolens.errors import (
    GitHubError,
    InsufficientCreditsError,
    NotFoundError,
    ProjectNotFoundError,
    RateLimitError,
    RepolensError,
    RepoUrlError,
)


def _has_action(msg: str) -> bool:
    """Every error must say what to do next."""
    lower = msg.lower()
    return any(kw in lower for kw in ["run:", "set:", "export ", "repolens ", "retry", "check", "example:", "wait"])


# ---------------------------------------------------------------------------
# Plain messages
# ---------------------------------------------------------------------------


def test_err_no_api_key_names_env_var() -> None:
    assert "OPENAI_API_KEY" in err_no_api_key("openai")
    assert "ANTHROPIC_API_KEY" in err_no_api_key("Anthropic")


def test_err_no_api_key_unknown_provider_fallback() -> None:
    assert "MYPROVIDER_API_KEY" in err_no_api_key("myprovider")


def test_err_no_db_mentions_path_and_init() -> None:
    msg = err_no_db("/tmp/x.db")
    assert "/tmp/x.db" in msg
    assert "repolens init" in msg


def test_err_insufficient_credits_shows_both_amounts() -> None:
    msg = err_insufficient_credits(40, 12)
    assert "need 40" in msg and "have 12" in msg


@pytest.mark.parametrize("msg", [
    err_no_api_key("openai"),
    err_no_db(),
    err_config("tasks.workers must be >= 1"),
    err_bad_repo_url("Not a GitHub repository URL: 'x'"),
    err_insufficient_credits(3, 1),
])
def test_every_message_is_actionable(msg: str) -> None:
    assert msg.startswith("[red]Error:[/]")
    assert _has_action(msg)


# ---------------------------------------------------------------------------
# GitHub errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("exc,hint", [
    (RateLimitError("rate limited", 403), "rate limit"),
    (NotFoundError("Not Found", 404), "repository url"),
    (GitHubError("Bad credentials", 401), "github_token"),
    (GitHubError("connection refused"), "network"),
])
def test_err_github_hint(exc: GitHubError, hint: str) -> None:
    msg = err_github(exc)
    assert str(exc) in msg
    assert hint in msg.lower()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def test_error_message_dispatch() -> None:
    assert "need 5, have 2" in error_message(InsufficientCreditsError(5, 2))
    assert "project create" in error_message(ProjectNotFoundError("No project 'p'"))
    assert "Example:" in error_message(RepoUrlError("Not a GitHub repository URL"))
    assert "network" in error_message(GitHubError("timed out"))


def test_error_message_generic_fallback() -> None:
    assert error_message(RepolensError("boom")) == "[red]Error:[/] boom"
