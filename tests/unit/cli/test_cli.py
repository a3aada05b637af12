"""Tests for the repolens commands, driven through CliRunner."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

import repolens.cli.commits as commits_cli
from fakes import FakeGitHub, FakeSummarizer, gh_commit
from repolens.cli.main import app
from repolens.config import RepolensConfig
from repolens.db.connection import Database
from repolens.db.models import Project
from repolens.db.repository import Repository
from repolens.engine import Engine

runner = CliRunner()

URL = "https://github.com/octocat/hello"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / ".repolens.db"
    Database(path).open().close()
    return path


@pytest.fixture
def gh() -> FakeGitHub:
    return FakeGitHub(
        {"README.md": "# hello", "src/app.py": "print('hi')", "yarn.lock": ""},
        commits={
            "main": [
                gh_commit("a1", "2024-01-01T00:00:00Z", message="Initial import"),
                gh_commit("b2", "2024-01-02T00:00:00Z", message="Add app\n\nlonger body"),
            ]
        },
    )


@pytest.fixture(autouse=True)
def fake_engine(monkeypatch, gh):
    """Route every command through FakeGitHub and FakeSummarizer."""
    cfg = RepolensConfig()
    cfg.embedding.dimensions = 3
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr("repolens.cli.common.load_cfg", lambda: cfg)
    monkeypatch.setattr(
        "repolens.cli.common.build_engine",
        lambda conn, cfg: Engine(conn, FakeSummarizer(dimensions=3), config=cfg, github=gh.factory),
    )


def _with_repo(db_path: Path, fn) -> None:
    conn = Database(db_path).open()
    try:
        fn(Repository(conn))
    finally:
        conn.close()


def _project_urls(db_path: Path) -> list[str]:
    with Database(db_path) as conn:
        return [row["github_url"] for row in conn.execute("SELECT github_url FROM projects")]


def _credits(db_path: Path, user_id: str) -> int | None:
    with Database(db_path) as conn:
        return Repository(conn).get_credits(user_id)


def _add_project(repo: Repository) -> None:
    repo.add_project(Project(id="proj-1", name="hello", github_url=URL))


# ---------------------------------------------------------------------------
# init / version
# ---------------------------------------------------------------------------


def test_init_creates_database_and_config(tmp_path: Path) -> None:
    global_cfg = tmp_path / "home" / "config.yaml"
    result = runner.invoke(app, ["init", str(tmp_path), "--global-config", str(global_cfg)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / ".repolens.db").exists()
    assert (tmp_path / "repolens.yaml").exists()
    assert global_cfg.exists()


def test_init_twice_keeps_yaml(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    runner.invoke(app, ["init", str(tmp_path), "--global-config", str(global_cfg)])
    (tmp_path / "repolens.yaml").write_text("ingest:\n  batch_size: 2\n", encoding="utf-8")
    result = runner.invoke(app, ["init", str(tmp_path), "--global-config", str(global_cfg)])
    assert result.exit_code == 0
    assert "up to date" in result.output
    assert "batch_size: 2" in (tmp_path / "repolens.yaml").read_text(encoding="utf-8")


def test_init_updates_gitignore(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.pyc\n", encoding="utf-8")
    runner.invoke(app, ["init", str(tmp_path), "--global-config", str(tmp_path / "g.yaml")])
    assert ".repolens.db" in (tmp_path / ".gitignore").read_text(encoding="utf-8")


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("repolens ")


# ---------------------------------------------------------------------------
# user add
# ---------------------------------------------------------------------------


def test_user_add_stores_credits_and_token(db_path: Path) -> None:
    result = runner.invoke(
        app, ["user", "add", "u1", "--credits", "12", "--github-token", "ghp_x", "--db", str(db_path)]
    )
    assert result.exit_code == 0, result.output

    def check(repo: Repository) -> None:
        assert repo.get_credits("u1") == 12
        assert repo.get_git_token("u1") == "ghp_x"

    _with_repo(db_path, check)


def test_missing_database_is_actionable(tmp_path: Path) -> None:
    result = runner.invoke(app, ["user", "add", "u1", "--db", str(tmp_path / "nope.db")])
    assert result.exit_code == 1
    assert "repolens init" in result.output


# ---------------------------------------------------------------------------
# estimate / project create
# ---------------------------------------------------------------------------


def test_estimate_counts_files(db_path: Path) -> None:
    result = runner.invoke(app, ["estimate", URL, "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "3 credits" in result.output


def test_estimate_bad_url_reports_zero(db_path: Path) -> None:
    result = runner.invoke(app, ["estimate", "https://github.com/", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "0 files" in result.output


def test_project_create_charges_user(db_path: Path) -> None:
    _with_repo(db_path, lambda repo: repo.add_user("u1", credits=5))
    result = runner.invoke(app, ["project", "create", "hello", URL, "--user", "u1", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "Indexed 2 of 2 files" in result.output
    assert "2 commits stored" in result.output

    assert _credits(db_path, "u1") == 2
    assert _project_urls(db_path) == [URL]


def test_index_uses_acting_users_token(db_path: Path, gh: FakeGitHub) -> None:
    def setup(repo: Repository) -> None:
        _add_project(repo)
        repo.add_user("u1")
        repo.set_git_token("u1", "ghp_user")

    _with_repo(db_path, setup)
    result = runner.invoke(app, ["index", "proj-1", URL, "--user", "u1", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "2 of 2 files embedded" in result.output
    assert gh.tokens == ["ghp_user"]


def test_project_create_insufficient_credits(db_path: Path) -> None:
    _with_repo(db_path, lambda repo: repo.add_user("u1", credits=1))
    result = runner.invoke(app, ["project", "create", "hello", URL, "--user", "u1", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "need 3, have 1" in result.output


def test_project_create_needs_api_key(db_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY")
    _with_repo(db_path, lambda repo: repo.add_user("u1", credits=5))
    result = runner.invoke(app, ["project", "create", "hello", URL, "--user", "u1", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output


# ---------------------------------------------------------------------------
# sync / branches / commits
# ---------------------------------------------------------------------------


def test_sync_then_up_to_date(db_path: Path) -> None:
    _with_repo(db_path, _add_project)
    first = runner.invoke(app, ["sync", "proj-1", "--db", str(db_path)])
    assert first.exit_code == 0, first.output
    assert "2 new commits" in first.output

    second = runner.invoke(app, ["sync", "proj-1", "--db", str(db_path)])
    assert "Up to date" in second.output


def test_sync_unknown_project(db_path: Path) -> None:
    result = runner.invoke(app, ["sync", "missing", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Create it first" in result.output


def test_branches(db_path: Path, gh: FakeGitHub) -> None:
    gh.branches = ["main", "dev"]
    result = runner.invoke(app, ["branches", URL, "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "main" in result.output and "dev" in result.output


def test_commits_shown_before_refresh_runs(db_path: Path, gh: FakeGitHub, monkeypatch) -> None:
    _with_repo(db_path, _add_project)
    polled_at_render = []
    show_page = commits_cli._show_page

    def recording_show_page(result) -> None:
        polled_at_render.append([c for c in gh.calls if c[0] == "list_commits"])
        show_page(result)

    monkeypatch.setattr(commits_cli, "_show_page", recording_show_page)
    first = runner.invoke(app, ["commits", "proj-1", "--db", str(db_path)])

    assert first.exit_code == 0, first.output
    assert "No commits stored yet" in first.output
    assert polled_at_render == [[]]
    assert ("list_commits", "main") in gh.calls

    # the refresh queued by the first call was drained before exit
    second = runner.invoke(app, ["commits", "proj-1", "--db", str(db_path)])
    assert "Page 1 of 1" in second.output
    assert "a1" in second.output and "b2" in second.output
    assert "2 commits" in second.output


def test_commits_needs_api_key(db_path: Path, gh: FakeGitHub, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY")
    _with_repo(db_path, _add_project)
    result = runner.invoke(app, ["commits", "proj-1", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output
    assert gh.calls == []


def test_commits_limit_bounds(db_path: Path) -> None:
    result = runner.invoke(app, ["commits", "proj-1", "--limit", "0", "--db", str(db_path)])
    assert result.exit_code != 0
