"""repolens sync / branches / commits — commit history commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from repolens.cli.common import DEFAULT_DB, console, run_engine
from repolens.db.models import CommitPage, CommitRecord

_UserOpt = Annotated[
    str | None,
    typer.Option("--user", "-u", help="Acting user id (their stored GitHub token is used)."),
]
_DbOpt = Annotated[Path, typer.Option("--db", help="Path to .repolens.db.")]


def sync_cmd(
    project_id: Annotated[str, typer.Argument(help="Project id.")],
    user: _UserOpt = None,
    db: _DbOpt = DEFAULT_DB,
) -> None:
    """Fetch, summarize, and store new commits for every active branch."""
    inserted: list[CommitRecord] = run_engine(
        db, lambda engine: engine.sync_commits(project_id, user), needs_models=True
    )
    if not inserted:
        console.print("[dim]↷ Up to date — no new commits[/]")
        return
    console.print(f"[green]✓[/] {len(inserted)} new commits stored")
    for c in inserted:
        console.print(f"  {c.commit_hash[:7]} [dim]{c.branch_name}[/] {_first_line(c.commit_message)}")


def branches_cmd(
    repo_url: Annotated[str, typer.Argument(help="GitHub repository URL.")],
    user: _UserOpt = None,
    db: _DbOpt = DEFAULT_DB,
) -> None:
    """List the branches of REPO_URL."""
    names: list[str] = run_engine(db, lambda engine: engine.list_branches(repo_url, user))
    if not names:
        console.print("[yellow]No branches found.[/]")
        return
    for name in names:
        console.print(f"  {name}")


def commits_cmd(
    project_id: Annotated[str, typer.Argument(help="Project id.")],
    user: _UserOpt = None,
    branch: Annotated[str | None, typer.Option("--branch", "-b", help="Only this branch.")] = None,
    author: Annotated[str | None, typer.Option("--author", help="Only this author name.")] = None,
    page: Annotated[int, typer.Option("--page", min=1)] = 1,
    limit: Annotated[int, typer.Option("--limit", min=1, max=100)] = 20,
    db: _DbOpt = DEFAULT_DB,
) -> None:
    """Show stored commits (newest first), then refresh them from GitHub."""
    run_engine(
        db,
        lambda engine: engine.get_commits(
            project_id, user, branch=branch, author=author, page=page, limit=limit
        ),
        needs_models=True,
        render=_show_page,
    )


def _show_page(result: CommitPage) -> None:
    if not result.commits:
        console.print("[dim]No commits stored yet.[/]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Commit", style="cyan", no_wrap=True)
    table.add_column("Date", no_wrap=True)
    table.add_column("Author")
    table.add_column("Branch", style="dim")
    table.add_column("Message")
    table.add_column("Summary", overflow="fold")
    for c in result.commits:
        table.add_row(
            c.commit_hash[:7],
            c.commit_date[:10],
            c.commit_author_name,
            c.branch_name,
            _first_line(c.commit_message),
            c.summary or "[dim]—[/]",
        )
    console.print(table)
    console.print(
        f"[dim]Page {result.page} of {result.total_pages} · {result.total} commits[/]"
    )


def _first_line(message: str) -> str:
    return message.splitlines()[0] if message else ""
