"""repolens project — create a project and run its initial ingestion."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from repolens.cli.common import DEFAULT_DB, console, run_engine
from repolens.engine import ProjectSetup

project_app = typer.Typer(help="Manage projects.", no_args_is_help=True)


@project_app.command("create")
def create_cmd(
    name: Annotated[str, typer.Argument(help="Project name.")],
    repo_url: Annotated[str, typer.Argument(help="GitHub repository URL.")],
    user: Annotated[str, typer.Option("--user", "-u", help="Acting user id (pays the credits).")],
    branch: Annotated[
        list[str] | None,
        typer.Option("--branch", "-b", help="Branch to track for commits (repeatable)."),
    ] = None,
    db: Annotated[Path, typer.Option("--db", help="Path to .repolens.db.")] = DEFAULT_DB,
) -> None:
    """Price REPO_URL, charge USER, then index files and sync commits."""
    setup: ProjectSetup = run_engine(
        db,
        lambda engine: engine.create_project(name, repo_url, user, branches=branch),
        needs_models=True,
    )

    console.print(f"[bold green]✓ Project '{setup.project.name}' created[/]  id: {setup.project.id}")
    console.print(f"  Quote: {setup.quote.file_count} files")

    if setup.index.ok:
        report = setup.index.value
        console.print(
            f"  [green]✓[/] Indexed {report.written} of {report.documents} files"
            f" ({report.skipped} skipped)"
        )
    else:
        console.print(f"  [red]✗ Indexing failed:[/] {setup.index.error}")
        console.print("    No credits were charged. Retry:  repolens index <project-id> <repo-url>")

    if setup.sync.ok:
        console.print(f"  [green]✓[/] {len(setup.sync.value)} commits stored")
    else:
        console.print(f"  [yellow]✗ Commit sync failed:[/] {setup.sync.error}")
        console.print(f"    Retry:  repolens sync {setup.project.id} --user {user}")
