"""repolens estimate / index — price and embed a repository's files."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from repolens.cli.common import DEFAULT_DB, console, run_engine
from repolens.engine import Engine
from repolens.ingest.pipeline import IndexReport


def estimate_cmd(
    repo_url: Annotated[str, typer.Argument(help="GitHub repository URL.")],
    db: Annotated[Path, typer.Option("--db", help="Path to .repolens.db.")] = DEFAULT_DB,
) -> None:
    """Count the files an ingestion of REPO_URL would cost."""

    async def _estimate(engine: Engine) -> int:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task("Counting files…", total=None)
            return await engine.estimate_cost(repo_url)

    count = run_engine(db, _estimate)
    if count == 0:
        console.print(f"[yellow]0 files[/] — nothing to ingest (or not a repository URL): {repo_url}")
        return
    console.print(f"[bold]{count}[/] files · ingestion costs {count} credits")


def index_cmd(
    project_id: Annotated[str, typer.Argument(help="Project id to store the embeddings under.")],
    repo_url: Annotated[str, typer.Argument(help="GitHub repository URL.")],
    branch: Annotated[
        str | None,
        typer.Option("--branch", "-b", help="Branch to load (default: repository default)."),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", "-u", help="Acting user id (their stored GitHub token is used)."),
    ] = None,
    db: Annotated[Path, typer.Option("--db", help="Path to .repolens.db.")] = DEFAULT_DB,
) -> None:
    """Summarize and embed every file of REPO_URL into the knowledge store."""

    async def _index(engine: Engine) -> IndexReport:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task("Embedding…", total=None)

            def _on_batch(report: IndexReport) -> None:
                prog.update(
                    task,
                    description=f"Embedding… {report.written}/{report.documents} files",
                )

            return await engine.index_repository(
                project_id,
                repo_url,
                token=engine.resolve_token(user),
                branch=branch,
                on_batch=_on_batch,
            )

    report = run_engine(db, _index, needs_models=True)
    console.print(
        f"[green]✓[/] {report.written} of {report.documents} files embedded"
        f" in {report.batches} batches"
    )
    if report.skipped:
        console.print(f"  [yellow]{report.skipped} skipped[/] (see log for reasons)")
