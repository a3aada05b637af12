"""repolens CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from repolens.cli.commits import branches_cmd, commits_cmd, sync_cmd
from repolens.cli.ingest import estimate_cmd, index_cmd
from repolens.cli.init import init_cmd
from repolens.cli.project import project_app
from repolens.cli.user import user_app
from repolens.logging_config import setup_logging


def _version() -> str:
    try:
        return importlib.metadata.version("repolens")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"repolens {_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="repolens",
    help=(
        "repolens — GitHub repository knowledge base.\n\n"
        "  repolens project create  Quote, charge, index files and sync commits.\n"
        "  repolens commits         Browse summarized commit history."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", envvar="REPOLENS_DEBUG", help="Enable debug logging."),
    ] = False,
) -> None:
    """repolens — GitHub repository knowledge base."""
    setup_logging(debug=debug)


app.command("init")(init_cmd)
app.command("estimate")(estimate_cmd)
app.command("index")(index_cmd)
app.command("sync")(sync_cmd)
app.command("branches")(branches_cmd)
app.command("commits")(commits_cmd)
app.add_typer(project_app, name="project")
app.add_typer(user_app, name="user")


@app.command("version")
def version_cmd() -> None:
    """Show the installed repolens version."""
    typer.echo(f"repolens {_version()}")


if __name__ == "__main__":
    app()
