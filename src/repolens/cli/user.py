"""repolens user — register users, their credits and GitHub tokens."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from repolens.cli.common import DEFAULT_DB, console, require_db
from repolens.db.repository import Repository

user_app = typer.Typer(help="Manage users.", no_args_is_help=True)


@user_app.command("add")
def add_cmd(
    user_id: Annotated[str, typer.Argument(help="User id.")],
    credits: Annotated[int, typer.Option("--credits", min=0, help="Credit balance to set.")] = 0,
    github_token: Annotated[
        str | None,
        typer.Option(
            "--github-token",
            envvar="REPOLENS_USER_GITHUB_TOKEN",
            help="GitHub token stored for this user (overrides the shared GITHUB_TOKEN).",
        ),
    ] = None,
    db: Annotated[Path, typer.Option("--db", help="Path to .repolens.db.")] = DEFAULT_DB,
) -> None:
    """Create USER_ID or update their credit balance."""
    conn = require_db(db)
    try:
        repo = Repository(conn)
        repo.add_user(user_id, credits)
        if github_token:
            repo.set_git_token(user_id, github_token)
    finally:
        conn.close()

    token_note = " · GitHub token stored" if github_token else ""
    console.print(f"[green]✓[/] User '{user_id}' · {credits} credits{token_note}")
