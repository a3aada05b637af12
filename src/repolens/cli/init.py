"""repolens init — create the knowledge store and config files.

Creates:
  .repolens.db               — knowledge store with schema
  repolens.yaml              — per-project config (only if missing)
  ~/.repolens/config.yaml    — global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from repolens.cli.common import DEFAULT_DB, console, open_db
from repolens.config import ensure_global_config

_PROJECT_YAML = """\
# repolens project configuration. Secrets belong in environment variables.
github:
  max_concurrency: 5

ingest:
  batch_size: 5

sync:
  commits_per_branch: 10

tracing:
  enabled: false
  project: repolens
"""


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path."),
    ] = None,
) -> None:
    """Initialize a repolens knowledge store in PROJECT_DIR."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / DEFAULT_DB.name
    existed = db_path.exists()
    open_db(db_path).close()
    if existed:
        console.print(f"  [dim]↷ {DEFAULT_DB.name} exists — schema brought up to date[/]")
    else:
        console.print(f"  [green]✓[/] {DEFAULT_DB.name}")

    cfg_file = project_dir / "repolens.yaml"
    if not cfg_file.exists():
        cfg_file.write_text(_PROJECT_YAML, encoding="utf-8")
        console.print("  [green]✓[/] repolens.yaml")

    _update_gitignore(project_dir)

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\nNext steps:")
    console.print("  1. export GITHUB_TOKEN=ghp_...  OPENAI_API_KEY=sk-...")
    console.print("  2. repolens user add <user-id> --credits <n>")
    console.print("  3. repolens project create <name> <repo-url> --user <user-id>")


def _update_gitignore(project_dir: Path) -> None:
    """Add the database to .gitignore if one already exists."""
    gitignore = project_dir / ".gitignore"
    if not gitignore.exists():
        return
    if DEFAULT_DB.name in gitignore.read_text(encoding="utf-8"):
        return
    with gitignore.open("a", encoding="utf-8") as f:
        f.write(f"\n# repolens\n{DEFAULT_DB.name}\n")
    console.print("  [green]✓[/] .gitignore (updated)")
