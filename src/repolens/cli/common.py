"""Helpers shared by the repolens commands: database, config, and engine wiring."""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console

from repolens.cli.errors import err_config, err_no_api_key, err_no_db, error_message
from repolens.config import ConfigError, RepolensConfig, load_config
from repolens.db.connection import Database
from repolens.engine import Engine
from repolens.errors import RepolensError
from repolens.ingest.summarizer import missing_api_key

console = Console()

DEFAULT_DB = Path(".repolens.db")

T = TypeVar("T")


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the database and run migrations."""
    return Database(db_path).open()


def require_db(db_path: Path) -> sqlite3.Connection:
    """Open an existing database; exit with an actionable error if missing."""
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return open_db(db_path)


def load_cfg() -> RepolensConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def require_model_keys(cfg: RepolensConfig) -> None:
    """Exit early when the summary or embedding provider has no API key."""
    for model in (cfg.summary.model, cfg.embedding.model):
        provider = missing_api_key(model)
        if provider is not None:
            console.print(err_no_api_key(provider))
            raise typer.Exit(1)


def build_engine(conn: sqlite3.Connection, cfg: RepolensConfig) -> Engine:
    return Engine.from_config(conn, cfg)


def run_engine(
    db_path: Path,
    action: Callable[[Engine], Awaitable[T]],
    *,
    needs_models: bool = False,
    render: Callable[[T], None] | None = None,
) -> T:
    """Run *action* against an engine on a fresh event loop.

    *render* receives the result before queued background jobs are drained,
    so output never waits on them. Domain errors are printed as actionable
    messages and exit with status 1.
    """
    cfg = load_cfg()
    if needs_models:
        require_model_keys(cfg)
    conn = require_db(db_path)
    try:
        try:
            engine = build_engine(conn, cfg)
        except ValueError as exc:
            console.print(err_config(str(exc)))
            raise typer.Exit(1) from exc

        async def _main() -> T:
            try:
                result = await action(engine)
                if render is not None:
                    render(result)
                return result
            finally:
                await engine.close()

        return asyncio.run(_main())
    except RepolensError as exc:
        console.print(error_message(exc))
        raise typer.Exit(1) from exc
    finally:
        conn.close()
