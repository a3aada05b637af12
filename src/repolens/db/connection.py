"""Opening the knowledge store: SQLite file, sqlite-vec extension, schema."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from repolens.db.migrations import run_migrations

_PRAGMAS = (
    "foreign_keys = ON",
    "journal_mode = WAL",
)


class Database:
    """One knowledge-store file.

    connect() returns a raw connection (sqlite-vec loaded, rows as
    sqlite3.Row); open() additionally applies pending migrations. As a
    context manager the store is opened on entry and closed on exit.
    """

    def __init__(self, db_path: Path | str, busy_timeout_ms: int = 5_000) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None

    @property
    def exists(self) -> bool:
        return self.db_path.exists()

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        try:
            sqlite_vec.load(conn)
        finally:
            conn.enable_load_extension(False)
        for pragma in _PRAGMAS:
            conn.execute(f"PRAGMA {pragma}")
        # Background sync and foreground reads may share the file.
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
        return conn

    def open(self) -> sqlite3.Connection:
        """Connect and bring the schema up to date."""
        conn = self.connect()
        run_migrations(conn)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.open()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
