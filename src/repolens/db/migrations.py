"""Forward-only migration runner for the knowledge-store schema.

Vector tables (vec_summaries_*) depend on the embedding model and are created
by repolens.db.vectors.ensure_vec_table(), not here.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS projects (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    github_url      TEXT NOT NULL,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS users (
    id              TEXT PRIMARY KEY,
    credits         INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS accounts (
    user_id         TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    provider_id     TEXT NOT NULL,
    git_token       TEXT,
    PRIMARY KEY (user_id, provider_id)
);

CREATE TABLE IF NOT EXISTS project_branches (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id      TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    name            TEXT NOT NULL,
    is_active       INTEGER NOT NULL DEFAULT 1,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (project_id, name)
);

CREATE TABLE IF NOT EXISTS source_code_embeddings (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id      TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    file_name       TEXT NOT NULL,
    source_code     TEXT NOT NULL,
    summary         TEXT NOT NULL,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_embeddings_project
    ON source_code_embeddings(project_id);

CREATE TABLE IF NOT EXISTS commits (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id           TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    commit_hash          TEXT NOT NULL,
    commit_message       TEXT NOT NULL DEFAULT '',
    commit_author_name   TEXT NOT NULL DEFAULT '',
    commit_author_avatar TEXT NOT NULL DEFAULT '',
    commit_date          TEXT NOT NULL DEFAULT '',
    branch_name          TEXT NOT NULL,
    summary              TEXT NOT NULL DEFAULT '',
    created_at           DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (project_id, commit_hash)
);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> list[int]:
    """Apply pending migrations in version order; return the versions applied.

    Safe to call on a store at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    current = current_version(conn)
    applied: list[int] = []
    for version, sql in sorted(MIGRATIONS):
        if version <= current:
            continue
        conn.executescript(sql)
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
        conn.commit()
        applied.append(version)
        logger.info("Applied schema migration v%d", version)
    return applied


def current_version(conn: sqlite3.Connection) -> int:
    """Highest applied migration version; 0 for a store never migrated."""
    if conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name='schema_version'"
    ).fetchone() is None:
        return 0
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0
