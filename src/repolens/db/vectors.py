"""Summary-embedding vector tables, one sqlite-vec table per embedding model.

Vectors live outside the migration-managed schema because their width depends
on the configured model. Each vector row's rowid is the id of the
source_code_embeddings row it belongs to.
"""

from __future__ import annotations

import re
import sqlite3

_SLUG_RE = re.compile(r"[a-z0-9_]+")
_DIMS_RE = re.compile(r"float\[(\d+)\]")


def model_to_slug(model: str) -> str:
    """``"openai/text-embedding-3-small"`` -> ``"openai_text_embedding_3_small"``."""
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    return f"vec_summaries_{model_slug}"


def vec_table_dimensions(conn: sqlite3.Connection, table: str) -> int | None:
    """Width of an existing vec table, or None if the table does not exist."""
    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    if row is None:
        return None
    match = _DIMS_RE.search(row[0] or "")
    return int(match.group(1)) if match else None


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create the vec table for *model_slug* if needed and return its name.

    Raises:
        ValueError: The slug is not sanitized, *dimensions* < 1, or the table
            already exists with a different width (switching embedding size
            for the same model name needs a fresh store).
    """
    if not _SLUG_RE.fullmatch(model_slug):
        raise ValueError(f"Invalid model_slug {model_slug!r}; sanitize it with model_to_slug()")
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    existing = vec_table_dimensions(conn, table)
    if existing is None:
        conn.execute(f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])")
        conn.commit()
    elif existing != dimensions:
        raise ValueError(
            f"{table} stores {existing}-dimension vectors; configured dimensions is {dimensions}"
        )
    return table
