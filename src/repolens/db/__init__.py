"""Knowledge-store database layer."""

from repolens.db.connection import Database
from repolens.db.migrations import MIGRATIONS, current_version, run_migrations
from repolens.db.repository import Repository
from repolens.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "Repository",
    "run_migrations",
    "current_version",
    "MIGRATIONS",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
