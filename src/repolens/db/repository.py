"""Repository pattern for all knowledge-store operations.

Single interface for: projects, users/credentials, branch sync targets,
source-code embeddings (+ their vec rows), and commits.
Vec tables are model-managed (ensure_vec_table); repository handles writes.
"""

from __future__ import annotations

import json
import sqlite3

from repolens.db.models import CommitRecord, EmbeddingRecord, Project, ProjectBranch

_GITHUB_PROVIDER = "github"


class Repository:
    """Data access layer for all knowledge-store entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. No method awaits, so every write is atomic
    with respect to the event loop that drives the pipelines.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see Database.open).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def add_project(self, project: Project) -> None:
        self._conn.execute(
            "INSERT INTO projects (id, name, github_url) VALUES (?, ?, ?)",
            (project.id, project.name, project.github_url),
        )
        self._conn.commit()

    def get_project(self, project_id: str) -> Project | None:
        """Return a project by ID, or None if not found."""
        row = self._conn.execute(
            "SELECT id, name, github_url, created_at FROM projects WHERE id = ?",
            (project_id,),
        ).fetchone()
        if row is None:
            return None
        return Project(
            id=row["id"],
            name=row["name"],
            github_url=row["github_url"],
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------
    # Users, credits, and stored GitHub tokens
    # ------------------------------------------------------------------

    def add_user(self, user_id: str, credits: int = 0) -> None:
        """Insert a user, or reset the credit balance of an existing one."""
        self._conn.execute(
            """
            INSERT INTO users (id, credits) VALUES (?, ?)
            ON CONFLICT(id) DO UPDATE SET credits = excluded.credits
            """,
            (user_id, credits),
        )
        self._conn.commit()

    def get_credits(self, user_id: str) -> int | None:
        """Return the user's credit balance, or None for an unknown user."""
        row = self._conn.execute(
            "SELECT credits FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        return row["credits"] if row else None

    def debit_credits(self, user_id: str, amount: int) -> None:
        self._conn.execute(
            "UPDATE users SET credits = credits - ? WHERE id = ?", (amount, user_id)
        )
        self._conn.commit()

    def set_git_token(self, user_id: str, token: str | None) -> None:
        """Store (or clear, with None) the user's GitHub access token."""
        self._conn.execute(
            """
            INSERT INTO accounts (user_id, provider_id, git_token) VALUES (?, ?, ?)
            ON CONFLICT(user_id, provider_id) DO UPDATE SET git_token = excluded.git_token
            """,
            (user_id, _GITHUB_PROVIDER, token),
        )
        self._conn.commit()

    def get_git_token(self, user_id: str) -> str | None:
        """Return the user's stored GitHub token, or None when absent or empty."""
        row = self._conn.execute(
            "SELECT git_token FROM accounts WHERE user_id = ? AND provider_id = ?",
            (user_id, _GITHUB_PROVIDER),
        ).fetchone()
        if row is None:
            return None
        return row["git_token"] or None

    # ------------------------------------------------------------------
    # Branch sync targets
    # ------------------------------------------------------------------

    def add_branches(
        self, project_id: str, names: list[str], is_active: bool = True
    ) -> None:
        """Register branch sync targets; names already registered are ignored."""
        self._conn.executemany(
            """
            INSERT OR IGNORE INTO project_branches (project_id, name, is_active)
            VALUES (?, ?, ?)
            """,
            [(project_id, name, int(is_active)) for name in names],
        )
        self._conn.commit()

    def set_branch_active(self, project_id: str, name: str, is_active: bool) -> None:
        self._conn.execute(
            "UPDATE project_branches SET is_active = ? WHERE project_id = ? AND name = ?",
            (int(is_active), project_id, name),
        )
        self._conn.commit()

    def list_active_branches(self, project_id: str) -> list[ProjectBranch]:
        """Return active branches in registration order (the sync iteration order)."""
        rows = self._conn.execute(
            """
            SELECT id, project_id, name, is_active FROM project_branches
            WHERE project_id = ? AND is_active = 1
            ORDER BY id
            """,
            (project_id,),
        ).fetchall()
        return [
            ProjectBranch(
                id=r["id"],
                project_id=r["project_id"],
                name=r["name"],
                is_active=bool(r["is_active"]),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Source-code embeddings
    # ------------------------------------------------------------------

    def add_embedding_record(self, record: EmbeddingRecord, vec_table: str) -> int:
        """Insert an embedding row, then attach its vector by id.

        Both writes share one transaction: if attaching the vector fails the
        row is rolled back, so no row ever exists without its vector.
        Returns the new row id (also set on *record*).
        """
        if not record.summary_embedding:
            raise ValueError(f"No embedding vector for {record.file_name!r}")
        try:
            cur = self._conn.execute(
                """
                INSERT INTO source_code_embeddings (project_id, file_name, source_code, summary)
                VALUES (?, ?, ?, ?)
                """,
                (record.project_id, record.file_name, record.source_code, record.summary),
            )
            record_id = cur.lastrowid
            self._insert_vector(vec_table, record_id, record.summary_embedding)
        except sqlite3.Error:
            self._conn.rollback()
            raise
        self._conn.commit()
        record.id = record_id
        return record_id

    def _insert_vector(self, vec_table: str, record_id: int, embedding: list[float]) -> None:
        self._conn.execute(
            f"INSERT INTO {vec_table}(rowid, embedding) VALUES (?, ?)",
            (record_id, json.dumps(embedding)),
        )

    def get_embedding_vector(self, vec_table: str, record_id: int) -> list[float] | None:
        """Return the vector attached to *record_id*, or None if none is attached."""
        row = self._conn.execute(
            f"SELECT vec_to_json(embedding) AS v FROM {vec_table} WHERE rowid = ?",
            (record_id,),
        ).fetchone()
        return json.loads(row["v"]) if row else None

    def list_embedding_records(self, project_id: str) -> list[EmbeddingRecord]:
        """Return a project's embedding rows (without vectors), oldest first."""
        rows = self._conn.execute(
            """
            SELECT id, project_id, file_name, source_code, summary, created_at
            FROM source_code_embeddings WHERE project_id = ? ORDER BY id
            """,
            (project_id,),
        ).fetchall()
        return [
            EmbeddingRecord(
                id=r["id"],
                project_id=r["project_id"],
                file_name=r["file_name"],
                source_code=r["source_code"],
                summary=r["summary"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    def count_embedding_records(self, project_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM source_code_embeddings WHERE project_id = ?",
            (project_id,),
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def list_commit_hashes(self, project_id: str) -> set[str]:
        """Return every commit hash recorded for *project_id*, across all branches."""
        rows = self._conn.execute(
            "SELECT commit_hash FROM commits WHERE project_id = ?", (project_id,)
        ).fetchall()
        return {r["commit_hash"] for r in rows}

    def add_commits(self, records: list[CommitRecord]) -> list[CommitRecord]:
        """Bulk-insert commits in one transaction; return the rows actually inserted.

        A commit already stored for the same project (the unique
        (project_id, commit_hash) pair) is skipped, not overwritten.
        """
        inserted: list[CommitRecord] = []
        try:
            for record in records:
                cur = self._conn.execute(
                    """
                    INSERT OR IGNORE INTO commits (
                        project_id, commit_hash, commit_message, commit_author_name,
                        commit_author_avatar, commit_date, branch_name, summary
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.project_id,
                        record.commit_hash,
                        record.commit_message,
                        record.commit_author_name,
                        record.commit_author_avatar,
                        record.commit_date,
                        record.branch_name,
                        record.summary,
                    ),
                )
                if cur.rowcount:
                    record.id = cur.lastrowid
                    inserted.append(record)
        except sqlite3.Error:
            self._conn.rollback()
            raise
        self._conn.commit()
        return inserted

    def list_commits(
        self,
        project_id: str,
        branch: str | None = None,
        author: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[CommitRecord]:
        """Return stored commits, newest commit_date first."""
        where, params = _commit_filter(project_id, branch, author)
        sql = (
            "SELECT id, project_id, commit_hash, commit_message, commit_author_name, "
            "commit_author_avatar, commit_date, branch_name, summary, created_at "
            f"FROM commits WHERE {where} ORDER BY commit_date DESC, id DESC"
        )
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        return [_row_to_commit(r) for r in self._conn.execute(sql, params).fetchall()]

    def count_commits(
        self, project_id: str, branch: str | None = None, author: str | None = None
    ) -> int:
        where, params = _commit_filter(project_id, branch, author)
        return self._conn.execute(
            f"SELECT COUNT(*) FROM commits WHERE {where}", params
        ).fetchone()[0]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _commit_filter(
    project_id: str, branch: str | None, author: str | None
) -> tuple[str, list]:
    clauses = ["project_id = ?"]
    params: list = [project_id]
    if branch:
        clauses.append("branch_name = ?")
        params.append(branch)
    if author:
        clauses.append("commit_author_name = ?")
        params.append(author)
    return " AND ".join(clauses), params


def _row_to_commit(row: sqlite3.Row) -> CommitRecord:
    return CommitRecord(
        id=row["id"],
        project_id=row["project_id"],
        commit_hash=row["commit_hash"],
        commit_message=row["commit_message"],
        commit_author_name=row["commit_author_name"],
        commit_author_avatar=row["commit_author_avatar"],
        commit_date=row["commit_date"],
        branch_name=row["branch_name"],
        summary=row["summary"],
        created_at=row["created_at"],
    )
