"""Domain models for the knowledge store and the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Project:
    id: str
    name: str
    github_url: str
    created_at: str | None = None


@dataclass
class ProjectBranch:
    """A branch the commit sync engine is allowed to poll."""

    project_id: str
    name: str
    is_active: bool = True
    id: int | None = None


@dataclass
class SourceDocument:
    """One file's path and raw content as loaded from the repository tree."""

    path: str
    raw_content: str


@dataclass
class EmbeddingRecord:
    project_id: str
    file_name: str
    source_code: str
    summary: str
    summary_embedding: list[float] | None = None
    id: int | None = None  # set after insert
    created_at: str | None = None


@dataclass
class CommitRecord:
    project_id: str
    commit_hash: str
    commit_message: str
    commit_author_name: str
    commit_author_avatar: str
    commit_date: str
    branch_name: str
    summary: str = ""
    id: int | None = None  # set after insert
    created_at: str | None = None


@dataclass
class QuotaQuote:
    """Priced ingestion: number of files reachable from the repository root."""

    file_count: int


@dataclass
class CommitPage:
    commits: list[CommitRecord] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def total_pages(self) -> int:
        return max(1, -(-self.total // self.limit))
