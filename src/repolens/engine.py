"""Engine facade — the operations the rest of the application calls.

    estimate_cost / quote   price a repository before ingesting it
    load_repository         stream a branch's files as SourceDocuments
    index_repository        summarize + embed every file into the store
    sync_commits            store and summarize new commits per branch
    list_branches           branch names of a repository
    create_project          quote, credit gate, then index + sync concurrently
    get_commits             stored commits, with a fire-and-forget refresh

All collaborators (store connection, model client, GitHub client factory,
background queue) are passed in; from_config() wires the defaults.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import sqlite3
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from repolens.config import RepolensConfig, shared_github_token
from repolens.db.models import CommitPage, CommitRecord, Project, QuotaQuote, SourceDocument
from repolens.db.repository import Repository
from repolens.db.vectors import ensure_vec_table, model_to_slug
from repolens.errors import InsufficientCreditsError, ProjectNotFoundError
from repolens.github.client import GitHubClient
from repolens.ingest.loader import RepoLoader
from repolens.ingest.pipeline import EmbeddingPipeline, IndexReport
from repolens.ingest.quota import estimate_file_count
from repolens.ingest.summarizer import SummaryClient
from repolens.outcome import Outcome, capture
from repolens.sync.commits import CommitSyncEngine, GitHubFactory
from repolens.tasks import BackgroundTasks
from repolens.tracing import Tracer

logger = logging.getLogger(__name__)


@dataclass
class ProjectSetup:
    """Result of create_project(): the project plus how each ingestion half went."""

    project: Project
    quote: QuotaQuote
    index: Outcome[IndexReport]
    sync: Outcome[list[CommitRecord]]


class Engine:
    """Ingestion and commit-sync operations over one knowledge store.

    Args:
        conn:         Open connection with the schema initialised.
        summarizer:   Model client for summaries and embeddings.
        config:       Loaded configuration (defaults if None).
        github:       Factory ``token -> GitHubClient``.
        shared_token: Service-level GitHub token used when no user token exists.
        tasks:        Background queue for fire-and-forget refreshes.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        summarizer: SummaryClient,
        *,
        config: RepolensConfig | None = None,
        github: GitHubFactory | None = None,
        shared_token: str | None = None,
        tasks: BackgroundTasks | None = None,
    ) -> None:
        self.config = config or RepolensConfig()
        self.repo = Repository(conn)
        self.summarizer = summarizer
        self.tasks = tasks or BackgroundTasks(
            max_pending=self.config.tasks.max_pending, workers=self.config.tasks.workers
        )
        self._github: GitHubFactory = github or functools.partial(
            GitHubClient, api_url=self.config.github.api_url
        )
        self._shared_token = shared_token
        self._vec_table = ensure_vec_table(
            conn, model_to_slug(summarizer.embedding_model), self.config.embedding.dimensions
        )
        self._sync = CommitSyncEngine(
            self.repo,
            summarizer,
            self._github,
            shared_token=shared_token,
            commits_per_branch=self.config.sync.commits_per_branch,
        )

    @classmethod
    def from_config(cls, conn: sqlite3.Connection, config: RepolensConfig) -> "Engine":
        """Build an engine whose secrets come from the environment, read once here."""
        tracer = Tracer.from_config(
            config.tracing,
            api_key=os.environ.get("LANGSMITH_API_KEY"),
            api_url=os.environ.get("LANGSMITH_ENDPOINT"),
        )
        summarizer = SummaryClient.from_config(config.summary, config.embedding, tracer=tracer)
        return cls(conn, summarizer, config=config, shared_token=shared_github_token())

    @property
    def vec_table(self) -> str:
        return self._vec_table

    def resolve_token(self, acting_user_id: str | None) -> str | None:
        """The acting user's stored GitHub token, else the shared token."""
        return self._sync.resolve_token(acting_user_id)

    async def close(self) -> None:
        """Let queued background jobs finish, then stop the queue."""
        await self.tasks.close()

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    async def estimate_cost(self, repo_url: str, token: str | None = None) -> int:
        """Number of files in *repo_url* (0 for a malformed URL)."""
        async with self._github(token or self._shared_token) as gh:
            return await estimate_file_count(gh, repo_url)

    async def quote(self, repo_url: str, token: str | None = None) -> QuotaQuote:
        return QuotaQuote(file_count=await self.estimate_cost(repo_url, token))

    # ------------------------------------------------------------------
    # Content + embeddings
    # ------------------------------------------------------------------

    async def load_repository(
        self, repo_url: str, branch: str | None = None, token: str | None = None
    ) -> AsyncIterator[SourceDocument]:
        """Yield the branch's files. Each call re-fetches from GitHub."""
        async with self._github(token or self._shared_token) as gh:
            loader = RepoLoader(
                gh,
                ignore_files=self.config.github.ignore_files,
                max_concurrency=self.config.github.max_concurrency,
            )
            async for doc in loader.load(repo_url, branch):
                yield doc

    async def index_repository(
        self,
        project_id: str,
        repo_url: str,
        token: str | None = None,
        branch: str | None = None,
        on_batch: Callable[[IndexReport], None] | None = None,
    ) -> IndexReport:
        """Summarize, embed, and store every loadable file of the repository."""
        if self.repo.get_project(project_id) is None:
            raise ProjectNotFoundError(f"Project {project_id!r} does not exist")
        logger.info("Indexing %s for project %s", repo_url, project_id)
        pipeline = EmbeddingPipeline(
            self.repo,
            self.summarizer,
            self._vec_table,
            dimensions=self.config.embedding.dimensions,
            batch_size=self.config.ingest.batch_size,
        )
        return await pipeline.run(
            project_id, self.load_repository(repo_url, branch, token), on_batch=on_batch
        )

    # ------------------------------------------------------------------
    # Commits + branches
    # ------------------------------------------------------------------

    async def sync_commits(self, project_id: str, acting_user_id: str | None) -> list[CommitRecord]:
        return await self._sync.sync_commits(project_id, acting_user_id)

    async def list_branches(self, repo_url: str, acting_user_id: str | None) -> list[str]:
        return await self._sync.list_branches(repo_url, acting_user_id)

    async def get_commits(
        self,
        project_id: str,
        acting_user_id: str | None,
        branch: str | None = None,
        author: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> CommitPage:
        """Return stored commits newest first; refresh from GitHub in the background.

        The refresh does not delay this call, and its failure is only logged.
        """
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be >= 1")
        self.tasks.submit(
            lambda: self.sync_commits(project_id, acting_user_id),
            name=f"sync-commits:{project_id}",
        )
        total = self.repo.count_commits(project_id, branch=branch, author=author)
        commits = self.repo.list_commits(
            project_id, branch=branch, author=author, limit=limit, offset=(page - 1) * limit
        )
        return CommitPage(commits=commits, total=total, page=page, limit=limit)

    # ------------------------------------------------------------------
    # Project creation
    # ------------------------------------------------------------------

    async def create_project(
        self,
        name: str,
        repo_url: str,
        acting_user_id: str,
        branches: list[str] | None = None,
        token: str | None = None,
    ) -> ProjectSetup:
        """Price the repository, gate on credits, then ingest files and commits.

        Indexing and commit sync run concurrently and are both best-effort:
        a failure in either is logged and reported in the result, never raised.
        Credits are debited only when indexing completed.

        Raises:
            InsufficientCreditsError: The user's balance is below the file count.
        """
        token = token or self.resolve_token(acting_user_id)
        quote = await self.quote(repo_url, token)
        available = self.repo.get_credits(acting_user_id) or 0
        if available < quote.file_count:
            raise InsufficientCreditsError(quote.file_count, available)

        project = Project(id=str(uuid.uuid4()), name=name, github_url=repo_url)
        self.repo.add_project(project)
        if branches:
            self.repo.add_branches(project.id, branches)

        index, sync = await asyncio.gather(
            capture(self.index_repository(project.id, repo_url, token)),
            capture(self.sync_commits(project.id, acting_user_id)),
        )
        if index.ok:
            self.repo.debit_credits(acting_user_id, quote.file_count)
        else:
            logger.error("Indexing failed for project %s: %s", project.id, index.error)
        if not sync.ok:
            logger.error("Initial commit sync failed for project %s: %s", project.id, sync.error)

        return ProjectSetup(project=project, quote=quote, index=index, sync=sync)
