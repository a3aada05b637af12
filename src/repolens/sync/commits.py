"""Commit sync — discover, deduplicate, and summarize new commits per branch.

Per branch, in the project's branch order:
1. Resolve the branch (the repository default branch when none is configured).
2. List its commits and keep the ``commits_per_branch`` newest by author date.
3. Drop hashes already stored for the project on *any* branch.
4. Fetch each new commit's diff and summarize it, all concurrently; a failure
   yields an empty summary for that commit only.
5. Bulk-insert the branch's new commits in listing order.

A commit reachable from several branches is stored once, under the first
branch that sees it. Dedup is query-then-insert; the store's unique
(project_id, commit_hash) constraint catches concurrent runs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from repolens.db.models import CommitRecord
from repolens.db.repository import Repository
from repolens.errors import GitHubError, ProjectNotFoundError
from repolens.github.client import GitHubClient, parse_repo_url
from repolens.ingest.summarizer import SummaryClient
from repolens.outcome import settle

logger = logging.getLogger(__name__)

COMMITS_PER_BRANCH = 10

GitHubFactory = Callable[[str | None], GitHubClient]


class CommitSyncEngine:
    """Keep a project's stored commits in step with GitHub.

    Args:
        repo:               Open Repository instance.
        summarizer:         SummaryClient used for commit-diff summaries.
        github:             Factory returning a GitHubClient for a token.
        shared_token:       Service-level token used when the acting user has none.
        commits_per_branch: Newest commits considered per branch per run.
    """

    def __init__(
        self,
        repo: Repository,
        summarizer: SummaryClient,
        github: GitHubFactory,
        *,
        shared_token: str | None = None,
        commits_per_branch: int = COMMITS_PER_BRANCH,
    ) -> None:
        self._repo = repo
        self._summarizer = summarizer
        self._github = github
        self._shared_token = shared_token
        self._limit = commits_per_branch

    def resolve_token(self, user_id: str | None) -> str | None:
        """The acting user's stored GitHub token, else the shared token."""
        user_token = self._repo.get_git_token(user_id) if user_id else None
        return user_token or self._shared_token

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def sync_commits(self, project_id: str, acting_user_id: str | None) -> list[CommitRecord]:
        """Store new commits for every active branch; return the inserted records.

        A GitHub error while listing a branch aborts that branch only. If every
        polled branch fails, the first error is raised.

        Raises:
            ProjectNotFoundError: Unknown project or project without a GitHub URL.
            RepoUrlError: The project's GitHub URL has no owner/repo.
        """
        project = self._repo.get_project(project_id)
        if project is None or not project.github_url:
            raise ProjectNotFoundError(f"Project {project_id!r} has no GitHub URL")
        owner, repo = parse_repo_url(project.github_url)

        targets: list[str | None] = [
            b.name for b in self._repo.list_active_branches(project_id)
        ] or [None]

        inserted: list[CommitRecord] = []
        failures: list[GitHubError] = []
        async with self._github(self.resolve_token(acting_user_id)) as gh:
            for branch in targets:
                try:
                    inserted.extend(
                        await self._sync_branch(gh, project_id, owner, repo, branch)
                    )
                except GitHubError as exc:
                    logger.error(
                        "Commit sync for %s/%s branch %s failed: %s",
                        owner,
                        repo,
                        branch or "(default)",
                        exc,
                    )
                    failures.append(exc)

        if failures and len(failures) == len(targets):
            raise failures[0]
        logger.info("Project %s: %d new commits", project_id, len(inserted))
        return inserted

    async def list_branches(self, repo_url: str, acting_user_id: str | None) -> list[str]:
        """Return every branch name of *repo_url*."""
        owner, repo = parse_repo_url(repo_url)
        async with self._github(self.resolve_token(acting_user_id)) as gh:
            return await gh.list_branches(owner, repo)

    # ------------------------------------------------------------------
    # Per-branch steps
    # ------------------------------------------------------------------

    async def _sync_branch(
        self,
        gh: GitHubClient,
        project_id: str,
        owner: str,
        repo: str,
        branch: str | None,
    ) -> list[CommitRecord]:
        recent = await self.fetch_recent_commits(gh, project_id, owner, repo, branch)

        known = self._repo.list_commit_hashes(project_id)
        new = [c for c in recent if c.commit_hash not in known]
        if not new:
            return []

        summaries = await settle(
            self._summarize_commit(gh, owner, repo, c.commit_hash) for c in new
        )
        records = [
            replace(commit, summary=outcome.value if outcome.ok else "")
            for commit, outcome in zip(new, summaries)
        ]
        for commit, outcome in zip(new, summaries):
            if not outcome.ok:
                logger.warning("No summary for commit %s: %s", commit.commit_hash, outcome.error)

        stored = self._repo.add_commits(records)
        logger.info(
            "%s/%s@%s: stored %d of %d new commits",
            owner,
            repo,
            records[0].branch_name,
            len(stored),
            len(records),
        )
        return stored

    async def fetch_recent_commits(
        self,
        gh: GitHubClient,
        project_id: str,
        owner: str,
        repo: str,
        branch: str | None,
    ) -> list[CommitRecord]:
        """Return the newest commits on *branch* as unsummarized CommitRecords."""
        branch_name = branch or await gh.get_default_branch(owner, repo)
        raw = await gh.list_commits(owner, repo, sha=branch_name)
        raw.sort(key=_author_date, reverse=True)
        return [
            _to_record(project_id, branch_name, item) for item in raw[: self._limit]
        ]

    async def _summarize_commit(
        self, gh: GitHubClient, owner: str, repo: str, sha: str
    ) -> str:
        diff = await gh.get_commit_diff(owner, repo, sha)
        if not diff:
            logger.warning("No diff content for commit %s", sha)
            return ""
        return await self._summarizer.summarize_commit(diff)


# ------------------------------------------------------------------
# GitHub payload → model helpers
# ------------------------------------------------------------------

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _author_date(item: dict) -> datetime:
    raw = ((item.get("commit") or {}).get("author") or {}).get("date")
    if not raw:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _to_record(project_id: str, branch_name: str, item: dict) -> CommitRecord:
    commit = item.get("commit") or {}
    author = commit.get("author") or {}
    return CommitRecord(
        project_id=project_id,
        commit_hash=item["sha"],
        commit_message=commit.get("message") or "",
        commit_author_name=author.get("name") or "",
        commit_author_avatar=(item.get("author") or {}).get("avatar_url") or "",
        commit_date=author.get("date") or "",
        branch_name=branch_name,
    )
