"""Repository content loader — files of one branch as SourceDocuments.

The tree is walked through the contents API with a small, fixed fan-out
(``max_concurrency``) so large repositories do not burn through the rate
limit. Files are then fetched in windows of the same size and yielded as soon
as each window completes.

Failure policy:
- Root listing failure (bad URL, no access) propagates.
- A file that fails to download, or is not UTF-8 text, is skipped with a
  warning; the rest of the load continues.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from collections.abc import AsyncIterator, Iterable

from repolens.config import DEFAULT_IGNORE_FILES
from repolens.db.models import SourceDocument
from repolens.errors import GitHubError
from repolens.github.client import GitHubClient, parse_repo_url

logger = logging.getLogger(__name__)


class RepoLoader:
    """Load every text file of a branch from GitHub.

    Args:
        client:          Authenticated GitHubClient (owned by the caller).
        ignore_files:    Basenames that are never loaded (dependency lockfiles).
        max_concurrency: Upper bound on in-flight GitHub calls.
    """

    def __init__(
        self,
        client: GitHubClient,
        ignore_files: Iterable[str] = DEFAULT_IGNORE_FILES,
        max_concurrency: int = 5,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._client = client
        self._ignore = frozenset(ignore_files)
        self._max_concurrency = max_concurrency

    async def load(self, repo_url: str, branch: str | None = None) -> AsyncIterator[SourceDocument]:
        """Yield a SourceDocument per file on *branch* (default branch if None)."""
        owner, repo = parse_repo_url(repo_url)
        ref = branch or await self._client.get_default_branch(owner, repo)
        sem = asyncio.Semaphore(self._max_concurrency)

        paths = await self._list_files(owner, repo, "", ref, sem)
        logger.info("%s/%s@%s: %d files to load", owner, repo, ref, len(paths))

        for start in range(0, len(paths), self._max_concurrency):
            window = paths[start : start + self._max_concurrency]
            docs = await asyncio.gather(
                *(self._fetch(owner, repo, p, ref, sem) for p in window)
            )
            for doc in docs:
                if doc is not None:
                    yield doc

    async def load_all(self, repo_url: str, branch: str | None = None) -> list[SourceDocument]:
        return [doc async for doc in self.load(repo_url, branch)]

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    async def _list_files(
        self, owner: str, repo: str, path: str, ref: str, sem: asyncio.Semaphore
    ) -> list[str]:
        async with sem:
            listing = await self._client.get_content(owner, repo, path, ref=ref)
        if not isinstance(listing, list):
            listing = [listing]

        files: list[str] = []
        directories: list[str] = []
        for entry in listing:
            kind = entry.get("type")
            if kind == "dir":
                directories.append(entry["path"])
            elif kind == "file":
                if posixpath.basename(entry["path"]) in self._ignore:
                    logger.debug("Ignoring %s", entry["path"])
                    continue
                files.append(entry["path"])
            else:
                logger.debug("Skipping %s entry %s", kind, entry.get("path"))

        # The semaphore is released before recursing, so nesting cannot deadlock.
        nested = await asyncio.gather(
            *(self._list_files(owner, repo, d, ref, sem) for d in directories)
        )
        for sub in nested:
            files.extend(sub)
        return sorted(files)

    # ------------------------------------------------------------------
    # File fetch
    # ------------------------------------------------------------------

    async def _fetch(
        self, owner: str, repo: str, path: str, ref: str, sem: asyncio.Semaphore
    ) -> SourceDocument | None:
        try:
            async with sem:
                raw = await self._client.get_file_bytes(owner, repo, path, ref=ref)
        except GitHubError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return None
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Skipping %s: unknown file type (not UTF-8 text)", path)
            return None
        return SourceDocument(path=path, raw_content=text)
