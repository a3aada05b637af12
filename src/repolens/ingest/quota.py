"""Quota estimation — count the files an ingestion run would touch.

Nothing is excluded here; lockfiles are only skipped by the loader, so the
quote can slightly overcount what ends up embedded.
"""

from __future__ import annotations

import asyncio
import logging

from repolens.errors import RepoUrlError
from repolens.github.client import GitHubClient, parse_repo_url

logger = logging.getLogger(__name__)


async def count_files(client: GitHubClient, owner: str, repo: str, path: str = "") -> int:
    """Return the number of files at or below *path*.

    Every subdirectory is listed concurrently (one call each, no cap).
    Provider errors propagate.
    """
    listing = await client.get_content(owner, repo, path)
    if not isinstance(listing, list):
        return 1 if listing.get("type") == "file" else 0

    files = 0
    directories: list[str] = []
    for entry in listing:
        if entry.get("type") == "dir":
            directories.append(entry["path"])
        else:
            files += 1

    if directories:
        nested = await asyncio.gather(
            *(count_files(client, owner, repo, d) for d in directories)
        )
        files += sum(nested)
    return files


async def estimate_file_count(client: GitHubClient, repo_url: str) -> int:
    """Return the total file count for *repo_url*, or 0 if the URL is malformed."""
    try:
        owner, repo = parse_repo_url(repo_url)
    except RepoUrlError:
        logger.warning("Cannot estimate %r: not an owner/repo URL", repo_url)
        return 0
    total = await count_files(client, owner, repo)
    logger.info("%s/%s: %d files", owner, repo, total)
    return total
