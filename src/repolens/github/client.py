"""Async GitHub REST client used by the loader, quota estimator, and commit sync.

The client is constructed explicitly with its token and base URL; nothing is
read from the environment at call time. Tokens are sent as a bearer header and
never appear in log lines or exception messages.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

import httpx

from repolens.errors import GitHubError, NotFoundError, RateLimitError, RepoUrlError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

_JSON = "application/vnd.github+json"
_RAW = "application/vnd.github.raw"
_DIFF = "application/vnd.github.v3.diff"
_API_VERSION = "2022-11-28"
_USER_AGENT = "repolens/0.1"


def parse_repo_url(url: str) -> tuple[str, str]:
    """Return ``(owner, repo)`` from a GitHub repository URL.

    Accepts ``https://github.com/owner/repo`` with an optional ``.git``
    suffix, trailing slash, or deeper path (``/tree/main/src``).

    Raises:
        RepoUrlError: If the URL has no owner/repo path segments.
    """
    parsed = urllib.parse.urlparse(url.strip())
    segments = [s for s in parsed.path.split("/") if s]
    if not parsed.netloc or len(segments) < 2:
        raise RepoUrlError(f"Invalid GitHub URL (expected https://github.com/<owner>/<repo>): {url!r}")
    owner, repo = segments[0], segments[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        raise RepoUrlError(f"Invalid GitHub URL (expected https://github.com/<owner>/<repo>): {url!r}")
    return owner, repo


class GitHubClient:
    """Thin async wrapper over the GitHub REST endpoints this engine consumes.

    Usage:
        async with GitHubClient(token) as gh:
            branch = await gh.get_default_branch("octocat", "hello-world")

    Args:
        token:     Personal or service access token; None for anonymous access.
        api_url:   REST API base URL (GitHub Enterprise uses ``https://host/api/v3``).
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        api_url: str = DEFAULT_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": _JSON,
            "X-GitHub-Api-Version": _API_VERSION,
            "User-Agent": _USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        accept: str | None = None,
    ) -> httpx.Response:
        headers = {"Accept": accept} if accept else None
        try:
            response = await self._http.get(path, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise GitHubError(f"GitHub request failed for {path}: {exc!r}") from exc
        if response.is_success:
            return response
        raise _error_for(response, path)

    # ------------------------------------------------------------------
    # Repository contents
    # ------------------------------------------------------------------

    async def get_content(
        self, owner: str, repo: str, path: str = "", ref: str | None = None
    ) -> dict | list[dict]:
        """List a directory (array of entries) or describe a single file (object)."""
        params = {"ref": ref} if ref else None
        response = await self._request(_contents_path(owner, repo, path), params=params)
        return response.json()

    async def get_file_bytes(
        self, owner: str, repo: str, path: str, ref: str | None = None
    ) -> bytes:
        """Return the raw bytes of a single file."""
        params = {"ref": ref} if ref else None
        response = await self._request(
            _contents_path(owner, repo, path), params=params, accept=_RAW
        )
        return response.content

    async def get_default_branch(self, owner: str, repo: str) -> str:
        response = await self._request(f"/repos/{owner}/{repo}")
        return response.json()["default_branch"]

    # ------------------------------------------------------------------
    # Branches and commits
    # ------------------------------------------------------------------

    async def list_branches(self, owner: str, repo: str, per_page: int = 10) -> list[str]:
        """Return every branch name, following ``Link: rel="next"`` pagination."""
        names: list[str] = []
        path: str | None = f"/repos/{owner}/{repo}/branches"
        params: dict[str, Any] | None = {"per_page": per_page}
        while path:
            response = await self._request(path, params=params)
            names.extend(b["name"] for b in response.json())
            next_link = response.links.get("next", {}).get("url")
            # The next URL already carries its query string.
            path, params = (next_link, None) if next_link else (None, None)
        return names

    async def list_commits(self, owner: str, repo: str, sha: str) -> list[dict]:
        """Return the first page of commits reachable from *sha* (branch or hash)."""
        response = await self._request(
            f"/repos/{owner}/{repo}/commits", params={"sha": sha}
        )
        return response.json()

    async def get_commit_diff(self, owner: str, repo: str, sha: str) -> str:
        """Return a single commit rendered as a unified diff."""
        response = await self._request(
            f"/repos/{owner}/{repo}/commits/{sha}", accept=_DIFF
        )
        return response.text


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _contents_path(owner: str, repo: str, path: str) -> str:
    return f"/repos/{owner}/{repo}/contents/{urllib.parse.quote(path.strip('/'))}"


def _error_for(response: httpx.Response, path: str) -> GitHubError:
    try:
        body = response.json()
    except ValueError:
        body = None
    message = body.get("message", "") if isinstance(body, dict) else response.text[:200]
    status = response.status_code
    text = f"GitHub API {status} for {path}: {message}".rstrip(": ")

    if status == 404:
        return NotFoundError(text, status)
    if status == 429 or (
        status == 403 and response.headers.get("x-ratelimit-remaining") == "0"
    ):
        return RateLimitError(text, status)
    return GitHubError(text, status)
