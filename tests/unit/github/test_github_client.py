"""Tests for the async GitHub REST client (httpx.MockTransport)."""

from __future__ import annotations

import httpx
import pytest

from repolens.errors import GitHubError, NotFoundError, RateLimitError, RepoUrlError
from repolens.github.client import GitHubClient, parse_repo_url


def _client(handler, token: str | None = "tok") -> GitHubClient:
    return GitHubClient(token, api_url="https://api.test", transport=httpx.MockTransport(handler))


# ------------------------------------------------------------------
# parse_repo_url
# ------------------------------------------------------------------


@pytest.mark.parametrize("url", [
    "https://github.com/octocat/hello",
    "https://github.com/octocat/hello.git",
    "https://github.com/octocat/hello/",
    "https://github.com/octocat/hello/tree/main/src",
])
def test_parse_repo_url(url):
    assert parse_repo_url(url) == ("octocat", "hello")


@pytest.mark.parametrize("url", ["https://github.com/octocat", "not a url", ""])
def test_parse_repo_url_rejects(url):
    with pytest.raises(RepoUrlError):
        parse_repo_url(url)


def test_repo_url_error_is_value_error():
    assert issubclass(RepoUrlError, ValueError)


# ------------------------------------------------------------------
# Requests
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_auth_and_api_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.headers)
        return httpx.Response(200, json={"default_branch": "trunk"})

    async with _client(handler) as gh:
        assert await gh.get_default_branch("o", "r") == "trunk"
    assert seen["authorization"] == "Bearer tok"
    assert seen["x-github-api-version"] == "2022-11-28"


@pytest.mark.asyncio
async def test_anonymous_client_sends_no_auth():
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, json={"default_branch": "main"})

    async with _client(handler, token=None) as gh:
        await gh.get_default_branch("o", "r")
    assert "authorization" not in seen


@pytest.mark.asyncio
async def test_get_content_passes_ref_and_path():
    def handler(request):
        assert request.url.path == "/repos/o/r/contents/src/my dir"
        assert b"my%20dir" in request.url.raw_path
        assert request.url.params["ref"] == "dev"
        return httpx.Response(200, json=[{"type": "file", "path": "src/my dir/a.py"}])

    async with _client(handler) as gh:
        listing = await gh.get_content("o", "r", "src/my dir", ref="dev")
    assert listing == [{"type": "file", "path": "src/my dir/a.py"}]


@pytest.mark.asyncio
async def test_file_bytes_uses_raw_media_type():
    def handler(request):
        assert request.headers["accept"] == "application/vnd.github.raw"
        return httpx.Response(200, content=b"\x89PNG")

    async with _client(handler) as gh:
        assert await gh.get_file_bytes("o", "r", "logo.png") == b"\x89PNG"


@pytest.mark.asyncio
async def test_commit_diff_uses_diff_media_type():
    def handler(request):
        assert request.url.path == "/repos/o/r/commits/abc"
        assert request.headers["accept"] == "application/vnd.github.v3.diff"
        return httpx.Response(200, text="diff --git a/x b/x\n")

    async with _client(handler) as gh:
        assert (await gh.get_commit_diff("o", "r", "abc")).startswith("diff --git")


@pytest.mark.asyncio
async def test_list_commits_by_branch():
    def handler(request):
        assert request.url.params["sha"] == "feature/x"
        return httpx.Response(200, json=[{"sha": "1"}, {"sha": "2"}])

    async with _client(handler) as gh:
        assert [c["sha"] for c in await gh.list_commits("o", "r", sha="feature/x")] == ["1", "2"]


@pytest.mark.asyncio
async def test_list_branches_follows_pagination():
    def handler(request):
        if request.url.params.get("page") == "2":
            return httpx.Response(200, json=[{"name": "c"}])
        assert request.url.params["per_page"] == "2"
        return httpx.Response(
            200,
            json=[{"name": "a"}, {"name": "b"}],
            headers={"Link": '<https://api.test/repos/o/r/branches?per_page=2&page=2>; rel="next"'},
        )

    async with _client(handler) as gh:
        assert await gh.list_branches("o", "r", per_page=2) == ["a", "b", "c"]


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_404_raises_not_found():
    def handler(request):
        return httpx.Response(404, json={"message": "Not Found"})

    async with _client(handler) as gh:
        with pytest.raises(NotFoundError) as info:
            await gh.get_content("o", "r")
    assert info.value.status_code == 404
    assert "Not Found" in str(info.value)


@pytest.mark.asyncio
async def test_exhausted_rate_limit_raises_rate_limit():
    def handler(request):
        return httpx.Response(
            403, json={"message": "API rate limit exceeded"}, headers={"x-ratelimit-remaining": "0"}
        )

    async with _client(handler) as gh:
        with pytest.raises(RateLimitError):
            await gh.list_commits("o", "r", sha="main")


@pytest.mark.asyncio
async def test_plain_403_is_generic_error():
    def handler(request):
        return httpx.Response(403, json={"message": "Resource not accessible"})

    async with _client(handler) as gh:
        with pytest.raises(GitHubError) as info:
            await gh.get_default_branch("o", "r")
    assert not isinstance(info.value, RateLimitError)
    assert info.value.status_code == 403


@pytest.mark.asyncio
async def test_transport_failure_wrapped_without_token():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler, token="ghp_very_secret") as gh:
        with pytest.raises(GitHubError) as info:
            await gh.get_default_branch("o", "r")
    assert info.value.status_code is None
    assert "ghp_very_secret" not in str(info.value)
