"""Tests for the GitHub REST gateway."""

import base64
import json

import httpx
import pytest

from wpadvisories.config import Settings
from wpadvisories.errors import GatewayError, PublishError
from wpadvisories.gateway import GithubGateway


class RecordingGithub:
    """Minimal GitHub API double that records every request."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": "Not Found"})
        status, body = self.routes[key]
        return httpx.Response(status, json=body)

    def body(self, index):
        return json.loads(self.requests[index].content)


def make_gateway(routes, **kwargs):
    github = RecordingGithub(routes)
    gateway = GithubGateway(
        token="secret",
        repo_owner="acme",
        repo_name="site",
        transport=httpx.MockTransport(github),
        **kwargs,
    )
    return gateway, github


class TestGithubGatewayReads:
    """Test read operations."""

    @pytest.mark.asyncio
    async def test_get_file_content_decodes_base64(self):
        content = base64.b64encode(b'{"name": "acme/site"}').decode()
        gateway, github = make_gateway({
            ("GET", "/repos/acme/site/contents/composer.json"): (200, {"content": content, "sha": "f1"}),
        })

        assert await gateway.get_file_content("composer.json") == b'{"name": "acme/site"}'
        assert github.requests[0].headers["Authorization"] == "Bearer secret"
        assert github.requests[0].headers["Accept"] == "application/vnd.github+json"

    @pytest.mark.asyncio
    async def test_get_file_content_reads_requested_branch(self):
        """The manifest must come from the same branch that pull requests are cut from."""
        content = base64.b64encode(b"{}").decode()
        gateway, github = make_gateway({
            ("GET", "/repos/acme/site/contents/composer.json"): (200, {"content": content, "sha": "f1"}),
        })

        await gateway.get_file_content("composer.json", "develop")
        await gateway.get_file_sha("composer.json", "develop")

        assert github.requests[0].url.params["ref"] == "develop"
        assert github.requests[1].url.params["ref"] == "develop"

    @pytest.mark.asyncio
    async def test_get_file_content_without_branch(self):
        content = base64.b64encode(b"{}").decode()
        gateway, github = make_gateway({
            ("GET", "/repos/acme/site/contents/composer.json"): (200, {"content": content, "sha": "f1"}),
        })

        await gateway.get_file_content("composer.json")

        assert "ref" not in github.requests[0].url.params

    @pytest.mark.asyncio
    async def test_get_file_content_missing(self):
        """A missing file should raise instead of returning empty content."""
        gateway, _ = make_gateway({})
        with pytest.raises(GatewayError) as exc_info:
            await gateway.get_file_content("composer.json")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_get_file_sha_uses_branch(self):
        gateway, github = make_gateway({
            ("GET", "/repos/acme/site/contents/composer.json"): (200, {"sha": "f1"}),
        })

        assert await gateway.get_file_sha("composer.json", "main") == "f1"
        assert github.requests[0].url.params["ref"] == "main"

    @pytest.mark.asyncio
    async def test_get_file_sha_without_sha(self):
        gateway, _ = make_gateway({
            ("GET", "/repos/acme/site/contents/composer.json"): (200, {"content": ""}),
        })
        with pytest.raises(GatewayError):
            await gateway.get_file_sha("composer.json", "master")


class TestGithubGatewayWrites:
    """Test branch, commit and pull request operations."""

    @pytest.mark.asyncio
    async def test_create_branch_from_head(self):
        """Should resolve the base head and create a ref pointing at it."""
        gateway, github = make_gateway({
            ("GET", "/repos/acme/site/git/ref/heads/master"): (200, {"object": {"sha": "head1"}}),
            ("POST", "/repos/acme/site/git/refs"): (201, {"ref": "refs/heads/v1"}),
        })

        await gateway.create_branch("v1", "master")

        assert github.body(1) == {"ref": "refs/heads/v1", "sha": "head1"}

    @pytest.mark.asyncio
    async def test_create_existing_branch_fails(self):
        """GitHub answers 422 for an existing ref; that must surface as a publish error."""
        gateway, _ = make_gateway({
            ("GET", "/repos/acme/site/git/ref/heads/master"): (200, {"object": {"sha": "head1"}}),
            ("POST", "/repos/acme/site/git/refs"): (422, {"message": "Reference already exists"}),
        })

        with pytest.raises(PublishError) as exc_info:
            await gateway.create_branch("v1", "master")
        assert "Reference already exists" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_update_file_content_encodes_payload(self):
        gateway, github = make_gateway({
            ("PUT", "/repos/acme/site/contents/composer.json"): (200, {"commit": {"sha": "c1"}}),
        })

        await gateway.update_file_content("composer.json", '{"a": "b/c"}\n', "plugin Foo | CVSS = 5 | <1.0", "f1", "v1")

        body = github.body(0)
        assert base64.b64decode(body["content"]) == b'{"a": "b/c"}\n'
        assert body["sha"] == "f1"
        assert body["branch"] == "v1"
        assert body["message"] == "plugin Foo | CVSS = 5 | <1.0"

    @pytest.mark.asyncio
    async def test_stale_sha_fails(self):
        gateway, _ = make_gateway({
            ("PUT", "/repos/acme/site/contents/composer.json"): (409, {"message": "composer.json does not match f1"}),
        })
        with pytest.raises(GatewayError) as exc_info:
            await gateway.update_file_content("composer.json", "{}", "msg", "f1", "v1")
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_create_pull_request(self):
        gateway, github = make_gateway({
            ("POST", "/repos/acme/site/pulls"): (201, {"html_url": "https://github.com/acme/site/pull/7"}),
        })

        url = await gateway.create_pull_request("master", "v1", "title", "body")

        assert url == "https://github.com/acme/site/pull/7"
        assert github.body(0) == {"base": "master", "head": "v1", "title": "title", "body": "body"}


class TestGithubGatewayFork:
    """Test publishing through a fork."""

    @pytest.mark.asyncio
    async def test_writes_go_to_fork_and_pr_goes_upstream(self):
        gateway, github = make_gateway(
            {
                ("GET", "/repos/acme/site/git/ref/heads/master"): (200, {"object": {"sha": "head1"}}),
                ("POST", "/repos/bot/site-fork/git/refs"): (201, {"ref": "refs/heads/v1"}),
                ("PUT", "/repos/bot/site-fork/contents/composer.json"): (200, {}),
                ("POST", "/repos/acme/site/pulls"): (201, {"html_url": "https://github.com/acme/site/pull/8"}),
            },
            fork_owner="bot",
            fork_name="site-fork",
        )

        await gateway.create_branch("v1", "master")
        await gateway.update_file_content("composer.json", "{}", "msg", "f1", "v1")
        await gateway.create_pull_request("master", "v1", "title", "body")

        paths = [request.url.path for request in github.requests]
        assert paths == [
            "/repos/acme/site/git/ref/heads/master",
            "/repos/bot/site-fork/git/refs",
            "/repos/bot/site-fork/contents/composer.json",
            "/repos/acme/site/pulls",
        ]
        assert github.body(3)["head"] == "bot:v1"

    def test_from_settings(self):
        settings = Settings(
            token="t", repo_owner="acme", repo_name="site", fork_owner="bot", fork_name="site-fork",
            api_url="https://github.example.com/api/v3", timeout=5.0,
        )
        gateway = GithubGateway.from_settings(settings)

        assert gateway.head_path == "/repos/bot/site-fork"
        assert gateway.upstream_path == "/repos/acme/site"
        assert gateway.api_url == "https://github.example.com/api/v3"
        assert gateway.timeout == 5.0
