"""GitHub REST API gateway for reading and publishing composer.json changes."""

import base64
import logging
from typing import Any, Protocol

import httpx

from .config import Settings
from .errors import GatewayError

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class RepositoryGateway(Protocol):
    """Remote repository operations needed to publish a manifest change."""

    async def get_file_content(self, path: str, ref: str | None = None) -> bytes:
        ...

    async def get_file_sha(self, path: str, branch: str) -> str:
        ...

    async def create_branch(self, name: str, from_branch: str) -> None:
        ...

    async def update_file_content(
        self, path: str, content: str, commit_message: str, old_sha: str, branch: str
    ) -> None:
        ...

    async def create_pull_request(self, base: str, head: str, title: str, body: str = "") -> str | None:
        ...


class GithubGateway:
    """Thin wrapper over the GitHub REST v3 endpoints used by the upgrader.

    Reads always target the upstream repository. When a fork is configured,
    branches and commits go to the fork and pull requests are opened against
    upstream with a ``fork_owner:branch`` head.
    """

    def __init__(
        self,
        token: str,
        repo_owner: str,
        repo_name: str,
        fork_owner: str | None = None,
        fork_name: str | None = None,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self.repo_owner = repo_owner
        self.repo_name = repo_name
        self.fork_owner = fork_owner
        self.fork_name = fork_name
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> "GithubGateway":
        return cls(
            token=settings.token,
            repo_owner=settings.repo_owner,
            repo_name=settings.repo_name,
            fork_owner=settings.fork_owner,
            fork_name=settings.fork_name,
            api_url=settings.api_url,
            timeout=settings.timeout,
            transport=transport,
        )

    @property
    def upstream_path(self) -> str:
        return f"/repos/{self.repo_owner}/{self.repo_name}"

    @property
    def head_path(self) -> str:
        """Repository that receives branches and commits."""
        if self.fork_owner and self.fork_name:
            return f"/repos/{self.fork_owner}/{self.fork_name}"
        return self.upstream_path

    async def get_file_content(self, path: str, ref: str | None = None) -> bytes:
        """Retrieve a file from the upstream repository.

        Args:
            path: Path of the file inside the repository
            ref: Branch to read from; GitHub's default branch when omitted

        Returns:
            Raw file content

        Raises:
            GatewayError: If the file is missing or has no content
        """
        params = {"ref": ref} if ref else None
        data = await self._request("GET", f"{self.upstream_path}/contents/{path}", params=params)
        content = data.get("content") if isinstance(data, dict) else None
        if not content:
            raise GatewayError(f'Missing "{path}" content')
        return base64.b64decode(content)

    async def get_file_sha(self, path: str, branch: str) -> str:
        data = await self._request("GET", f"{self.upstream_path}/contents/{path}", params={"ref": branch})
        sha = data.get("sha") if isinstance(data, dict) else None
        if isinstance(sha, str):
            return sha
        raise GatewayError(f"Unable to retrieve file SHA: {path}")

    async def get_branch_sha(self, branch: str) -> str:
        data = await self._request("GET", f"{self.upstream_path}/git/ref/heads/{branch}")
        sha = data.get("object", {}).get("sha") if isinstance(data, dict) else None
        if isinstance(sha, str):
            return sha
        raise GatewayError(f"Unable to retrieve head SHA of branch {branch}")

    async def create_branch(self, name: str, from_branch: str) -> None:
        """Create ``name`` pointing at the current head of ``from_branch``.

        Raises:
            GatewayError: If the ref cannot be created, including when it already exists
        """
        ref_name = f"refs/heads/{name}"
        sha = await self.get_branch_sha(from_branch)
        data = await self._request("POST", f"{self.head_path}/git/refs", json={"ref": ref_name, "sha": sha})
        if not isinstance(data, dict) or data.get("ref") != ref_name:
            raise GatewayError(f"Unable to create branch, GitHub response was: {data}")
        logger.debug("Created branch %s at %s", name, sha)

    async def update_file_content(
        self, path: str, content: str, commit_message: str, old_sha: str, branch: str
    ) -> None:
        payload = {
            "message": commit_message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "sha": old_sha,
            "branch": branch,
        }
        await self._request("PUT", f"{self.head_path}/contents/{path}", json=payload)
        logger.debug("Committed %s to %s", path, branch)

    async def create_pull_request(self, base: str, head: str, title: str, body: str = "") -> str | None:
        """Open a pull request from ``head`` into ``base``.

        Returns:
            URL of the new pull request, when GitHub reports one
        """
        if self.fork_owner and self.fork_name:
            head = f"{self.fork_owner}:{head}"
        data = await self._request(
            "POST",
            f"{self.upstream_path}/pulls",
            json={"base": base, "head": head, "title": title, "body": body},
        )
        return data.get("html_url") if isinstance(data, dict) else None

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.api_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=self._headers(), transport=self._transport
            ) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise GatewayError(f"Timeout calling {method} {path}") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"Network error calling {method} {path}: {e}") from e

        if response.is_error:
            raise GatewayError(
                f"{method} {path} failed with HTTP {response.status_code}: {self._error_message(response)}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(f"{method} {path} returned invalid JSON") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return response.text
