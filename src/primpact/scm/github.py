"""GitHub REST implementation of the source-control contract.

Also carries the two posting operations (comment upsert and inline review)
that consume the Markdown produced by :mod:`primpact.report`.
"""

from __future__ import annotations

import base64
import logging
from typing import Any
from urllib.parse import quote

import httpx

from primpact.exceptions import (
    SourceControlError,
    SourceControlNotFoundError,
    SourceControlRateLimitError,
    SourceControlUnauthorizedError,
)
from primpact.scm.base import PullRequestInfo, SourceControl

logger = logging.getLogger("primpact.github")

DIFF_MEDIA_TYPE = "application/vnd.github.diff"
JSON_MEDIA_TYPE = "application/vnd.github+json"


def raise_for_status(response: httpx.Response, what: str) -> None:
    """Translate a GitHub error response into a classified exception."""
    status = response.status_code
    if status < 400:
        return
    if status == 404:
        raise SourceControlNotFoundError(f"{what} not found")
    if status == 401:
        raise SourceControlUnauthorizedError("GitHub token is invalid or expired")
    if status == 429 or (
        status == 403 and response.headers.get("x-ratelimit-remaining") == "0"
    ):
        reset = response.headers.get("x-ratelimit-reset", "")
        raise SourceControlRateLimitError(
            "GitHub API rate limit exceeded" + (f" (resets at {reset})" if reset else "")
        )
    if status == 403:
        raise SourceControlUnauthorizedError(f"Access to {what} is forbidden")
    raise SourceControlError(f"GitHub API error {status} for {what}")


class GitHubPlatform(SourceControl):
    """GitHub repository accessed through the REST API."""

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._default_branch: str | None = None

    @classmethod
    def from_full_name(cls, full_name: str, **kwargs: Any) -> GitHubPlatform:
        owner, _, repo = full_name.partition("/")
        if not owner or not repo or "/" in repo:
            raise ValueError(f"Expected 'owner/repo', got '{full_name}'")
        return cls(owner, repo, **kwargs)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {
                "Accept": JSON_MEDIA_TYPE,
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "primpact",
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            kwargs: dict[str, Any] = {
                "base_url": self.api_url,
                "headers": headers,
                "timeout": self.timeout,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GitHubPlatform:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        what: str,
        accept: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        client = self._get_client()
        headers = {"Accept": accept} if accept else None
        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise SourceControlError(f"GitHub request for {what} failed: {e}") from e
        raise_for_status(response, what)
        return response

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    # ------------------------------------------------------------------
    # Read contract
    # ------------------------------------------------------------------

    async def get_diff(self, pr_number: int) -> str:
        response = await self._request(
            "GET",
            f"{self._repo_path}/pulls/{pr_number}",
            f"pull request #{pr_number}",
            accept=DIFF_MEDIA_TYPE,
        )
        return response.text

    async def get_pr_info(self, pr_number: int) -> PullRequestInfo:
        response = await self._request(
            "GET", f"{self._repo_path}/pulls/{pr_number}", f"pull request #{pr_number}"
        )
        data = response.json()
        return PullRequestInfo(
            number=pr_number,
            title=data.get("title", ""),
            head_sha=data.get("head", {}).get("sha", ""),
        )

    async def compare_refs(self, base: str, head: str) -> str:
        basehead = f"{quote(base, safe='')}...{quote(head, safe='')}"
        response = await self._request(
            "GET",
            f"{self._repo_path}/compare/{basehead}",
            f"comparison {base}...{head}",
            accept=DIFF_MEDIA_TYPE,
        )
        return response.text

    async def get_default_branch(self) -> str:
        if self._default_branch is None:
            response = await self._request("GET", self._repo_path, f"repository {self.full_name}")
            self._default_branch = response.json().get("default_branch", "main")
        return self._default_branch

    async def get_default_branch_head(self) -> str:
        branch = await self.get_default_branch()
        response = await self._request(
            "GET",
            f"{self._repo_path}/git/ref/heads/{quote(branch, safe='/')}",
            f"branch {branch}",
        )
        return response.json()["object"]["sha"]

    async def get_repo_tree(self, ref: str | None = None) -> list[str]:
        tree_ref = ref or await self.get_default_branch()
        response = await self._request(
            "GET",
            f"{self._repo_path}/git/trees/{quote(tree_ref, safe='')}",
            f"tree {tree_ref}",
            params={"recursive": "1"},
        )
        data = response.json()
        if data.get("truncated"):
            logger.warning("Tree for %s@%s was truncated by GitHub", self.full_name, tree_ref)
        return [
            item["path"]
            for item in data.get("tree", [])
            if item.get("type") == "blob" and item.get("path")
        ]

    async def get_file_content(self, path: str, ref: str | None = None) -> bytes:
        params = {"ref": ref} if ref else None
        response = await self._request(
            "GET",
            f"{self._repo_path}/contents/{quote(path)}",
            f"file {path}",
            params=params,
        )
        data = response.json()
        if isinstance(data, list):
            raise SourceControlError(f"{path} is a directory")
        if data.get("encoding") != "base64":
            # GitHub omits content for files over 1MB
            raise SourceControlError(f"{path} content is not available inline")
        return base64.b64decode(data.get("content", ""))

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    async def upsert_comment(self, pr_number: int, body: str, marker: str) -> int:
        """Update the comment containing ``marker``, or create one. Returns its id."""
        response = await self._request(
            "GET",
            f"{self._repo_path}/issues/{pr_number}/comments",
            f"comments of #{pr_number}",
            params={"per_page": 100},
        )
        existing = next(
            (c for c in response.json() if marker in (c.get("body") or "")),
            None,
        )
        if existing is not None:
            response = await self._request(
                "PATCH",
                f"{self._repo_path}/issues/comments/{existing['id']}",
                f"comment {existing['id']}",
                json={"body": body},
            )
        else:
            response = await self._request(
                "POST",
                f"{self._repo_path}/issues/{pr_number}/comments",
                f"comments of #{pr_number}",
                json={"body": body},
            )
        return response.json().get("id", 0)

    async def create_review(
        self,
        pr_number: int,
        body: str,
        comments: list[dict[str, Any]],
    ) -> None:
        """Create a COMMENT review; inline comments without a line are dropped."""
        inline = [
            {"path": c["path"], "line": c["line"], "body": c["body"]}
            for c in comments
            if c.get("line")
        ]
        payload: dict[str, Any] = {"body": body, "event": "COMMENT"}
        if inline:
            payload["comments"] = inline
        await self._request(
            "POST",
            f"{self._repo_path}/pulls/{pr_number}/reviews",
            f"review of #{pr_number}",
            json=payload,
        )
