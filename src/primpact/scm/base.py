"""Read contract the analysis core needs from a source-control host."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel


class PullRequestInfo(BaseModel):
    """Identity of a pull request at its current head."""

    number: int
    title: str
    head_sha: str


class SourceControl(ABC):
    """Abstract, read-only access to one repository.

    Every method may raise SourceControlNotFoundError,
    SourceControlUnauthorizedError or SourceControlRateLimitError.
    """

    @property
    @abstractmethod
    def full_name(self) -> str:
        """``owner/name`` of the repository."""
        ...

    @abstractmethod
    async def get_diff(self, pr_number: int) -> str:
        """Unified diff of a pull request."""
        ...

    @abstractmethod
    async def get_pr_info(self, pr_number: int) -> PullRequestInfo:
        ...

    @abstractmethod
    async def compare_refs(self, base: str, head: str) -> str:
        """Unified diff between two refs (three-dot semantics)."""
        ...

    @abstractmethod
    async def get_default_branch(self) -> str:
        ...

    @abstractmethod
    async def get_default_branch_head(self) -> str:
        """Commit id at the tip of the default branch."""
        ...

    @abstractmethod
    async def get_repo_tree(self, ref: str | None = None) -> list[str]:
        """Every blob path at ``ref`` (default branch when omitted)."""
        ...

    @abstractmethod
    async def get_file_content(self, path: str, ref: str | None = None) -> bytes:
        ...

    async def aclose(self) -> None:
        """Release any connections held by the backend."""
