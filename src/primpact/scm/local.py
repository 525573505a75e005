"""Local git checkout as a source-control backend (uses the ``git`` CLI)."""

from __future__ import annotations

import asyncio
import os
import subprocess
from pathlib import Path

from primpact.exceptions import SourceControlError, SourceControlNotFoundError
from primpact.scm.base import PullRequestInfo, SourceControl


class LocalGitRepository(SourceControl):
    """Read a repository straight from a working copy."""

    def __init__(self, root: str | Path, name: str | None = None, timeout: float = 30.0) -> None:
        self.root = Path(root).resolve()
        self._name = name
        self.timeout = timeout

    @property
    def full_name(self) -> str:
        return self._name or f"local/{self.root.name}"

    def _git(self, *args: str) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.root,
                capture_output=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise SourceControlError("git executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise SourceControlError(f"git {args[0]} timed out") from e

    async def _run(self, *args: str, what: str) -> bytes:
        result = await asyncio.to_thread(self._git, *args)
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            if "unknown revision" in stderr or "does not exist" in stderr or "bad revision" in stderr:
                raise SourceControlNotFoundError(f"{what} not found")
            raise SourceControlError(f"git failed for {what}: {stderr}")
        return result.stdout

    async def get_diff(self, pr_number: int) -> str:
        raise SourceControlNotFoundError(f"pull request #{pr_number} not found in a local repository")

    async def get_pr_info(self, pr_number: int) -> PullRequestInfo:
        raise SourceControlNotFoundError(f"pull request #{pr_number} not found in a local repository")

    async def compare_refs(self, base: str, head: str) -> str:
        output = await self._run("diff", f"{base}...{head}", what=f"comparison {base}...{head}")
        return output.decode("utf-8", errors="replace")

    async def get_working_diff(self, base: str = "main") -> str:
        """Diff of the working tree against ``base``."""
        output = await self._run("diff", base, what=f"ref {base}")
        return output.decode("utf-8", errors="replace")

    async def get_default_branch(self) -> str:
        result = await asyncio.to_thread(
            self._git, "symbolic-ref", "--short", "refs/remotes/origin/HEAD"
        )
        if result.returncode == 0:
            ref = result.stdout.decode().strip()
            return ref.split("/", 1)[1] if "/" in ref else ref
        output = await self._run("rev-parse", "--abbrev-ref", "HEAD", what="HEAD")
        return output.decode().strip()

    async def get_default_branch_head(self) -> str:
        branch = await self.get_default_branch()
        output = await self._run("rev-parse", branch, what=f"branch {branch}")
        return output.decode().strip()

    async def get_repo_tree(self, ref: str | None = None) -> list[str]:
        tree_ref = ref or await self.get_default_branch()
        output = await self._run("ls-tree", "-r", "--name-only", tree_ref, what=f"tree {tree_ref}")
        return [line for line in output.decode("utf-8", errors="replace").splitlines() if line]

    async def get_file_content(self, path: str, ref: str | None = None) -> bytes:
        if ref is None:
            full = self.root / path
            if not full.is_file():
                raise SourceControlNotFoundError(f"file {path} not found")
            return await asyncio.to_thread(full.read_bytes)
        return await self._run("show", f"{ref}:{path}", what=f"file {path}")


def list_working_tree(root: str | Path) -> list[str]:
    """Relative POSIX paths of every file under ``root`` (skipping VCS/build dirs)."""
    root = Path(root).resolve()
    skip = {".git", ".primpact", "__pycache__", "node_modules", ".venv", "venv", "dist", "build", ".next"}
    paths: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in skip]
        rel_dir = os.path.relpath(dirpath, root)
        for filename in filenames:
            rel = filename if rel_dir == "." else os.path.join(rel_dir, filename)
            paths.append(Path(rel).as_posix())
    return sorted(paths)
