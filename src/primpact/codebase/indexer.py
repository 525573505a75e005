"""Builds and caches the codebase index for a repository.

The build is always a full rebuild: resolve the default-branch head, list the
tree, rank source files by path priority, fetch a bounded number of them in
batches and extract a ModuleInfo for each.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING

from primpact.codebase.extract import extract_module_info, is_supported_file
from primpact.codebase.models import CodebaseIndex, ModuleInfo
from primpact.config import IndexerConfig
from primpact.exceptions import PrimpactError

if TYPE_CHECKING:
    from primpact.scm.base import SourceControl
    from primpact.store import PrimpactStore

logger = logging.getLogger("primpact.indexer")

IGNORE_SUBSTRINGS = (
    "node_modules/",
    "dist/",
    ".next/",
    "build/",
    "coverage/",
    "__pycache__/",
    ".test.",
    ".spec.",
    ".stories.",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
)

# Higher is fetched first; the first matching pattern wins
PRIORITY_PATTERNS: list[tuple[re.Pattern[str], int]] = [
    (re.compile(r"^(tsconfig|next\.config|package|setup|conftest)\.\w+$"), 5),
    (re.compile(r"^lib/core/"), 4),
    (re.compile(r"^lib/"), 4),
    (re.compile(r"^src/lib/"), 4),
    (re.compile(r"^src/core/"), 4),
    (re.compile(r"^src/services/"), 3),
    (re.compile(r"^src/components/"), 3),
    (re.compile(r"^components/"), 3),
    (re.compile(r"^app/api/"), 3),
    (re.compile(r"^app/"), 2),
    (re.compile(r"^src/"), 2),
    (re.compile(r"^pages/"), 2),
]
DEFAULT_PRIORITY = 1


def is_ignored(path: str) -> bool:
    if any(pattern in path for pattern in IGNORE_SUBSTRINGS):
        return True
    # Python test layouts
    parts = path.split("/")
    return "tests" in parts[:-1] or parts[-1].startswith("test_")


def file_priority(path: str) -> int:
    for pattern, priority in PRIORITY_PATTERNS:
        if pattern.search(path):
            return priority
    return DEFAULT_PRIORITY


def select_candidates(paths: list[str], limit: int) -> list[str]:
    """Supported, non-ignored paths ordered by priority (stable), truncated."""
    candidates = [p for p in paths if is_supported_file(p) and not is_ignored(p)]
    candidates.sort(key=file_priority, reverse=True)
    return candidates[:limit]


class CodebaseIndexer:
    """Builds a CodebaseIndex from a SourceControl backend."""

    def __init__(self, source: SourceControl, config: IndexerConfig | None = None) -> None:
        self.source = source
        self.config = config or IndexerConfig()

    async def build(self) -> CodebaseIndex:
        """Full rebuild at the current default-branch head.

        Only the head/tree lookups can fail the build; per-file failures
        simply leave that file out of ``modules``.
        """
        commit_sha = await self.source.get_default_branch_head()
        tree = await self.source.get_repo_tree(commit_sha)

        candidates = select_candidates(tree, self.config.max_modules)
        modules: list[ModuleInfo] = []
        batch_size = max(1, self.config.batch_size)

        for start in range(0, len(candidates), batch_size):
            batch = candidates[start:start + batch_size]
            results = await asyncio.gather(
                *(self._index_file(path, commit_sha) for path in batch),
                return_exceptions=True,
            )
            for path, result in zip(batch, results):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, BaseException):
                    logger.debug("Skipping %s: %s", path, result)
                elif result is not None:
                    modules.append(result)

        logger.info(
            "Codebase index built: %d modules indexed for %s",
            len(modules),
            self.source.full_name,
        )
        return CodebaseIndex(
            repo_full_name=self.source.full_name,
            commit_sha=commit_sha,
            tree=tree,
            modules=modules,
        )

    async def _index_file(self, path: str, ref: str) -> ModuleInfo | None:
        content = await self.source.get_file_content(path, ref)
        if len(content) > self.config.max_file_size:
            return None
        return extract_module_info(path, content.decode("utf-8", errors="replace"))


async def get_or_build_index(
    source: SourceControl,
    store: PrimpactStore | None,
    user_id: str = "local",
    config: IndexerConfig | None = None,
) -> CodebaseIndex:
    """Return a fresh index for ``source``, rebuilding when stale or missing.

    A cached index whose freshness cannot be checked is returned as-is.
    """
    cached = store.get_index(user_id, source.full_name) if store is not None else None

    if cached is not None:
        try:
            head = await source.get_default_branch_head()
        except PrimpactError as e:
            logger.warning(
                "Could not check freshness of index for %s, using cached index: %s",
                source.full_name,
                e,
            )
            return cached
        if cached.is_fresh(head):
            logger.debug("Index cache hit for %s at %s", source.full_name, head[:12])
            return cached
        logger.info("Index for %s is stale (%s != %s), rebuilding",
                    source.full_name, cached.commit_sha[:12], head[:12])

    index = await CodebaseIndexer(source, config).build()
    if store is not None:
        store.save_index(user_id, index)
    return index


async def load_codebase_index(
    source: SourceControl,
    store: PrimpactStore | None,
    user_id: str = "local",
    config: IndexerConfig | None = None,
) -> CodebaseIndex | None:
    """Like get_or_build_index, but returns None instead of raising."""
    try:
        return await get_or_build_index(source, store, user_id, config)
    except Exception as e:
        logger.warning("Codebase context unavailable for %s: %s", source.full_name, e)
        return None
