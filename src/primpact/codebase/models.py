"""Data models for the codebase index."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ModuleInfo(BaseModel):
    """Static summary of one indexed source file."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    path: str
    language: str
    imports: list[str] = Field(default_factory=list)  # repo-relative when the import was relative
    exports: list[str] = Field(default_factory=list)
    summary: str = ""


class CodebaseIndex(BaseModel):
    """Snapshot of a repository at one commit.

    Only a priority-selected subset of files has a ModuleInfo; ``tree``
    lists every blob path at ``commit_sha``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    repo_full_name: str
    commit_sha: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tree: list[str] = Field(default_factory=list)
    modules: list[ModuleInfo] = Field(default_factory=list)

    def is_fresh(self, head_sha: str) -> bool:
        return self.commit_sha == head_sha

    def module_map(self) -> dict[str, ModuleInfo]:
        return {m.path: m for m in self.modules}
