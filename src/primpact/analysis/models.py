"""Data models for parsed diffs, impact results and AI-generated findings.

All models serialize to the camelCase JSON shape the HTTP layer and the
persistence collaborator exchange (``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FileStatus = Literal["added", "deleted", "modified", "renamed"]
ChangeType = Literal["add", "del", "normal"]
RiskLevel = Literal["low", "medium", "high", "critical"]
ImpactType = Literal["direct", "indirect"]
Priority = Literal["critical", "high", "medium", "low"]
ScenarioType = Literal["functional", "regression", "edge-case", "integration"]
Severity = Literal["critical", "warning", "info", "suggestion"]
Category = Literal["bug", "security", "performance", "maintainability", "style"]


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


class ParsedChange(_FrozenModel):
    """One diff line, without its +/- marker."""

    type: ChangeType
    content: str
    line_number: int


class ParsedChunk(_FrozenModel):
    """One hunk of a file diff."""

    content: str = ""  # the raw @@ header line
    old_start: int
    new_start: int
    changes: tuple[ParsedChange, ...] = ()


class ParsedFile(_FrozenModel):
    """One changed file."""

    path: str
    old_path: str | None = None
    additions: int = 0
    deletions: int = 0
    status: FileStatus = "modified"
    chunks: tuple[ParsedChunk, ...] = ()

    @property
    def total_changes(self) -> int:
        return self.additions + self.deletions


# ---------------------------------------------------------------------------
# Impact
# ---------------------------------------------------------------------------


class FeatureImpact(_Model):
    """A feature touched by the change, directly or through a relation."""

    name: str
    affected_files: list[str] = Field(default_factory=list)
    change_type: ImpactType
    description: str = ""


class ImpactResult(_Model):
    """Output of the impact analyzer."""

    features: list[FeatureImpact] = Field(default_factory=list)
    services: list[str] = Field(default_factory=list)
    pages: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = "low"
    summary: str = ""

    @property
    def direct_features(self) -> list[FeatureImpact]:
        return [f for f in self.features if f.change_type == "direct"]

    @property
    def indirect_features(self) -> list[FeatureImpact]:
        return [f for f in self.features if f.change_type == "indirect"]


# ---------------------------------------------------------------------------
# AI output
# ---------------------------------------------------------------------------


class TestScenario(_Model):
    """An AI-generated test scenario."""

    __test__ = False  # not a pytest class

    id: str
    title: str
    feature: str
    priority: Priority
    type: ScenarioType
    steps: list[str]
    expected_result: str


class CodeReviewItem(_Model):
    """An AI-generated code-review finding."""

    id: str
    file: str
    line: int | None = None
    severity: Severity
    category: Category
    title: str
    description: str
    suggestion: str | None = None


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


class ReportStats(_Model):
    files_changed: int = 0
    additions: int = 0
    deletions: int = 0
    features_affected: int = 0


class AnalysisReport(_Model):
    """The assembled artifact handed to persistence and posting collaborators."""

    pr_number: int | None = None
    pr_title: str = ""
    base: str | None = None
    head: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    impact: ImpactResult
    test_scenarios: list[TestScenario] = Field(default_factory=list)
    code_review: list[CodeReviewItem] = Field(default_factory=list)
    stats: ReportStats = Field(default_factory=ReportStats)

    @property
    def identity(self) -> str:
        if self.pr_number is not None:
            return f"#{self.pr_number}"
        if self.base and self.head:
            return f"{self.base}...{self.head}"
        return ""
