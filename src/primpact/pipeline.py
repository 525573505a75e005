"""End-to-end analysis of a pull request or branch comparison.

resolve config -> fetch diff -> parse -> impact -> (optional codebase
context) -> AI generation -> report. Every terminal error leaves with the
label of the step it was raised in; codebase context is the one step that
degrades to nothing instead of failing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from primpact.analysis.diff_parser import changed_paths, parse_diff
from primpact.analysis.impact import ImpactAnalyzer
from primpact.analysis.models import AnalysisReport, CodeReviewItem, ImpactResult, ParsedFile
from primpact.codebase.indexer import load_codebase_index
from primpact.codebase.retriever import retrieve_context
from primpact.config import ProjectConfig, ResolvedConfig, resolve_impact_map
from primpact.exceptions import ConfigError, PrimpactError, SourceControlError
from primpact.generators.review import CodeReviewGenerator
from primpact.generators.scenarios import ScenarioGenerator
from primpact.llm.base import LLMProvider
from primpact.report import (
    COMMENT_MARKER,
    build_report,
    render_report_markdown,
    render_review_summary,
    review_comments,
)
from primpact.scm.base import SourceControl
from primpact.store import PrimpactStore

logger = logging.getLogger("primpact.pipeline")


@contextmanager
def step(name: str) -> Iterator[None]:
    """Label any PrimpactError raised inside the block with ``name``."""
    try:
        yield
    except PrimpactError as e:
        if not e.step:
            e.step = name
        raise


@dataclass
class ChangeSet:
    """A parsed diff plus the impact computed from it."""

    files: list[ParsedFile]
    impact: ImpactResult
    config_source: str
    head_sha: str = ""
    pr_number: int | None = None
    pr_title: str = ""
    base: str | None = None
    head: str | None = None
    codebase_context: str | None = None


@dataclass
class AnalysisResult:
    report: AnalysisReport
    config_source: str
    files: list[ParsedFile] = field(default_factory=list)
    head_sha: str = ""


@dataclass
class ReviewResult:
    items: list[CodeReviewItem]
    impact: ImpactResult
    files: list[ParsedFile] = field(default_factory=list)
    head_sha: str = ""

    @property
    def summary(self) -> str:
        return render_review_summary(self.items)


class AnalysisPipeline:
    """Runs the analysis core against one repository."""

    def __init__(
        self,
        source: SourceControl,
        provider: LLMProvider | None = None,
        config: ProjectConfig | None = None,
        store: PrimpactStore | None = None,
        user_id: str = "local",
        use_codebase_context: bool = True,
    ) -> None:
        self.source = source
        self.provider = provider
        self.config = config or ProjectConfig()
        self.store = store
        self.user_id = user_id
        self.use_codebase_context = use_codebase_context

    # ------------------------------------------------------------------
    # Shared stages
    # ------------------------------------------------------------------

    async def resolve_config(self) -> ResolvedConfig:
        with step("resolve-config"):
            resolved = await resolve_impact_map(self.source, self.store, self.user_id)
        logger.debug("Impact map for %s resolved from %s", self.source.full_name, resolved.source)
        return resolved

    async def _fetch_pull_request(self, pr_number: int) -> tuple[str, str, str]:
        with step("fetch-diff"):
            raw_diff, info = await asyncio.gather(
                self.source.get_diff(pr_number),
                self.source.get_pr_info(pr_number),
            )
        return raw_diff, info.title, info.head_sha

    async def _fetch_comparison(self, base: str, head: str) -> str:
        with step("fetch-diff"):
            return await self.source.compare_refs(base, head)

    def _analyze(self, raw_diff: str, resolved: ResolvedConfig) -> tuple[list[ParsedFile], ImpactResult]:
        with step("parse-diff"):
            files = parse_diff(raw_diff)
        with step("impact-analysis"):
            impact = ImpactAnalyzer(resolved.config).analyze(files)
        logger.info(
            "%d file(s) changed, %d feature(s) affected, risk %s",
            len(files), len(impact.features), impact.risk_level,
        )
        return files, impact

    async def codebase_context(self, files: list[ParsedFile]) -> str | None:
        """Retrieved context for the changed files, or None when unavailable."""
        if not self.use_codebase_context or not files:
            return None
        index = await load_codebase_index(
            self.source, self.store, self.user_id, self.config.indexer
        )
        if index is None:
            return None
        return retrieve_context(index, changed_paths(files), alias=self.config.indexer.path_alias)

    async def pull_request_changes(self, pr_number: int) -> ChangeSet:
        resolved = await self.resolve_config()
        raw_diff, title, head_sha = await self._fetch_pull_request(pr_number)
        files, impact = self._analyze(raw_diff, resolved)
        return ChangeSet(
            files=files,
            impact=impact,
            config_source=resolved.source,
            head_sha=head_sha,
            pr_number=pr_number,
            pr_title=title,
            codebase_context=await self.codebase_context(files),
        )

    async def branch_changes(self, base: str, head: str) -> ChangeSet:
        resolved = await self.resolve_config()
        raw_diff = await self._fetch_comparison(base, head)
        files, impact = self._analyze(raw_diff, resolved)
        return ChangeSet(
            files=files,
            impact=impact,
            config_source=resolved.source,
            base=base,
            head=head,
            codebase_context=await self.codebase_context(files),
        )

    def _require_provider(self) -> LLMProvider:
        if self.provider is None:
            raise ConfigError("No LLM provider configured")
        return self.provider

    # ------------------------------------------------------------------
    # Test scenarios + report
    # ------------------------------------------------------------------

    async def _report(self, changes: ChangeSet) -> AnalysisResult:
        generator = ScenarioGenerator(
            self._require_provider(), self.config.analysis.max_scenarios
        )
        with step("generate-tests"):
            scenarios = await generator.generate(
                changes.impact, changes.files, changes.codebase_context
            )
        with step("build-report"):
            report = build_report(
                changes.impact,
                changes.files,
                test_scenarios=scenarios,
                pr_number=changes.pr_number,
                pr_title=changes.pr_title,
                base=changes.base,
                head=changes.head,
            )
        return AnalysisResult(
            report=report,
            config_source=changes.config_source,
            files=changes.files,
            head_sha=changes.head_sha,
        )

    async def analyze_pull_request(self, pr_number: int) -> AnalysisResult:
        return await self._report(await self.pull_request_changes(pr_number))

    async def analyze_branches(self, base: str, head: str) -> AnalysisResult:
        return await self._report(await self.branch_changes(base, head))

    # ------------------------------------------------------------------
    # Code review
    # ------------------------------------------------------------------

    async def _review(self, changes: ChangeSet) -> ReviewResult:
        analysis = self.config.analysis
        generator = CodeReviewGenerator(
            self._require_provider(),
            max_items=analysis.max_review_items,
            max_chars=analysis.max_diff_chars,
            max_context_lines=analysis.max_context_lines,
        )
        with step("generate-review"):
            items = await generator.generate(changes.impact, changes.files, changes.codebase_context)
        return ReviewResult(
            items=items, impact=changes.impact, files=changes.files, head_sha=changes.head_sha
        )

    async def review_pull_request(self, pr_number: int) -> ReviewResult:
        return await self._review(await self.pull_request_changes(pr_number))

    async def review_branches(self, base: str, head: str) -> ReviewResult:
        return await self._review(await self.branch_changes(base, head))


# ---------------------------------------------------------------------------
# Posting (content only; the platform owns the mechanics)
# ---------------------------------------------------------------------------


async def post_report(source: SourceControl, pr_number: int, report: AnalysisReport) -> int:
    upsert = getattr(source, "upsert_comment", None)
    if upsert is None:
        raise SourceControlError(f"{source.full_name} does not support posting comments")
    return await upsert(pr_number, render_report_markdown(report), COMMENT_MARKER)


async def post_review(source: SourceControl, pr_number: int, review: ReviewResult) -> None:
    create = getattr(source, "create_review", None)
    if create is None:
        raise SourceControlError(f"{source.full_name} does not support posting reviews")
    await create(pr_number, review.summary, review_comments(review.items))
