"""Tests for the end-to-end analysis pipeline."""

from __future__ import annotations

import pytest

from conftest import FakeSourceControl
from primpact.exceptions import (
    AIParseError,
    ConfigError,
    PrimpactError,
    SourceControlError,
    SourceControlNotFoundError,
)
from primpact.pipeline import AnalysisPipeline, post_report, post_review, step
from primpact.report import COMMENT_MARKER
from primpact.scm.local import LocalGitRepository
from primpact.store import PrimpactStore


@pytest.fixture
def store():
    s = PrimpactStore(":memory:")
    yield s
    s.close()


def _system_prompt(provider) -> str:
    return provider.calls[0]["messages"][0].content


class TestStep:
    def test_labels_error(self):
        with pytest.raises(PrimpactError) as exc_info:
            with step("fetch-diff"):
                raise SourceControlNotFoundError("pull request #1 not found")
        assert exc_info.value.step == "fetch-diff"

    def test_keeps_inner_label(self):
        with pytest.raises(PrimpactError) as exc_info:
            with step("outer"):
                with step("inner"):
                    raise ConfigError("bad")
        assert exc_info.value.step == "inner"

    def test_other_errors_untouched(self):
        with pytest.raises(ValueError):
            with step("parse-diff"):
                raise ValueError("boom")


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_pull_request(self, fake_source: FakeSourceControl, make_provider, scenarios_json: str, store):
        provider = make_provider(scenarios_json)
        result = await AnalysisPipeline(fake_source, provider, store=store).analyze_pull_request(42)

        report = result.report
        assert result.config_source == "repo"
        assert result.head_sha == "f" * 40
        assert [f.path for f in result.files] == ["src/billing/invoice.ts", "README.md"]
        assert report.pr_number == 42
        assert report.pr_title == "Fix billing totals"
        assert [f.name for f in report.impact.features] == ["billing", "checkout"]
        assert [s.id for s in report.test_scenarios] == ["TC-001", "TC-002"]
        assert report.stats.features_affected == 1

    @pytest.mark.asyncio
    async def test_codebase_context_in_prompt(self, fake_source, make_provider, scenarios_json, store):
        provider = make_provider(scenarios_json)
        await AnalysisPipeline(fake_source, provider, store=store).analyze_pull_request(42)
        system = _system_prompt(provider)
        assert "## Codebase Context" in system
        assert "- `src/billing/invoice.ts`: total exported (Invoice totals)" in system
        assert "`src/checkout/cart.ts`" in system
        assert store.get_index("local", "acme/shop") is not None

    @pytest.mark.asyncio
    async def test_context_failure_degrades(self, fake_source, make_provider, scenarios_json, store):
        fake_source.fail_tree = True
        provider = make_provider(scenarios_json)
        result = await AnalysisPipeline(fake_source, provider, store=store).analyze_pull_request(42)
        assert len(result.report.test_scenarios) == 2
        assert "## Codebase Context" not in _system_prompt(provider)

    @pytest.mark.asyncio
    async def test_context_disabled(self, fake_source, make_provider, scenarios_json):
        provider = make_provider(scenarios_json)
        pipeline = AnalysisPipeline(fake_source, provider, use_codebase_context=False)
        await pipeline.analyze_pull_request(42)
        assert fake_source.count("get_repo_tree") == 0
        assert "## Codebase Context" not in _system_prompt(provider)

    @pytest.mark.asyncio
    async def test_branches(self, fake_source, make_provider, scenarios_json):
        provider = make_provider(scenarios_json)
        result = await AnalysisPipeline(fake_source, provider).analyze_branches("main", "feature")
        assert result.report.identity == "main...feature"
        assert result.report.pr_number is None

    @pytest.mark.asyncio
    async def test_scenarios_capped_by_config(self, fake_source, make_provider, scenarios_json):
        from primpact.config import ProjectConfig

        config = ProjectConfig()
        config.analysis.max_scenarios = 1
        provider = make_provider(scenarios_json)
        result = await AnalysisPipeline(fake_source, provider, config).analyze_pull_request(42)
        assert len(result.report.test_scenarios) == 1

    @pytest.mark.asyncio
    async def test_missing_pull_request_is_labelled(self, fake_source, make_provider):
        pipeline = AnalysisPipeline(fake_source, make_provider())
        with pytest.raises(SourceControlNotFoundError) as exc_info:
            await pipeline.analyze_pull_request(7)
        assert exc_info.value.step == "fetch-diff"

    @pytest.mark.asyncio
    async def test_parse_failure_is_labelled(self, fake_source, make_provider):
        pipeline = AnalysisPipeline(fake_source, make_provider("no json here"))
        with pytest.raises(AIParseError) as exc_info:
            await pipeline.analyze_pull_request(42)
        assert exc_info.value.step == "generate-tests"
        assert exc_info.value.to_dict()["kind"] == "ai-parse"

    @pytest.mark.asyncio
    async def test_requires_provider(self, fake_source):
        with pytest.raises(ConfigError):
            await AnalysisPipeline(fake_source).analyze_pull_request(42)

    @pytest.mark.asyncio
    async def test_default_map_when_repo_has_none(self, fake_source, make_provider, scenarios_json):
        del fake_source.files["impact-map.config.json"]
        result = await AnalysisPipeline(fake_source, make_provider(scenarios_json)).analyze_pull_request(42)
        assert result.config_source == "default"
        assert result.report.impact.features == []


class TestReview:
    @pytest.mark.asyncio
    async def test_review_pull_request(self, fake_source, make_provider, review_json: str):
        provider = make_provider(review_json)
        review = await AnalysisPipeline(fake_source, provider).review_pull_request(42)
        assert [i.id for i in review.items] == ["CR-001", "CR-002"]
        assert review.head_sha == "f" * 40
        assert review.summary.startswith("## Code Review")
        user = provider.calls[0]["messages"][1].content
        assert "+++ b/src/billing/invoice.ts" in user

    @pytest.mark.asyncio
    async def test_review_failure_is_labelled(self, fake_source, make_provider):
        pipeline = AnalysisPipeline(fake_source, make_provider('{"items": [{"id": "x"}]}'))
        with pytest.raises(AIParseError) as exc_info:
            await pipeline.review_branches("main", "feature")
        assert exc_info.value.step == "generate-review"


class TestPosting:
    @pytest.mark.asyncio
    async def test_post_report(self, fake_source, make_provider, scenarios_json):
        result = await AnalysisPipeline(fake_source, make_provider(scenarios_json)).analyze_pull_request(42)
        await post_report(fake_source, 42, result.report)
        [(number, body, marker)] = fake_source.comments
        assert number == 42
        assert marker == COMMENT_MARKER
        assert body.startswith(COMMENT_MARKER)

    @pytest.mark.asyncio
    async def test_post_review(self, fake_source, make_provider, review_json):
        review = await AnalysisPipeline(fake_source, make_provider(review_json)).review_pull_request(42)
        await post_review(fake_source, 42, review)
        [(number, body, comments)] = fake_source.reviews
        assert body == review.summary
        assert comments[0]["line"] == 2

    @pytest.mark.asyncio
    async def test_local_repository_cannot_post(self, tmp_path, fake_source, make_provider, scenarios_json):
        result = await AnalysisPipeline(fake_source, make_provider(scenarios_json)).analyze_pull_request(42)
        with pytest.raises(SourceControlError, match="does not support"):
            await post_report(LocalGitRepository(tmp_path), 42, result.report)
