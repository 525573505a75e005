"""Tests for scenario/review generation and review diff rendering."""

from __future__ import annotations

import json

import pytest

from primpact.analysis.diff_parser import parse_diff
from primpact.analysis.models import ImpactResult, ParsedChange, ParsedChunk, ParsedFile
from primpact.generators.review import (
    CodeReviewGenerator,
    build_diff_content,
    render_file_diff,
)
from primpact.generators.scenarios import ScenarioGenerator, summarize_files


def _normal(n: int, start: int = 1) -> list[ParsedChange]:
    return [ParsedChange(type="normal", content=f"line {start + i}", line_number=start + i) for i in range(n)]


def _file_with(changes: list[ParsedChange], path: str = "src/a.ts") -> ParsedFile:
    chunk = ParsedChunk(content="@@", old_start=1, new_start=1, changes=tuple(changes))
    additions = sum(1 for c in changes if c.type == "add")
    return ParsedFile(path=path, additions=additions, chunks=(chunk,))


ADD = ParsedChange(type="add", content="added", line_number=11)


class TestSummarizeFiles:
    def test_lines(self, billing_diff: str):
        assert summarize_files(parse_diff(billing_diff)) == (
            "MODIFIED src/billing/invoice.ts (+2/-1)\nMODIFIED README.md (+1/-1)"
        )


class TestRenderDiff:
    def test_long_runs_collapsed(self):
        rendered = render_file_diff(_file_with([*_normal(10), ADD, *_normal(10, start=11)]))
        assert rendered.splitlines() == [
            "--- a/src/a.ts",
            "+++ b/src/a.ts",
            "@@ -1 +1 @@",
            " ... (7 lines skipped)",
            " line 8",
            " line 9",
            " line 10",
            "+added",
            " line 11",
            " line 12",
            " line 13",
            " ... (7 lines skipped)",
        ]

    def test_short_middle_run_kept(self):
        changes = [ADD, *_normal(5), ADD]
        lines = render_file_diff(_file_with(changes)).splitlines()
        assert "skipped" not in "\n".join(lines)
        assert len(lines) == 3 + 7

    def test_long_middle_run(self):
        changes = [ADD, *_normal(8), ADD]
        lines = render_file_diff(_file_with(changes), max_context_lines=3).splitlines()[3:]
        assert lines == [
            "+added",
            " line 1",
            " line 2",
            " line 3",
            " ... (2 lines skipped)",
            " line 6",
            " line 7",
            " line 8",
            "+added",
        ]

    def test_single_skipped_line(self):
        lines = render_file_diff(_file_with([*_normal(4), ADD]), max_context_lines=3).splitlines()
        assert lines[3] == " ... (1 line skipped)"

    def test_renamed_header(self):
        parsed = ParsedFile(path="src/new.ts", old_path="src/old.ts", status="renamed")
        assert render_file_diff(parsed) == "--- a/src/old.ts\n+++ b/src/new.ts"


class TestBuildDiffContent:
    def test_everything_fits(self, billing_diff: str):
        content = build_diff_content(parse_diff(billing_diff))
        assert "+++ b/src/billing/invoice.ts" in content
        assert "+++ b/README.md" in content
        assert "Diff too large" not in content

    def test_overflow_becomes_summary(self, billing_diff: str):
        files = parse_diff(billing_diff)
        limit = len(render_file_diff(files[0])) + 5
        content = build_diff_content(files, max_chars=limit)
        assert content.startswith("--- a/src/billing/invoice.ts")
        assert "+++ b/README.md" not in content
        assert content.endswith(
            "\n\n[Diff too large: 1 more file(s) included as summaries]\nREADME.md (+1/-1)"
        )

    def test_nothing_fits(self, billing_diff: str):
        content = build_diff_content(parse_diff(billing_diff), max_chars=10)
        assert "[Diff too large: 2 more file(s) included as summaries]" in content


class TestScenarioGenerator:
    @pytest.mark.asyncio
    async def test_truncates_to_max(self, make_provider, scenarios_json: str, billing_diff: str):
        provider = make_provider(scenarios_json)
        scenarios = await ScenarioGenerator(provider, max_scenarios=1).generate(
            ImpactResult(), parse_diff(billing_diff)
        )
        assert [s.id for s in scenarios] == ["TC-001"]
        user = provider.calls[0]["messages"][1].content
        assert user.startswith("Create at most 1 test scenarios.")
        assert "MODIFIED src/billing/invoice.ts (+2/-1)" in user


class TestCodeReviewGenerator:
    @pytest.mark.asyncio
    async def test_sends_rendered_diff(self, make_provider, review_json: str, billing_diff: str):
        provider = make_provider(review_json)
        items = await CodeReviewGenerator(provider).generate(
            ImpactResult(), parse_diff(billing_diff), codebase_context="## Codebase Context\n"
        )
        assert len(items) == 2
        system, user = provider.calls[0]["messages"]
        assert "TypeScript best practices" in system.content
        assert system.content.endswith("## Codebase Context\n")
        assert "+export function total(a: number, b: number) {" in user.content

    @pytest.mark.asyncio
    async def test_truncates_to_max(self, make_provider, review_json: str):
        payload = json.loads(review_json)
        payload["items"] = payload["items"] * 3
        provider = make_provider(json.dumps(payload))
        items = await CodeReviewGenerator(provider, max_items=4).generate(ImpactResult(), [])
        assert len(items) == 4
