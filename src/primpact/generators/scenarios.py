"""Test-scenario generation."""

from __future__ import annotations

from primpact.analysis.models import ImpactResult, ParsedFile, TestScenario
from primpact.llm.base import LLMProvider


def summarize_files(files: list[ParsedFile]) -> str:
    """One ``STATUS path (+a/-d)`` line per changed file."""
    return "\n".join(
        f"{f.status.upper()} {f.path} (+{f.additions}/-{f.deletions})" for f in files
    )


class ScenarioGenerator:
    """Asks the provider for test scenarios covering an impact result."""

    def __init__(self, provider: LLMProvider, max_scenarios: int = 15) -> None:
        self.provider = provider
        self.max_scenarios = max_scenarios

    async def generate(
        self,
        impact: ImpactResult,
        files: list[ParsedFile],
        codebase_context: str | None = None,
    ) -> list[TestScenario]:
        scenarios = await self.provider.generate_test_scenarios(
            impact,
            summarize_files(files),
            self.max_scenarios,
            codebase_context=codebase_context,
        )
        return scenarios[: self.max_scenarios]
