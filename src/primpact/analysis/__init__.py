"""Diff parsing and path-pattern impact analysis."""

from primpact.analysis.diff_parser import DiffParser, parse_diff
from primpact.analysis.impact import ImpactAnalyzer, calculate_risk_level
from primpact.analysis.models import (
    AnalysisReport,
    CodeReviewItem,
    FeatureImpact,
    ImpactResult,
    ParsedChange,
    ParsedChunk,
    ParsedFile,
    TestScenario,
)

__all__ = [
    "AnalysisReport",
    "CodeReviewItem",
    "DiffParser",
    "FeatureImpact",
    "ImpactAnalyzer",
    "ImpactResult",
    "ParsedChange",
    "ParsedChunk",
    "ParsedFile",
    "TestScenario",
    "calculate_risk_level",
    "parse_diff",
]
