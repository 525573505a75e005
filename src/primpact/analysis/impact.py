"""Impact analysis: map changed files to features, services and pages."""

from __future__ import annotations

from primpact.analysis.globs import match_any
from primpact.analysis.models import FeatureImpact, ImpactResult, ParsedFile, RiskLevel
from primpact.config import ImpactMapConfig

# (lines changed, direct features) thresholds, checked from the top down
RISK_THRESHOLDS: list[tuple[RiskLevel, int, int]] = [
    ("critical", 500, 5),
    ("high", 200, 3),
    ("medium", 50, 1),
]


def calculate_risk_level(total_changes: int, direct_features: int) -> RiskLevel:
    """Classify risk; a level applies when either signal exceeds its threshold."""
    for level, max_lines, max_features in RISK_THRESHOLDS:
        if total_changes > max_lines or direct_features > max_features:
            return level
    return "low"


class ImpactAnalyzer:
    """Apply an impact map to a parsed diff."""

    def __init__(self, config: ImpactMapConfig) -> None:
        self.config = config

    def analyze(self, files: list[ParsedFile]) -> ImpactResult:
        filtered = self.filter_ignored(files)

        features = self.find_affected_features(filtered)
        services = self._match_names(self.config.services, filtered)
        pages = self._match_names(self.config.pages, filtered)

        total_changes = sum(f.additions + f.deletions for f in filtered)
        direct_count = sum(1 for f in features if f.change_type == "direct")
        risk = calculate_risk_level(total_changes, direct_count)

        return ImpactResult(
            features=features,
            services=services,
            pages=pages,
            risk_level=risk,
            summary=build_summary(features, services, pages, risk),
        )

    def filter_ignored(self, files: list[ParsedFile]) -> list[ParsedFile]:
        """Drop files matching any ignore pattern."""
        patterns = self.config.ignore_patterns
        if not patterns:
            return list(files)
        return [f for f in files if not match_any(f.path, patterns)]

    def find_affected_features(self, files: list[ParsedFile]) -> list[FeatureImpact]:
        """Direct matches, each followed by the related features it pulls in.

        A feature appears at most once; a direct match always wins over an
        indirect mention of the same name.
        """
        direct: dict[str, list[str]] = {}
        for name, mapping in self.config.features.items():
            matched = [f.path for f in files if match_any(f.path, mapping.paths)]
            if matched:
                direct[name] = matched

        impacts: list[FeatureImpact] = []
        seen: set[str] = set()
        for name, affected in direct.items():
            mapping = self.config.features[name]
            impacts.append(
                FeatureImpact(
                    name=name,
                    affected_files=affected,
                    change_type="direct",
                    description=mapping.description,
                )
            )
            seen.add(name)

            for related in mapping.related_features:
                if related in seen or related in direct:
                    continue
                related_mapping = self.config.features.get(related)
                description = (
                    related_mapping.description
                    if related_mapping is not None and related_mapping.description
                    else f"Related to {name}"
                )
                impacts.append(
                    FeatureImpact(
                        name=related,
                        affected_files=[],
                        change_type="indirect",
                        description=description,
                    )
                )
                seen.add(related)

        return impacts

    @staticmethod
    def _match_names(mapping: dict[str, list[str]], files: list[ParsedFile]) -> list[str]:
        names: list[str] = []
        for name, patterns in mapping.items():
            if name in names:
                continue
            if any(match_any(f.path, patterns) for f in files):
                names.append(name)
        return names


def build_summary(
    features: list[FeatureImpact],
    services: list[str],
    pages: list[str],
    risk: RiskLevel,
) -> str:
    """One-paragraph human-readable impact summary."""
    direct = [f for f in features if f.change_type == "direct"]
    indirect = [f for f in features if f.change_type == "indirect"]

    summary = f"This change directly affects **{len(direct)}** feature(s)"
    if indirect:
        summary += f" and may indirectly affect **{len(indirect)}** feature(s)"
    summary += f". Risk level: **{risk.upper()}**."

    if services:
        summary += f" Affected services: {', '.join(services)}."
    if pages:
        summary += f" Affected pages: {', '.join(pages)}."

    return summary
