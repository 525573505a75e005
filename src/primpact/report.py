"""Report assembly and Markdown rendering.

Produces:
  - the AnalysisReport handed to persistence
  - the PR comment (wrapped in COMMENT_MARKER so a prior comment can be replaced)
  - inline review comment bodies and the review summary
"""

from __future__ import annotations

from primpact.analysis.models import (
    AnalysisReport,
    CodeReviewItem,
    ImpactResult,
    ParsedFile,
    ReportStats,
    TestScenario,
)

COMMENT_MARKER = "<!-- pr-impact-analyzer -->"

RISK_EMOJI = {
    "low": "🟢",
    "medium": "🟡",
    "high": "🟠",
    "critical": "🔴",
}

SEVERITY_EMOJI = {
    "critical": "🔴",
    "warning": "🟠",
    "info": "🔵",
    "suggestion": "💡",
}

SEVERITY_ORDER = ("critical", "warning", "info", "suggestion")


def compute_stats(files: list[ParsedFile], impact: ImpactResult) -> ReportStats:
    return ReportStats(
        files_changed=len(files),
        additions=sum(f.additions for f in files),
        deletions=sum(f.deletions for f in files),
        features_affected=len(impact.direct_features),
    )


def build_report(
    impact: ImpactResult,
    files: list[ParsedFile],
    test_scenarios: list[TestScenario] | None = None,
    code_review: list[CodeReviewItem] | None = None,
    pr_number: int | None = None,
    pr_title: str = "",
    base: str | None = None,
    head: str | None = None,
) -> AnalysisReport:
    """Combine the impact, AI output and diff stats into one report."""
    return AnalysisReport(
        pr_number=pr_number,
        pr_title=pr_title,
        base=base,
        head=head,
        impact=impact,
        test_scenarios=list(test_scenarios or []),
        code_review=list(code_review or []),
        stats=compute_stats(files, impact),
    )


def render_report_markdown(report: AnalysisReport) -> str:
    """Render the full report as a GitHub markdown comment."""
    impact = report.impact
    emoji = RISK_EMOJI.get(impact.risk_level, "⚪")
    timestamp = report.timestamp.strftime("%Y-%m-%d %H:%M UTC")

    title = "PR Impact Analysis"
    if report.identity:
        title += f": {report.identity}"
        if report.pr_title:
            title += f" {report.pr_title}"

    sections: list[str] = [
        COMMENT_MARKER,
        f"# {title}",
        "",
        f"> {timestamp}",
        "",
        f"**Summary:** {impact.summary}",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Files changed | {report.stats.files_changed} |",
        f"| Lines changed | +{report.stats.additions} / -{report.stats.deletions} |",
        f"| Features affected | {report.stats.features_affected} |",
        f"| Risk | {emoji} {impact.risk_level.upper()} |",
        "",
    ]

    if impact.features:
        sections.append("**Affected features:**")
        for feature in impact.features:
            sections.append(f"- **{feature.name}** ({feature.change_type}): {feature.description}")
        sections.append("")

        direct = [f for f in impact.direct_features if f.affected_files]
        if direct:
            sections.append("<details>")
            sections.append("<summary>Affected files</summary>")
            sections.append("")
            sections.append("```")
            sections.extend(
                render_file_tree(sorted({p for f in direct for p in f.affected_files}))
            )
            sections.append("```")
            sections.append("</details>")
            sections.append("")

    services_pages = []
    if impact.services:
        services_pages.append(f"**Services:** {', '.join(impact.services)}")
    if impact.pages:
        services_pages.append(f"**Pages:** {', '.join(impact.pages)}")
    if services_pages:
        sections.append(" | ".join(services_pages))
        sections.append("")

    sections.append("**Test scenarios:**")
    sections.append("")
    if report.test_scenarios:
        sections.append("| # | Scenario | Priority | Type |")
        sections.append("|---|----------|----------|------|")
        for s in report.test_scenarios:
            sections.append(f"| {s.id} | {_cell(s.title)} | {s.priority} | {s.type} |")
    else:
        sections.append("_No test scenarios generated._")
    sections.append("")

    if report.code_review:
        sections.append(render_review_summary(report.code_review))
        sections.append("")

    sections.append("---")
    sections.append("_Generated by primpact._")
    sections.append(COMMENT_MARKER)
    return "\n".join(sections)


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def format_review_comment(item: CodeReviewItem) -> str:
    """Body of one inline review comment."""
    emoji = SEVERITY_EMOJI.get(item.severity, "")
    lines = [
        f"{emoji} **{item.title}**",
        "",
        f"`{item.severity}` · `{item.category}`",
        "",
        item.description,
    ]
    if item.suggestion:
        lines.extend(["", "**Suggestion:**", "```", item.suggestion, "```"])
    return "\n".join(lines)


def render_review_summary(items: list[CodeReviewItem]) -> str:
    """Review body: counts per severity plus a findings table."""
    if not items:
        return "## Code Review\n\nNo findings."

    counts = {s: sum(1 for i in items if i.severity == s) for s in SEVERITY_ORDER}
    badge = " ".join(
        f"{SEVERITY_EMOJI[s]} {counts[s]} {s}" for s in SEVERITY_ORDER if counts[s]
    )
    lines = [
        "## Code Review",
        "",
        f"{len(items)} finding{'s' if len(items) != 1 else ''}: {badge}",
        "",
        "| Severity | Category | File | Finding |",
        "|----------|----------|------|---------|",
    ]
    ordered = sorted(items, key=lambda i: SEVERITY_ORDER.index(i.severity))
    for item in ordered:
        location = f"{item.file}:{item.line}" if item.line else item.file
        lines.append(
            f"| {SEVERITY_EMOJI[item.severity]} {item.severity} | {item.category} "
            f"| `{location}` | {_cell(item.title)} |"
        )
    return "\n".join(lines)


def review_comments(items: list[CodeReviewItem]) -> list[dict]:
    """Inline comment payloads for the posting collaborator."""
    return [
        {"path": item.file, "line": item.line, "body": format_review_comment(item)}
        for item in items
    ]


def render_file_tree(files: list[str]) -> list[str]:
    """Render a list of file paths as an ASCII tree."""
    tree: dict = {}
    for fp in sorted(files):
        node = tree
        for part in fp.split("/"):
            node = node.setdefault(part, {})

    lines: list[str] = []
    _render_tree(tree, "", lines, is_root=True)
    return lines


def _render_tree(node: dict, prefix: str, lines: list[str], is_root: bool = False) -> None:
    items = list(node.items())
    for i, (name, children) in enumerate(items):
        is_last = i == len(items) - 1
        if is_root:
            connector, next_prefix = "", ""
        else:
            connector = "└── " if is_last else "├── "
            next_prefix = prefix + ("    " if is_last else "│   ")
        if children:
            lines.append(f"{prefix}{connector}{name}/")
            _render_tree(children, next_prefix, lines)
        else:
            lines.append(f"{prefix}{connector}{name}")
