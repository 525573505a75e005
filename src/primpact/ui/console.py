"""Rich-powered console output for primpact."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from primpact.analysis.models import AnalysisReport, CodeReviewItem, ImpactResult, ParsedFile, TestScenario
from primpact.codebase.models import CodebaseIndex

RISK_COLORS = {
    "low": "green",
    "medium": "yellow",
    "high": "dark_orange",
    "critical": "red",
}

SEVERITY_COLORS = {
    "critical": "red",
    "warning": "yellow",
    "info": "blue",
    "suggestion": "cyan",
}


class Console:
    """Terminal output for primpact using Rich."""

    def __init__(self, console: RichConsole | None = None) -> None:
        self.console = console or RichConsole()

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def markdown(self, text: str) -> None:
        self.console.print(Markdown(text))

    def show_impact(self, impact: ImpactResult, files: list[ParsedFile]) -> None:
        """Risk panel, feature tree and services/pages."""
        color = RISK_COLORS.get(impact.risk_level, "white")
        additions = sum(f.additions for f in files)
        deletions = sum(f.deletions for f in files)
        self.console.print(
            Panel(
                f"[bold]Risk:[/bold] [{color}]{impact.risk_level.upper()}[/{color}]\n"
                f"[bold]Files changed:[/bold] {len(files)} "
                f"([green]+{additions}[/green] / [red]-{deletions}[/red])\n"
                f"[bold]Direct features:[/bold] {len(impact.direct_features)}\n"
                f"[bold]Indirect features:[/bold] {len(impact.indirect_features)}",
                title="[bold]Impact Analysis[/bold]",
                border_style=color,
            )
        )
        self.console.print(impact.summary.replace("**", ""), markup=False)

        if impact.features:
            tree = Tree("[bold]Features[/bold]")
            for feature in impact.features:
                style = "bold cyan" if feature.change_type == "direct" else "dim"
                node = tree.add(
                    f"[{style}]{escape(feature.name)}[/{style}] [dim]({feature.change_type})[/dim] "
                    f"{escape(feature.description)}"
                )
                for path in feature.affected_files:
                    node.add(f"[cyan]{escape(path)}[/cyan]")
            self.console.print(tree)

        if impact.services:
            self.console.print(f"[bold]Services:[/bold] {escape(', '.join(impact.services))}")
        if impact.pages:
            self.console.print(f"[bold]Pages:[/bold] {escape(', '.join(impact.pages))}")

    def show_scenarios(self, scenarios: list[TestScenario]) -> None:
        table = Table(title="Test Scenarios", border_style="cyan")
        table.add_column("#", style="bold")
        table.add_column("Scenario")
        table.add_column("Feature", style="cyan")
        table.add_column("Priority")
        table.add_column("Type", style="dim")
        for s in scenarios:
            color = RISK_COLORS.get(s.priority, "white")
            table.add_row(
                escape(s.id), escape(s.title), escape(s.feature), f"[{color}]{s.priority}[/{color}]", s.type
            )
        self.console.print(table)

    def show_report(self, report: AnalysisReport, files: list[ParsedFile]) -> None:
        self.show_impact(report.impact, files)
        if report.test_scenarios:
            self.show_scenarios(report.test_scenarios)

    def show_review(self, items: list[CodeReviewItem]) -> None:
        if not items:
            self.success("No review findings")
            return
        for item in items:
            color = SEVERITY_COLORS.get(item.severity, "white")
            location = escape(f"{item.file}:{item.line}" if item.line else item.file)
            body = escape(item.description)
            if item.suggestion:
                body += f"\n\n[bold]Suggestion:[/bold]\n{escape(item.suggestion)}"
            self.console.print(
                Panel(
                    body,
                    title=f"[{color}]{item.severity}[/{color}] {escape(item.title)}",
                    subtitle=f"{item.category} · {location}",
                    border_style=color,
                )
            )

    def show_index(self, index: CodebaseIndex) -> None:
        table = Table(title=f"Codebase Index: {escape(index.repo_full_name)}", border_style="cyan")
        table.add_column("Module", style="bold")
        table.add_column("Lang", style="dim")
        table.add_column("Exports", justify="right", style="cyan")
        table.add_column("Imports", justify="right", style="cyan")
        table.add_column("Summary")
        for m in index.modules:
            table.add_row(
                escape(m.path), m.language, str(len(m.exports)), str(len(m.imports)), escape(m.summary)
            )
        self.console.print(table)
        self.console.print(
            f"[dim]{len(index.modules)} modules indexed of {len(index.tree)} files "
            f"at {index.commit_sha[:12]}[/dim]"
        )
