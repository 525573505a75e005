"""Directory histograms and import hubs over a codebase index."""

from __future__ import annotations

from collections import Counter

from primpact.codebase.models import ModuleInfo


def _ranked(counts: Counter, limit: int) -> list[tuple[str, int]]:
    # Counter.most_common keeps first-seen order for ties
    return counts.most_common(limit)


def top_directories(tree: list[str], limit: int = 10) -> list[str]:
    """Rendered lines for the most populous top-level directories."""
    counts: Counter = Counter()
    for path in tree:
        parts = path.split("/")
        # root-level files and dot-directories such as .github
        if len(parts) == 1 or "." in parts[0]:
            continue
        counts[parts[0]] += 1
    return [f"- `{d}/` ({n} files)" for d, n in _ranked(counts, limit)]


def directory_structure(tree: list[str], limit: int = 12, sub_limit: int = 5) -> list[str]:
    """Top-level directories, each followed by its busiest sub-directories."""
    top: Counter = Counter()
    sub: dict[str, Counter] = {}
    for path in tree:
        parts = path.split("/")
        if len(parts) == 1:
            continue
        top[parts[0]] += 1
        if len(parts) > 2:
            sub.setdefault(parts[0], Counter())[parts[1]] += 1

    lines: list[str] = []
    for directory, count in _ranked(top, limit):
        lines.append(f"- `{directory}/` ({count} files)")
        for child, child_count in _ranked(sub.get(directory, Counter()), sub_limit):
            lines.append(f"  - `{child}/` ({child_count} files)")
    return lines


def import_hubs(modules: list[ModuleInfo], limit: int = 10) -> list[str]:
    """The import targets referenced by the most indexed modules."""
    counts: Counter = Counter()
    for module in modules:
        counts.update(module.imports)
    return [
        f"- `{target}`: imported by {n} module{'s' if n != 1 else ''}"
        for target, n in _ranked(counts, limit)
    ]
