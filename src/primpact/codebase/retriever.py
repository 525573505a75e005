"""One-hop dependency/consumer lookup for a set of changed files.

The index is loaded into a ``networkx.DiGraph`` where an edge ``a -> b``
means module ``a`` imports module ``b``. Dependencies of the changed set are
its successors and consumers are its predecessors.
"""

from __future__ import annotations

import re

import networkx as nx

from primpact.codebase.models import CodebaseIndex, ModuleInfo
from primpact.codebase.overview import top_directories

RESOLVE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".py")

_DIFF_PREFIX = re.compile(r"^[ab]/")
_DOTTED = re.compile(r"^\w+(\.\w+)+$")


def normalize_path(path: str) -> str:
    return _DIFF_PREFIX.sub("", path)


def find_module(
    modules: dict[str, ModuleInfo],
    import_path: str,
    alias: str = "@/",
) -> ModuleInfo | None:
    """Resolve an import specifier or file path to an indexed module.

    Tries, in order: the exact path, path + extension, path/index +
    extension, a Python package ``__init__``, the path with ``alias``
    stripped, and finally a dotted Python module name.
    """
    found = _find_by_path(modules, import_path)
    if found is not None:
        return found

    if alias and import_path.startswith(alias):
        return find_module(modules, import_path[len(alias):], alias=alias)

    if _DOTTED.match(import_path):
        as_path = import_path.replace(".", "/")
        return _find_by_path(modules, as_path) or _find_by_path(modules, f"src/{as_path}")

    return None


def _find_by_path(modules: dict[str, ModuleInfo], path: str) -> ModuleInfo | None:
    if path in modules:
        return modules[path]
    for ext in RESOLVE_EXTENSIONS:
        if path + ext in modules:
            return modules[path + ext]
    for ext in RESOLVE_EXTENSIONS:
        if f"{path}/index{ext}" in modules:
            return modules[f"{path}/index{ext}"]
    return modules.get(f"{path}/__init__.py")


def build_import_graph(index: CodebaseIndex, alias: str = "@/") -> nx.DiGraph:
    """Directed import graph over the indexed modules (unresolved imports dropped)."""
    modules = index.module_map()
    graph = nx.DiGraph()
    for module in index.modules:
        graph.add_node(module.path, module=module)
    for module in index.modules:
        for target in module.imports:
            resolved = find_module(modules, target, alias)
            if resolved is not None and resolved.path != module.path:
                graph.add_edge(module.path, resolved.path)
    return graph


def _describe(module: ModuleInfo, suffix: str = "") -> str:
    exported = ", ".join(module.exports) if module.exports else "(no exports)"
    line = f"- `{module.path}`: {exported}{suffix}"
    if module.summary:
        line += f" ({module.summary})"
    return line


def retrieve_context(
    index: CodebaseIndex,
    changed_paths: list[str],
    alias: str = "@/",
) -> str:
    """Render the codebase context for ``changed_paths`` as Markdown."""
    modules = index.module_map()
    graph = build_import_graph(index, alias)

    changed: list[ModuleInfo] = []
    for path in changed_paths:
        module = find_module(modules, normalize_path(path), alias)
        if module is not None and module not in changed:
            changed.append(module)
    changed_set = {m.path for m in changed}

    dependencies: list[str] = []
    for module in changed:
        for target in graph.successors(module.path):
            if target not in changed_set and target not in dependencies:
                dependencies.append(target)

    consumers_of: dict[str, list[str]] = {
        m.path: [p for p in graph.predecessors(m.path) if p not in changed_set]
        for m in changed
    }
    consumers = [
        m.path
        for m in index.modules
        if m.path not in changed_set
        and m.path not in dependencies
        and any(t in changed_set for t in graph.successors(m.path))
    ]

    sections = ["## Codebase Context\n"]

    if changed:
        sections.append("### Changed Files")
        for module in changed:
            sections.append(_describe(module, " exported"))
            if consumers_of[module.path]:
                users = ", ".join(f"`{p}`" for p in consumers_of[module.path])
                sections.append(f"  - Imported by: {users}")
        sections.append("")

    if dependencies:
        sections.append("### Dependencies (imported by the changed files)")
        sections.extend(_describe(modules[p]) for p in dependencies)
        sections.append("")

    if consumers:
        sections.append("### Affected Consumers (modules that import the changed files)")
        sections.extend(_describe(modules[p]) for p in consumers)
        sections.append("")

    structure = top_directories(index.tree)
    if structure:
        sections.append("### Repository Structure (summary)")
        sections.append("\n".join(structure))
        sections.append("")

    return "\n".join(sections)
