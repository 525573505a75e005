"""Code-review generation.

The review prompt carries the diff itself, re-rendered from the parsed files
with long runs of unchanged lines collapsed and bounded in total size.
"""

from __future__ import annotations

from primpact.analysis.models import CodeReviewItem, ImpactResult, ParsedChange, ParsedChunk, ParsedFile
from primpact.llm.base import LLMProvider

_PREFIX = {"add": "+", "del": "-", "normal": " "}


def _skipped(count: int) -> str:
    return f" ... ({count} line{'s' if count != 1 else ''} skipped)"


def _render_chunk(chunk: ParsedChunk, max_context_lines: int) -> list[str]:
    lines = [f"@@ -{chunk.old_start} +{chunk.new_start} @@"]
    changes = chunk.changes
    i = 0
    while i < len(changes):
        if changes[i].type != "normal":
            lines.append(_PREFIX[changes[i].type] + changes[i].content)
            i += 1
            continue

        # A run of unchanged lines: keep context next to the surrounding changes
        start = i
        while i < len(changes) and changes[i].type == "normal":
            i += 1
        run: list[ParsedChange] = list(changes[start:i])
        lead = max_context_lines if start > 0 else 0
        trail = max_context_lines if i < len(changes) else 0
        if len(run) <= lead + trail:
            kept_head, kept_tail, dropped = run, [], 0
        else:
            kept_head = run[:lead]
            kept_tail = run[len(run) - trail:] if trail else []
            dropped = len(run) - lead - trail

        lines.extend(" " + c.content for c in kept_head)
        if dropped:
            lines.append(_skipped(dropped))
        lines.extend(" " + c.content for c in kept_tail)
    return lines


def render_file_diff(file: ParsedFile, max_context_lines: int = 3) -> str:
    """Unified-diff text for one parsed file."""
    lines = [f"--- a/{file.old_path or file.path}", f"+++ b/{file.path}"]
    for chunk in file.chunks:
        lines.extend(_render_chunk(chunk, max_context_lines))
    return "\n".join(lines)


def build_diff_content(
    files: list[ParsedFile],
    max_chars: int = 50_000,
    max_context_lines: int = 3,
) -> str:
    """Diff text for the review prompt, at most ``max_chars`` of file diffs.

    Files that do not fit are listed afterwards as ``path (+a/-d)``.
    """
    content = ""
    included = 0
    for file in files:
        rendered = render_file_diff(file, max_context_lines)
        addition = rendered if included == 0 else f"\n\n{rendered}"
        if len(content) + len(addition) > max_chars:
            break
        content += addition
        included += 1

    if included < len(files):
        remaining = files[included:]
        summary = "\n".join(f"{f.path} (+{f.additions}/-{f.deletions})" for f in remaining)
        content += (
            f"\n\n[Diff too large: {len(remaining)} more file(s) included as summaries]\n{summary}"
        )
    return content


class CodeReviewGenerator:
    """Asks the provider for review findings on the changed files."""

    def __init__(
        self,
        provider: LLMProvider,
        max_items: int = 20,
        max_chars: int = 50_000,
        max_context_lines: int = 3,
    ) -> None:
        self.provider = provider
        self.max_items = max_items
        self.max_chars = max_chars
        self.max_context_lines = max_context_lines

    async def generate(
        self,
        impact: ImpactResult,
        files: list[ParsedFile],
        codebase_context: str | None = None,
    ) -> list[CodeReviewItem]:
        diff_content = build_diff_content(files, self.max_chars, self.max_context_lines)
        items = await self.provider.generate_code_review(
            impact,
            diff_content,
            self.max_items,
            codebase_context=codebase_context,
        )
        return items[: self.max_items]
