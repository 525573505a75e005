"""Unified diff parser.

Turns the text returned by a diff/compare API (or ``git diff``) into
structured ParsedFile records. The parser is best-effort: a hunk with an
unreadable header is skipped, the rest of the file section and every
other file are still parsed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from primpact.analysis.models import ParsedChange, ParsedChunk, ParsedFile

HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
GIT_HEADER = re.compile(r"^diff --git a/(.+) b/(.+)$")

_DEV_NULL = "/dev/null"


@dataclass
class _HunkState:
    """Mutable hunk under construction."""
    header: str
    old_start: int
    new_start: int
    old_remaining: int
    new_remaining: int
    old_line: int
    new_line: int
    changes: list[ParsedChange] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.old_remaining <= 0 and self.new_remaining <= 0

    def freeze(self) -> ParsedChunk:
        return ParsedChunk(
            content=self.header,
            old_start=self.old_start,
            new_start=self.new_start,
            changes=tuple(self.changes),
        )


@dataclass
class _FileState:
    """Mutable file section under construction."""
    from_path: str | None = None
    to_path: str | None = None
    new: bool = False
    deleted: bool = False
    renamed: bool = False
    additions: int = 0
    deletions: int = 0
    chunks: list[ParsedChunk] = field(default_factory=list)
    hunk: _HunkState | None = None

    def close_hunk(self) -> None:
        if self.hunk is not None:
            self.chunks.append(self.hunk.freeze())
            self.hunk = None

    def freeze(self) -> ParsedFile:
        self.close_hunk()
        from_path = None if self.from_path == _DEV_NULL else self.from_path
        to_path = None if self.to_path == _DEV_NULL else self.to_path
        path = to_path or from_path or "unknown"

        if self.new or self.from_path == _DEV_NULL:
            status = "added"
        elif self.deleted or self.to_path == _DEV_NULL:
            status = "deleted"
        elif self.renamed or (from_path and to_path and from_path != to_path):
            status = "renamed"
        else:
            status = "modified"

        return ParsedFile(
            path=path,
            old_path=from_path if status == "renamed" else None,
            additions=self.additions,
            deletions=self.deletions,
            status=status,
            chunks=tuple(self.chunks),
        )


def _strip_prefix(path: str) -> str:
    path = path.strip().split("\t")[0]
    if path.startswith('"') and path.endswith('"'):
        path = path[1:-1]
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


class DiffParser:
    """Parse unified diff text into ParsedFile records."""

    def parse(self, raw_diff: str) -> list[ParsedFile]:
        files: list[ParsedFile] = []
        current: _FileState | None = None

        def finish() -> None:
            nonlocal current
            if current is not None:
                files.append(current.freeze())
            current = None

        for line in raw_diff.splitlines():
            hunk = current.hunk if current is not None else None

            # Inside a hunk, the header counts decide what a line is
            if hunk is not None and not hunk.exhausted:
                if self._consume_hunk_line(current, hunk, line):
                    continue
                current.close_hunk()

            if line.startswith("diff --git"):
                finish()
                current = _FileState()
                match = GIT_HEADER.match(line)
                if match:
                    current.from_path = match.group(1)
                    current.to_path = match.group(2)
                continue

            if line.startswith("--- ") and (current is None or current.chunks or current.hunk):
                # Plain unified diff without a git header
                finish()
                current = _FileState()

            if current is None:
                continue

            if line.startswith("new file mode"):
                current.new = True
            elif line.startswith("deleted file mode"):
                current.deleted = True
            elif line.startswith("rename from "):
                current.from_path = line[len("rename from "):]
                current.renamed = True
            elif line.startswith("rename to "):
                current.to_path = line[len("rename to "):]
                current.renamed = True
            elif line.startswith("--- "):
                current.from_path = self._header_path(line[4:])
            elif line.startswith("+++ "):
                current.to_path = self._header_path(line[4:])
            elif line.startswith("@@"):
                current.close_hunk()
                current.hunk = self._open_hunk(line)

        finish()
        return files

    @staticmethod
    def _header_path(raw: str) -> str:
        raw = raw.strip().split("\t")[0]
        if raw == _DEV_NULL:
            return _DEV_NULL
        return _strip_prefix(raw)

    @staticmethod
    def _open_hunk(line: str) -> _HunkState | None:
        match = HUNK_HEADER.match(line)
        if not match:
            return None
        old_start = int(match.group(1))
        new_start = int(match.group(3))
        return _HunkState(
            header=line,
            old_start=old_start,
            new_start=new_start,
            old_remaining=int(match.group(2) if match.group(2) is not None else "1"),
            new_remaining=int(match.group(4) if match.group(4) is not None else "1"),
            old_line=old_start,
            new_line=new_start,
        )

    @staticmethod
    def _consume_hunk_line(current: _FileState, hunk: _HunkState, line: str) -> bool:
        """Record one hunk body line. Returns False if the line ends the hunk."""
        if line.startswith("\\"):
            # "\ No newline at end of file"
            return True
        marker, content = (line[:1], line[1:]) if line else (" ", "")
        if marker == "+":
            hunk.changes.append(ParsedChange(type="add", content=content, line_number=hunk.new_line))
            hunk.new_line += 1
            hunk.new_remaining -= 1
            current.additions += 1
        elif marker == "-":
            hunk.changes.append(ParsedChange(type="del", content=content, line_number=hunk.old_line))
            hunk.old_line += 1
            hunk.old_remaining -= 1
            current.deletions += 1
        elif marker == " ":
            hunk.changes.append(
                ParsedChange(type="normal", content=content, line_number=hunk.old_line)
            )
            hunk.old_line += 1
            hunk.new_line += 1
            hunk.old_remaining -= 1
            hunk.new_remaining -= 1
        else:
            return False
        return True


def parse_diff(raw_diff: str) -> list[ParsedFile]:
    """Parse unified diff text into structured ParsedFile objects."""
    return DiffParser().parse(raw_diff)


def changed_paths(files: list[ParsedFile]) -> list[str]:
    """Post-change paths of every file, in diff order."""
    return [f.path for f in files]
