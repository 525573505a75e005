"""Path glob matching for impact maps.

Patterns follow the minimatch conventions used by committed
``impact-map.config.json`` files:

  - ``*`` and ``?`` never cross a ``/``
  - a ``**`` path segment matches zero or more whole segments
  - ``[abc]`` / ``[!abc]`` character classes, ``{a,b}`` alternatives
  - wildcards do not match a leading ``.`` unless the pattern spells it out
  - a leading ``!`` negates the pattern

Matching is case-sensitive against POSIX-style relative paths. ``./`` is
not normalised and ``\\`` escapes the next character.
"""

from __future__ import annotations

import re
from functools import lru_cache

_GLOBSTAR = object()
# A path segment that is not hidden (and is never "." or "..")
_SEGMENT = r"(?!\.)[^/]+"


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives, innermost groups included."""
    depth = 0
    start = -1
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                body = pattern[start + 1:i]
                options = _split_top_level(body)
                if len(options) < 2:
                    # "{x}" is literal
                    rest = expand_braces(pattern[i + 1:])
                    return [pattern[: i + 1] + r for r in rest]
                prefix, suffix = pattern[:start], pattern[i + 1:]
                result: list[str] = []
                for option in options:
                    result.extend(expand_braces(prefix + option + suffix))
                return result
        i += 1
    return [pattern]


def _split_top_level(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current = ""
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            current += body[i:i + 2]
            i += 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(current)
            current = ""
            i += 1
            continue
        current += ch
        i += 1
    parts.append(current)
    return parts


def _translate_segment(segment: str) -> str:
    """Translate one path segment (no slashes, not ``**``) to a regex."""
    if segment == "*":
        return _SEGMENT

    out: list[str] = []
    i = 0
    n = len(segment)
    while i < n:
        ch = segment[i]
        if ch == "\\" and i + 1 < n:
            out.append(re.escape(segment[i + 1]))
            i += 2
        elif ch == "*":
            # Collapse runs of stars inside a segment
            while i < n and segment[i] == "*":
                i += 1
            out.append("[^/]*")
            continue
        elif ch == "?":
            out.append("[^/]")
            i += 1
        elif ch == "[":
            end = _class_end(segment, i)
            if end == -1:
                out.append(re.escape(ch))
                i += 1
                continue
            body = segment[i + 1:end]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\")
            out.append(f"(?!/)[{'^' if negate else ''}{body}]")
            i = end + 1
        else:
            out.append(re.escape(ch))
            i += 1

    regex = "".join(out)
    if segment[:1] in ("*", "?", "["):
        regex = r"(?!\.)" + regex
    return regex


def _class_end(segment: str, start: int) -> int:
    i = start + 1
    if i < len(segment) and segment[i] in ("!", "^"):
        i += 1
    if i < len(segment) and segment[i] == "]":
        i += 1
    while i < len(segment):
        if segment[i] == "]":
            return i
        i += 1
    return -1


def _translate(pattern: str) -> str:
    pieces: list[object] = []
    for segment in pattern.split("/"):
        if segment == "**":
            if pieces and pieces[-1] is _GLOBSTAR:
                continue
            pieces.append(_GLOBSTAR)
        else:
            pieces.append(_translate_segment(segment))

    regex = ""
    n = len(pieces)
    for i, piece in enumerate(pieces):
        after_globstar = i > 0 and pieces[i - 1] is _GLOBSTAR
        sep = "/" if i > 0 and not after_globstar else ""
        if piece is _GLOBSTAR:
            if n == 1:
                regex += f"{_SEGMENT}(?:/{_SEGMENT})*"
            elif i == n - 1:
                regex += f"(?:/{_SEGMENT})*"
            else:
                regex += f"{sep}(?:{_SEGMENT}/)*"
        else:
            regex += sep + piece
    return regex


@lru_cache(maxsize=1024)
def compile_glob(pattern: str) -> tuple[re.Pattern[str], bool]:
    """Compile a glob to (regex, negated)."""
    negated = False
    while pattern.startswith("!") and not pattern.startswith("!("):
        negated = not negated
        pattern = pattern[1:]
    alternatives = [_translate(p) for p in expand_braces(pattern)]
    regex = "|".join(f"(?:{a})" for a in alternatives)
    return re.compile(f"^(?:{regex})$"), negated


def glob_match(path: str, pattern: str) -> bool:
    """Return True if ``path`` matches the glob ``pattern``."""
    if not pattern:
        return path == ""
    compiled, negated = compile_glob(pattern)
    matched = compiled.match(path) is not None
    return not matched if negated else matched


def match_any(path: str, patterns: list[str]) -> bool:
    """Return True if ``path`` matches at least one pattern."""
    return any(glob_match(path, p) for p in patterns)


def filter_matching(paths: list[str], patterns: list[str]) -> list[str]:
    """Paths that match at least one pattern, order preserved."""
    return [p for p in paths if match_any(p, patterns)]
