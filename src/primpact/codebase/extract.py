"""Static extraction of imports, exports and a one-line summary.

TS/JS sources are scanned with regular expressions; Python sources use the
stdlib ``ast`` module and fall back to line patterns when the file does not
parse.
"""

from __future__ import annotations

import ast
import posixpath
import re

from primpact.codebase.models import ModuleInfo

SUPPORTED_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".py")

EXTENSION_LANGUAGE_MAP: dict[str, str] = {
    ".ts": "ts",
    ".tsx": "tsx",
    ".js": "js",
    ".jsx": "jsx",
    ".py": "py",
}

_TS_IMPORT = re.compile(
    r"import\s+(?:(?:type\s+)?(?:\{[^}]*\}|[\w*]+(?:\s+as\s+\w+)?(?:\s*,\s*\{[^}]*\})?)\s+from\s+)?[\"']([^\"']+)[\"']"
)
_TS_REEXPORT_FROM = re.compile(r"export\s+(?:type\s+)?(?:\*(?:\s+as\s+\w+)?|\{[^}]*\})\s+from\s+[\"']([^\"']+)[\"']")
_TS_REQUIRE = re.compile(r"require\(\s*[\"']([^\"']+)[\"']\s*\)")

_TS_EXPORTS = [
    re.compile(r"export\s+(?:default\s+)?(?:async\s+)?function\*?\s+(\w+)"),
    re.compile(r"export\s+(?:default\s+)?(?:abstract\s+)?class\s+(\w+)"),
    re.compile(r"export\s+(?:const|let|var)\s+(\w+)"),
    re.compile(r"export\s+type\s+(\w+)"),
    re.compile(r"export\s+interface\s+(\w+)"),
    re.compile(r"export\s+(?:const\s+)?enum\s+(\w+)"),
]
_TS_EXPORT_LIST = re.compile(r"export\s+(?:type\s+)?\{([^}]+)\}")

_PY_IMPORT = re.compile(r"^(?:from\s+(\.*[\w.]*)\s+import|import\s+([\w.]+))", re.MULTILINE)
_PY_DEF = re.compile(r"^(?:async\s+)?def\s+(\w+)", re.MULTILINE)
_PY_CLASS = re.compile(r"^class\s+(\w+)", re.MULTILINE)

_JSDOC = re.compile(r"^/\*\*?\s*(.+?)(?:\s*\*/)?$")
_LINE_COMMENT = re.compile(r"^//\s*(.+)")
_HASH_COMMENT = re.compile(r"^#(?!!)\s*(.+)")


def detect_language(path: str) -> str:
    """Short language tag from the file extension."""
    ext = posixpath.splitext(path)[1].lower()
    return EXTENSION_LANGUAGE_MAP.get(ext, "unknown")


def is_supported_file(path: str) -> bool:
    return path.endswith(SUPPORTED_EXTENSIONS)


def resolve_relative_import(import_path: str, current_file: str) -> str:
    """Resolve ``./x`` / ``../x`` against the importing file's directory.

    Non-relative specifiers (packages, aliases) are returned unchanged.
    """
    if not import_path.startswith("."):
        return import_path

    parts = current_file.split("/")[:-1]
    for part in import_path.split("/"):
        if part == "..":
            if parts:
                parts.pop()
        elif part not in (".", ""):
            parts.append(part)
    return "/".join(parts)


def resolve_python_relative(module: str | None, level: int, current_file: str) -> str:
    """Resolve ``from ..pkg.mod import x`` to a repo-relative path (no extension)."""
    parts = current_file.split("/")[:-1]
    for _ in range(level - 1):
        if parts:
            parts.pop()
    if module:
        parts.extend(module.split("."))
    return "/".join(parts)


def extract_summary(content: str, language: str) -> str:
    """First leading comment (JSDoc, ``//``, ``#`` or module docstring) line."""
    lines = content.splitlines()
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if not trimmed:
            continue

        if language == "py":
            if trimmed.startswith(("#!", "# -*-", "# vim:")):
                continue
            match = _HASH_COMMENT.match(trimmed)
            if match:
                return match.group(1).strip()
            if trimmed.startswith(('"""', "'''", 'r"""')):
                quote = trimmed.lstrip("r")[:3]
                text = trimmed.lstrip("r")[3:].split(quote)[0].strip()
                if not text and i + 1 < len(lines):
                    text = lines[i + 1].strip().split(quote)[0].strip()
                return text
            return ""

        if trimmed in ("/**", "/*"):
            # Multi-line block: the summary is on the next line
            for follow in lines[i + 1:]:
                text = follow.strip().lstrip("*").strip()
                if text and text != "/":
                    return text
            return ""
        match = _JSDOC.match(trimmed)
        if match and trimmed.startswith("/*"):
            return match.group(1).lstrip("*").strip()
        match = _LINE_COMMENT.match(trimmed)
        if match:
            return match.group(1).strip()
        # First non-empty line is code
        return ""
    return ""


def _append_unique(target: list[str], value: str) -> None:
    if value and value not in target:
        target.append(value)


def extract_ts_js(content: str, current_path: str) -> tuple[list[str], list[str]]:
    """Return (imports, exports) for a TS/JS source."""
    imports: list[str] = []
    exports: list[str] = []

    for pattern in (_TS_IMPORT, _TS_REEXPORT_FROM, _TS_REQUIRE):
        for match in pattern.finditer(content):
            _append_unique(imports, resolve_relative_import(match.group(1), current_path))

    for pattern in _TS_EXPORTS:
        for match in pattern.finditer(content):
            _append_unique(exports, match.group(1))

    for match in _TS_EXPORT_LIST.finditer(content):
        for item in match.group(1).split(","):
            name = re.split(r"\s+as\s+", item.strip())[-1].strip()
            if name.startswith("type "):
                name = name[5:].strip()
            if re.fullmatch(r"\w+", name):
                _append_unique(exports, name)

    return imports, exports


def extract_python(content: str, current_path: str) -> tuple[list[str], list[str]]:
    """Return (imports, exports) for a Python source."""
    imports: list[str] = []
    exports: list[str] = []

    try:
        tree = ast.parse(content, filename=current_path)
    except (SyntaxError, ValueError):
        return _extract_python_fallback(content, current_path)

    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                _append_unique(imports, alias.name)
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                base = resolve_python_relative(node.module, node.level, current_path)
                if node.module:
                    _append_unique(imports, base)
                else:
                    # "from . import x": x is most likely a sibling module
                    for alias in node.names:
                        _append_unique(imports, f"{base}/{alias.name}" if base else alias.name)
            elif node.module:
                _append_unique(imports, node.module)

    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            if not node.name.startswith("_"):
                _append_unique(exports, node.name)

    return imports, exports


def _extract_python_fallback(content: str, current_path: str) -> tuple[list[str], list[str]]:
    imports: list[str] = []
    exports: list[str] = []
    for match in _PY_IMPORT.finditer(content):
        module = match.group(1) or match.group(2)
        if module and module.startswith("."):
            level = len(module) - len(module.lstrip("."))
            module = resolve_python_relative(module.lstrip(".") or None, level, current_path)
        _append_unique(imports, module)
    for pattern in (_PY_DEF, _PY_CLASS):
        for match in pattern.finditer(content):
            if not match.group(1).startswith("_"):
                _append_unique(exports, match.group(1))
    return imports, exports


def extract_module_info(path: str, content: str) -> ModuleInfo:
    """Build the ModuleInfo for one file."""
    language = detect_language(path)
    if language == "py":
        imports, exports = extract_python(content, path)
    else:
        imports, exports = extract_ts_js(content, path)
    return ModuleInfo(
        path=path,
        language=language,
        imports=imports,
        exports=exports,
        summary=extract_summary(content, language),
    )
