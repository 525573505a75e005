"""Prompt templates for test-scenario generation, code review and chat.

Every builder is a pure function of its arguments.
"""

from __future__ import annotations

import re
from collections import Counter

from primpact.analysis.models import ImpactResult

# ---------------------------------------------------------------------------
# Test generation
# ---------------------------------------------------------------------------

TEST_GENERATION_SYSTEM_PROMPT = """\
You are an experienced QA engineer. You analyze pull request changes and write test scenarios for them.

## Instructions
1. Prioritize by risk level (critical > high > medium > low)
2. Write functional and regression tests for directly affected features
3. Write integration tests for indirectly affected features
4. Do not overlook edge cases
5. Give every scenario clear, actionable steps

Respond with valid JSON ONLY. Do not add a Markdown code block, explanations or any other text; return only the JSON object.

JSON format:
{"scenarios":[{"id":"TC-001","title":"Title","feature":"Feature name","priority":"critical|high|medium|low","type":"functional|regression|edge-case|integration","steps":["Step 1","Step 2"],"expectedResult":"Expected result"}]}"""


def _with_context(prompt: str, codebase_context: str | None) -> str:
    if not codebase_context:
        return prompt
    return f"{prompt}\n\n{codebase_context}"


def build_test_generation_system_prompt(codebase_context: str | None = None) -> str:
    return _with_context(TEST_GENERATION_SYSTEM_PROMPT, codebase_context)


def build_test_generation_user_message(
    impact: ImpactResult,
    diff_summary: str,
    max_scenarios: int,
) -> str:
    """User turn for test generation: impact, features, services/pages and the diff summary."""
    direct = "\n".join(
        f"- {f.name}: {f.description} ({', '.join(f.affected_files)})"
        for f in impact.direct_features
    )
    indirect = "\n".join(f"- {f.name}: {f.description}" for f in impact.indirect_features)
    services = "\n".join(f"- {s}" for s in impact.services)
    pages = "\n".join(f"- {p}" for p in impact.pages)

    return f"""Create at most {max_scenarios} test scenarios.

Impact analysis: {impact.summary}
Risk: {impact.risk_level.upper()}

Directly affected features:
{direct or "None"}

Indirectly affected features:
{indirect or "None"}

Services: {services or "None"}
Pages: {pages or "None"}

Diff:
{diff_summary}"""


# ---------------------------------------------------------------------------
# Code review
# ---------------------------------------------------------------------------

EXTENSION_LANGUAGES: dict[str, str] = {
    "ts": "TypeScript",
    "tsx": "TypeScript/React",
    "js": "JavaScript",
    "jsx": "JavaScript/React",
    "py": "Python",
    "go": "Go",
    "rs": "Rust",
    "java": "Java",
    "kt": "Kotlin",
    "cs": "C#",
    "rb": "Ruby",
    "php": "PHP",
    "swift": "Swift",
    "dart": "Dart",
}

LANGUAGE_BEST_PRACTICES: dict[str, list[str]] = {
    "TypeScript": [
        "Avoid the any type",
        "Check for null/undefined",
        "Prefer union types over enums",
    ],
    "TypeScript/React": [
        "Avoid the any type",
        "Rules of hooks: no conditional calls, complete dependency arrays",
        "Unnecessary re-renders: missing useMemo/useCallback",
        "useEffect dependency arrays and cleanup functions",
        "Key props must be unique and stable",
    ],
    "JavaScript": [
        "Use === instead of ==",
        "Prefer const/let over var",
        "Handle promise rejections",
    ],
    "JavaScript/React": [
        "Use === instead of ==",
        "Rules of hooks and dependency arrays",
        "Check for unnecessary re-renders",
        "Key props must be unique",
    ],
    "Python": [
        "Prefer type hints",
        "No mutable default arguments",
        "Use context managers (with) for resources",
        "Prefer f-strings",
    ],
    "Go": [
        "Error handling: do not swallow errors",
        "Goroutine leaks (context cancellation)",
        "Use defer for resource cleanup",
        "Interface segregation",
    ],
}

GENERIC_BEST_PRACTICES = [
    "Conformance to the language's conventions",
    "Error-handling best practices",
    "Efficient data structures and algorithms",
]

UNIVERSAL_REVIEW_CRITERIA = [
    "Bugs & security: logic errors, injection, XSS, CSRF, race conditions, missing error handling",
    "Performance: redundant computation, N+1 queries, memory leaks, missing memoization",
    "SOLID principles: SRP, OCP, LSP, ISP, DIP violations",
    None,  # language-specific best practices are slotted in here
    "Maintainability & style: readability, naming, DRY, complexity",
]

# The last extension of each header path: "app.config.ts" counts as "ts"
_DIFF_FILE_EXT = re.compile(r"^(?:diff --git a/|[+-]{3} [ab]/)\S*\.(\w+)(?=\s|$)", re.MULTILINE)


def detect_language(diff_content: str) -> str:
    """Dominant language of a diff, by counting file extensions in its headers."""
    counts: Counter = Counter(m.group(1).lower() for m in _DIFF_FILE_EXT.finditer(diff_content))
    top_ext, top_count = "", 0
    for ext, count in counts.items():
        if count > top_count and ext in EXTENSION_LANGUAGES:
            top_ext, top_count = ext, count
    return EXTENSION_LANGUAGES.get(top_ext, "General")


def language_best_practices(language: str) -> str:
    practices = LANGUAGE_BEST_PRACTICES.get(language, GENERIC_BEST_PRACTICES)
    return "\n".join(f"   - {p}" for p in practices)


def build_code_review_system_prompt(diff_content: str, codebase_context: str | None = None) -> str:
    """System prompt with the detected language's checklist and the review criteria."""
    language = detect_language(diff_content)

    criteria = []
    for number, criterion in enumerate(UNIVERSAL_REVIEW_CRITERIA, start=1):
        if criterion is None:
            criterion = f"{language} best practices:\n{language_best_practices(language)}"
        criteria.append(f"{number}. {criterion}")
    criteria_text = "\n".join(criteria)

    prompt = f"""You are a senior software engineer and code reviewer who knows SOLID principles, performance optimization and {language} best practices.

Respond with valid JSON ONLY. Do not add a Markdown code block, explanations or any other text; return only the JSON object.

Review criteria:
{criteria_text}

Instructions:
- Severity: critical > warning > info > suggestion
- Categories: bug, security, performance, maintainability, style
- Give the file path and line number for every finding
- Provide a fix suggestion (code snippet)
- Avoid false positives

JSON format:
{{"items":[{{"id":"CR-001","file":"src/example.ts","line":42,"severity":"critical|warning|info|suggestion","category":"bug|security|performance|maintainability|style","title":"Title","description":"Description","suggestion":"Suggestion"}}]}}"""
    return _with_context(prompt, codebase_context)


def build_code_review_user_message(
    impact: ImpactResult,
    diff_content: str,
    max_items: int,
) -> str:
    features = "\n".join(
        f"- {f.name} ({f.change_type}): {f.description}" for f in impact.features
    )
    return f"""Report at most {max_items} findings.

Impact: {impact.summary}
Risk: {impact.risk_level.upper()}
Features:
{features or "None"}

Diff:
{diff_content}"""


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


def build_chat_system_prompt(codebase_context: str) -> str:
    return f"""You are a code assistant. Help the user with their questions using the codebase information below.

Rules:
- Mention the relevant file paths when giving code examples.
- Keep answers short and clear, avoid needless repetition.
- Say so when you are not sure about something.

{codebase_context}"""
