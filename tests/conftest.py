"""Shared test fixtures for primpact."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import pytest

from primpact.config import FeatureMapping, ImpactMapConfig
from primpact.exceptions import SourceControlError, SourceControlNotFoundError
from primpact.llm.base import LLMProvider, LLMResponse, Message
from primpact.scm.base import PullRequestInfo, SourceControl

BILLING_DIFF = """\
diff --git a/src/billing/invoice.ts b/src/billing/invoice.ts
index 1111111..2222222 100644
--- a/src/billing/invoice.ts
+++ b/src/billing/invoice.ts
@@ -1,4 +1,5 @@
 import { tax } from "./tax";
-export function total(a: number) {
+export function total(a: number, b: number) {
+  // include b
   return a + tax(a);
 }
diff --git a/README.md b/README.md
index 3333333..4444444 100644
--- a/README.md
+++ b/README.md
@@ -1 +1 @@
-# Old title
+# New title
"""

SCENARIOS_PAYLOAD = {
    "scenarios": [
        {
            "id": "TC-001",
            "title": "Invoice total includes tax",
            "feature": "billing",
            "priority": "high",
            "type": "functional",
            "steps": ["Create an invoice", "Open the invoice"],
            "expectedResult": "The total includes tax",
        },
        {
            "id": "TC-002",
            "title": "Checkout still computes totals",
            "feature": "checkout",
            "priority": "medium",
            "type": "integration",
            "steps": ["Add an item to the cart", "Check out"],
            "expectedResult": "The order total is correct",
        },
    ]
}

REVIEW_PAYLOAD = {
    "items": [
        {
            "id": "CR-001",
            "file": "src/billing/invoice.ts",
            "line": 2,
            "severity": "warning",
            "category": "bug",
            "title": "Unused parameter",
            "description": "`b` is accepted but never used.",
            "suggestion": "return a + b + tax(a);",
        },
        {
            "id": "CR-002",
            "file": "src/billing/invoice.ts",
            "severity": "suggestion",
            "category": "style",
            "title": "Comment restates the code",
            "description": "The comment adds nothing.",
        },
    ]
}


class FakeSourceControl(SourceControl):
    """In-memory repository that records every call."""

    def __init__(
        self,
        name: str = "acme/shop",
        diffs: dict[int, str] | None = None,
        comparisons: dict[tuple[str, str], str] | None = None,
        files: dict[str, bytes] | None = None,
        head: str = "a" * 40,
        pr_title: str = "Fix billing totals",
    ) -> None:
        self._name = name
        self.diffs = diffs or {}
        self.comparisons = comparisons or {}
        self.files = files or {}
        self.head = head
        self.pr_title = pr_title
        self.fail_head = False
        self.fail_tree = False
        self.calls: list[tuple[str, Any]] = []
        self.comments: list[tuple[int, str, str]] = []
        self.reviews: list[tuple[int, str, list[dict]]] = []

    @property
    def full_name(self) -> str:
        return self._name

    async def get_diff(self, pr_number: int) -> str:
        self.calls.append(("get_diff", pr_number))
        if pr_number not in self.diffs:
            raise SourceControlNotFoundError(f"pull request #{pr_number} not found")
        return self.diffs[pr_number]

    async def get_pr_info(self, pr_number: int) -> PullRequestInfo:
        self.calls.append(("get_pr_info", pr_number))
        if pr_number not in self.diffs:
            raise SourceControlNotFoundError(f"pull request #{pr_number} not found")
        return PullRequestInfo(number=pr_number, title=self.pr_title, head_sha="f" * 40)

    async def compare_refs(self, base: str, head: str) -> str:
        self.calls.append(("compare_refs", (base, head)))
        if (base, head) not in self.comparisons:
            raise SourceControlNotFoundError(f"comparison {base}...{head} not found")
        return self.comparisons[(base, head)]

    async def get_default_branch(self) -> str:
        return "main"

    async def get_default_branch_head(self) -> str:
        self.calls.append(("get_default_branch_head", None))
        if self.fail_head:
            raise SourceControlError("GitHub API error 502 for branch main")
        return self.head

    async def get_repo_tree(self, ref: str | None = None) -> list[str]:
        self.calls.append(("get_repo_tree", ref))
        if self.fail_tree:
            raise SourceControlError("GitHub API error 502 for tree")
        return sorted(self.files)

    async def get_file_content(self, path: str, ref: str | None = None) -> bytes:
        self.calls.append(("get_file_content", (path, ref)))
        if path not in self.files:
            raise SourceControlNotFoundError(f"file {path} not found")
        return self.files[path]

    async def upsert_comment(self, pr_number: int, body: str, marker: str) -> int:
        self.comments.append((pr_number, body, marker))
        return 1

    async def create_review(self, pr_number: int, body: str, comments: list[dict]) -> None:
        self.reviews.append((pr_number, body, comments))

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)


class FakeLLMProvider(LLMProvider):
    """Provider that replays canned responses (or raises canned errors)."""

    name = "Fake"

    def __init__(
        self,
        responses: list[str | LLMResponse | Exception] | None = None,
        chunks: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("overload_retry_delays", (0.0, 0.0))
        super().__init__("fake-model", **kwargs)
        self.responses = list(responses or [])
        self.chunks = chunks or []
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        self.calls.append(
            {"messages": messages, "max_tokens": max_tokens, "json_mode": json_mode}
        )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return LLMResponse(content=response, finish_reason="end_turn")
        return response

    async def stream(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> AsyncIterator[str]:
        self.calls.append({"messages": messages, "max_tokens": max_tokens, "stream": True})
        for chunk in self.chunks:
            yield chunk


@pytest.fixture
def billing_diff() -> str:
    return BILLING_DIFF


@pytest.fixture
def impact_map() -> ImpactMapConfig:
    return ImpactMapConfig(
        features={
            "billing": FeatureMapping(
                description="Billing and invoices",
                paths=["src/billing/**"],
                related_features=["checkout"],
            ),
            "checkout": FeatureMapping(
                description="Checkout flow",
                paths=["src/checkout/**"],
            ),
        },
        services={"billing-api": ["src/billing/**", "app/api/billing/**"]},
        pages={"invoices": ["app/invoices/**"]},
        ignore_patterns=["**/*.md"],
    )


@pytest.fixture
def scenarios_json() -> str:
    return json.dumps(SCENARIOS_PAYLOAD)


@pytest.fixture
def review_json() -> str:
    return json.dumps(REVIEW_PAYLOAD)


@pytest.fixture
def repo_files(impact_map: ImpactMapConfig) -> dict[str, bytes]:
    """A small TS repository with a committed impact map."""
    return {
        "impact-map.config.json": impact_map.to_json().encode(),
        "package.json": b'{"name": "shop"}',
        "src/billing/invoice.ts": (
            b'/** Invoice totals */\n'
            b'import { tax } from "./tax";\n'
            b'export function total(a: number, b: number) {\n'
            b'  return a + tax(a);\n'
            b'}\n'
        ),
        "src/billing/tax.ts": b"// Tax rules\nexport const RATE = 0.2;\nexport function tax(a: number) { return a * RATE; }\n",
        "src/checkout/cart.ts": b'import { total } from "@/src/billing/invoice";\nexport class Cart {}\n',
        "README.md": b"# Shop\n",
    }


@pytest.fixture
def fake_source(billing_diff: str, repo_files: dict[str, bytes]) -> FakeSourceControl:
    return FakeSourceControl(
        diffs={42: billing_diff},
        comparisons={("main", "feature"): billing_diff},
        files=dict(repo_files),
    )


@pytest.fixture
def make_provider():
    """Factory for FakeLLMProvider instances."""
    def _make(*responses: str | LLMResponse | Exception, **kwargs: Any) -> FakeLLMProvider:
        return FakeLLMProvider(list(responses), **kwargs)
    return _make
