"""Base LLM provider interface."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from pydantic import BaseModel, Field

from primpact.analysis.models import CodeReviewItem, ImpactResult, TestScenario
from primpact.exceptions import AIOverloadedError, AIParseError
from primpact.generators.prompts import (
    build_code_review_system_prompt,
    build_code_review_user_message,
    build_test_generation_system_prompt,
    build_test_generation_user_message,
)
from primpact.llm.parsing import parse_code_review, parse_test_scenarios

logger = logging.getLogger("primpact.llm")

# finish/stop reasons that mean the output was cut off
TRUNCATED_FINISH_REASONS = frozenset({"max_tokens", "length"})


class Message(BaseModel):
    """A message in the conversation."""

    role: str  # "system", "user", "assistant"
    content: str = ""


class LLMResponse(BaseModel):
    """Response from the LLM."""

    content: str = ""
    finish_reason: str = ""
    usage: dict[str, int] = Field(default_factory=dict)

    @property
    def truncated(self) -> bool:
        return self.finish_reason in TRUNCATED_FINISH_REASONS


class LLMProvider(ABC):
    """Abstract base for LLM providers.

    Subclasses implement ``complete`` and ``stream`` and translate their SDK's
    exceptions into :mod:`primpact.exceptions` types. The two generation
    operations are shared.
    """

    name = "llm"

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int = 2,
        overload_retry_delays: Sequence[float] = (10.0, 20.0),
        max_tokens: int = 8192,
        temperature: float = 0.0,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.max_retries = max_retries
        self.overload_retry_delays = list(overload_retry_delays)
        self.max_tokens = max_tokens
        self.temperature = temperature

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send a completion request to the LLM."""
        ...

    @abstractmethod
    async def stream(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> AsyncIterator[str]:
        """Stream a completion response."""
        ...

    async def complete_with_retry(
        self,
        messages: list[Message],
        json_mode: bool = False,
    ) -> LLMResponse:
        """``complete`` with back-off on overload; a truncated response is a parse error."""
        delays = [0.0, *self.overload_retry_delays]
        for attempt, delay in enumerate(delays, start=1):
            if delay > 0:
                logger.warning(
                    "%s API overloaded, waiting %gs (attempt %d/%d)",
                    self.name, delay, attempt, len(delays),
                )
                await asyncio.sleep(delay)
            try:
                response = await self.complete(
                    messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    json_mode=json_mode,
                )
            except AIOverloadedError:
                if attempt == len(delays):
                    raise
                continue
            if response.truncated:
                logger.error("%s response hit the token limit and was cut off", self.name)
                raise AIParseError(
                    "The model response was cut off at the token limit; "
                    "retry with fewer scenarios or a smaller diff"
                )
            return response
        raise AIOverloadedError(f"{self.name} API is overloaded")

    async def generate_test_scenarios(
        self,
        impact: ImpactResult,
        diff_summary: str,
        max_scenarios: int,
        codebase_context: str | None = None,
    ) -> list[TestScenario]:
        messages = [
            Message(role="system", content=build_test_generation_system_prompt(codebase_context)),
            Message(
                role="user",
                content=build_test_generation_user_message(impact, diff_summary, max_scenarios),
            ),
        ]
        response = await self.complete_with_retry(messages, json_mode=True)
        return parse_test_scenarios(response.content)

    async def generate_code_review(
        self,
        impact: ImpactResult,
        diff_content: str,
        max_items: int,
        codebase_context: str | None = None,
    ) -> list[CodeReviewItem]:
        messages = [
            Message(
                role="system",
                content=build_code_review_system_prompt(diff_content, codebase_context),
            ),
            Message(
                role="user",
                content=build_code_review_user_message(impact, diff_content, max_items),
            ),
        ]
        response = await self.complete_with_retry(messages, json_mode=True)
        return parse_code_review(response.content)
