"""Anthropic Claude LLM provider."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import anthropic

from primpact.exceptions import (
    AIAuthenticationError,
    AIOverloadedError,
    AIParseError,
    AIRateLimitError,
    LLMError,
)
from primpact.llm.base import LLMProvider, LLMResponse, Message

OVERLOADED_STATUSES = (529, 503)


def translate_error(error: anthropic.APIError) -> LLMError:
    """Map an Anthropic SDK exception onto the error taxonomy."""
    if isinstance(error, anthropic.AuthenticationError):
        return AIAuthenticationError("Anthropic API key is invalid")
    if isinstance(error, anthropic.RateLimitError):
        return AIRateLimitError("Anthropic rate limit exceeded")
    if isinstance(error, anthropic.APIStatusError) and error.status_code in OVERLOADED_STATUSES:
        return AIOverloadedError("Anthropic API is overloaded")
    return LLMError(f"Anthropic API error: {error.message}")


class AnthropicProvider(LLMProvider):
    """Provider for Anthropic's Claude models."""

    name = "Anthropic"

    def __init__(self, model: str = "claude-sonnet-4-6", **kwargs: Any) -> None:
        super().__init__(model, **kwargs)
        self._client: anthropic.AsyncAnthropic | None = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            kwargs: dict[str, Any] = {"max_retries": self.max_retries}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = anthropic.AsyncAnthropic(**kwargs)
        return self._client

    def _format_messages(self, messages: list[Message]) -> tuple[str, list[dict]]:
        """Split out the system prompt; Anthropic takes it as a separate argument."""
        system = ""
        result = []
        for msg in messages:
            if msg.role == "system":
                system = msg.content
                continue
            result.append({"role": msg.role, "content": msg.content})
        return system, result

    def _build_kwargs(
        self, messages: list[Message], temperature: float, max_tokens: int
    ) -> dict[str, Any]:
        system, formatted = self._format_messages(messages)
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": formatted,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system:
            # Prompt caching for the large, repeated system block
            kwargs["system"] = [
                {"type": "text", "text": system, "cache_control": {"type": "ephemeral"}}
            ]
        return kwargs

    async def complete(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        client = self._get_client()
        try:
            response = await client.messages.create(
                **self._build_kwargs(messages, temperature, max_tokens)
            )
        except anthropic.APIError as e:
            raise translate_error(e) from e

        content = "".join(block.text for block in response.content if block.type == "text")
        if not content and response.stop_reason != "max_tokens":
            raise AIParseError("Anthropic returned no text content")

        return LLMResponse(
            content=content,
            finish_reason=response.stop_reason or "",
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
            },
        )

    async def stream(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> AsyncIterator[str]:
        client = self._get_client()
        try:
            async with client.messages.stream(
                **self._build_kwargs(messages, temperature, max_tokens)
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except anthropic.APIError as e:
            raise translate_error(e) from e
