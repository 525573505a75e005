"""OpenAI LLM provider."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import openai

from primpact.exceptions import (
    AIAuthenticationError,
    AIOverloadedError,
    AIParseError,
    AIRateLimitError,
    LLMError,
)
from primpact.llm.base import LLMProvider, LLMResponse, Message

OVERLOADED_STATUSES = (529, 503)


def translate_error(error: openai.APIError) -> LLMError:
    """Map an OpenAI SDK exception onto the error taxonomy."""
    if isinstance(error, openai.AuthenticationError):
        return AIAuthenticationError("OpenAI API key is invalid")
    if isinstance(error, openai.RateLimitError):
        return AIRateLimitError("OpenAI rate limit or quota exceeded")
    if isinstance(error, openai.APIStatusError) and error.status_code in OVERLOADED_STATUSES:
        return AIOverloadedError("OpenAI API is overloaded")
    return LLMError(f"OpenAI API error: {error.message}")


class OpenAIProvider(LLMProvider):
    """Provider for OpenAI and OpenAI-compatible APIs."""

    name = "OpenAI"

    def __init__(self, model: str = "gpt-4o", **kwargs: Any) -> None:
        super().__init__(model, **kwargs)
        self._async_client: openai.AsyncOpenAI | None = None

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._async_client is None:
            kwargs: dict[str, Any] = {"max_retries": self.max_retries}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._async_client = openai.AsyncOpenAI(**kwargs)
        return self._async_client

    def _format_messages(self, messages: list[Message]) -> list[dict]:
        return [{"role": msg.role, "content": msg.content} for msg in messages]

    async def complete(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        client = self._get_client()
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": self._format_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            raise translate_error(e) from e

        if not response.choices or response.choices[0].message is None:
            raise AIParseError("OpenAI returned no choices")
        choice = response.choices[0]
        content = choice.message.content or ""
        if not content and choice.finish_reason != "length":
            raise AIParseError("OpenAI returned an empty message")

        return LLMResponse(
            content=content,
            finish_reason=choice.finish_reason or "",
            usage={
                "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
                "completion_tokens": response.usage.completion_tokens if response.usage else 0,
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
            stream = await client.chat.completions.create(
                model=self.model,
                messages=self._format_messages(messages),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.APIError as e:
            raise translate_error(e) from e
