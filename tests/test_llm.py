"""Tests for LLM response parsing, retry policy and provider adapters."""

from __future__ import annotations

import json
from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest

from primpact.analysis.models import ImpactResult
from primpact.config import LLMConfig
from primpact.exceptions import (
    AIAuthenticationError,
    AIOverloadedError,
    AIParseError,
    AIRateLimitError,
    ConfigError,
    LLMError,
)
from primpact.llm.anthropic_provider import AnthropicProvider
from primpact.llm.anthropic_provider import translate_error as translate_anthropic
from primpact.llm.base import LLMResponse, Message
from primpact.llm.factory import create_provider, default_model, normalize_provider
from primpact.llm.openai_provider import OpenAIProvider
from primpact.llm.openai_provider import translate_error as translate_openai
from primpact.llm.parsing import extract_json, load_json, parse_code_review, parse_test_scenarios

ANTHROPIC_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class TestExtractJson:
    def test_json_fence(self):
        text = 'Here you go:\n```json\n{"a": 1}\n```\nThanks!'
        assert extract_json(text) == '{"a": 1}'

    def test_plain_fence(self):
        assert extract_json('```\n{"a": 2}\n```') == '{"a": 2}'

    def test_surrounding_prose(self):
        assert extract_json('Sure! {"a": {"b": 3}} Hope it helps.') == '{"a": {"b": 3}}'

    def test_trailing_commas_repaired(self):
        assert load_json('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    def test_valid_json_left_untouched(self):
        text = '{"code": "foo(a, ]", "more": "x, }"}'
        assert extract_json(text) == text
        assert load_json(text) == {"code": "foo(a, ]", "more": "x, }"}

    def test_no_json(self, caplog):
        with pytest.raises(AIParseError):
            extract_json("I cannot help with that.")
        assert "No JSON found" in caplog.text


class TestParseResponses:
    def test_scenarios(self, scenarios_json: str):
        scenarios = parse_test_scenarios(f"```json\n{scenarios_json}\n```")
        assert [s.id for s in scenarios] == ["TC-001", "TC-002"]
        assert scenarios[0].expected_result == "The total includes tax"
        assert scenarios[1].type == "integration"

    def test_empty_scenarios(self):
        assert parse_test_scenarios('{"scenarios": []}') == []

    def test_review_items(self, review_json: str):
        items = parse_code_review(review_json)
        assert items[0].line == 2
        assert items[1].line is None
        assert items[1].suggestion is None

    def test_invalid_json(self):
        with pytest.raises(AIParseError, match="not valid JSON"):
            parse_test_scenarios('{"scenarios": [}')

    def test_unknown_severity(self, review_json: str):
        payload = json.loads(review_json)
        payload["items"][0]["severity"] = "urgent"
        with pytest.raises(AIParseError, match="expected schema"):
            parse_code_review(json.dumps(payload))

    def test_missing_field(self):
        with pytest.raises(AIParseError):
            parse_test_scenarios('{"scenarios": [{"id": "TC-001"}]}')

    def test_wrong_top_level_key(self, scenarios_json: str):
        with pytest.raises(AIParseError):
            parse_code_review(scenarios_json)

    def test_suggestion_with_brackets_survives(self, review_json: str):
        payload = json.loads(review_json)
        payload["items"][0]["suggestion"] = "foo(a, ]"
        items = parse_code_review(json.dumps(payload))
        assert items[0].suggestion == "foo(a, ]"

    @pytest.mark.parametrize("line", ["12", 12.0])
    def test_line_is_not_coerced(self, review_json: str, line):
        payload = json.loads(review_json)
        payload["items"][0]["line"] = line
        with pytest.raises(AIParseError, match="expected schema"):
            parse_code_review(json.dumps(payload))


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_success_first_try(self, make_provider):
        provider = make_provider("ok")
        response = await provider.complete_with_retry([Message(role="user", content="hi")])
        assert response.content == "ok"
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_overload_backoff(self, make_provider, monkeypatch):
        slept: list[float] = []

        async def fake_sleep(delay: float) -> None:
            slept.append(delay)

        monkeypatch.setattr("primpact.llm.base.asyncio.sleep", fake_sleep)
        provider = make_provider(
            AIOverloadedError(), AIOverloadedError(), "ok", overload_retry_delays=(10.0, 20.0)
        )
        response = await provider.complete_with_retry([Message(role="user", content="hi")])
        assert response.content == "ok"
        assert slept == [10.0, 20.0]

    @pytest.mark.asyncio
    async def test_overload_exhausted(self, make_provider):
        provider = make_provider(AIOverloadedError(), AIOverloadedError(), AIOverloadedError())
        with pytest.raises(AIOverloadedError):
            await provider.complete_with_retry([Message(role="user", content="hi")])
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_not_retried(self, make_provider):
        provider = make_provider(AIRateLimitError("quota"), "ok")
        with pytest.raises(AIRateLimitError):
            await provider.complete_with_retry([Message(role="user", content="hi")])
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["max_tokens", "length"])
    async def test_truncated_response(self, make_provider, reason: str):
        provider = make_provider(LLMResponse(content='{"scenarios": [', finish_reason=reason))
        with pytest.raises(AIParseError, match="cut off"):
            await provider.complete_with_retry([Message(role="user", content="hi")])


class TestGeneration:
    @pytest.mark.asyncio
    async def test_generate_test_scenarios(self, make_provider, scenarios_json: str):
        provider = make_provider(scenarios_json)
        scenarios = await provider.generate_test_scenarios(
            ImpactResult(summary="s"), "MODIFIED a.ts (+1/-0)", 5, codebase_context="## Codebase Context\n"
        )
        assert len(scenarios) == 2
        call = provider.calls[0]
        assert call["json_mode"] is True
        system, user = call["messages"]
        assert system.role == "system"
        assert system.content.endswith("## Codebase Context\n")
        assert user.content.startswith("Create at most 5 test scenarios.")

    @pytest.mark.asyncio
    async def test_generate_code_review(self, make_provider, review_json: str):
        provider = make_provider(review_json)
        items = await provider.generate_code_review(ImpactResult(), "--- a/x.py\n+++ b/x.py", 3)
        assert [i.id for i in items] == ["CR-001", "CR-002"]
        assert "Python best practices" in provider.calls[0]["messages"][0].content


def _status_response(status: int, request: httpx.Request) -> httpx.Response:
    return httpx.Response(status, request=request)


class TestAnthropicProvider:
    def test_error_translation(self):
        auth = anthropic.AuthenticationError(
            "bad key", response=_status_response(401, ANTHROPIC_REQUEST), body=None
        )
        rate = anthropic.RateLimitError(
            "slow down", response=_status_response(429, ANTHROPIC_REQUEST), body=None
        )
        overloaded = anthropic.APIStatusError(
            "overloaded", response=_status_response(529, ANTHROPIC_REQUEST), body=None
        )
        other = anthropic.APIStatusError(
            "bad request", response=_status_response(400, ANTHROPIC_REQUEST), body=None
        )
        assert isinstance(translate_anthropic(auth), AIAuthenticationError)
        assert isinstance(translate_anthropic(rate), AIRateLimitError)
        assert isinstance(translate_anthropic(overloaded), AIOverloadedError)
        generic = translate_anthropic(other)
        assert type(generic) is LLMError
        assert "bad request" in str(generic)

    @pytest.mark.asyncio
    async def test_complete(self):
        captured: dict = {}

        async def create(**kwargs):
            captured.update(kwargs)
            return SimpleNamespace(
                content=[SimpleNamespace(type="text", text='{"scenarios": []}')],
                stop_reason="end_turn",
                usage=SimpleNamespace(input_tokens=10, output_tokens=5),
            )

        provider = AnthropicProvider(model="claude-sonnet-4-6")
        provider._client = SimpleNamespace(messages=SimpleNamespace(create=create))
        response = await provider.complete(
            [Message(role="system", content="sys"), Message(role="user", content="hi")],
            max_tokens=100,
        )
        assert response.content == '{"scenarios": []}'
        assert response.usage == {"prompt_tokens": 10, "completion_tokens": 5}
        assert captured["system"][0]["cache_control"] == {"type": "ephemeral"}
        assert captured["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_empty_content(self):
        async def create(**kwargs):
            return SimpleNamespace(
                content=[], stop_reason="end_turn", usage=SimpleNamespace(input_tokens=1, output_tokens=0)
            )

        provider = AnthropicProvider()
        provider._client = SimpleNamespace(messages=SimpleNamespace(create=create))
        with pytest.raises(AIParseError):
            await provider.complete([Message(role="user", content="hi")])

    @pytest.mark.asyncio
    async def test_sdk_error_is_translated(self):
        async def create(**kwargs):
            raise anthropic.RateLimitError(
                "slow down", response=_status_response(429, ANTHROPIC_REQUEST), body=None
            )

        provider = AnthropicProvider()
        provider._client = SimpleNamespace(messages=SimpleNamespace(create=create))
        with pytest.raises(AIRateLimitError):
            await provider.complete([Message(role="user", content="hi")])


class TestOpenAIProvider:
    def test_error_translation(self):
        auth = openai.AuthenticationError(
            "bad key", response=_status_response(401, OPENAI_REQUEST), body=None
        )
        rate = openai.RateLimitError(
            "quota", response=_status_response(429, OPENAI_REQUEST), body=None
        )
        unavailable = openai.APIStatusError(
            "unavailable", response=_status_response(503, OPENAI_REQUEST), body=None
        )
        assert isinstance(translate_openai(auth), AIAuthenticationError)
        assert isinstance(translate_openai(rate), AIRateLimitError)
        assert isinstance(translate_openai(unavailable), AIOverloadedError)

    @pytest.mark.asyncio
    async def test_complete_json_mode(self):
        captured: dict = {}

        async def create(**kwargs):
            captured.update(kwargs)
            return SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="{}"), finish_reason="stop")],
                usage=None,
            )

        provider = OpenAIProvider()
        provider._async_client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=create))
        )
        response = await provider.complete([Message(role="user", content="hi")], json_mode=True)
        assert response.content == "{}"
        assert response.finish_reason == "stop"
        assert captured["response_format"] == {"type": "json_object"}
        assert captured["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_no_choices(self):
        async def create(**kwargs):
            return SimpleNamespace(choices=[], usage=None)

        provider = OpenAIProvider()
        provider._async_client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=create))
        )
        with pytest.raises(AIParseError):
            await provider.complete([Message(role="user", content="hi")])


class TestFactory:
    def test_claude_alias(self):
        provider = create_provider(LLMConfig(provider="claude"))
        assert isinstance(provider, AnthropicProvider)
        assert provider.model == "claude-sonnet-4-6"

    def test_openai_with_model(self):
        provider = create_provider(LLMConfig(provider="openai", model="gpt-4o-mini", max_tokens=1000))
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o-mini"
        assert provider.max_tokens == 1000

    def test_retry_settings_passed_through(self):
        provider = create_provider(LLMConfig(overload_retry_delays=[1.0]))
        assert provider.overload_retry_delays == [1.0]

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="Unknown LLM provider"):
            create_provider(LLMConfig(provider="llama"))

    def test_helpers(self):
        assert normalize_provider("Claude") == "anthropic"
        assert default_model("openai") == "gpt-4o"
        assert default_model("unknown") == "claude-sonnet-4-6"
