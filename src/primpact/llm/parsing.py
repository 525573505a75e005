"""Recovering and validating the JSON payload of a model response."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from primpact.analysis.models import CodeReviewItem, TestScenario
from primpact.exceptions import AIParseError

logger = logging.getLogger("primpact.llm")

_JSON_FENCE = re.compile(r"```json\s*\n([\s\S]*)\n```")
_ANY_FENCE = re.compile(r"```\s*\n([\s\S]*)\n```")
_TRAILING_COMMA = re.compile(r",\s*([\]}])")


class TestScenarioResponse(BaseModel):
    __test__ = False
    model_config = ConfigDict(strict=True)

    scenarios: list[TestScenario]


class CodeReviewResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    items: list[CodeReviewItem]


def extract_json(text: str) -> str:
    """Pull the JSON object out of a model response.

    Tries a ```json fence, then any fence, then the span from the first
    ``{`` to the last ``}``.
    """
    candidate: str | None = None

    match = _JSON_FENCE.search(text)
    if match:
        candidate = match.group(1)

    if candidate is None:
        match = _ANY_FENCE.search(text)
        if match:
            candidate = match.group(1)

    if candidate is None:
        first = text.find("{")
        last = text.rfind("}")
        if first != -1 and last > first:
            candidate = text[first:last + 1]

    if candidate is None:
        logger.error("No JSON found in model response. First 500 chars: %s", text[:500])
        raise AIParseError("Model response did not contain JSON")

    return candidate


def load_json(text: str) -> Any:
    """Decode the extracted payload, retrying once without trailing commas."""
    payload = extract_json(text)
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(_TRAILING_COMMA.sub(r"\1", payload))
    except json.JSONDecodeError as e:
        logger.error("Model response is not valid JSON. First 500 chars: %s", payload[:500])
        raise AIParseError(f"Model response is not valid JSON: {e.msg}") from e


def _validate(model: type[BaseModel], data: Any) -> Any:
    try:
        # strict: "12" is not a line number, and nothing is coerced
        return model.model_validate(data, strict=True)
    except ValidationError as e:
        logger.error("Model response does not match the %s schema: %s", model.__name__, e)
        raise AIParseError(
            f"Model response does not match the expected schema "
            f"({e.error_count()} validation error(s))"
        ) from e


def parse_test_scenarios(text: str) -> list[TestScenario]:
    return _validate(TestScenarioResponse, load_json(text)).scenarios


def parse_code_review(text: str) -> list[CodeReviewItem]:
    return _validate(CodeReviewResponse, load_json(text)).items
