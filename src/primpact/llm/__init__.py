"""LLM provider abstraction layer."""

from primpact.llm.base import LLMProvider, LLMResponse, Message
from primpact.llm.factory import create_provider
from primpact.llm.parsing import extract_json, parse_code_review, parse_test_scenarios

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "Message",
    "create_provider",
    "extract_json",
    "parse_code_review",
    "parse_test_scenarios",
]
