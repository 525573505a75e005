"""Factory for creating LLM providers from configuration."""

from __future__ import annotations

from primpact.config import LLMConfig
from primpact.exceptions import ConfigError, ProviderNotAvailableError
from primpact.llm.base import LLMProvider

DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-6",
    "openai": "gpt-4o",
}

CHEAPEST_MODELS = {
    "anthropic": "claude-haiku-4-5-20251001",
    "openai": "gpt-4o-mini",
}

# "claude" is accepted as an alias of "anthropic"
PROVIDER_ALIASES = {"claude": "anthropic"}


def normalize_provider(provider: str) -> str:
    name = provider.lower()
    return PROVIDER_ALIASES.get(name, name)


def default_model(provider: str) -> str:
    return DEFAULT_MODELS.get(normalize_provider(provider), DEFAULT_MODELS["anthropic"])


def create_provider(config: LLMConfig) -> LLMProvider:
    """Create an LLM provider from configuration.

    Args:
        config: LLM configuration with provider, model, etc.

    Returns:
        An initialized LLM provider.

    Raises:
        ConfigError: If the provider is unknown.
        ProviderNotAvailableError: If the provider's SDK is not installed.
    """
    provider = normalize_provider(config.provider)
    kwargs = {
        "model": config.model or default_model(provider),
        "api_key": config.api_key,
        "base_url": config.base_url,
        "max_retries": config.max_retries,
        "overload_retry_delays": config.overload_retry_delays,
        "max_tokens": config.max_tokens,
        "temperature": config.temperature,
    }

    if provider == "openai":
        try:
            from primpact.llm.openai_provider import OpenAIProvider
        except ImportError as e:
            raise ProviderNotAvailableError("openai", "openai") from e
        return OpenAIProvider(**kwargs)
    elif provider == "anthropic":
        try:
            from primpact.llm.anthropic_provider import AnthropicProvider
        except ImportError as e:
            raise ProviderNotAvailableError("anthropic", "anthropic") from e
        return AnthropicProvider(**kwargs)
    else:
        raise ConfigError(
            f"Unknown LLM provider: '{config.provider}'. "
            f"Supported providers: anthropic (claude), openai"
        )
