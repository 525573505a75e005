"""Custom exceptions for Primpact.

Every error carries a machine-checkable ``kind`` and the pipeline ``step``
it was raised in, so an outer layer can pick a status code and a message
without matching on error text.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of terminal errors."""

    SOURCE_NOT_FOUND = "source-control-not-found"
    SOURCE_UNAUTHORIZED = "source-control-unauthorized"
    SOURCE_RATE_LIMITED = "source-control-rate-limited"
    SOURCE_ERROR = "source-control-error"
    AI_AUTHENTICATION = "ai-authentication"
    AI_RATE_LIMITED = "ai-rate-limited"
    AI_OVERLOADED = "ai-overloaded"
    AI_PARSE = "ai-parse"
    AI_ERROR = "ai-error"
    CONFIG = "config-error"


class PrimpactError(Exception):
    """Base exception for all Primpact errors."""

    kind: ErrorKind = ErrorKind.SOURCE_ERROR
    retryable: bool = False

    def __init__(self, message: str = "", step: str = "") -> None:
        super().__init__(message)
        self.step = step

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "kind": self.kind.value,
            "step": self.step,
            "retryable": self.retryable,
        }


class ConfigError(PrimpactError):
    """Configuration-related errors."""

    kind = ErrorKind.CONFIG


class SourceControlError(PrimpactError):
    """Source-control API errors."""

    kind = ErrorKind.SOURCE_ERROR


class SourceControlNotFoundError(SourceControlError):
    """The requested pull request, branch or repository does not exist."""

    kind = ErrorKind.SOURCE_NOT_FOUND


class SourceControlUnauthorizedError(SourceControlError):
    """The source-control credential is invalid or expired."""

    kind = ErrorKind.SOURCE_UNAUTHORIZED


class SourceControlRateLimitError(SourceControlError):
    """The source-control quota is exhausted."""

    kind = ErrorKind.SOURCE_RATE_LIMITED
    retryable = True


class LLMError(PrimpactError):
    """LLM provider errors."""

    kind = ErrorKind.AI_ERROR


class AIAuthenticationError(LLMError):
    """The vendor rejected the API key."""

    kind = ErrorKind.AI_AUTHENTICATION


class AIRateLimitError(LLMError):
    """The vendor quota is exhausted."""

    kind = ErrorKind.AI_RATE_LIMITED
    retryable = True


class AIOverloadedError(LLMError):
    """The vendor reported a transient overload."""

    kind = ErrorKind.AI_OVERLOADED
    retryable = True


class AIParseError(LLMError):
    """The model response was not valid JSON or did not match the schema."""

    kind = ErrorKind.AI_PARSE


class ProviderNotAvailableError(LLMError):
    """Raised when an LLM provider's SDK is not installed."""

    def __init__(self, provider: str, package: str):
        super().__init__(
            f"Provider '{provider}' requires the '{package}' package. "
            f"Install it with: pip install {package}"
        )


_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.SOURCE_NOT_FOUND: 404,
    ErrorKind.SOURCE_UNAUTHORIZED: 401,
    ErrorKind.SOURCE_RATE_LIMITED: 429,
    ErrorKind.SOURCE_ERROR: 502,
    ErrorKind.AI_AUTHENTICATION: 401,
    ErrorKind.AI_RATE_LIMITED: 429,
    ErrorKind.AI_OVERLOADED: 503,
    ErrorKind.AI_PARSE: 502,
    ErrorKind.AI_ERROR: 502,
    ErrorKind.CONFIG: 400,
}


def http_status_for(error: Exception) -> int:
    """HTTP status an outer layer should answer with for this error."""
    if isinstance(error, PrimpactError):
        return _HTTP_STATUS.get(error.kind, 500)
    return 500
