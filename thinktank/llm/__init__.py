"""LLM provider clients and the shared error taxonomy."""

from thinktank.llm.errors import (
    CategorizedError,
    ClientInitializationError,
    EmptyResponseError,
    ErrorCategory,
    LlmError,
    ModelNotFoundError,
    SafetyBlockedError,
    WhitespaceContentError,
)
from thinktank.llm.models import (
    ModelInfo,
    ProviderResult,
    Safety,
    TokenCount,
    TokenResult,
)
from thinktank.llm.protocols import LlmClient


__all__ = [
    "CategorizedError",
    "ClientInitializationError",
    "EmptyResponseError",
    "ErrorCategory",
    "LlmClient",
    "LlmError",
    "ModelInfo",
    "ModelNotFoundError",
    "ProviderResult",
    "Safety",
    "SafetyBlockedError",
    "TokenCount",
    "TokenResult",
    "WhitespaceContentError",
]
