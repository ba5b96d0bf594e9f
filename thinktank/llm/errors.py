"""Domain-specific error types for the LLM module.

Every provider failure is expressed as an :class:`LlmError` carrying an
:class:`ErrorCategory`. Callers that only need the category rely on the
:class:`CategorizedError` protocol so they can also recognise wrapped
errors raised further up the stack.
"""

from enum import Enum
from http import HTTPStatus
from typing import Any, Protocol, runtime_checkable


class ErrorCategory(str, Enum):
    """Provider-agnostic failure categories."""

    UNKNOWN = "unknown"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    SERVER = "server"
    NETWORK = "network"
    CANCELLED = "cancelled"
    INPUT_LIMIT = "input_limit"
    CONTENT_FILTERED = "content_filtered"
    INSUFFICIENT_CREDITS = "insufficient_credits"


@runtime_checkable
class CategorizedError(Protocol):
    """Anything that exposes an error category."""

    @property
    def category(self) -> ErrorCategory:
        """Failure category."""
        ...


class LlmError(Exception):
    """Provider call failure with categorization and remediation detail.

    Attributes:
        provider: Provider identifier, e.g. ``gemini``.
        category: Failure category.
        status_code: HTTP status code, or 0 when not applicable.
        suggestion: Remediation hint shown to users.
        details: Extra debugging detail, never shown by default.
        request_id: Provider request identifier when one was returned.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        status_code: int = 0,
        suggestion: str = "",
        details: str = "",
        request_id: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self._category = category
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details
        self.request_id = request_id

    @property
    def category(self) -> ErrorCategory:
        """Failure category."""
        return self._category

    def __str__(self) -> str:
        if self.provider:
            return f"{self.provider} error: {self.message}"
        return self.message

    def user_facing_error(self) -> str:
        """Message plus suggestion, suitable for terminal output."""
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message

    def debug_info(self) -> str:
        """Multi-line dump of every populated field."""
        lines = [f"Provider: {self.provider or 'unknown'}"]
        lines.append(f"Category: {self.category.value}")
        if self.status_code:
            lines.append(f"Status Code: {self.status_code}")
        if self.request_id:
            lines.append(f"Request ID: {self.request_id}")
        lines.append(f"Message: {self.message}")
        if self.details:
            lines.append(f"Details: {self.details}")
        if self.suggestion:
            lines.append(f"Suggestion: {self.suggestion}")
        return "\n".join(lines)


class EmptyResponseError(LlmError):
    """Provider returned no content."""

    def __init__(
        self, message: str = "received empty response from LLM", **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)


class WhitespaceContentError(LlmError):
    """Provider returned content consisting only of whitespace."""

    def __init__(
        self, message: str = "LLM returned an empty output text", **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)


class SafetyBlockedError(LlmError):
    """Provider refused to answer because of a safety policy."""

    def __init__(
        self, message: str = "content blocked by LLM safety filters", **kwargs: Any
    ) -> None:
        kwargs.setdefault("category", ErrorCategory.CONTENT_FILTERED)
        super().__init__(message, **kwargs)


class ClientInitializationError(LlmError):
    """Client could not be constructed for a model."""


class ModelNotFoundError(LlmError):
    """Model name is not present in the registry."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("category", ErrorCategory.NOT_FOUND)
        super().__init__(message, **kwargs)


_STATUS_CATEGORIES: dict[int, ErrorCategory] = {
    HTTPStatus.BAD_REQUEST: ErrorCategory.INVALID_REQUEST,
    HTTPStatus.UNAUTHORIZED: ErrorCategory.AUTH,
    HTTPStatus.PAYMENT_REQUIRED: ErrorCategory.INSUFFICIENT_CREDITS,
    HTTPStatus.FORBIDDEN: ErrorCategory.AUTH,
    HTTPStatus.NOT_FOUND: ErrorCategory.NOT_FOUND,
    HTTPStatus.REQUEST_TIMEOUT: ErrorCategory.CANCELLED,
    HTTPStatus.REQUEST_ENTITY_TOO_LARGE: ErrorCategory.INPUT_LIMIT,
    HTTPStatus.TOO_MANY_REQUESTS: ErrorCategory.RATE_LIMIT,
}

# Ordered: the first matching group wins
_MESSAGE_CATEGORIES: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (
        ErrorCategory.CONTENT_FILTERED,
        ("safety", "content policy", "content filter", "content_filter", "blocked"),
    ),
    (
        ErrorCategory.INSUFFICIENT_CREDITS,
        (
            "insufficient credit",
            "insufficient_quota",
            "billing",
            "payment required",
        ),
    ),
    (
        ErrorCategory.RATE_LIMIT,
        ("rate limit", "rate_limit", "too many requests", "quota"),
    ),
    (
        ErrorCategory.INPUT_LIMIT,
        (
            "context length",
            "context_length",
            "token limit",
            "too long",
            "maximum context",
        ),
    ),
    (
        ErrorCategory.AUTH,
        ("api key", "api_key", "unauthorized", "authentication", "permission denied"),
    ),
    (ErrorCategory.NOT_FOUND, ("not found", "does not exist")),
    (
        ErrorCategory.CANCELLED,
        ("deadline exceeded", "cancelled", "canceled", "timed out"),
    ),
    (ErrorCategory.NETWORK, ("connection", "network", "dns", "eof")),
)


def category_from_status_code(status_code: int) -> ErrorCategory:
    """Map an HTTP status code to a category.

    Args:
        status_code: HTTP status code.

    Returns:
        Matching category; any 5xx maps to SERVER, unknown codes to UNKNOWN.
    """
    if status_code in _STATUS_CATEGORIES:
        return _STATUS_CATEGORIES[status_code]
    if HTTPStatus.INTERNAL_SERVER_ERROR <= status_code < 600:  # noqa: PLR2004
        return ErrorCategory.SERVER
    return ErrorCategory.UNKNOWN


def category_from_message(message: str) -> ErrorCategory:
    """Infer a category from free-form error text."""
    lowered = message.lower()
    for category, phrases in _MESSAGE_CATEGORIES:
        if any(phrase in lowered for phrase in phrases):
            return category
    return ErrorCategory.UNKNOWN


def find_categorized(err: BaseException | None) -> CategorizedError | None:
    """Walk an exception's cause chain for the first categorized error.

    Args:
        err: Exception to inspect.

    Returns:
        The first exception in ``__cause__``/``__context__`` order that
        carries a category, or None.
    """
    seen: set[int] = set()
    current = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, CategorizedError) and isinstance(
            current.category, ErrorCategory
        ):
            return current
        current = current.__cause__ or current.__context__
    return None
