"""Shared HTTP plumbing for provider clients."""

from collections.abc import Mapping

import httpx

from thinktank.llm.errors import (
    ErrorCategory,
    LlmError,
    category_from_message,
    category_from_status_code,
)


DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=10.0)

# Fallback remediation text when a provider has no specific hint
GENERIC_SUGGESTIONS: dict[ErrorCategory, str] = {
    ErrorCategory.AUTH: "Check that your API key is valid and has not expired.",
    ErrorCategory.RATE_LIMIT: (
        "Wait and try again later, or lower --max-concurrent / --rate-limit."
    ),
    ErrorCategory.INVALID_REQUEST: "Check the prompt and model parameters.",
    ErrorCategory.NOT_FOUND: "Verify the model name with `thinktank models`.",
    ErrorCategory.SERVER: "The provider is having problems; try again later.",
    ErrorCategory.NETWORK: "Check your network connection and try again.",
    ErrorCategory.CANCELLED: "The request was cancelled or timed out.",
    ErrorCategory.INPUT_LIMIT: "Reduce the input size or pick a larger-context model.",
    ErrorCategory.CONTENT_FILTERED: "Rephrase the prompt to avoid filtered content.",
    ErrorCategory.INSUFFICIENT_CREDITS: "Add credits to your provider account.",
}


def suggestion_for(
    category: ErrorCategory, overrides: Mapping[ErrorCategory, str] | None = None
) -> str:
    """Return remediation text for a category.

    Args:
        category: Error category.
        overrides: Provider-specific hints consulted first.

    Returns:
        Suggestion text, empty for UNKNOWN.
    """
    if overrides and category in overrides:
        return overrides[category]
    return GENERIC_SUGGESTIONS.get(category, "")


def _error_payload(response: httpx.Response) -> dict[str, object]:
    try:
        body = response.json()
    except ValueError:
        return {}
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    if isinstance(body, list) and body and isinstance(body[0], dict):
        # Gemini occasionally wraps the error object in a list
        inner = body[0].get("error")
        if isinstance(inner, dict):
            return inner
    return {}


def error_from_response(
    provider: str,
    response: httpx.Response,
    *,
    status_categories: Mapping[str, ErrorCategory] | None = None,
    suggestions: Mapping[ErrorCategory, str] | None = None,
) -> LlmError:
    """Build a categorized error from a non-success HTTP response.

    The provider's status string (e.g. ``RESOURCE_EXHAUSTED``) is consulted
    first, then the HTTP status code, then the error message text.

    Args:
        provider: Provider identifier.
        response: Failed HTTP response.
        status_categories: Provider status strings mapped to categories.
        suggestions: Provider-specific remediation hints.

    Returns:
        LlmError describing the failure.
    """
    payload = _error_payload(response)
    message = str(payload.get("message") or response.text or response.reason_phrase)
    status_name = str(payload.get("status") or payload.get("code") or "")

    category = ErrorCategory.UNKNOWN
    if status_categories and status_name in status_categories:
        category = status_categories[status_name]
    if category is ErrorCategory.UNKNOWN:
        category = category_from_status_code(response.status_code)
    if category in (ErrorCategory.UNKNOWN, ErrorCategory.INVALID_REQUEST):
        # Refine vague codes: a 400 for "context length exceeded" is an input limit
        inferred = category_from_message(message)
        if inferred is not ErrorCategory.UNKNOWN:
            category = inferred

    return LlmError(
        f"API returned {response.status_code}: {message}",
        provider=provider,
        category=category,
        status_code=response.status_code,
        suggestion=suggestion_for(category, suggestions),
        details=response.text[:2000],
        request_id=response.headers.get("x-request-id", ""),
    )


def error_from_transport(
    provider: str,
    exc: httpx.HTTPError,
    suggestions: Mapping[ErrorCategory, str] | None = None,
) -> LlmError:
    """Build a categorized error from a transport-level failure."""
    if isinstance(exc, httpx.TimeoutException):
        category = ErrorCategory.CANCELLED
        message = f"request timed out: {exc}"
    else:
        category = ErrorCategory.NETWORK
        message = f"request failed: {exc}"
    return LlmError(
        message,
        provider=provider,
        category=category,
        suggestion=suggestion_for(category, suggestions),
    )
