"""Audit error types and the classifier that assigns them."""

from enum import Enum
from typing import Final

from thinktank.llm.errors import ErrorCategory, find_categorized
from thinktank.service.protocols import ApiService


class AuditErrorType(str, Enum):
    """``ErrorInfo.type`` values written to the audit log."""

    CONTENT_GENERATION = "ContentGenerationError"
    SAFETY_BLOCKED = "SafetyBlockedError"
    RATE_LIMIT = "RateLimitError"
    AUTHENTICATION = "AuthenticationError"
    INPUT_LIMIT = "InputLimitError"
    CONTENT_FILTERED = "ContentFilteredError"
    NETWORK = "NetworkError"
    SERVER = "ServerError"
    CANCELLED = "CancelledError"
    API = "APIError"
    FILE_IO = "FileIOError"


AUDIT_TYPE_BY_CATEGORY: Final[dict[ErrorCategory, AuditErrorType]] = {
    ErrorCategory.UNKNOWN: AuditErrorType.CONTENT_GENERATION,
    ErrorCategory.AUTH: AuditErrorType.AUTHENTICATION,
    ErrorCategory.RATE_LIMIT: AuditErrorType.RATE_LIMIT,
    ErrorCategory.INVALID_REQUEST: AuditErrorType.API,
    ErrorCategory.NOT_FOUND: AuditErrorType.API,
    ErrorCategory.SERVER: AuditErrorType.SERVER,
    ErrorCategory.NETWORK: AuditErrorType.NETWORK,
    ErrorCategory.CANCELLED: AuditErrorType.CANCELLED,
    ErrorCategory.INPUT_LIMIT: AuditErrorType.INPUT_LIMIT,
    ErrorCategory.CONTENT_FILTERED: AuditErrorType.CONTENT_FILTERED,
    ErrorCategory.INSUFFICIENT_CREDITS: AuditErrorType.API,
}

_unmapped = set(ErrorCategory) - set(AUDIT_TYPE_BY_CATEGORY)
if _unmapped:
    msg = f"error categories without an audit type: {sorted(_unmapped)}"
    raise RuntimeError(msg)

# Printed to the operator next to the error details
REMEDIATION_HINTS: Final[dict[AuditErrorType, str]] = {
    AuditErrorType.SAFETY_BLOCKED: (
        "The request was blocked by the provider's safety filters. "
        "Rephrase the instructions or remove sensitive context."
    ),
    AuditErrorType.RATE_LIMIT: (
        "The provider is rate limiting requests. Wait and retry, or lower "
        "--max-concurrent and --rate-limit."
    ),
    AuditErrorType.AUTHENTICATION: (
        "Authentication failed. Check the API key environment variable "
        "for this provider."
    ),
    AuditErrorType.INPUT_LIMIT: (
        "The prompt exceeds this model's input window. Narrow the context "
        "paths or choose a model with a larger context window."
    ),
    AuditErrorType.CONTENT_FILTERED: (
        "The response was filtered by the provider's content policy."
    ),
    AuditErrorType.NETWORK: "Check your network connection and try again.",
    AuditErrorType.SERVER: (
        "The provider returned a server error. This is usually temporary; "
        "try again later."
    ),
    AuditErrorType.CANCELLED: (
        "The request was cancelled or timed out. Increase --timeout if the "
        "model needs more time."
    ),
    AuditErrorType.API: (
        "The provider rejected the request. Check the model name, parameters "
        "and account status."
    ),
    AuditErrorType.FILE_IO: "Check that the output directory is writable.",
}


def classify_error(err: BaseException, api_service: ApiService) -> AuditErrorType:
    """Assign an audit error type to a generation failure.

    The safety predicate is consulted first because a safety-blocked error
    may also carry a generic category. Any categorized error in the cause
    chain is used next. Everything else is a generic generation failure.

    Args:
        err: Failure raised by the client or response processing.
        api_service: Service providing the safety predicate.

    Returns:
        Audit error type.
    """
    if api_service.is_safety_blocked_error(err):
        return AuditErrorType.SAFETY_BLOCKED
    categorized = find_categorized(err)
    if categorized is not None:
        return AUDIT_TYPE_BY_CATEGORY[categorized.category]
    return AuditErrorType.CONTENT_GENERATION


def remediation_hint(error_type: AuditErrorType) -> str:
    """Return operator guidance for an audit error type, empty if none."""
    return REMEDIATION_HINTS.get(error_type, "")
