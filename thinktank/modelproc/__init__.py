"""Per-model generate-and-save pipeline."""

from thinktank.modelproc.classify import (
    AUDIT_TYPE_BY_CATEGORY,
    AuditErrorType,
    classify_error,
)
from thinktank.modelproc.errors import (
    ContentFilteredError,
    EmptyModelResponseError,
    InvalidModelResponseError,
    ModelGenerationError,
    ModelInitializationError,
    ModelProcessingError,
    ModelRateLimitedError,
    ModelTokenLimitExceededError,
    OutputWriteError,
)
from thinktank.modelproc.processor import ModelProcessor, sanitize_filename


__all__ = [
    "AUDIT_TYPE_BY_CATEGORY",
    "AuditErrorType",
    "ContentFilteredError",
    "EmptyModelResponseError",
    "InvalidModelResponseError",
    "ModelGenerationError",
    "ModelInitializationError",
    "ModelProcessingError",
    "ModelProcessor",
    "ModelRateLimitedError",
    "ModelTokenLimitExceededError",
    "OutputWriteError",
    "classify_error",
    "sanitize_filename",
]
