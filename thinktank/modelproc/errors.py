"""Errors raised by the model processor.

Each error names the model it concerns and carries an
:class:`~thinktank.llm.errors.ErrorCategory`, so callers can map
failures to exit codes without inspecting the cause chain.
"""

from pathlib import Path

from thinktank.llm.errors import ErrorCategory


class ModelProcessingError(Exception):
    """Base class for per-model failures.

    Attributes:
        model_name: Model whose processing failed.
    """

    def __init__(
        self,
        message: str,
        model_name: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
    ) -> None:
        super().__init__(message)
        self.model_name = model_name
        self._category = category

    @property
    def category(self) -> ErrorCategory:
        """Failure category."""
        return self._category


class ModelInitializationError(ModelProcessingError):
    """The client for the model could not be created."""


class ModelGenerationError(ModelProcessingError):
    """The generation call failed."""


class EmptyModelResponseError(ModelProcessingError):
    """The model answered with no usable content."""


class ContentFilteredError(ModelProcessingError):
    """The model's answer was withheld by a safety or content filter."""


class ModelRateLimitedError(ModelProcessingError):
    """The provider rejected the request for rate or quota reasons."""


class ModelTokenLimitExceededError(ModelProcessingError):
    """The prompt exceeded the model's input window."""


class InvalidModelResponseError(ModelProcessingError):
    """The response could not be turned into output content."""


class OutputWriteError(ModelProcessingError):
    """The output file could not be written.

    Attributes:
        path: Output path that failed.
    """

    def __init__(self, message: str, model_name: str, path: Path) -> None:
        super().__init__(message, model_name)
        self.path = path
