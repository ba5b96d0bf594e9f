"""Registry error types."""


class RegistryConfigError(Exception):
    """Models configuration could not be read or failed validation.

    Attributes:
        file_path: Configuration file involved, empty for built-in sources.
        errors: Validation error details as ``loc``/``msg``/``type`` dicts.
    """

    def __init__(
        self,
        message: str,
        file_path: str = "",
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.file_path = file_path
        self.errors = errors or []


class UnknownProviderError(Exception):
    """No client factory is registered for a provider name."""
