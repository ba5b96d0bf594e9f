"""Protocol for the API service consumed by the model processor."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol


if TYPE_CHECKING:
    from thinktank.context import RunContext
    from thinktank.llm.models import ProviderResult
    from thinktank.llm.protocols import LlmClient


class ApiService(Protocol):
    """Resolves models to clients and interprets their responses."""

    def init_llm_client(
        self, ctx: RunContext, api_key: str, model_name: str, api_endpoint: str
    ) -> LlmClient:
        """Create a client for a registry model."""
        ...

    def get_model_parameters(self, model_name: str) -> dict[str, Any]:
        """Return default parameters for a model."""
        ...

    def process_llm_response(self, result: ProviderResult | None) -> str:
        """Extract text content from a provider result."""
        ...

    def is_empty_response_error(self, err: BaseException | None) -> bool:
        """Whether an error means the provider returned nothing."""
        ...

    def is_safety_blocked_error(self, err: BaseException | None) -> bool:
        """Whether an error means the provider refused for safety reasons."""
        ...

    def get_error_details(self, err: BaseException | None) -> str:
        """Human-readable description of an error."""
        ...
