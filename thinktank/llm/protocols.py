"""Protocol definitions for LLM clients."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from thinktank.context import RunContext
    from thinktank.llm.models import ModelInfo, ProviderResult, TokenCount


@runtime_checkable
class LlmClient(Protocol):
    """Provider-agnostic generation client.

    One instance serves one model. Instances own a network transport and
    must be closed when no longer needed.
    """

    def generate_content(
        self, ctx: RunContext, prompt: str, params: dict[str, Any]
    ) -> ProviderResult:
        """Generate a completion for a prompt.

        Args:
            ctx: Run context checked for cancellation before sending.
            prompt: Full prompt text.
            params: Model parameters such as temperature.

        Returns:
            Normalized provider result.

        Raises:
            LlmError: On any provider or transport failure.
        """
        ...

    def count_tokens(self, ctx: RunContext, prompt: str) -> TokenCount:
        """Count or estimate the tokens in a prompt."""
        ...

    def get_model_info(self, ctx: RunContext) -> ModelInfo:
        """Return the model's token limits."""
        ...

    def get_model_name(self) -> str:
        """Return the model name this client serves."""
        ...

    def close(self) -> None:
        """Release the underlying transport."""
        ...
