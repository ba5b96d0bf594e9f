"""OpenRouter client (OpenAI-compatible wire format)."""

from typing import ClassVar

from thinktank.llm.errors import ErrorCategory
from thinktank.llm.openai_client import OpenAIClient


class OpenRouterClient(OpenAIClient):
    """Client for ``openrouter.ai``.

    Model identifiers take the ``vendor/model`` form, e.g.
    ``deepseek/deepseek-r1``. HTTP 402 means the account ran out of credits.
    """

    provider: ClassVar[str] = "openrouter"
    default_base_url: ClassVar[str] = "https://openrouter.ai/api/v1"
    suggestions: ClassVar[dict[ErrorCategory, str]] = {
        ErrorCategory.AUTH: (
            "Check that your OpenRouter API key is valid. "
            "Ensure OPENROUTER_API_KEY is set correctly."
        ),
        ErrorCategory.INSUFFICIENT_CREDITS: (
            "Your OpenRouter account has insufficient credits. "
            "Add credits at https://openrouter.ai/credits."
        ),
        ErrorCategory.NOT_FOUND: (
            "Verify the model ID uses the 'provider/model' format and is "
            "listed at https://openrouter.ai/models."
        ),
        ErrorCategory.RATE_LIMIT: (
            "OpenRouter rate limit reached. Wait and try again, or lower "
            "--rate-limit."
        ),
    }

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["HTTP-Referer"] = "https://github.com/misty-step/thinktank"
        headers["X-Title"] = "thinktank"
        return headers
