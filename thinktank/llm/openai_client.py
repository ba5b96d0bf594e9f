"""OpenAI chat completions client."""

from http import HTTPStatus
from typing import Any, ClassVar

import httpx
import structlog

from thinktank.context import RunContext
from thinktank.llm.errors import EmptyResponseError, ErrorCategory, LlmError
from thinktank.llm.http import (
    DEFAULT_TIMEOUT,
    error_from_response,
    error_from_transport,
)
from thinktank.llm.models import ModelInfo, ProviderResult, Safety, TokenCount


logger = structlog.get_logger()

_CHARS_PER_TOKEN = 4
_DEFAULT_INPUT_LIMIT = 128_000
_DEFAULT_OUTPUT_LIMIT = 4096

# Registry parameter names forwarded verbatim to the request body
_FORWARDED_PARAMS = frozenset(
    {
        "temperature",
        "top_p",
        "frequency_penalty",
        "presence_penalty",
        "max_tokens",
        "max_completion_tokens",
        "stop",
        "seed",
        "reasoning_effort",
    }
)


def estimate_tokens(text: str) -> int:
    """Rough token estimate used where no tokenizer endpoint exists."""
    if not text:
        return 0
    return max(1, len(text) // _CHARS_PER_TOKEN)


class OpenAIClient:
    """Client for OpenAI-compatible ``/chat/completions`` endpoints.

    Subclasses override the class attributes to target other providers
    that speak the same wire format.
    """

    provider: ClassVar[str] = "openai"
    default_base_url: ClassVar[str] = "https://api.openai.com/v1"
    status_categories: ClassVar[dict[str, ErrorCategory]] = {
        "invalid_api_key": ErrorCategory.AUTH,
        "insufficient_quota": ErrorCategory.INSUFFICIENT_CREDITS,
        "rate_limit_exceeded": ErrorCategory.RATE_LIMIT,
        "context_length_exceeded": ErrorCategory.INPUT_LIMIT,
        "model_not_found": ErrorCategory.NOT_FOUND,
        "content_filter": ErrorCategory.CONTENT_FILTERED,
    }
    suggestions: ClassVar[dict[ErrorCategory, str]] = {
        ErrorCategory.AUTH: (
            "Check that your OpenAI API key is valid. "
            "Ensure OPENAI_API_KEY is set correctly."
        ),
        ErrorCategory.INSUFFICIENT_CREDITS: (
            "Your OpenAI account has no remaining quota. "
            "Check your plan and billing details."
        ),
        ErrorCategory.INPUT_LIMIT: (
            "The prompt exceeds the model's context window. "
            "Reduce the input or choose a model with a larger context."
        ),
    }

    def __init__(
        self,
        api_key: str,
        model_name: str,
        api_model_id: str | None = None,
        base_url: str | None = None,
        http_client: httpx.Client | None = None,
        input_token_limit: int = _DEFAULT_INPUT_LIMIT,
        output_token_limit: int = _DEFAULT_OUTPUT_LIMIT,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Bearer token for the provider.
            model_name: Registry model name.
            api_model_id: Identifier sent as ``model``, defaults to model_name.
            base_url: API root, defaults to the provider endpoint.
            http_client: Transport to use; created when omitted.
            input_token_limit: Context window from the registry.
            output_token_limit: Maximum output tokens from the registry.
        """
        if not api_key:
            msg = f"API key is required for the {self.provider} client"
            raise LlmError(msg, provider=self.provider, category=ErrorCategory.AUTH)
        self._api_key = api_key
        self._model_name = model_name
        self._api_model_id = api_model_id or model_name
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self._http = http_client or httpx.Client(timeout=DEFAULT_TIMEOUT)
        self._input_limit = input_token_limit
        self._output_limit = output_token_limit
        self._log = logger.bind(
            component="llm", subcomponent=self.provider, model=model_name
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def generate_content(
        self, ctx: RunContext, prompt: str, params: dict[str, Any]
    ) -> ProviderResult:
        """Send a chat completion request with a single user message.

        Raises:
            LlmError: If the call fails or the response has no choices.
        """
        ctx.raise_if_cancelled()
        body: dict[str, Any] = {
            "model": self._api_model_id,
            "messages": [{"role": "user", "content": prompt}],
        }
        body.update(
            {
                k: v
                for k, v in params.items()
                if k in _FORWARDED_PARAMS and v is not None
            }
        )

        try:
            response = self._http.post(
                f"{self._base_url}/chat/completions",
                headers=self._headers(),
                json=body,
                timeout=ctx.remaining() or DEFAULT_TIMEOUT,
            )
        except httpx.HTTPError as exc:
            raise error_from_transport(self.provider, exc, self.suggestions) from exc

        if response.status_code != HTTPStatus.OK:
            self._log.debug("chat_completion_error", status=response.status_code)
            raise error_from_response(
                self.provider,
                response,
                status_categories=self.status_categories,
                suggestions=self.suggestions,
            )

        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            msg = f"received empty choices from {self.provider}"
            raise EmptyResponseError(msg, provider=self.provider)

        choice = choices[0]
        finish_reason = str(choice.get("finish_reason") or "")
        content = str((choice.get("message") or {}).get("content") or "")
        usage = data.get("usage") or {}

        safety: tuple[Safety, ...] = ()
        if finish_reason == "content_filter":
            safety = (Safety(category="content_filter", blocked=True, score=1.0),)

        return ProviderResult(
            content=content,
            token_count=int(usage.get("completion_tokens") or 0),
            finish_reason=finish_reason,
            truncated=finish_reason == "length",
            safety_info=safety,
        )

    def count_tokens(self, ctx: RunContext, prompt: str) -> TokenCount:
        """Estimate prompt tokens at four characters per token."""
        ctx.raise_if_cancelled()
        return TokenCount(total=estimate_tokens(prompt))

    def get_model_info(self, ctx: RunContext) -> ModelInfo:
        """Return limits from registry configuration."""
        ctx.raise_if_cancelled()
        return ModelInfo(
            name=self._model_name,
            input_token_limit=self._input_limit,
            output_token_limit=self._output_limit,
        )

    def get_model_name(self) -> str:
        """Return the registry model name."""
        return self._model_name

    def close(self) -> None:
        """Close the HTTP transport."""
        self._http.close()
