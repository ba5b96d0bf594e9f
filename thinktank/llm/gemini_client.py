"""Gemini API client using API key authentication."""

from http import HTTPStatus
from typing import Any

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

PROVIDER = "gemini"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

_DEFAULT_INPUT_LIMIT = 1_000_000
_DEFAULT_OUTPUT_LIMIT = 8192

STATUS_CATEGORIES: dict[str, ErrorCategory] = {
    "UNAUTHENTICATED": ErrorCategory.AUTH,
    "PERMISSION_DENIED": ErrorCategory.AUTH,
    "RESOURCE_EXHAUSTED": ErrorCategory.RATE_LIMIT,
    "INVALID_ARGUMENT": ErrorCategory.INVALID_REQUEST,
    "FAILED_PRECONDITION": ErrorCategory.INVALID_REQUEST,
    "NOT_FOUND": ErrorCategory.NOT_FOUND,
    "UNAVAILABLE": ErrorCategory.SERVER,
    "INTERNAL": ErrorCategory.SERVER,
    "DEADLINE_EXCEEDED": ErrorCategory.CANCELLED,
    "CANCELLED": ErrorCategory.CANCELLED,
    "OUT_OF_RANGE": ErrorCategory.INPUT_LIMIT,
}

SUGGESTIONS: dict[ErrorCategory, str] = {
    ErrorCategory.AUTH: (
        "Check that your Google API key is valid and has not expired. "
        "Ensure GEMINI_API_KEY is set correctly."
    ),
    ErrorCategory.RATE_LIMIT: (
        "Wait and try again later. Consider adjusting --max-concurrent and "
        "--rate-limit flags, or upgrading your API quota."
    ),
    ErrorCategory.INVALID_REQUEST: (
        "Check the prompt format and parameters. Ensure they comply with "
        "the Gemini API requirements."
    ),
    ErrorCategory.NOT_FOUND: (
        "Verify that the model name is correct and available in your region."
    ),
    ErrorCategory.SERVER: (
        "This is likely a temporary issue with the Gemini service. "
        "Wait a few moments and try again."
    ),
    ErrorCategory.INPUT_LIMIT: (
        "Reduce the input size by using --include, --exclude or "
        "--exclude-names flags to filter the context."
    ),
    ErrorCategory.CONTENT_FILTERED: (
        "Your prompt or content may have triggered Gemini's safety filters. "
        "Review and modify your input to comply with content policies."
    ),
}

# Gemini finish reasons that mean the response was withheld
_BLOCKING_FINISH_REASONS = frozenset(
    {"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}
)
_BLOCKED_PROBABILITIES = frozenset({"HIGH"})
_PROBABILITY_SCORES = {"NEGLIGIBLE": 0.1, "LOW": 0.3, "MEDIUM": 0.6, "HIGH": 0.9}

# Registry parameter names mapped to generationConfig fields
_PARAM_FIELDS = {
    "temperature": "temperature",
    "top_p": "topP",
    "top_k": "topK",
    "max_output_tokens": "maxOutputTokens",
    "max_tokens": "maxOutputTokens",
    "stop_sequences": "stopSequences",
}


class GeminiClient:
    """Client for the Gemini ``generativelanguage`` API.

    Sends requests with an ``x-goog-api-key`` header. A failed request is
    reported once as a categorized :class:`LlmError`; nothing is retried.
    """

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
            api_key: Gemini API key.
            model_name: Registry model name used in logs and output names.
            api_model_id: Identifier sent to the API, defaults to model_name.
            base_url: API root, defaults to the public endpoint.
            http_client: Transport to use; created when omitted.
            input_token_limit: Context window from the registry.
            output_token_limit: Maximum output tokens from the registry.
        """
        if not api_key:
            msg = "API key is required for the Gemini client"
            raise LlmError(msg, provider=PROVIDER, category=ErrorCategory.AUTH)
        self._api_key = api_key
        self._model_name = model_name
        self._api_model_id = api_model_id or model_name
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._http = http_client or httpx.Client(timeout=DEFAULT_TIMEOUT)
        self._input_limit = input_token_limit
        self._output_limit = output_token_limit
        self._log = logger.bind(
            component="llm", subcomponent=PROVIDER, model=model_name
        )

    def _post(
        self, ctx: RunContext, action: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        ctx.raise_if_cancelled()
        url = f"{self._base_url}/models/{self._api_model_id}:{action}"
        try:
            response = self._http.post(
                url,
                headers={
                    "x-goog-api-key": self._api_key,
                    "Content-Type": "application/json",
                },
                json=body,
                timeout=ctx.remaining() or DEFAULT_TIMEOUT,
            )
        except httpx.HTTPError as exc:
            raise error_from_transport(PROVIDER, exc, SUGGESTIONS) from exc

        if response.status_code != HTTPStatus.OK:
            err = error_from_response(
                PROVIDER,
                response,
                status_categories=STATUS_CATEGORIES,
                suggestions=SUGGESTIONS,
            )
            self._log.debug("gemini_api_error", status=response.status_code)
            raise err

        data: dict[str, Any] = response.json()
        return data

    def generate_content(
        self, ctx: RunContext, prompt: str, params: dict[str, Any]
    ) -> ProviderResult:
        """Send a generateContent request.

        Args:
            ctx: Run context.
            prompt: User prompt text.
            params: Registry parameters mapped onto ``generationConfig``.

        Returns:
            ProviderResult with text, finish reason and safety ratings.

        Raises:
            LlmError: If the call fails or the response has no candidates.
        """
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        generation_config = {
            _PARAM_FIELDS[name]: value
            for name, value in params.items()
            if name in _PARAM_FIELDS and value is not None
        }
        if generation_config:
            body["generationConfig"] = generation_config

        data = self._post(ctx, "generateContent", body)

        candidates = data.get("candidates") or []
        feedback = data.get("promptFeedback") or {}
        if not candidates:
            block_reason = feedback.get("blockReason")
            if block_reason:
                # The prompt itself was rejected; surface it as a blocked result
                return ProviderResult(
                    content="",
                    finish_reason=str(block_reason),
                    safety_info=_parse_safety(
                        feedback.get("safetyRatings"), blocked_by=str(block_reason)
                    ),
                )
            msg = "received zero candidates from Gemini"
            raise EmptyResponseError(msg, provider=PROVIDER)

        candidate = candidates[0]
        finish_reason = str(candidate.get("finishReason") or "")
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(str(part.get("text", "")) for part in parts)
        usage = data.get("usageMetadata") or {}

        return ProviderResult(
            content=text,
            token_count=int(usage.get("candidatesTokenCount") or 0),
            finish_reason=finish_reason,
            truncated=finish_reason == "MAX_TOKENS",
            safety_info=_parse_safety(
                candidate.get("safetyRatings"),
                blocked_by=(
                    finish_reason
                    if finish_reason in _BLOCKING_FINISH_REASONS and not text
                    else ""
                ),
            ),
        )

    def count_tokens(self, ctx: RunContext, prompt: str) -> TokenCount:
        """Count prompt tokens with the countTokens endpoint."""
        data = self._post(
            ctx,
            "countTokens",
            {"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
        )
        return TokenCount(total=int(data.get("totalTokens") or 0))

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


def _parse_safety(ratings: object, *, blocked_by: str = "") -> tuple[Safety, ...]:
    """Convert Gemini safetyRatings into Safety entries.

    Args:
        ratings: Raw ``safetyRatings`` list.
        blocked_by: Block or finish reason when the response was withheld.
            High-probability ratings are then marked as blocking, and a
            synthetic entry named after the reason is added if none is.
    """
    result: list[Safety] = []
    for rating in ratings if isinstance(ratings, list) else []:
        if not isinstance(rating, dict):
            continue
        probability = str(rating.get("probability", ""))
        blocked = bool(rating.get("blocked")) or (
            bool(blocked_by) and probability in _BLOCKED_PROBABILITIES
        )
        result.append(
            Safety(
                category=str(rating.get("category", "")),
                blocked=blocked,
                score=_PROBABILITY_SCORES.get(probability, 0.0),
            )
        )
    if blocked_by and not any(s.blocked for s in result):
        result.append(Safety(category=blocked_by, blocked=True))
    return tuple(result)
