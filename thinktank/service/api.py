"""API service that resolves model names through the registry."""

from typing import Any

import structlog

from thinktank.context import RunContext
from thinktank.llm.errors import (
    ClientInitializationError,
    EmptyResponseError,
    LlmError,
    ModelNotFoundError,
    SafetyBlockedError,
    WhitespaceContentError,
)
from thinktank.llm.factory import ClientSpec
from thinktank.llm.models import ProviderResult, TokenResult
from thinktank.llm.protocols import LlmClient
from thinktank.registry import ModelDefinition, ModelRegistry, ParameterType
from thinktank.registry.errors import UnknownProviderError
from thinktank.service.errors import ParameterValidationError
from thinktank.settings import AppSettings


logger = structlog.get_logger()

_EMPTY_RESPONSE_PHRASES = (
    "empty response",
    "empty content",
    "empty output",
    "empty result",
    "zero candidates",
    "empty candidates",
    "no output",
)

_SAFETY_PHRASES = (
    "safety",
    "content policy",
    "content filter",
    "content_filter",
    "moderation",
    "blocked",
    "filtered",
    "harm_category",
)


class RegistryApiService:
    """Builds clients for registry models and interprets their results."""

    def __init__(
        self, registry: ModelRegistry, settings: AppSettings | None = None
    ) -> None:
        """Initialize the service.

        Args:
            registry: Model registry.
            settings: Environment settings used to resolve API keys.
        """
        self._registry = registry
        self._settings = settings or AppSettings()
        self._log = logger.bind(component="api_service")

    def init_llm_client(
        self, ctx: RunContext, api_key: str, model_name: str, api_endpoint: str
    ) -> LlmClient:
        """Create a client for a registry model.

        The API key configured for the provider's environment variable wins
        over ``api_key``. ``api_endpoint`` wins over the provider base URL.

        Args:
            ctx: Run context; a cancelled context fails fast.
            api_key: Fallback API key.
            model_name: Registry model name.
            api_endpoint: Optional endpoint override, empty for none.

        Returns:
            Client for the model.

        Raises:
            ClientInitializationError: On any failure except an unknown model.
            ModelNotFoundError: If the model is not in the registry.
        """
        if not model_name:
            msg = "client initialization failed: model name is required"
            raise ClientInitializationError(msg)
        try:
            ctx.raise_if_cancelled()
        except LlmError as e:
            msg = f"client initialization failed: {e}"
            raise ClientInitializationError(msg, category=e.category) from e

        if api_endpoint:
            self._log.debug("custom_api_endpoint", endpoint=api_endpoint)

        model = self._registry.get_model(model_name)
        if model is None:
            self._log.debug("model_not_found", model=model_name)
            msg = f"model '{model_name}' not found in registry"
            raise ModelNotFoundError(msg)

        provider = self._registry.get_provider(model.provider)
        if provider is None:
            msg = (
                f"client initialization failed: provider '{model.provider}' "
                f"for model '{model_name}' not found"
            )
            raise ClientInitializationError(msg, provider=model.provider)

        try:
            factory = self._registry.get_provider_factory(model.provider)
        except UnknownProviderError as e:
            msg = (
                f"client initialization failed: provider implementation for "
                f"'{model.provider}' not registered"
            )
            raise ClientInitializationError(msg, provider=model.provider) from e

        env_var = self._registry.api_key_env_var(model.provider) or (
            f"{model.provider.upper()}_API_KEY"
        )
        effective_key = self._settings.api_key_from_env(env_var) or api_key
        if not effective_key:
            msg = (
                f"client initialization failed: API key is required for model "
                f"'{model_name}' with provider '{model.provider}'. "
                f"Please set the {env_var} environment variable"
            )
            raise ClientInitializationError(msg, provider=model.provider)

        spec = ClientSpec(
            provider=model.provider,
            model_name=model.name,
            api_model_id=model.api_model_id,
            api_key=effective_key,
            base_url=api_endpoint or provider.base_url,
            input_token_limit=model.context_window,
            output_token_limit=model.max_output_tokens,
        )
        self._log.debug(
            "creating_llm_client", model=model_name, provider=model.provider
        )
        try:
            return factory(spec)
        except ClientInitializationError:
            raise
        except LlmError as e:
            msg = f"client initialization failed: {e.user_facing_error()}"
            raise ClientInitializationError(
                msg, provider=model.provider, category=e.category
            ) from e

    def get_model_parameters(self, model_name: str) -> dict[str, Any]:
        """Return parameter defaults for a model.

        Unknown models yield an empty dict rather than an error.
        """
        model = self._registry.get_model(model_name)
        if model is None:
            self._log.debug("model_not_found", model=model_name)
            return {}
        return {
            name: definition.default
            for name, definition in model.parameters.items()
            if definition.default is not None
        }

    def validate_model_parameter(
        self, model_name: str, param_name: str, value: object
    ) -> bool:
        """Check a parameter value against the model's definition.

        Returns:
            True when the value is acceptable.

        Raises:
            ModelNotFoundError: If the model is unknown.
            ParameterValidationError: If the value is rejected.
        """
        model = self.get_model_definition(model_name)
        definition = model.parameters.get(param_name)
        if definition is None:
            msg = f"parameter '{param_name}' not defined for model '{model_name}'"
            raise ParameterValidationError(msg, model_name, param_name)

        def fail(msg: str) -> ParameterValidationError:
            return ParameterValidationError(msg, model_name, param_name)

        if definition.type is ParameterType.STRING:
            if not isinstance(value, str):
                raise fail(f"parameter '{param_name}' must be a string")
            if definition.enum_values and value not in definition.enum_values:
                msg = (
                    f"parameter '{param_name}' value '{value}' is not in allowed "
                    f"values: {definition.enum_values}"
                )
                raise fail(msg)
            return True

        # bool is an int subclass and never a valid numeric parameter
        if isinstance(value, bool):
            raise fail(f"parameter '{param_name}' must be a {definition.type.value}")
        if definition.type is ParameterType.INT and not isinstance(value, int):
            raise fail(f"parameter '{param_name}' must be an integer")
        is_number = isinstance(value, int | float)
        if definition.type is ParameterType.FLOAT and not is_number:
            raise fail(f"parameter '{param_name}' must be a float")

        number = float(value)  # type: ignore[arg-type]
        if definition.min is not None and number < definition.min:
            msg = (
                f"parameter '{param_name}' value {value} is below minimum "
                f"{definition.min}"
            )
            raise fail(msg)
        if definition.max is not None and number > definition.max:
            msg = (
                f"parameter '{param_name}' value {value} exceeds maximum "
                f"{definition.max}"
            )
            raise fail(msg)
        return True

    def get_model_definition(self, model_name: str) -> ModelDefinition:
        """Return a model definition.

        Raises:
            ModelNotFoundError: If the model is unknown.
        """
        model = self._registry.get_model(model_name)
        if model is None:
            msg = f"model not found: {model_name}"
            raise ModelNotFoundError(msg)
        return model

    def get_model_token_limits(self, model_name: str) -> tuple[int, int]:
        """Return ``(context_window, max_output_tokens)`` for a model."""
        model = self.get_model_definition(model_name)
        return model.context_window, model.max_output_tokens

    def get_token_info(
        self, ctx: RunContext, client: LlmClient, prompt: str, model_name: str
    ) -> TokenResult:
        """Measure a prompt against a model's input window.

        Used for reporting only; generation never depends on it.
        """
        count = client.count_tokens(ctx, prompt).total
        limit, _ = self.get_model_token_limits(model_name)
        percentage = (count / limit * 100.0) if limit else 0.0
        exceeds = count > limit
        limit_error = (
            f"prompt exceeds token limit ({count} tokens > {limit} token limit)"
            if exceeds
            else ""
        )
        return TokenResult(
            token_count=count,
            input_limit=limit,
            exceeds_limit=exceeds,
            limit_error=limit_error,
            percentage=percentage,
        )

    def process_llm_response(self, result: ProviderResult | None) -> str:
        """Extract text content from a provider result.

        Raises:
            EmptyResponseError: If there is no result or no content.
            SafetyBlockedError: If content is empty and a safety entry blocked it.
            WhitespaceContentError: If content is only whitespace.
        """
        if result is None:
            msg = "received empty response from LLM: result is nil"
            raise EmptyResponseError(msg)

        if result.content == "":
            details = ""
            if result.finish_reason:
                details = f" (Finish Reason: {result.finish_reason})"
            blocked = result.blocked_categories
            if blocked:
                if details:
                    details += " "
                details += "Safety Blocking:" + "".join(
                    f" Blocked by Safety Category: {category};" for category in blocked
                )
                msg = f"content blocked by LLM safety filters{details}"
                raise SafetyBlockedError(msg)
            msg = f"received empty response from LLM{details}"
            raise EmptyResponseError(msg)

        if not result.content.strip():
            raise WhitespaceContentError

        return result.content

    def is_empty_response_error(self, err: BaseException | None) -> bool:
        """Whether an error means the provider returned nothing."""
        if err is None:
            return False
        if isinstance(err, EmptyResponseError | WhitespaceContentError):
            return True
        message = str(err).lower()
        return any(phrase in message for phrase in _EMPTY_RESPONSE_PHRASES)

    def is_safety_blocked_error(self, err: BaseException | None) -> bool:
        """Whether an error means the provider refused for safety reasons."""
        if err is None:
            return False
        if isinstance(err, SafetyBlockedError):
            return True
        message = str(err).lower()
        return any(phrase in message for phrase in _SAFETY_PHRASES)

    def get_error_details(self, err: BaseException | None) -> str:
        """Human-readable description of an error."""
        if err is None:
            return "no error"
        if isinstance(err, LlmError):
            return err.user_facing_error()
        return str(err)
