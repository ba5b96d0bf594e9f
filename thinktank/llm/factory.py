"""Factory for creating provider clients."""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from thinktank.llm.errors import ClientInitializationError
from thinktank.llm.protocols import LlmClient


logger = structlog.get_logger()


@dataclass(frozen=True)
class ClientSpec:
    """Everything a provider factory needs to build one client.

    Attributes:
        provider: Provider identifier.
        model_name: Registry model name.
        api_model_id: Identifier the provider API expects.
        api_key: Resolved API key.
        base_url: API root override, None for the client default.
        input_token_limit: Context window.
        output_token_limit: Maximum output tokens.
    """

    provider: str
    model_name: str
    api_model_id: str
    api_key: str
    base_url: str | None = None
    input_token_limit: int = 8192
    output_token_limit: int = 2048


ClientFactory = Callable[[ClientSpec], LlmClient]


def create_llm_client(spec: ClientSpec) -> LlmClient:
    """Create a client for one of the built-in providers.

    Args:
        spec: Client construction parameters.

    Returns:
        An LlmClient implementation ready for use.

    Raises:
        ClientInitializationError: If the provider is not built in.
    """
    log = logger.bind(component="llm", subcomponent="factory")
    kwargs = {
        "api_key": spec.api_key,
        "model_name": spec.model_name,
        "api_model_id": spec.api_model_id,
        "base_url": spec.base_url,
        "input_token_limit": spec.input_token_limit,
        "output_token_limit": spec.output_token_limit,
    }

    if spec.provider == "gemini":
        from thinktank.llm.gemini_client import GeminiClient

        client: LlmClient = GeminiClient(**kwargs)
    elif spec.provider == "openai":
        from thinktank.llm.openai_client import OpenAIClient

        client = OpenAIClient(**kwargs)
    elif spec.provider == "openrouter":
        from thinktank.llm.openrouter_client import OpenRouterClient

        client = OpenRouterClient(**kwargs)
    else:
        msg = f"unsupported provider '{spec.provider}' for model {spec.model_name}"
        raise ClientInitializationError(msg, provider=spec.provider)

    log.info("llm_client_created", provider=spec.provider, model=spec.model_name)
    return client
