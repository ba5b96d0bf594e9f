"""In-memory model registry built from a ModelsConfig."""

import structlog

from thinktank.llm.factory import ClientFactory, create_llm_client
from thinktank.registry.errors import UnknownProviderError
from thinktank.registry.schemas import (
    ModelDefinition,
    ModelsConfig,
    ProviderDefinition,
)


logger = structlog.get_logger()

BUILTIN_PROVIDERS = ("gemini", "openai", "openrouter")


class ModelRegistry:
    """Lookup of models, providers and the factories that build clients.

    Built-in providers use :func:`create_llm_client`. Additional providers
    can be registered at runtime with :meth:`register_provider_factory`.
    """

    def __init__(self, config: ModelsConfig) -> None:
        """Index a validated configuration.

        Args:
            config: Models configuration.
        """
        self._config = config
        self._models = {m.name: m for m in config.models}
        self._providers = {p.name: p for p in config.providers}
        self._factories: dict[str, ClientFactory] = dict.fromkeys(
            BUILTIN_PROVIDERS, create_llm_client
        )
        self._log = logger.bind(component="registry")

    @property
    def config(self) -> ModelsConfig:
        """The configuration this registry was built from."""
        return self._config

    def get_model(self, name: str) -> ModelDefinition | None:
        """Return a model definition by name, or None."""
        return self._models.get(name)

    def get_provider(self, name: str) -> ProviderDefinition | None:
        """Return a provider definition by name, or None."""
        return self._providers.get(name)

    def api_key_env_var(self, provider: str) -> str | None:
        """Return the environment variable holding a provider's API key."""
        return self._config.api_key_sources.get(provider)

    def available_models(self) -> list[str]:
        """Return every model name, sorted."""
        return sorted(self._models)

    def models_by_provider(self, provider: str) -> list[str]:
        """Return the sorted model names served by one provider."""
        return sorted(m.name for m in self._models.values() if m.provider == provider)

    def register_provider_factory(self, provider: str, factory: ClientFactory) -> None:
        """Register or replace the client factory for a provider.

        Args:
            provider: Provider identifier.
            factory: Callable building a client from a ClientSpec.
        """
        self._factories[provider] = factory
        self._log.debug("provider_factory_registered", provider=provider)

    def get_provider_factory(self, provider: str) -> ClientFactory:
        """Return the client factory for a provider.

        Raises:
            UnknownProviderError: If no factory is registered.
        """
        try:
            return self._factories[provider]
        except KeyError:
            msg = f"no client implementation registered for provider '{provider}'"
            raise UnknownProviderError(msg) from None
