"""Model and provider registry."""

from thinktank.registry.errors import RegistryConfigError, UnknownProviderError
from thinktank.registry.loader import (
    default_models_config,
    load_models_config,
    load_models_file,
    models_config_from_env,
)
from thinktank.registry.registry import ModelRegistry
from thinktank.registry.schemas import (
    ModelDefinition,
    ModelsConfig,
    ParameterDefinition,
    ParameterType,
    ProviderDefinition,
)


__all__ = [
    "ModelDefinition",
    "ModelRegistry",
    "ModelsConfig",
    "ParameterDefinition",
    "ParameterType",
    "ProviderDefinition",
    "RegistryConfigError",
    "UnknownProviderError",
    "default_models_config",
    "load_models_config",
    "load_models_file",
    "models_config_from_env",
]
