"""Models configuration schema."""

from enum import Enum
from typing import Annotated, Any

from pydantic import Field, model_validator

from thinktank.data_model import StrictBaseModel


class ParameterType(str, Enum):
    """Value type of a model parameter."""

    FLOAT = "float"
    INT = "int"
    STRING = "string"


class ParameterDefinition(StrictBaseModel):
    """Definition of one tunable model parameter.

    Attributes:
        type: Value type.
        default: Value used when the caller supplies none.
        min: Inclusive lower bound for numeric parameters.
        max: Inclusive upper bound for numeric parameters.
        enum_values: Allowed values for string parameters.
    """

    type: ParameterType
    default: Any = None
    min: float | None = None
    max: float | None = None
    enum_values: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_bounds(self) -> "ParameterDefinition":
        """Reject inverted numeric bounds."""
        if self.min is not None and self.max is not None and self.min > self.max:
            msg = f"min ({self.min}) must not exceed max ({self.max})"
            raise ValueError(msg)
        return self


class ProviderDefinition(StrictBaseModel):
    """A provider the registry can build clients for.

    Attributes:
        name: Provider identifier, e.g. ``openai``.
        base_url: Optional API root overriding the client default.
    """

    name: Annotated[str, Field(min_length=1)]
    base_url: str | None = None


class ModelDefinition(StrictBaseModel):
    """A model and its provider-side metadata."""

    name: Annotated[str, Field(min_length=1)]
    provider: Annotated[str, Field(min_length=1)]
    api_model_id: Annotated[str, Field(min_length=1)]
    context_window: Annotated[int, Field(gt=0)] = 8192
    max_output_tokens: Annotated[int, Field(gt=0)] = 2048
    parameters: dict[str, ParameterDefinition] = Field(default_factory=dict)


class ModelsConfig(StrictBaseModel):
    """Top-level structure of ``models.yaml``.

    Attributes:
        api_key_sources: Provider name mapped to the environment variable
            holding its API key.
        providers: Known providers.
        models: Known models.
    """

    api_key_sources: Annotated[dict[str, str], Field(min_length=1)]
    providers: Annotated[list[ProviderDefinition], Field(min_length=1)]
    models: Annotated[list[ModelDefinition], Field(min_length=1)]

    @model_validator(mode="after")
    def validate_references(self) -> "ModelsConfig":
        """Check name uniqueness and model-to-provider references."""
        provider_names: set[str] = set()
        for provider in self.providers:
            if provider.name in provider_names:
                msg = f"duplicate provider name '{provider.name}' detected"
                raise ValueError(msg)
            provider_names.add(provider.name)

        model_names: set[str] = set()
        for model in self.models:
            if model.name in model_names:
                msg = f"duplicate model name '{model.name}' detected"
                raise ValueError(msg)
            model_names.add(model.name)
            if model.provider not in provider_names:
                msg = (
                    f"model '{model.name}' references unknown provider "
                    f"'{model.provider}'"
                )
                raise ValueError(msg)
        return self
