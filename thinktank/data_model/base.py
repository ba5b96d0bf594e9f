"""Shared Pydantic base models."""

from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """Base model with strict, immutable defaults.

    Unknown fields are rejected so that typos in YAML configuration
    surface as validation errors instead of being silently ignored.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")
