"""Models configuration loading with environment and built-in fallbacks.

Sources are tried in order:

1. The YAML file (``~/.config/thinktank/models.yaml`` unless overridden).
2. A single-model configuration described by ``THINKTANK_CONFIG_*``
   environment variables.
3. The built-in defaults below.

A missing file falls through to the next source. A file that exists but
cannot be parsed or validated is an error.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from thinktank.registry.errors import RegistryConfigError
from thinktank.registry.schemas import ModelsConfig


logger = structlog.get_logger()

ENV_CONFIG_PROVIDER = "THINKTANK_CONFIG_PROVIDER"
ENV_CONFIG_MODEL = "THINKTANK_CONFIG_MODEL"
ENV_CONFIG_API_MODEL_ID = "THINKTANK_CONFIG_API_MODEL_ID"
ENV_CONFIG_CONTEXT_WINDOW = "THINKTANK_CONFIG_CONTEXT_WINDOW"
ENV_CONFIG_MAX_OUTPUT = "THINKTANK_CONFIG_MAX_OUTPUT"
ENV_CONFIG_BASE_URL = "THINKTANK_CONFIG_BASE_URL"

_ENV_DEFAULT_CONTEXT_WINDOW = 1_000_000
_ENV_DEFAULT_MAX_OUTPUT = 65_000

DEFAULT_API_KEY_SOURCES = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}

_OPENAI_PARAMETERS: dict[str, Any] = {
    "temperature": {"type": "float", "default": 0.7, "min": 0.0, "max": 2.0},
    "top_p": {"type": "float", "default": 1.0, "min": 0.0, "max": 1.0},
    "frequency_penalty": {"type": "float", "default": 0.0, "min": -2.0, "max": 2.0},
    "presence_penalty": {"type": "float", "default": 0.0, "min": -2.0, "max": 2.0},
}
_GEMINI_PARAMETERS: dict[str, Any] = {
    "temperature": {"type": "float", "default": 0.7, "min": 0.0, "max": 2.0},
    "top_p": {"type": "float", "default": 0.95, "min": 0.0, "max": 1.0},
    "top_k": {"type": "int", "default": 40, "min": 1},
}
_OPENROUTER_PARAMETERS: dict[str, Any] = {
    "temperature": {"type": "float", "default": 0.7, "min": 0.0, "max": 2.0},
    "top_p": {"type": "float", "default": 0.95, "min": 0.0, "max": 1.0},
}
_PROVIDER_PARAMETERS = {
    "openai": _OPENAI_PARAMETERS,
    "gemini": _GEMINI_PARAMETERS,
    "openrouter": _OPENROUTER_PARAMETERS,
}

DEFAULT_CONFIG: dict[str, Any] = {
    "api_key_sources": DEFAULT_API_KEY_SOURCES,
    "providers": [{"name": "openai"}, {"name": "gemini"}, {"name": "openrouter"}],
    "models": [
        {
            "name": "gemini-2.5-pro-preview-03-25",
            "provider": "gemini",
            "api_model_id": "gemini-2.5-pro-preview-03-25",
            "context_window": 1_000_000,
            "max_output_tokens": 65_000,
            "parameters": _GEMINI_PARAMETERS,
        },
        {
            "name": "gpt-4",
            "provider": "openai",
            "api_model_id": "gpt-4",
            "context_window": 128_000,
            "max_output_tokens": 4096,
            "parameters": _OPENAI_PARAMETERS,
        },
        {
            "name": "gpt-4.1",
            "provider": "openai",
            "api_model_id": "gpt-4.1",
            "context_window": 1_000_000,
            "max_output_tokens": 200_000,
            "parameters": _OPENAI_PARAMETERS,
        },
    ],
}


def default_models_config() -> ModelsConfig:
    """Return the built-in configuration."""
    return ModelsConfig.model_validate(DEFAULT_CONFIG)


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("invalid_env_integer", variable=name, value=raw)
        return default


def models_config_from_env(env: Mapping[str, str] | None = None) -> ModelsConfig | None:
    """Build a single-model configuration from ``THINKTANK_CONFIG_*`` variables.

    Args:
        env: Environment mapping, defaults to ``os.environ``.

    Returns:
        Configuration, or None when provider, model or API model ID is unset.
    """
    env = os.environ if env is None else env
    provider = env.get(ENV_CONFIG_PROVIDER, "")
    model = env.get(ENV_CONFIG_MODEL, "")
    api_model_id = env.get(ENV_CONFIG_API_MODEL_ID, "")
    if not (provider and model and api_model_id):
        return None

    key = provider.lower()
    provider_def: dict[str, Any] = {"name": provider}
    if env.get(ENV_CONFIG_BASE_URL):
        provider_def["base_url"] = env[ENV_CONFIG_BASE_URL]

    return ModelsConfig.model_validate(
        {
            "api_key_sources": {
                provider: DEFAULT_API_KEY_SOURCES.get(key, "GEMINI_API_KEY")
            },
            "providers": [provider_def],
            "models": [
                {
                    "name": model,
                    "provider": provider,
                    "api_model_id": api_model_id,
                    "context_window": _int_from_env(
                        env, ENV_CONFIG_CONTEXT_WINDOW, _ENV_DEFAULT_CONTEXT_WINDOW
                    ),
                    "max_output_tokens": _int_from_env(
                        env, ENV_CONFIG_MAX_OUTPUT, _ENV_DEFAULT_MAX_OUTPUT
                    ),
                    "parameters": _PROVIDER_PARAMETERS.get(
                        key, {"temperature": {"type": "float", "default": 0.7}}
                    ),
                }
            ],
        }
    )


def load_models_file(path: Path) -> ModelsConfig:
    """Load and validate a models YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Validated configuration.

    Raises:
        FileNotFoundError: If the file does not exist.
        RegistryConfigError: If the file cannot be read, parsed or validated.
    """
    log = logger.bind(component="registry", file_path=str(path))
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as e:
        msg = f"error reading configuration file at {path}: {e}"
        raise RegistryConfigError(msg, file_path=str(path)) from e

    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        log.error("models_config_yaml_parse_error", error=str(e))
        msg = f"invalid YAML in configuration file at {path}: {e}"
        raise RegistryConfigError(msg, file_path=str(path)) from e

    try:
        config = ModelsConfig.model_validate(data)
    except ValidationError as e:
        errors = [
            {
                "loc": ".".join(str(loc) for loc in err["loc"]),
                "msg": err["msg"],
                "type": err["type"],
            }
            for err in e.errors()
        ]
        log.error(
            "models_config_validation_failed",
            validation_error_count=len(errors),
            errors=errors,
        )
        msg = f"configuration validation failed for {path}: {len(errors)} errors"
        raise RegistryConfigError(msg, file_path=str(path), errors=errors) from e

    log.info(
        "models_config_loaded",
        provider_count=len(config.providers),
        model_count=len(config.models),
    )
    return config


def load_models_config(
    path: Path | None, env: Mapping[str, str] | None = None
) -> ModelsConfig:
    """Load configuration from the first available source.

    Args:
        path: YAML file path; None skips straight to the fallbacks.
        env: Environment mapping for the ``THINKTANK_CONFIG_*`` fallback.

    Returns:
        Validated configuration.

    Raises:
        RegistryConfigError: If the file exists but is invalid.
    """
    log = logger.bind(component="registry")
    if path is not None:
        try:
            return load_models_file(path.expanduser())
        except FileNotFoundError:
            log.info("models_config_not_found", file_path=str(path))

    try:
        config = models_config_from_env(env)
    except ValidationError as e:
        log.warning("models_config_env_invalid", error_count=e.error_count())
        config = None
    if config is not None:
        log.info(
            "models_config_from_env",
            provider=config.models[0].provider,
            model=config.models[0].name,
        )
        return config

    log.info("models_config_defaults")
    return default_models_config()
