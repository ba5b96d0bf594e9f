"""Registry-backed API service."""

from thinktank.service.api import RegistryApiService
from thinktank.service.errors import ParameterValidationError
from thinktank.service.protocols import ApiService


__all__ = ["ApiService", "ParameterValidationError", "RegistryApiService"]
