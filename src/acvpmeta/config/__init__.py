"""Application configuration helpers."""

from __future__ import annotations

from acvpmeta.domain.errors import MissingConfigurationError

from .env import optional_env_var, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .registry import (
    DEFAULT_API_PREFIX,
    DEFAULT_SERVER_URL,
    RegistryConfig,
    default_registry_resilience,
    get_registry_config,
)
from .storage import StorageConfig, get_storage_config

__all__ = [
    "DEFAULT_API_PREFIX",
    "DEFAULT_SERVER_URL",
    "CacheConfig",
    "MissingConfigurationError",
    "RateLimit",
    "RegistryConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "default_registry_resilience",
    "get_registry_config",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
