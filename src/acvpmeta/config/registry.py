"""Validation registry connection settings."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .env import optional_env_var, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig

DEFAULT_SERVER_URL = "https://demo.acvts.nist.gov"
DEFAULT_API_PREFIX = "/acvp/v1"
REGISTRY_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    server_url: str
    access_token: str
    resilience: ResilienceConfig
    api_prefix: str = DEFAULT_API_PREFIX

    def with_cache(self, cache: CacheConfig | None) -> RegistryConfig:
        return replace(self, resilience=replace(self.resilience, cache=cache))


def default_registry_resilience(server_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="registry",
        base_url=server_url.rstrip("/"),
        timeout_seconds=REGISTRY_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        default_headers={"Accept": "application/json"},
    )


def get_registry_config(*, resilience: ResilienceConfig | None = None) -> RegistryConfig:
    values = require_env_vars(("ACVP_ACCESS_TOKEN",))
    server_url = optional_env_var("ACVP_SERVER_URL", DEFAULT_SERVER_URL)
    return RegistryConfig(
        server_url=server_url,
        access_token=values["ACVP_ACCESS_TOKEN"],
        api_prefix=optional_env_var("ACVP_API_PREFIX", DEFAULT_API_PREFIX),
        resilience=resilience or default_registry_resilience(server_url),
    )
