"""Configuration package for the exam admin backend."""

from examadmin.config.app_config import (
    AppConfig,
    AuthConfig,
    ExamsConfig,
    ProviderConfig,
    RateLimitRule,
    clear_config_cache,
    get_provider_config,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "AuthConfig",
    "ExamsConfig",
    "ProviderConfig",
    "RateLimitRule",
    "clear_config_cache",
    "get_provider_config",
    "load_app_config",
]
