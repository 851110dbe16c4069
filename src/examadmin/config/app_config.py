"""Application configuration loader.

Loads centralized configuration from data/config/app_config.yaml,
falling back to built-in defaults when the file is absent.

Usage:
    from examadmin.config.app_config import load_app_config, get_provider_config

    config = load_app_config()
    provider = get_provider_config("openai")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config.yaml")

# Only for local development; deployments must set the env var
DEV_JWT_SECRET = "examadmin-dev-secret-change-me"


@dataclass
class ProviderConfig:
    """Configuration for a single LLM provider."""

    base_url: str | None
    default_model: str
    api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class AuthConfig:
    """Token signing settings."""

    jwt_secret_env: str = "JWT_SECRET"
    issuer: str = "examadmin"
    audience: str = "examadmin-users"
    access_token_minutes: int = 60
    refresh_token_days: int = 7

    def get_secret(self) -> str:
        """Get JWT secret from environment, or the development fallback."""
        return os.environ.get(self.jwt_secret_env) or DEV_JWT_SECRET


@dataclass
class ExamsConfig:
    """Scoring and listing defaults."""

    passing_percentage: int = 35
    default_page_size: int = 20
    schools_page_size: int = 50


@dataclass
class ServerConfig:
    """HTTP bind address for the serve command."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class RateLimitRule:
    """Fixed-window limit for one endpoint."""

    max_requests: int
    window_seconds: int


@dataclass
class AppConfig:
    """Application-wide configuration."""

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    database_path: str = "db/examadmin.db"
    auth: AuthConfig = field(default_factory=AuthConfig)
    exams: ExamsConfig = field(default_factory=ExamsConfig)
    rate_limits: dict[str, RateLimitRule] = field(default_factory=dict)
    server: ServerConfig = field(default_factory=ServerConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "providers": {
            "openai": {
                "base_url": "https://api.openai.com/v1",
                "default_model": "gpt-4o",
                "api_key_env": "OPENAI_API_KEY",
            },
            "anthropic": {
                "base_url": "https://api.anthropic.com/v1/",
                "default_model": "claude-3-5-sonnet-20241022",
                "api_key_env": "ANTHROPIC_API_KEY",
            },
            "groq": {
                "base_url": "https://api.groq.com/openai/v1",
                "default_model": "llama-3.1-70b-versatile",
                "api_key_env": "GROQ_API_KEY",
            },
        },
        "database": {"path": "db/examadmin.db"},
        "auth": {
            "jwt_secret_env": "JWT_SECRET",
            "issuer": "examadmin",
            "audience": "examadmin-users",
            "access_token_minutes": 60,
            "refresh_token_days": 7,
        },
        "exams": {
            "passing_percentage": 35,
            "default_page_size": 20,
            "schools_page_size": 50,
        },
        "rate_limits": {
            "signin": {"max_requests": 10, "window_seconds": 60},
            "signup": {"max_requests": 5, "window_seconds": 3600},
        },
        "server": {"host": "127.0.0.1", "port": 8000},
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()

    providers = {}
    for name, pconfig in (data.get("providers") or defaults["providers"]).items():
        providers[name] = ProviderConfig(
            base_url=pconfig.get("base_url"),
            default_model=pconfig.get("default_model", "default"),
            api_key_env=pconfig.get("api_key_env"),
        )

    auth_data = {**defaults["auth"], **(data.get("auth") or {})}
    auth = AuthConfig(
        jwt_secret_env=auth_data["jwt_secret_env"],
        issuer=auth_data["issuer"],
        audience=auth_data["audience"],
        access_token_minutes=int(auth_data["access_token_minutes"]),
        refresh_token_days=int(auth_data["refresh_token_days"]),
    )

    exams_data = {**defaults["exams"], **(data.get("exams") or {})}
    exams = ExamsConfig(
        passing_percentage=int(exams_data["passing_percentage"]),
        default_page_size=int(exams_data["default_page_size"]),
        schools_page_size=int(exams_data["schools_page_size"]),
    )

    rate_limits = {}
    for name, rule in {**defaults["rate_limits"], **(data.get("rate_limits") or {})}.items():
        rate_limits[name] = RateLimitRule(
            max_requests=int(rule["max_requests"]),
            window_seconds=int(rule["window_seconds"]),
        )

    server_data = {**defaults["server"], **(data.get("server") or {})}
    server = ServerConfig(host=server_data["host"], port=int(server_data["port"]))

    database = data.get("database") or {}

    return AppConfig(
        providers=providers,
        database_path=database.get("path", defaults["database"]["path"]),
        auth=auth,
        exams=exams,
        rate_limits=rate_limits,
        server=server,
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Get configuration for a specific provider.

    Args:
        provider: Provider name (e.g., "openai", "groq")

    Returns:
        ProviderConfig or None if provider not found.
    """
    config = load_app_config()
    return config.providers.get(provider)


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
