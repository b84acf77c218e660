"""
Typed settings management using pydantic-settings.

Provider credentials and routing limits are loaded from environment
variables with `.env` support. API keys are held as SecretStr so they never
end up in logs or reprs.

Usage:
    from prompt_router.settings import get_settings

    settings = get_settings()
    if settings.api.has_provider("openai"):
        ...
    print(settings.router.max_attempts)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from prompt_router.core.model_catalog import Priority, ProviderType


# =============================================================================
# API Key Settings (Secrets)
# =============================================================================


# Environment variable holding each provider's key
PROVIDER_KEY_ENV_VARS = {
    ProviderType.OPENAI: "OPENAI_API_KEY",
    ProviderType.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderType.GOOGLE: "GOOGLE_API_KEY",
    ProviderType.MISTRAL: "MISTRAL_API_KEY",
    ProviderType.TOGETHERAI: "TOGETHER_API_KEY",
}


class APISettings(BaseSettings):
    """API keys for model providers and the completion service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: Optional[SecretStr] = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[SecretStr] = Field(default=None, alias="ANTHROPIC_API_KEY")
    google_api_key: Optional[SecretStr] = Field(default=None, alias="GOOGLE_API_KEY")
    mistral_api_key: Optional[SecretStr] = Field(default=None, alias="MISTRAL_API_KEY")
    together_api_key: Optional[SecretStr] = Field(default=None, alias="TOGETHER_API_KEY")

    # Completion service
    notdiamond_api_key: Optional[SecretStr] = Field(default=None, alias="NOTDIAMOND_API_KEY")

    # Logfire
    logfire_token: Optional[SecretStr] = Field(default=None, alias="LOGFIRE_TOKEN")

    def get_key_value(self, key_name: str) -> Optional[str]:
        """Get the raw string value of a key by its environment variable name.

        Args:
            key_name: The environment variable name (e.g., 'OPENAI_API_KEY')

        Returns:
            The key value, or None if not set.
        """
        for name, field in type(self).model_fields.items():
            if field.alias == key_name:
                value = getattr(self, name)
                if isinstance(value, SecretStr):
                    return value.get_secret_value() or None
                return value
        return None

    def has_provider(self, provider: ProviderType | str) -> bool:
        """Check if a non-empty API key is configured for a provider."""
        try:
            provider = ProviderType(provider)
        except ValueError:
            return False
        return bool(self.get_key_value(PROVIDER_KEY_ENV_VARS[provider]))


# =============================================================================
# Router Settings
# =============================================================================


class RouterSettings(BaseSettings):
    """Routing, retry and circuit-breaker limits."""

    model_config = SettingsConfigDict(
        env_prefix="PROMPT_ROUTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Retry loop
    max_attempts: int = Field(default=5, ge=1, description="Completion calls per request")
    request_timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="Seconds allowed for a single completion call",
    )

    # Health tracker
    failure_threshold: int = Field(default=3, ge=1, description="Failures before cooldown")
    cooldown_seconds: float = Field(default=300.0, ge=0.0, description="Cooldown length")

    # Candidate selection
    min_candidates: int = Field(default=3, ge=1, description="Top up to at least this many")
    max_candidates: int = Field(default=5, ge=1, description="Never select more than this")

    # Cost estimation
    assumed_input_tokens: int = Field(default=500, ge=0)
    assumed_output_tokens: int = Field(default=150, ge=0)

    default_priority: Priority = Field(default=Priority.COST)

    completion_url: str = Field(
        default="https://api.notdiamond.ai/v2/completions",
        description="Endpoint of the completion service",
    )

    log_level: str = Field(default="WARNING", description="Root log level for the CLI")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_candidate_bounds(self) -> "RouterSettings":
        if self.min_candidates > self.max_candidates:
            raise ValueError(
                f"min_candidates ({self.min_candidates}) exceeds "
                f"max_candidates ({self.max_candidates})"
            )
        return self


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """Aggregate settings for the router."""

    model_config = SettingsConfigDict(extra="ignore")

    api: APISettings = Field(default_factory=APISettings)
    router: RouterSettings = Field(default_factory=RouterSettings)


# =============================================================================
# Cached Singleton Accessors
# =============================================================================


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached settings singleton.

    To reload after the environment changes, call clear_settings_cache() first.
    """
    return Settings()


@lru_cache(maxsize=1)
def get_api_settings() -> APISettings:
    """Get API settings (cached)."""
    return APISettings()


def clear_settings_cache() -> None:
    """Clear all cached settings instances."""
    get_settings.cache_clear()
    get_api_settings.cache_clear()
