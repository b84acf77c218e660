"""Credential Availability Checker - Filter providers by configured API keys.

Models whose provider has no API key are excluded from routing before any
network call is made. The provider to environment variable mapping:

- openai: OPENAI_API_KEY
- anthropic: ANTHROPIC_API_KEY
- google: GOOGLE_API_KEY
- mistral: MISTRAL_API_KEY
- togetherai: TOGETHER_API_KEY
"""

import logging
from typing import Dict, List, Optional

from prompt_router.core.model_catalog import ModelDescriptor, ProviderType
from prompt_router.settings import PROVIDER_KEY_ENV_VARS, APISettings, get_api_settings

logger = logging.getLogger(__name__)


class CredentialChecker:
    """Answers whether a provider has credentials configured."""

    def __init__(self, api_settings: Optional[APISettings] = None):
        self._api_settings = api_settings

    @property
    def api_settings(self) -> APISettings:
        if self._api_settings is None:
            self._api_settings = get_api_settings()
        return self._api_settings

    def has_credentials(self, provider: ProviderType) -> bool:
        has_key = self.api_settings.has_provider(provider)
        if not has_key:
            logger.debug(f"No API key for {provider.value} ({PROVIDER_KEY_ENV_VARS[provider]})")
        return has_key

    def credentialed_providers(self) -> List[ProviderType]:
        return [p for p in ProviderType if self.has_credentials(p)]

    def filter_models(self, models: List[ModelDescriptor]) -> List[ModelDescriptor]:
        """Keep only models whose provider has credentials (order preserved)."""
        return [m for m in models if self.has_credentials(m.provider)]

    def get_credential_status(self) -> Dict[str, Dict[str, object]]:
        """Credential availability for every known provider."""
        return {
            provider.value: {
                "key": PROVIDER_KEY_ENV_VARS[provider],
                "available": self.has_credentials(provider),
            }
            for provider in ProviderType
        }

    def get_status_report(self) -> str:
        """Human-readable credential status report."""
        lines = ["Credential Status:", "=" * 40]
        for provider, info in self.get_credential_status().items():
            symbol = "✅" if info["available"] else "❌"
            lines.append(f"  {symbol} {provider}: {info['key']}")
        return "\n".join(lines)
