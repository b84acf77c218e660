"""Tests for credential availability checks."""

from prompt_router.core.credential_availability import CredentialChecker
from prompt_router.core.model_catalog import ProviderType


class TestCredentialChecker:
    """Tests for CredentialChecker."""

    def test_has_credentials(self, credentials_for):
        checker = credentials_for(ProviderType.OPENAI, ProviderType.MISTRAL)
        assert checker.has_credentials(ProviderType.OPENAI)
        assert not checker.has_credentials(ProviderType.ANTHROPIC)
        assert checker.credentialed_providers() == [ProviderType.OPENAI, ProviderType.MISTRAL]

    def test_filter_models_keeps_order(self, credentials_for, catalog):
        checker = credentials_for(ProviderType.GOOGLE, ProviderType.OPENAI)
        models = [catalog.get(m) for m in (
            "anthropic/claude-3-haiku-20240307",
            "google/gemini-1.5-flash-latest",
            "openai/gpt-3.5-turbo",
        )]
        assert [m.model_id for m in checker.filter_models(models)] == [
            "google/gemini-1.5-flash-latest",
            "openai/gpt-3.5-turbo",
        ]

    def test_status(self, credentials_for):
        status = credentials_for(ProviderType.ANTHROPIC).get_credential_status()
        assert status["anthropic"] == {"key": "ANTHROPIC_API_KEY", "available": True}
        assert status["togetherai"] == {"key": "TOGETHER_API_KEY", "available": False}

    def test_status_report(self, credentials_for):
        report = credentials_for(ProviderType.ANTHROPIC).get_status_report()
        assert "✅ anthropic: ANTHROPIC_API_KEY" in report
        assert "❌ openai: OPENAI_API_KEY" in report

    def test_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
        checker = CredentialChecker()
        assert checker.credentialed_providers() == [ProviderType.GOOGLE]
