"""Tests for the bounded fallback loop."""

import asyncio

import pytest

from prompt_router.core.completion_service import (
    CompletionResult,
    CompletionServiceError,
    NotDiamondCompletionService,
)
from prompt_router.core.custom_rules import parse_custom_rules
from prompt_router.core.fallback_executor import (
    FailureKind,
    FallbackExecutor,
    FinalResult,
    guess_failed_provider,
    is_provider_exhaustion_error,
)
from prompt_router.core.model_catalog import CompletionUsage, Priority, ProviderType
from prompt_router.core.router import PromptRouter
from prompt_router.settings import RouterSettings, Settings

SUMMARY_PROMPT = "Summarize this article in three bullet points"
CODE_PROMPT = "def foo(): pass — fix this bug"


class FakeCompletionService:
    """Plays back scripted outcomes and records every request.

    Each outcome is a CompletionResult to return or an exception to raise.
    The last outcome repeats once the script runs out.
    """

    def __init__(self, *outcomes, missing=None, delay=0.0):
        self.outcomes = list(outcomes)
        self.missing = missing
        self.delay = delay
        self.requests = []

    def missing_credential(self):
        return self.missing

    async def complete(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes[min(len(self.requests), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def calls(self):
        return len(self.requests)

    def providers_in_call(self, index):
        return {m.provider for m in self.requests[index].candidates}


def flash_answer(usage=None):
    return CompletionResult(
        content="- one\n- two\n- three",
        provider="google",
        model="gemini-1.5-flash-latest",
        usage=usage,
    )


@pytest.fixture
def make_executor(router, health_tracker):
    def _make(service, **kwargs):
        return FallbackExecutor(router, health_tracker, service, **kwargs)

    return _make


class TestExecuteWithFallback:
    """Tests for the retry state machine."""

    async def test_rate_limited_provider_is_excluded_on_retry(self, make_executor, health_tracker, catalog):
        service = FakeCompletionService(
            CompletionServiceError("429 rate limit exceeded for anthropic", status_code=429),
            flash_answer(CompletionUsage(input_tokens=100, output_tokens=50)),
        )
        result = await make_executor(service).execute_with_fallback(SUMMARY_PROMPT, Priority.COST)

        assert result.success
        assert result.attempts == 2
        assert ProviderType.ANTHROPIC in service.providers_in_call(0)
        assert ProviderType.ANTHROPIC not in service.providers_in_call(1)
        assert health_tracker.get_state(ProviderType.ANTHROPIC).failure_count == 1
        assert result.routing_decision.excluded_providers == (ProviderType.ANTHROPIC,)

        assert result.provider == "google"
        assert result.model == "google/gemini-1.5-flash-latest"
        flash = catalog.get("google/gemini-1.5-flash-latest")
        assert result.actual_cost == pytest.approx(flash.cost_for(100, 50))
        assert result.latency_ms >= 0

    async def test_billing_errors_stop_after_five_calls(self, make_executor):
        """Every provider of code_generation gets excluded in turn."""
        service = FakeCompletionService(CompletionServiceError("insufficient credit on account"))
        result = await make_executor(service).execute_with_fallback(CODE_PROMPT, Priority.COST)

        assert service.calls == 5
        assert result.attempts == 5
        assert result.failure_kind == FailureKind.PROVIDER_EXHAUSTED
        assert result.error.startswith("All routing attempts failed after 5 attempts.")
        assert "insufficient credit" in result.error
        assert len(result.routing_decision.excluded_providers) == 4

    async def test_attempt_budget_is_configurable(self, make_executor):
        service = FakeCompletionService(CompletionServiceError("quota exceeded"))
        result = await make_executor(service, max_attempts=2).execute_with_fallback(CODE_PROMPT)
        assert service.calls == 2
        assert result.failure_kind == FailureKind.PROVIDER_EXHAUSTED

    async def test_repeat_failure_of_excluded_provider_stops(self, make_executor, health_tracker):
        """A provider already excluded is not excluded again; the loop ends."""
        service = FakeCompletionService(CompletionServiceError("anthropic quota exceeded"))
        result = await make_executor(service).execute_with_fallback(SUMMARY_PROMPT)

        assert service.calls == 2
        assert result.error == "Routing failed: anthropic quota exceeded"
        assert result.failure_kind == FailureKind.PROVIDER_EXHAUSTED
        assert health_tracker.get_state(ProviderType.ANTHROPIC).failure_count == 2

    async def test_no_credentials_fails_without_a_call(self, catalog, health_tracker, credentials_for):
        router = PromptRouter(catalog, health_tracker, credentials_for())
        service = FakeCompletionService(flash_answer())
        result = await FallbackExecutor(router, health_tracker, service).execute_with_fallback(SUMMARY_PROMPT)

        assert service.calls == 0
        assert not result.success
        assert result.failure_kind == FailureKind.NO_ROUTE
        assert result.error.startswith("No models available for summarization with priority cost")
        for key_name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "MISTRAL_API_KEY", "TOGETHER_API_KEY"):
            assert key_name in result.error
        assert result.routing_decision.is_empty

    async def test_no_route_with_keys_points_at_billing(self, catalog, health_tracker, credentials_for):
        """Providers that have keys but are all cooling down are not reported as unconfigured."""
        router = PromptRouter(catalog, health_tracker, credentials_for(ProviderType.MISTRAL))
        for _ in range(3):
            health_tracker.report_failure(ProviderType.MISTRAL)
        service = FakeCompletionService(flash_answer())
        result = await FallbackExecutor(router, health_tracker, service).execute_with_fallback(SUMMARY_PROMPT)

        assert result.failure_kind == FailureKind.NO_ROUTE
        assert result.error.endswith("Please check API keys or billing.")
        assert "MISTRAL_API_KEY" not in result.error
        assert service.calls == 0

    async def test_non_exhaustion_error_is_surfaced(self, make_executor, health_tracker):
        service = FakeCompletionService(CompletionServiceError("500 Internal Server Error: boom"))
        result = await make_executor(service).execute_with_fallback(SUMMARY_PROMPT)

        assert service.calls == 1
        assert result.error == "Routing failed: 500 Internal Server Error: boom"
        assert result.failure_kind == FailureKind.SERVICE_ERROR
        # nothing in the text names a provider, so the first candidate is blamed
        assert health_tracker.get_state(ProviderType.ANTHROPIC).failure_count == 1

    async def test_error_result_counts_as_failure(self, make_executor):
        service = FakeCompletionService(CompletionResult(error="upstream broke"))
        result = await make_executor(service).execute_with_fallback(SUMMARY_PROMPT)
        assert result.error == "Routing failed: upstream broke"

    async def test_missing_usage_falls_back_to_estimate(self, make_executor):
        service = FakeCompletionService(flash_answer())
        result = await make_executor(service).execute_with_fallback(SUMMARY_PROMPT)
        assert result.actual_cost == pytest.approx(result.routing_decision.estimated_cost)
        assert result.attempts == 1

    async def test_success_resets_provider_health(self, make_executor, health_tracker):
        health_tracker.report_failure(ProviderType.GOOGLE)
        service = FakeCompletionService(flash_answer())
        await make_executor(service).execute_with_fallback(SUMMARY_PROMPT)
        assert health_tracker.get_state(ProviderType.GOOGLE).failure_count == 0

    async def test_unknown_provider_in_answer_is_still_success(self, make_executor):
        service = FakeCompletionService(CompletionResult(content="hi", provider="someone", model="x-1"))
        result = await make_executor(service).execute_with_fallback(SUMMARY_PROMPT)
        assert result.success
        assert result.model == "x-1"

    async def test_timeout_is_a_service_error(self, make_executor):
        service = FakeCompletionService(flash_answer(), delay=1.0)
        result = await make_executor(service, request_timeout=0.01).execute_with_fallback(SUMMARY_PROMPT)
        assert result.failure_kind == FailureKind.SERVICE_ERROR
        assert "timed out" in result.error

    @pytest.mark.parametrize("prompt", ["", "   "])
    async def test_empty_prompt(self, make_executor, prompt):
        service = FakeCompletionService(flash_answer())
        result = await make_executor(service).execute_with_fallback(prompt)
        assert result.failure_kind == FailureKind.INVALID_INPUT
        assert service.calls == 0

    async def test_missing_service_credential_short_circuits(self, make_executor):
        service = FakeCompletionService(flash_answer(), missing="NOTDIAMOND_API_KEY")
        result = await make_executor(service).execute_with_fallback(SUMMARY_PROMPT)
        assert result.error == "NOTDIAMOND_API_KEY is not configured."
        assert result.failure_kind == FailureKind.MISSING_CREDENTIALS
        assert service.calls == 0

    async def test_custom_overrides_reach_the_service(self, make_executor):
        service = FakeCompletionService(flash_answer())
        overrides = parse_custom_rules({"summarization": ["openai/gpt-4o"]})
        await make_executor(service).execute_with_fallback(SUMMARY_PROMPT, custom_overrides=overrides)
        assert [m.model_id for m in service.requests[0].candidates] == ["openai/gpt-4o"]

    def test_result_to_dict(self):
        result = FinalResult(error="x", failure_kind=FailureKind.NO_ROUTE)
        assert result.to_dict()["failure_kind"] == "no_route"
        assert result.to_dict()["success"] is False


class TestFromSettings:
    def test_builds_http_service_and_limits(self, api_settings_factory):
        settings = Settings(
            api=api_settings_factory(*ProviderType),
            router=RouterSettings(_env_file=None, max_attempts=3, request_timeout=12.0),
        )
        executor = FallbackExecutor.from_settings(settings)
        assert isinstance(executor.completion_service, NotDiamondCompletionService)
        assert executor.completion_service.missing_credential() is None
        assert executor.max_attempts == 3
        assert executor.request_timeout == 12.0
        assert executor.get_health_status() == {}


class TestErrorHeuristics:
    """Tests for the error-text helpers."""

    @pytest.mark.parametrize(
        "text",
        ["Insufficient funds", "QUOTA exceeded", "HTTP 402", "Rate limit reached", "billing issue"],
    )
    def test_exhaustion_indicators(self, text):
        assert is_provider_exhaustion_error(text)

    def test_other_errors_are_not_exhaustion(self):
        assert not is_provider_exhaustion_error("500 Internal Server Error")

    def test_guess_by_keyword(self):
        assert guess_failed_provider("Claude is overloaded") == ProviderType.ANTHROPIC
        assert guess_failed_provider("gpt-4o returned 429") == ProviderType.OPENAI
        assert guess_failed_provider("mixtral timeout") == ProviderType.MISTRAL

    def test_guess_returns_none_without_a_name(self):
        assert guess_failed_provider("connection reset") is None

    def test_candidates_are_checked_first(self, catalog):
        """Text naming two providers resolves to the one among the candidates."""
        candidates = [catalog.get("google/gemini-1.5-flash-latest")]
        assert guess_failed_provider("openai proxy reported gemini quota", candidates) == ProviderType.GOOGLE
