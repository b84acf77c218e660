"""Fallback Executor - Bounded retry loop that re-routes around failing providers.

State machine per request (sequential, never fanned out):

    Routing --(no candidates)--> Exhausted
    Routing --> Calling --(success)--> Success
    Calling --(billing/quota/rate limit, provider not yet excluded,
               attempts left)--> Routing with provider excluded
    Calling --(anything else)--> Exhausted

At most ``max_attempts`` completion calls are made per request. Every
failure is reported to the HealthTracker; every success resets the provider
that actually answered.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from prompt_router.core.completion_service import (
    CompletionRequest,
    CompletionResult,
    CompletionService,
    CompletionServiceError,
    NotDiamondCompletionService,
)
from prompt_router.core.health_tracker import HealthTracker, ProviderHealthState
from prompt_router.core.model_catalog import (
    PROVIDER_KEYWORDS,
    ModelDescriptor,
    Priority,
    ProviderType,
)
from prompt_router.core.observability import (
    log_attempt_failed,
    log_provider_excluded,
    log_routing_decision,
)
from prompt_router.core.prompt_classifier import classify_prompt
from prompt_router.core.router import CustomOverrides, PromptRouter, RoutingDecision
from prompt_router.settings import PROVIDER_KEY_ENV_VARS

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5

# Substrings that mark a provider as out of credit, over quota or rate limited
EXHAUSTION_INDICATORS = (
    "credit",
    "quota",
    "billing",
    "429",
    "402",
    "insufficient funds",
    "rate limit",
)


class FailureKind(str, Enum):
    """Why a request ended without content."""

    INVALID_INPUT = "invalid_input"
    MISSING_CREDENTIALS = "missing_credentials"
    NO_ROUTE = "no_route"
    PROVIDER_EXHAUSTED = "provider_exhausted"
    SERVICE_ERROR = "service_error"


@dataclass
class FinalResult:
    """Outcome of execute_with_fallback: content, or an error with diagnostics."""

    routing_decision: Optional[RoutingDecision] = None
    content: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    actual_cost: Optional[float] = None
    latency_ms: Optional[float] = None
    attempts: int = 0
    error: Optional[str] = None
    failure_kind: Optional[FailureKind] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "content": self.content,
            "provider": self.provider,
            "model": self.model,
            "actual_cost": self.actual_cost,
            "latency_ms": self.latency_ms,
            "attempts": self.attempts,
            "error": self.error,
            "failure_kind": self.failure_kind.value if self.failure_kind else None,
            "routing_decision": self.routing_decision.to_dict() if self.routing_decision else None,
        }


def is_provider_exhaustion_error(error_text: str) -> bool:
    """Check if an error message looks like billing, quota or rate limiting."""
    error_lower = error_text.lower()
    return any(indicator in error_lower for indicator in EXHAUSTION_INDICATORS)


def guess_failed_provider(
    error_text: str,
    candidates: Sequence[ModelDescriptor] = (),
) -> Optional[ProviderType]:
    """Best-effort guess at which provider an error message is about.

    Providers among the candidates are checked first, then all others.
    Returns None when no provider name appears in the text.
    """
    error_lower = error_text.lower()
    ordered = list(dict.fromkeys([m.provider for m in candidates] + list(PROVIDER_KEYWORDS)))
    for provider in ordered:
        if any(keyword in error_lower for keyword in PROVIDER_KEYWORDS[provider]):
            return provider
    return None


def _to_provider(name: Optional[str]) -> Optional[ProviderType]:
    if not name:
        return None
    try:
        return ProviderType(name.lower())
    except ValueError:
        return None


class FallbackExecutor:
    """Runs a prompt through routing and the completion service with fallback."""

    def __init__(
        self,
        router: PromptRouter,
        health_tracker: HealthTracker,
        completion_service: CompletionService,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        request_timeout: Optional[float] = None,
    ):
        self.router = router
        self.health_tracker = health_tracker
        self.completion_service = completion_service
        self.max_attempts = max_attempts
        self.request_timeout = request_timeout

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        completion_service: Optional[CompletionService] = None,
        health_tracker: Optional[HealthTracker] = None,
    ) -> "FallbackExecutor":
        """Assemble tracker, router and completion client from Settings."""
        health_tracker = health_tracker or HealthTracker.from_settings(settings.router)
        router = PromptRouter.from_settings(settings, health_tracker)
        if completion_service is None:
            completion_service = NotDiamondCompletionService.from_settings(settings)
        return cls(
            router=router,
            health_tracker=health_tracker,
            completion_service=completion_service,
            max_attempts=settings.router.max_attempts,
            request_timeout=settings.router.request_timeout,
        )

    def get_health_status(self) -> Dict[str, ProviderHealthState]:
        """Read-only provider health snapshot for status views."""
        return self.health_tracker.snapshot()

    async def _call_service(self, request: CompletionRequest) -> CompletionResult:
        call = self.completion_service.complete(request)
        if self.request_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            raise CompletionServiceError(
                f"Completion request timed out after {self.request_timeout:.0f}s"
            ) from e

    def _build_success(
        self,
        decision: RoutingDecision,
        result: CompletionResult,
        attempts: int,
        started: float,
    ) -> FinalResult:
        latency_ms = (time.monotonic() - started) * 1000
        catalog = self.router.catalog

        descriptor = catalog.resolve(result.provider or "", result.model or "")
        if result.usage is not None and descriptor is not None:
            actual_cost = catalog.actual_cost(descriptor.model_id, result.usage)
        else:
            actual_cost = decision.estimated_cost

        provider = _to_provider(result.provider)
        if provider is not None:
            self.health_tracker.report_success(provider)
        else:
            logger.warning(f"Completion answered by unknown provider {result.provider!r}")

        log_routing_decision(decision, actual_cost=actual_cost, latency_ms=latency_ms, success=True)
        return FinalResult(
            routing_decision=decision,
            content=result.content,
            provider=result.provider,
            model=descriptor.model_id if descriptor else result.model,
            actual_cost=actual_cost,
            latency_ms=latency_ms,
            attempts=attempts,
        )

    async def execute_with_fallback(
        self,
        prompt: str,
        priority: Priority = Priority.COST,
        custom_overrides: Optional[CustomOverrides] = None,
    ) -> FinalResult:
        """Route and complete a prompt, retrying around exhausted providers.

        Never raises for request-level failures; the returned FinalResult
        carries the error, its kind and the last routing decision.
        """
        started = time.monotonic()

        if not prompt or not prompt.strip():
            return FinalResult(error="Prompt cannot be empty.", failure_kind=FailureKind.INVALID_INPUT)

        missing = self.completion_service.missing_credential()
        if missing:
            return FinalResult(
                error=f"{missing} is not configured.",
                failure_kind=FailureKind.MISSING_CREDENTIALS,
            )

        category = classify_prompt(prompt)
        excluded: List[ProviderType] = []
        attempts = 0
        decision: Optional[RoutingDecision] = None

        while True:
            decision = self.router.route(category, priority, excluded, custom_overrides)

            if decision.is_empty:
                excluded_names = ", ".join(p.value for p in excluded) or "none"
                error = (
                    f"No models available for {category.value} with priority {priority.value} "
                    f"(excluded providers: {excluded_names})."
                )
                if not self.router.credential_checker.credentialed_providers():
                    error += (
                        " No provider API key is configured; set one of "
                        f"{', '.join(PROVIDER_KEY_ENV_VARS.values())}."
                    )
                else:
                    error += " Please check API keys or billing."
                log_routing_decision(decision, latency_ms=(time.monotonic() - started) * 1000, success=False)
                return FinalResult(
                    routing_decision=decision,
                    attempts=attempts,
                    error=error,
                    failure_kind=FailureKind.NO_ROUTE,
                )

            attempts += 1
            logger.info(
                f"[Attempt {attempts}] Routing with models: "
                f"{', '.join(m.model_id for m in decision.selected_models)}"
            )

            try:
                result = await self._call_service(
                    CompletionRequest(prompt=prompt, candidates=list(decision.selected_models))
                )
                if result.error:
                    raise CompletionServiceError(result.error)
                if not result.provider:
                    raise CompletionServiceError("Routing was successful, but no model provider was returned.")
            except Exception as e:
                error_message = str(e) or type(e).__name__

                failed_provider = guess_failed_provider(error_message, decision.selected_models)
                if failed_provider is None:
                    failed_provider = decision.selected_models[0].provider
                self.health_tracker.report_failure(failed_provider)
                log_attempt_failed(attempts, failed_provider.value, error_message)

                exhausted = is_provider_exhaustion_error(error_message)
                if exhausted and failed_provider not in excluded and attempts < self.max_attempts:
                    log_provider_excluded(failed_provider.value, error_message, attempts)
                    excluded.append(failed_provider)
                    continue

                if exhausted and attempts >= self.max_attempts:
                    error = (
                        f"All routing attempts failed after {attempts} attempts. "
                        f"Last error: {error_message}"
                    )
                else:
                    error = f"Routing failed: {error_message}"

                log_routing_decision(
                    decision,
                    latency_ms=(time.monotonic() - started) * 1000,
                    success=False,
                )
                return FinalResult(
                    routing_decision=decision,
                    attempts=attempts,
                    error=error,
                    failure_kind=FailureKind.PROVIDER_EXHAUSTED if exhausted else FailureKind.SERVICE_ERROR,
                )

            return self._build_success(decision, result, attempts, started)
