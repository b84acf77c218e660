"""Observability utilities for consistent Logfire logging.

Routing decisions, provider exclusions and circuit openings are emitted as
structured Logfire events once configure_telemetry() has run. Before that,
only the standard library logger sees them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

import logfire

if TYPE_CHECKING:
    from prompt_router.core.router import RoutingDecision

logger = logging.getLogger(__name__)

_telemetry_configured = False


def configure_telemetry(
    logfire_token: Optional[str] = None,
    service_name: str = "prompt-router",
    instrument_http: bool = True,
) -> None:
    """Configure Logfire once per process.

    Sends to Logfire only when a token is present; otherwise events stay local.
    """
    global _telemetry_configured
    if _telemetry_configured:
        return

    logfire.configure(
        service_name=service_name,
        send_to_logfire="if-token-present",
        token=logfire_token,
        inspect_arguments=False,
        console=False,
    )
    if instrument_http:
        try:
            logfire.instrument_httpx()
        except Exception as e:
            logger.debug(f"httpx instrumentation unavailable: {e}")

    _telemetry_configured = True
    logger.debug("Logfire telemetry configured")


def telemetry_enabled() -> bool:
    return _telemetry_configured


# =============================================================================
# ROUTING EVENTS
# =============================================================================


def log_routing_decision(
    decision: "RoutingDecision",
    actual_cost: Optional[float] = None,
    latency_ms: Optional[float] = None,
    success: bool = True,
    **extra_fields: Any,
) -> None:
    """Record the outcome of a routed request for analytics."""
    models = [m.model_id for m in decision.selected_models]
    logger.info(
        f"Routing {'succeeded' if success else 'failed'}: {decision.category.value}/"
        f"{decision.priority.value} -> {', '.join(models) or 'none'}"
    )
    if not _telemetry_configured:
        return

    try:
        logfire.info(
            "Routing decision: {category} ({priority}) → {models}",
            category=decision.category.value,
            priority=decision.priority.value,
            models=models,
            reasoning=decision.reasoning,
            estimated_cost=decision.estimated_cost,
            actual_cost=actual_cost,
            latency_ms=latency_ms,
            success=success,
            excluded_providers=[p.value for p in decision.excluded_providers],
            **extra_fields,
        )
    except Exception as e:
        logger.debug(f"Failed to log routing decision: {e}")


def log_provider_excluded(provider: str, reason: str, attempt: int) -> None:
    """Record that a provider was excluded for the rest of a request."""
    logger.info(f"Billing error detected for {provider}. Excluding and retrying (attempt {attempt}).")
    if not _telemetry_configured:
        return

    try:
        logfire.warn(
            "Provider excluded: {provider}",
            provider=provider,
            reason=reason,
            attempt=attempt,
        )
    except Exception as e:
        logger.debug(f"Failed to log provider exclusion: {e}")


def log_attempt_failed(attempt: int, provider: Optional[str], error: str) -> None:
    logger.warning(f"[Attempt {attempt} Failed] Error: {error}")
    if not _telemetry_configured:
        return

    try:
        logfire.warn(
            "Completion attempt {attempt} failed",
            attempt=attempt,
            provider=provider,
            error=error,
        )
    except Exception as e:
        logger.debug(f"Failed to log attempt failure: {e}")
