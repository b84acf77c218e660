"""Health Tracker - Per-provider circuit breaker shared across requests.

Tracks consecutive failures per provider:
1. Each failure increments the provider's failure count
2. Reaching the threshold puts the provider in cooldown
3. Any success resets the count and clears the cooldown

A provider in cooldown is unavailable regardless of its failure count.
State lives in process memory only and is lost on restart.
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from prompt_router.core.model_catalog import ProviderType

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_COOLDOWN_SECONDS = 5 * 60


@dataclass(frozen=True)
class ProviderHealthState:
    """Failure state of one provider. Replaced, never mutated."""

    failure_count: int = 0
    cooldown_until: Optional[float] = None  # epoch seconds

    def in_cooldown(self, now: float) -> bool:
        return self.cooldown_until is not None and self.cooldown_until > now

    def to_dict(self) -> Dict[str, Any]:
        return {"failure_count": self.failure_count, "cooldown_until": self.cooldown_until}


class HealthTracker:
    """Process-wide provider health, injected into the router and executor.

    Operations on a single provider are serialized by a per-provider lock.
    Readers of snapshot() never take those locks: each provider's state is an
    immutable record swapped in whole.
    """

    def __init__(
        self,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._states: Dict[ProviderType, ProviderHealthState] = {}
        self._locks: Dict[ProviderType, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Any, clock: Callable[[], float] = time.time) -> "HealthTracker":
        """Build a tracker from RouterSettings."""
        return cls(
            failure_threshold=settings.failure_threshold,
            cooldown_seconds=settings.cooldown_seconds,
            clock=clock,
        )

    def _lock_for(self, provider: ProviderType) -> threading.Lock:
        lock = self._locks.get(provider)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(provider, threading.Lock())
        return lock

    def report_failure(self, provider: ProviderType) -> ProviderHealthState:
        """Record a failure; opens the circuit once the threshold is reached."""
        with self._lock_for(provider):
            state = self._states.get(provider, ProviderHealthState())
            failure_count = state.failure_count + 1
            cooldown_until = state.cooldown_until
            if failure_count >= self.failure_threshold:
                cooldown_until = self._clock() + self.cooldown_seconds
                logger.warning(
                    f"Provider {provider.value} failed {failure_count} times; "
                    f"cooling down for {self.cooldown_seconds:.0f}s"
                )
            else:
                logger.info(f"Provider {provider.value} failure {failure_count}/{self.failure_threshold}")
            new_state = replace(state, failure_count=failure_count, cooldown_until=cooldown_until)
            self._states[provider] = new_state
            return new_state

    def report_success(self, provider: ProviderType) -> None:
        """Reset the provider's failure state, if it has any."""
        with self._lock_for(provider):
            state = self._states.get(provider)
            if state is None:
                return
            if state.failure_count or state.cooldown_until is not None:
                logger.info(f"Provider {provider.value} recovered")
            self._states[provider] = ProviderHealthState()

    def is_available(self, provider: ProviderType) -> bool:
        with self._lock_for(provider):
            state = self._states.get(provider)
            return state is None or not state.in_cooldown(self._clock())

    def get_state(self, provider: ProviderType) -> Optional[ProviderHealthState]:
        return self._states.get(provider)

    def snapshot(self) -> Dict[str, ProviderHealthState]:
        """Read-only copy of all provider states, keyed by provider name."""
        return {provider.value: state for provider, state in list(self._states.items())}

    def get_status(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot with availability, for status views."""
        now = self._clock()
        return {
            provider.value: {**state.to_dict(), "available": not state.in_cooldown(now)}
            for provider, state in list(self._states.items())
        }

    def reset(self) -> None:
        """Forget all provider state.

        Each provider is cleared under its own lock, so an update already in
        flight finishes first and is then discarded.
        """
        with self._registry_lock:
            locks = list(self._locks.items())
        for provider, lock in locks:
            with lock:
                self._states.pop(provider, None)
        logger.info("Health tracker reset")
