"""Prompt Router - Priority-based candidate selection.

Routes a classified prompt to an ordered list of candidate models:
1. Take the catalog's preference list for (category, priority)
2. Drop models without credentials, excluded providers, providers in cooldown
3. Top up from the other priorities' lists until at least 3 candidates
4. Cap at 5 candidates
5. Apply caller-supplied custom overrides, if any resolve
6. Estimate the cost as the mean of the candidates' estimated costs

An empty selection is a valid decision; the executor reports it as
"no route available".
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from prompt_router.core.credential_availability import CredentialChecker
from prompt_router.core.health_tracker import HealthTracker
from prompt_router.core.model_catalog import (
    ModelCatalog,
    ModelDescriptor,
    Priority,
    PromptCategory,
    ProviderType,
)
from prompt_router.core.prompt_classifier import classify_prompt

logger = logging.getLogger(__name__)

DEFAULT_MIN_CANDIDATES = 3
DEFAULT_MAX_CANDIDATES = 5

# Category name -> ordered model ids supplied by the caller
CustomOverrides = Mapping[PromptCategory, Sequence[str]]


@dataclass
class RoutingDecision:
    """Result of a routing call."""

    category: PromptCategory
    selected_models: List[ModelDescriptor]
    reasoning: str
    estimated_cost: float
    priority: Priority
    excluded_providers: Tuple[ProviderType, ...] = ()
    custom_rules_applied: bool = False

    @property
    def providers(self) -> List[ProviderType]:
        return [m.provider for m in self.selected_models]

    @property
    def is_empty(self) -> bool:
        return not self.selected_models

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "priority": self.priority.value,
            "selected_models": [m.to_dict() for m in self.selected_models],
            "reasoning": self.reasoning,
            "estimated_cost": self.estimated_cost,
            "excluded_providers": [p.value for p in self.excluded_providers],
            "custom_rules_applied": self.custom_rules_applied,
        }


def select_candidates(
    catalog: ModelCatalog,
    category: PromptCategory,
    priority: Priority,
    is_eligible: Callable[[ModelDescriptor], bool],
    min_candidates: int = DEFAULT_MIN_CANDIDATES,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
) -> List[ModelDescriptor]:
    """Build the ordered candidate list for (category, priority).

    Pure apart from the reads done by ``is_eligible``. The selected priority's
    list comes first, then top-ups from the other priorities in enum order.
    """
    selected = [m for m in catalog.preference_list(category, priority) if is_eligible(m)]

    if len(selected) < min_candidates:
        seen = {m.model_id for m in selected}
        for other in Priority:
            if other == priority:
                continue
            for model in catalog.preference_list(category, other):
                if len(selected) >= min_candidates:
                    break
                if model.model_id in seen or not is_eligible(model):
                    continue
                selected.append(model)
                seen.add(model.model_id)

    return selected[:max_candidates]


def mean_estimated_cost(catalog: ModelCatalog, models: Iterable[ModelDescriptor]) -> float:
    costs = [catalog.estimate_cost(m.model_id) for m in models]
    if not costs:
        return 0.0
    return max(sum(costs) / len(costs), 0.0)


def format_reasoning(category: PromptCategory, priority: Priority, models: Sequence[ModelDescriptor]) -> str:
    names = ", ".join(m.model_id for m in models)
    return (
        f"Classified as {category.value}. Optimizing for {priority.value}. "
        f"Selected {len(models)} models: {names}."
    )


class PromptRouter:
    """Chooses candidate models using the catalog, credentials and provider health."""

    def __init__(
        self,
        catalog: ModelCatalog,
        health_tracker: HealthTracker,
        credential_checker: CredentialChecker,
        min_candidates: int = DEFAULT_MIN_CANDIDATES,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ):
        self.catalog = catalog
        self.health_tracker = health_tracker
        self.credential_checker = credential_checker
        self.min_candidates = min_candidates
        self.max_candidates = max_candidates

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        health_tracker: HealthTracker,
        credential_checker: Optional[CredentialChecker] = None,
    ) -> "PromptRouter":
        """Build a router from the aggregate Settings."""
        catalog = ModelCatalog(
            assumed_input_tokens=settings.router.assumed_input_tokens,
            assumed_output_tokens=settings.router.assumed_output_tokens,
        )
        return cls(
            catalog=catalog,
            health_tracker=health_tracker,
            credential_checker=credential_checker or CredentialChecker(settings.api),
            min_candidates=settings.router.min_candidates,
            max_candidates=settings.router.max_candidates,
        )

    def _eligibility(self, excluded: Iterable[ProviderType]) -> Callable[[ModelDescriptor], bool]:
        excluded_set = frozenset(excluded)

        def is_eligible(model: ModelDescriptor) -> bool:
            return (
                model.provider not in excluded_set
                and self.credential_checker.has_credentials(model.provider)
                and self.health_tracker.is_available(model.provider)
            )

        return is_eligible

    def route(
        self,
        category: PromptCategory,
        priority: Priority,
        excluded_providers: Iterable[ProviderType] = (),
        custom_overrides: Optional[CustomOverrides] = None,
    ) -> RoutingDecision:
        excluded = tuple(dict.fromkeys(excluded_providers))
        is_eligible = self._eligibility(excluded)

        selected = select_candidates(
            self.catalog,
            category,
            priority,
            is_eligible,
            min_candidates=self.min_candidates,
            max_candidates=self.max_candidates,
        )
        reasoning = format_reasoning(category, priority, selected)

        custom_rules_applied = False
        if custom_overrides and custom_overrides.get(category):
            overrides = self._resolve_overrides(custom_overrides[category], is_eligible)
            overrides = overrides[: self.max_candidates]
            if overrides:
                selected = overrides
                reasoning += " Applied custom rules."
                custom_rules_applied = True
            else:
                logger.info(f"Custom rules for {category.value} have no available models; ignoring")

        decision = RoutingDecision(
            category=category,
            selected_models=selected,
            reasoning=reasoning,
            estimated_cost=mean_estimated_cost(self.catalog, selected),
            priority=priority,
            excluded_providers=excluded,
            custom_rules_applied=custom_rules_applied,
        )
        logger.debug(decision.reasoning)
        return decision

    def _resolve_overrides(
        self,
        model_ids: Sequence[str],
        is_eligible: Callable[[ModelDescriptor], bool],
    ) -> List[ModelDescriptor]:
        resolved: List[ModelDescriptor] = []
        for model_id in dict.fromkeys(model_ids):
            model = self.catalog.get(model_id)
            if model is None:
                logger.warning(f"Custom rule references unknown model {model_id}")
                continue
            if is_eligible(model):
                resolved.append(model)
        return resolved

    def route_prompt(
        self,
        prompt: str,
        priority: Priority = Priority.COST,
        excluded_providers: Iterable[ProviderType] = (),
        custom_overrides: Optional[CustomOverrides] = None,
    ) -> RoutingDecision:
        """Classify the prompt, then route it."""
        return self.route(classify_prompt(prompt), priority, excluded_providers, custom_overrides)
