import importlib.metadata

try:
    _detected_version = importlib.metadata.version("prompt-router")
    __version__ = _detected_version if _detected_version else "0.0.0-dev"
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"

# Settings first: it only depends on model_catalog
from prompt_router.settings import (
    APISettings,
    RouterSettings,
    Settings,
    clear_settings_cache,
    get_api_settings,
    get_settings,
)
from prompt_router.core.model_catalog import (
    CompletionUsage,
    ModelCatalog,
    ModelDescriptor,
    Priority,
    PromptCategory,
    ProviderType,
)
from prompt_router.core.prompt_classifier import PromptClassifier, classify_prompt
from prompt_router.core.credential_availability import CredentialChecker
from prompt_router.core.health_tracker import HealthTracker, ProviderHealthState
from prompt_router.core.router import PromptRouter, RoutingDecision, select_candidates
from prompt_router.core.custom_rules import load_custom_rules, parse_custom_rules
from prompt_router.core.completion_service import (
    CompletionRequest,
    CompletionResult,
    CompletionService,
    CompletionServiceError,
    NotDiamondCompletionService,
)
from prompt_router.core.fallback_executor import (
    FailureKind,
    FallbackExecutor,
    FinalResult,
    guess_failed_provider,
    is_provider_exhaustion_error,
)

__all__ = [
    "__version__",
    # Settings
    "APISettings",
    "RouterSettings",
    "Settings",
    "clear_settings_cache",
    "get_api_settings",
    "get_settings",
    # Catalog
    "CompletionUsage",
    "ModelCatalog",
    "ModelDescriptor",
    "Priority",
    "PromptCategory",
    "ProviderType",
    # Classification
    "PromptClassifier",
    "classify_prompt",
    # Routing
    "CredentialChecker",
    "HealthTracker",
    "ProviderHealthState",
    "PromptRouter",
    "RoutingDecision",
    "select_candidates",
    "load_custom_rules",
    "parse_custom_rules",
    # Execution
    "CompletionRequest",
    "CompletionResult",
    "CompletionService",
    "CompletionServiceError",
    "NotDiamondCompletionService",
    "FailureKind",
    "FallbackExecutor",
    "FinalResult",
    "guess_failed_provider",
    "is_provider_exhaustion_error",
]
