"""Model Catalog - Static model descriptors and per-category preference lists.

The catalog is the leaf of the routing engine. It answers two questions:
1. What does a model cost, how good is it, how fast is it?
2. For a prompt category and a routing priority, which models do we prefer?

Prices are USD per million tokens. Quality and latency scores are ordinal
(higher is better / faster).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Token mix assumed when estimating a call before it is made
ASSUMED_INPUT_TOKENS = 500
ASSUMED_OUTPUT_TOKENS = 150


class PromptCategory(str, Enum):
    """Closed set of prompt categories produced by the classifier."""

    SUMMARIZATION = "summarization"
    CODE_GENERATION = "code_generation"
    QA_SIMPLE = "qa_simple"
    QA_COMPLEX = "qa_complex"
    CREATIVE_WRITING = "creative_writing"
    ANALYSIS = "analysis"
    TRANSLATION = "translation"
    MATH_LOGIC = "math_logic"
    GENERAL_CHAT = "general_chat"


class Priority(str, Enum):
    """What the caller wants to optimize for.

    Declaration order is the order used when topping up candidates.
    """

    COST = "cost"
    LATENCY = "latency"
    QUALITY = "quality"


class ProviderType(str, Enum):
    """External organizations hosting models."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    MISTRAL = "mistral"
    TOGETHERAI = "togetherai"

    @property
    def keywords(self) -> Tuple[str, ...]:
        """Lowercase words that identify this provider in error text."""
        return PROVIDER_KEYWORDS[self]


# Checked in declaration order when guessing a provider from an error message
PROVIDER_KEYWORDS: Dict[ProviderType, Tuple[str, ...]] = {
    ProviderType.ANTHROPIC: ("anthropic", "claude"),
    ProviderType.OPENAI: ("openai", "gpt-"),
    ProviderType.GOOGLE: ("google", "gemini"),
    ProviderType.MISTRAL: ("mistral", "mixtral"),
    ProviderType.TOGETHERAI: ("together",),
}


@dataclass(frozen=True)
class CompletionUsage:
    """Token usage reported by the completion service."""

    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class ModelDescriptor:
    """A (provider, model) pair with its pricing and ordinal scores."""

    model_id: str  # e.g. "openai/gpt-4o"
    provider: ProviderType
    quality: int
    latency: int
    input_price: float  # USD per 1M input tokens
    output_price: float  # USD per 1M output tokens

    @property
    def api_model_name(self) -> str:
        """Model name as the provider knows it (text after the first '/')."""
        _, sep, name = self.model_id.partition("/")
        return name if sep else self.model_id

    def cost_for(self, input_tokens: int, output_tokens: int) -> float:
        """Cost in USD of a call with the given token counts."""
        input_cost = (max(input_tokens, 0) / 1_000_000) * self.input_price
        output_cost = (max(output_tokens, 0) / 1_000_000) * self.output_price
        return input_cost + output_cost

    def to_dict(self) -> Dict[str, str]:
        return {"provider": self.provider.value, "model": self.model_id}


def _model(
    model_id: str,
    provider: ProviderType,
    quality: int,
    latency: int,
    input_price: float,
    output_price: float,
) -> ModelDescriptor:
    return ModelDescriptor(
        model_id=model_id,
        provider=provider,
        quality=quality,
        latency=latency,
        input_price=input_price,
        output_price=output_price,
    )


DEFAULT_MODELS: Tuple[ModelDescriptor, ...] = (
    # OpenAI
    _model("openai/gpt-4o", ProviderType.OPENAI, 9, 7, 5.00, 15.00),
    _model("openai/gpt-4-turbo", ProviderType.OPENAI, 10, 5, 10.00, 30.00),
    _model("openai/gpt-4o-mini", ProviderType.OPENAI, 7, 9, 0.15, 0.60),
    _model("openai/gpt-3.5-turbo", ProviderType.OPENAI, 6, 9, 0.50, 1.50),
    # Anthropic
    _model("anthropic/claude-3-5-sonnet-20240620", ProviderType.ANTHROPIC, 9, 7, 3.00, 15.00),
    _model("anthropic/claude-3-opus-20240229", ProviderType.ANTHROPIC, 10, 4, 15.00, 75.00),
    _model("anthropic/claude-3-haiku-20240307", ProviderType.ANTHROPIC, 7, 9, 0.25, 1.25),
    _model("anthropic/claude-3-5-haiku-20241022", ProviderType.ANTHROPIC, 8, 9, 1.00, 5.00),
    # Google
    _model("google/gemini-1.5-pro-latest", ProviderType.GOOGLE, 9, 7, 3.50, 10.50),
    _model("google/gemini-1.5-flash-latest", ProviderType.GOOGLE, 7, 10, 0.35, 1.05),
    # Mistral
    _model("mistral/mistral-large-latest", ProviderType.MISTRAL, 9, 7, 4.00, 12.00),
    _model("mistral/mistral-small-latest", ProviderType.MISTRAL, 7, 8, 1.00, 3.00),
    _model("mistral/open-mixtral-8x7b", ProviderType.MISTRAL, 8, 8, 0.70, 0.70),
    # TogetherAI
    _model(
        "togetherai/meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo",
        ProviderType.TOGETHERAI, 9, 7, 0.90, 0.90,
    ),
    _model("togetherai/Qwen/Qwen2.5-72B-Instruct", ProviderType.TOGETHERAI, 9, 7, 0.90, 0.90),
    _model(
        "togetherai/mistralai/Mixtral-8x7B-Instruct-v0.1",
        ProviderType.TOGETHERAI, 8, 8, 0.60, 0.60,
    ),
)


_FLASH = "google/gemini-1.5-flash-latest"
_GEMINI_PRO = "google/gemini-1.5-pro-latest"
_HAIKU = "anthropic/claude-3-haiku-20240307"
_HAIKU_35 = "anthropic/claude-3-5-haiku-20241022"
_SONNET = "anthropic/claude-3-5-sonnet-20240620"
_OPUS = "anthropic/claude-3-opus-20240229"
_GPT4O = "openai/gpt-4o"
_GPT4O_MINI = "openai/gpt-4o-mini"
_GPT4_TURBO = "openai/gpt-4-turbo"
_GPT35 = "openai/gpt-3.5-turbo"
_MIXTRAL = "mistral/open-mixtral-8x7b"
_MISTRAL_LARGE = "mistral/mistral-large-latest"
_QWEN = "togetherai/Qwen/Qwen2.5-72B-Instruct"


# Most-preferred first
DEFAULT_ROUTING_RULES: Dict[PromptCategory, Dict[Priority, Tuple[str, ...]]] = {
    PromptCategory.GENERAL_CHAT: {
        Priority.COST: (_FLASH, _HAIKU, _GPT35),
        Priority.LATENCY: (_FLASH, _HAIKU_35, _GPT4O_MINI),
        Priority.QUALITY: (_SONNET, _GPT4O, _GEMINI_PRO),
    },
    PromptCategory.CODE_GENERATION: {
        Priority.COST: (_HAIKU, _MIXTRAL, _GPT4O_MINI),
        Priority.LATENCY: (_HAIKU_35, _FLASH, _GPT4O_MINI),
        Priority.QUALITY: (_GPT4_TURBO, _OPUS, _QWEN),
    },
    PromptCategory.SUMMARIZATION: {
        Priority.COST: (_HAIKU, _FLASH, _GPT35),
        Priority.LATENCY: (_FLASH, _HAIKU_35, _GPT4O_MINI),
        Priority.QUALITY: (_GPT4_TURBO, _SONNET, _GEMINI_PRO),
    },
    PromptCategory.QA_SIMPLE: {
        Priority.COST: (_FLASH, _HAIKU, _GPT35),
        Priority.LATENCY: (_FLASH, _HAIKU_35, _GPT4O_MINI),
        Priority.QUALITY: (_SONNET, _GPT4O, _GEMINI_PRO),
    },
    PromptCategory.QA_COMPLEX: {
        Priority.COST: (_SONNET, _GPT4O, _GEMINI_PRO),
        Priority.LATENCY: (_GPT4O, _SONNET, _GEMINI_PRO),
        Priority.QUALITY: (_GPT4_TURBO, _OPUS, _GEMINI_PRO),
    },
    PromptCategory.CREATIVE_WRITING: {
        Priority.COST: (_HAIKU, _MIXTRAL, _GPT4O_MINI),
        Priority.LATENCY: (_HAIKU_35, _FLASH, _GPT4O),
        Priority.QUALITY: (_OPUS, _GPT4_TURBO, _MISTRAL_LARGE),
    },
    PromptCategory.ANALYSIS: {
        Priority.COST: (_SONNET, _GEMINI_PRO, _GPT4O),
        Priority.LATENCY: (_GEMINI_PRO, _SONNET, _GPT4O),
        Priority.QUALITY: (_GPT4_TURBO, _OPUS, _GEMINI_PRO),
    },
    PromptCategory.TRANSLATION: {
        Priority.COST: (_FLASH, _HAIKU, _GPT35),
        Priority.LATENCY: (_FLASH, _HAIKU_35, _GPT4O_MINI),
        Priority.QUALITY: (_GPT4O, _GEMINI_PRO, _SONNET),
    },
    PromptCategory.MATH_LOGIC: {
        Priority.COST: (_GEMINI_PRO, _SONNET, _GPT4O),
        Priority.LATENCY: (_FLASH, _GPT4O, _GEMINI_PRO),
        Priority.QUALITY: (_GPT4_TURBO, _OPUS, _GEMINI_PRO),
    },
}


class ModelCatalog:
    """Read-only lookup over model descriptors and routing preference lists.

    Validates at construction that every preference entry names a known
    model, so lookups during routing never miss.
    """

    def __init__(
        self,
        models: Optional[Iterable[ModelDescriptor]] = None,
        routing_rules: Optional[Dict[PromptCategory, Dict[Priority, Tuple[str, ...]]]] = None,
        assumed_input_tokens: int = ASSUMED_INPUT_TOKENS,
        assumed_output_tokens: int = ASSUMED_OUTPUT_TOKENS,
    ):
        descriptors = DEFAULT_MODELS if models is None else tuple(models)
        self._models: Dict[str, ModelDescriptor] = {m.model_id: m for m in descriptors}
        self._rules = DEFAULT_ROUTING_RULES if routing_rules is None else routing_rules
        self.assumed_input_tokens = assumed_input_tokens
        self.assumed_output_tokens = assumed_output_tokens
        self._validate()

    def _validate(self) -> None:
        for category, by_priority in self._rules.items():
            for priority, model_ids in by_priority.items():
                unknown = [m for m in model_ids if m not in self._models]
                if unknown:
                    raise ValueError(
                        f"Routing rule {category.value}/{priority.value} references "
                        f"unknown models: {', '.join(unknown)}"
                    )

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def get(self, model_id: str) -> Optional[ModelDescriptor]:
        return self._models.get(model_id)

    def models(self) -> List[ModelDescriptor]:
        """All descriptors in catalog order."""
        return list(self._models.values())

    def models_for_provider(self, provider: ProviderType) -> List[ModelDescriptor]:
        return [m for m in self._models.values() if m.provider == provider]

    def preference_list(self, category: PromptCategory, priority: Priority) -> List[ModelDescriptor]:
        """Ordered descriptors for (category, priority), most preferred first."""
        model_ids = self._rules.get(category, {}).get(priority, ())
        return [self._models[m] for m in model_ids]

    def resolve(self, provider: str, api_model_name: str) -> Optional[ModelDescriptor]:
        """Map a provider-reported model back to its catalog entry.

        Accepts either the bare API model name or the full catalog id.
        """
        if api_model_name in self._models:
            return self._models[api_model_name]
        for descriptor in self._models.values():
            if descriptor.provider.value == provider and descriptor.api_model_name == api_model_name:
                return descriptor
        logger.debug(f"No catalog entry for {provider}/{api_model_name}")
        return None

    def estimate_cost(self, model_id: str) -> float:
        """Pre-call cost estimate using the assumed token mix."""
        descriptor = self._models.get(model_id)
        if descriptor is None:
            return 0.0
        return descriptor.cost_for(self.assumed_input_tokens, self.assumed_output_tokens)

    def actual_cost(self, model_id: str, usage: CompletionUsage) -> float:
        """Post-call cost from reported usage."""
        descriptor = self._models.get(model_id)
        if descriptor is None:
            return 0.0
        return descriptor.cost_for(usage.input_tokens, usage.output_tokens)
