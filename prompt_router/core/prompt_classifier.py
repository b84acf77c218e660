"""Prompt Classifier - Deterministic rule table mapping text to a category.

Rules are checked in a fixed precedence order and the first match wins, so a
prompt that mentions both a sum and a poem is always math_logic:

    math_logic > code_generation > summarization > translation > analysis
    > creative_writing > qa_complex > qa_simple > general_chat
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from prompt_router.core.model_catalog import PromptCategory

logger = logging.getLogger(__name__)

# Prompts longer than this are treated as complex questions
COMPLEX_QUESTION_LENGTH = 250


def _keywords(*words: str) -> "re.Pattern[str]":
    return re.compile(r"\b(" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)


@dataclass(frozen=True)
class ClassificationRule:
    """One category's match predicate."""

    category: PromptCategory
    matches: Callable[[str], bool]


_MATH_KEYWORDS = _keywords(
    "calculate", "solve", "equation", "math", "logic", "proof", "theorem",
    "integral", "derivative",
)
# A digit next to an arithmetic operator, e.g. "2+2", "x^2 *", "= 4"
_MATH_EXPRESSION = re.compile(r"\d\s*[-+*/^=]|[-+*/^=]\s*\d")

_CODE_MARKERS = re.compile(r"```|\bdef |\bfunction |\bclass |\bimport |<\w+>")
_CODE_KEYWORDS = _keywords(
    "code", "python", "javascript", "react", "sql", "debug", "fix", "implement",
)

_SUMMARY_KEYWORDS = _keywords(
    "summarize", "summarise", "tldr", "brief", "outline", "key points", "recap",
)
_TRANSLATION_KEYWORDS = _keywords("translate", "in french", "in spanish", "in german")
_ANALYSIS_KEYWORDS = _keywords(
    "analyze", "analyse", "analysis", "compare", "contrast", "evaluate", "assess",
)
_CREATIVE_KEYWORDS = _keywords("story", "poem", "creative", "narrative", "write a scene")
_COMPLEX_KEYWORDS = _keywords("explain in detail", "comprehensive", "thorough", "elaborate")
_SIMPLE_QUESTION = re.compile(r"\?|what is|how to|who was|why does", re.IGNORECASE)


DEFAULT_RULES: List[ClassificationRule] = [
    ClassificationRule(
        PromptCategory.MATH_LOGIC,
        lambda text: bool(_MATH_KEYWORDS.search(text) or _MATH_EXPRESSION.search(text)),
    ),
    ClassificationRule(
        PromptCategory.CODE_GENERATION,
        lambda text: bool(_CODE_MARKERS.search(text) or _CODE_KEYWORDS.search(text)),
    ),
    ClassificationRule(PromptCategory.SUMMARIZATION, lambda text: bool(_SUMMARY_KEYWORDS.search(text))),
    ClassificationRule(PromptCategory.TRANSLATION, lambda text: bool(_TRANSLATION_KEYWORDS.search(text))),
    ClassificationRule(PromptCategory.ANALYSIS, lambda text: bool(_ANALYSIS_KEYWORDS.search(text))),
    ClassificationRule(PromptCategory.CREATIVE_WRITING, lambda text: bool(_CREATIVE_KEYWORDS.search(text))),
    ClassificationRule(
        PromptCategory.QA_COMPLEX,
        lambda text: len(text) > COMPLEX_QUESTION_LENGTH or bool(_COMPLEX_KEYWORDS.search(text)),
    ),
    ClassificationRule(PromptCategory.QA_SIMPLE, lambda text: bool(_SIMPLE_QUESTION.search(text))),
]


class PromptClassifier:
    """Applies an ordered rule table; the first matching rule decides."""

    def __init__(
        self,
        rules: Optional[Sequence[ClassificationRule]] = None,
        default: PromptCategory = PromptCategory.GENERAL_CHAT,
    ):
        self._rules = list(DEFAULT_RULES if rules is None else rules)
        self._default = default

    @property
    def rules(self) -> List[ClassificationRule]:
        return list(self._rules)

    def classify(self, text: str) -> PromptCategory:
        if not text or not text.strip():
            return self._default
        for rule in self._rules:
            if rule.matches(text):
                logger.debug(f"Prompt classified as {rule.category.value}")
                return rule.category
        return self._default


_default_classifier = PromptClassifier()


def classify_prompt(text: str) -> PromptCategory:
    """Classify text with the default rule table. Never raises."""
    return _default_classifier.classify(text)
