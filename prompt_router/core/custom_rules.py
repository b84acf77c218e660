"""Custom routing rules supplied by the caller.

A rules file is a JSON object mapping category names to ordered model ids:

    {"code_generation": ["openai/gpt-4o", "anthropic/claude-3-opus-20240229"]}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from pydantic import TypeAdapter, ValidationError

from prompt_router.core.model_catalog import PromptCategory

logger = logging.getLogger(__name__)

_RULES_ADAPTER = TypeAdapter(Dict[PromptCategory, List[str]])


def parse_custom_rules(data: Mapping[str, Any]) -> Dict[PromptCategory, List[str]]:
    """Validate an in-memory category -> model ids mapping.

    Raises:
        ValueError: If a category is unknown or a value is not a list of strings.
    """
    try:
        rules = _RULES_ADAPTER.validate_python(dict(data))
    except ValidationError as e:
        raise ValueError(f"Invalid custom rules: {e}") from e
    return {category: models for category, models in rules.items() if models}


def load_custom_rules(path: Union[str, Path]) -> Dict[PromptCategory, List[str]]:
    """Read and validate a JSON rules file."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in custom rules file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Custom rules file {path} must contain a JSON object")

    rules = parse_custom_rules(data)
    logger.info(f"Loaded custom rules for {len(rules)} categories from {path}")
    return rules
