"""
Model capability rules for chat completion requests.

Reasoning-family models reject the sampling parameters that other chat models
accept, so requests aimed at them must drop temperature and max tokens.
Detection is by name substring because providers append release dates and
version suffixes to the model identifier.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.chat.models import ProviderSettings

logger = logging.getLogger(__name__)

# Scanned in order; any hit marks the model as reasoning-family
ADVANCED_REASONING_MARKERS: tuple[str, ...] = ("o1", "gpt-5")


def is_advanced_reasoning_model(model_name: str | None) -> bool:
    """Check whether a model name belongs to the reasoning family (case-insensitive)."""
    if not model_name:
        return False
    folded = model_name.casefold()
    return any(marker in folded for marker in ADVANCED_REASONING_MARKERS)


def sampling_parameters(model_name: str | None, settings: ProviderSettings) -> dict[str, Any]:
    """
    Get the sampling parameters a request to ``model_name`` may carry.

    Returns:
        Empty dict for reasoning-family models, otherwise the configured
        temperature and max output tokens.
    """
    if is_advanced_reasoning_model(model_name):
        logger.debug("Omitting sampling parameters for reasoning model '%s'", model_name)
        return {}
    return {
        "temperature": settings.temperature,
        "max_tokens": settings.max_tokens,
    }
