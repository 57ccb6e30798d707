"""
Chat Logging Utilities

Shared logging helpers with feature control.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

logger = logging.getLogger(__name__)

# module -> feature -> enabled, filled by src.main.configure_logging
_module_features: dict[str, dict[str, bool]] = {}

# Features that are on unless configuration turns them off
_DEFAULT_FEATURES: dict[str, dict[str, bool]] = {
    "usage": {"usage_stats": True},
}


def set_module_features(module: str, features: dict[str, bool]) -> None:
    """Store feature flags for a module."""
    _module_features[module] = dict(features)


def reset_module_features() -> None:
    _module_features.clear()


def should_log_feature(module: str, feature: str) -> bool:
    """
    Check if a specific logging feature should be enabled.

    Uses cached feature flags for better performance during runtime.
    """
    module_features = _module_features.get(module)
    if module_features is not None and feature in module_features:
        return bool(module_features[feature])
    return _DEFAULT_FEATURES.get(module, {}).get(feature, False)


def log_llm_reply(text: str, model: str, context: str, truncate_length: int = 500) -> None:
    """
    LLM reply logging with feature control and truncation.

    Args:
        text: Reply text returned by the model
        model: Model name the provider reported
        context: Descriptive context for the log entry
        truncate_length: Maximum number of reply characters logged
    """
    if not should_log_feature("chat", "llm_replies"):
        return

    if len(text) > truncate_length:
        text = text[:truncate_length] + "..."

    logger.info(" | ".join([f"LLM Reply ({context}):", f"Content: {text}", f"Model: {model}"]))


def log_usage_stats(
    input_tokens: int,
    output_tokens: int,
    elapsed_seconds: float,
    cost: Decimal,
    average_latency_seconds: float,
    session_cost: Decimal,
) -> None:
    """
    Emit one usage record for a completed request.

    The numbers travel in ``extra["usage"]`` for structured handlers and in
    the message for plain console output.
    """
    if not should_log_feature("usage", "usage_stats"):
        return

    usage: dict[str, Any] = {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "elapsed_seconds": round(elapsed_seconds, 3),
        "cost": str(cost),
        "average_latency_seconds": round(average_latency_seconds, 3),
        "session_cost": str(session_cost),
    }
    logging.getLogger("src.usage").info(
        "💰 Stats: In=%d, Out=%d, Time=%.1fs | Cost=$%.4f | Avg Latency=%.1fs | Session=$%.4f",
        input_tokens,
        output_tokens,
        elapsed_seconds,
        cost,
        average_latency_seconds,
        session_cost,
        extra={"usage": usage},
    )


def log_directional_flow(direction: str, component: str, message: str, *args: Any) -> None:
    """
    Log directional flow messages with consistent arrow formatting.

    Args:
        direction: Either "→" (outgoing) or "←" (incoming/completed)
        component: Component name (e.g., "LLM", "Conversation")
        message: Message template with optional format placeholders
        *args: Arguments for message formatting
    """
    formatted_msg = message % args if args else message
    logger.info(f"{direction} {component}: {formatted_msg}")


def log_error_with_context(context: str, error: BaseException) -> None:
    """
    Log errors with consistent formatting across the application.

    Args:
        context: Descriptive context of where the error occurred
        error: The exception that was raised
    """
    logger.error(f"Error {context}: {type(error).__name__}: {error}", exc_info=error)
