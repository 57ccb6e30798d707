"""Helpers built on the orchestrator's stateless request modes."""

from .evaluation import EvaluationResult, EvaluationService
from .prompt_generation import PromptGenerationService

__all__ = ["EvaluationResult", "EvaluationService", "PromptGenerationService"]
