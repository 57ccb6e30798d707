"""
Response evaluation.

An LLM judge scores an assistant reply against the user input and optional
criteria. The judge answers in JSON mode, parsed into EvaluationResult.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from src.chat.chat_orchestrator import ChatOrchestrator

logger = logging.getLogger(__name__)

JUDGE_PROMPT = """You are a strict evaluator of AI assistant responses.
Score the response from 0 to 100 for how well it answers the user input and satisfies the criteria.
Reply with a JSON object only: {"score": <integer 0-100>, "reasoning": "<one short paragraph>"}"""


class EvaluationResult(BaseModel):
    """Judge verdict for one response."""

    score: int = Field(ge=0, le=100)
    reasoning: str = ""


class EvaluationService:
    """Scores responses with the orchestrator's structured mode."""

    def __init__(self, orchestrator: ChatOrchestrator):
        self.orchestrator = orchestrator

    async def evaluate(
        self,
        user_input: str,
        response: str,
        criteria: str | None = None,
    ) -> EvaluationResult:
        parts = [f"User input:\n{user_input}", f"Response:\n{response}"]
        if criteria:
            parts.append(f"Criteria:\n{criteria}")

        logger.info("→ Evaluation: requesting judge verdict")
        result = await self.orchestrator.send_structured(
            "\n\n".join(parts), EvaluationResult, JUDGE_PROMPT
        )
        logger.info("← Evaluation: score=%d", result.score)
        return result
