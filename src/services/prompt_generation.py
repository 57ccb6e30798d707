"""
System prompt generation.

Asks the model to write a system prompt from a goal and one example
input/output pair. Uses the single-turn mode, so the conversation history
is left alone.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.chat.chat_orchestrator import ChatOrchestrator

logger = logging.getLogger(__name__)

META_PROMPT = """You are an expert Prompt Engineer.
Your task is to write a high-quality System Prompt for an AI Assistant based on the user's requirements.

Guidelines:
1. The System Prompt should clearly define the assistant's persona, tone, and constraints.
2. It should include few-shot examples if helpful (based on the provided input/output).
3. Output ONLY the raw system prompt text. Do not include markdown code fencing (```) or introductory text.
4. Keep it concise but effective.
5. If the user input is in Traditional Chinese, the System Prompt MUST be output in Traditional Chinese."""

REQUEST_TEMPLATE = """
Requirements:
- Goal: {goal}
- The assistant receives inputs like: "{expected_input}"
- And should respond like: "{expected_output}"

Please write the System Prompt."""


class PromptGenerationService:
    """Generates system prompts through the orchestrator."""

    def __init__(self, orchestrator: ChatOrchestrator):
        self.orchestrator = orchestrator

    async def generate_system_prompt(self, goal: str, expected_input: str, expected_output: str) -> str:
        user_request = REQUEST_TEMPLATE.format(
            goal=goal,
            expected_input=expected_input,
            expected_output=expected_output,
        )
        logger.info("→ PromptGeneration: generating system prompt")
        prompt = await self.orchestrator.send_single_message(user_request, META_PROMPT)
        logger.info("← PromptGeneration: system prompt generated (%d chars)", len(prompt))
        return prompt.strip()
