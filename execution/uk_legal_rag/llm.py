"""
Completion Service

Thin async wrapper over OpenAI chat completions: one call for answers
(system prompt + conversation history + human prompt) and one for upload
summaries. Failures surface as GenerationFailure.
"""

import os
import logging
from typing import Iterable, Optional

from .errors import GenerationFailure
from .legal_patterns import LLM_PROMPTS
from .session_memory import ASSISTANT, ConversationTurn

logger = logging.getLogger(__name__)


class CompletionService:
    """
    Chat completions via the OpenAI API.

    Usage:
        llm = CompletionService(model="gpt-4o")
        text = await llm.complete(system_prompt, history, human_prompt)
    """

    def __init__(
        self,
        model: str = "gpt-4o",
        temperature: float = 0.1,
        max_tokens: int = 2000,
        timeout: float = 120.0,
        client=None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client
        if self._client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                logger.warning("OPENAI_API_KEY not found. Completions will fail.")
            else:
                from openai import AsyncOpenAI
                self._client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    @staticmethod
    def build_messages(
        system_prompt: str,
        history: Iterable[ConversationTurn],
        human_prompt: str,
    ) -> list[dict]:
        messages = [{"role": "system", "content": system_prompt}]
        for turn in history:
            role = "assistant" if turn.role == ASSISTANT else "user"
            messages.append({"role": role, "content": turn.text})
        messages.append({"role": "user", "content": human_prompt})
        return messages

    async def complete(
        self,
        system_prompt: str,
        history: Iterable[ConversationTurn],
        human_prompt: str,
    ) -> str:
        """
        Generate an answer.

        Raises:
            GenerationFailure: If the client is missing or the API call fails
        """
        if self._client is None:
            raise GenerationFailure("Completion client not initialized. Check OPENAI_API_KEY.")

        messages = self.build_messages(system_prompt, history, human_prompt)
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error(f"LLM generation failed: {type(e).__name__}: {e}")
            raise GenerationFailure(f"Answer generation failed: {e}") from e

        return response.choices[0].message.content or ""

    async def summarize_document(self, text: str, filename: str, max_chars: int = 2000) -> str:
        """Two-to-three sentence summary of an uploaded document."""
        prompt = LLM_PROMPTS["summary"].format(filename=filename, content=text[:max_chars])
        return await self.complete("You summarise UK legal documents.", [], prompt)


def get_completion_service(model: Optional[str] = None, temperature: float = 0.1) -> CompletionService:
    """Factory using LLM_MODEL from the environment when no model is given."""
    return CompletionService(model=model or os.getenv("LLM_MODEL", "gpt-4o"), temperature=temperature)
