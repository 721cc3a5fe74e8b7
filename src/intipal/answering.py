"""Answer service contract and the LLM-backed implementation."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from intipal.config import Settings
from intipal.errors import AnswerError
from intipal.llm_provider import LLM, LLMError, get_llm

LOGGER = logging.getLogger(__name__)

NO_QUESTION_PLACEHOLDER = "(no question)"


class AnswerService(ABC):
    """Produces a reply to ``user_message`` grounded in ``document_text``."""

    @abstractmethod
    async def answer(self, document_text: str, user_message: str) -> str:
        """Return the reply text or raise :class:`AnswerError`."""


class LLMAnswerService(AnswerService):
    """Answer questions by prompting a language model with the document text."""

    def __init__(
        self,
        llm: Optional[LLM] = None,
        *,
        max_tokens: int = 256,
        temperature: float = 0.0,
        max_context_chars: int = 12000,
    ) -> None:
        self._llm = llm
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_context_chars = max_context_chars

    @classmethod
    def from_settings(cls, settings: Settings, llm: Optional[LLM] = None) -> "LLMAnswerService":
        return cls(
            llm or get_llm(settings),
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            max_context_chars=settings.max_context_chars,
        )

    @property
    def llm(self) -> LLM:
        if self._llm is None:
            self._llm = get_llm()
        return self._llm

    async def answer(self, document_text: str, user_message: str) -> str:
        prompt = self.build_prompt(document_text, user_message)
        try:
            return await asyncio.to_thread(
                self.llm.generate,
                prompt,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except LLMError as error:
            LOGGER.exception("LLM generation failed")
            raise AnswerError("Failed to generate an answer", cause=error) from error

    def build_prompt(self, document_text: str, user_message: str) -> str:
        cleaned_question = user_message.strip() or NO_QUESTION_PLACEHOLDER
        context = document_text.strip()
        if len(context) > self.max_context_chars:
            LOGGER.debug(
                "Truncating document context from %s to %s characters",
                len(context),
                self.max_context_chars,
            )
            context = context[: self.max_context_chars]
        if not context:
            context = "(the document contains no extractable text)"
        instructions = (
            "Use the provided document to answer the question. "
            "If the document does not contain enough information, say so."
        )
        return (
            f"{instructions}\n\n"
            f"Document:\n{context}\n\n"
            f"Question: {cleaned_question}\n\n"
            "Answer:"
        )
