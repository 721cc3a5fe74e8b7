"""Language model backends used to answer questions about a document."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from intipal.config import Settings

LOGGER = logging.getLogger(__name__)

DEFAULT_STUB_RESPONSE = "The answering model is not available right now. Please try again later."


@dataclass(slots=True)
class LLMStatus:
    """Structured status information about the configured LLM backend."""

    model_loaded: bool
    model_name: str
    error: Optional[str] = None


class LLMError(RuntimeError):
    """Base exception raised for LLM provider issues."""


class LLMGenerationError(LLMError):
    """Raised when text generation fails unexpectedly."""


class LLM:
    """Common interface exposed by language model implementations."""

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """Generate a response for the provided prompt."""

        raise NotImplementedError

    @property
    def model_loaded(self) -> bool:
        return False

    @property
    def model_name(self) -> str:
        return "stub"

    @property
    def last_error(self) -> Optional[str]:
        return None

    def status(self) -> LLMStatus:
        """Return structured diagnostic information for health checks."""

        return LLMStatus(
            model_loaded=self.model_loaded,
            model_name=self.model_name,
            error=self.last_error,
        )


class LLMStub(LLM):
    """Fallback implementation returning a fixed apology."""

    def __init__(
        self,
        message: str = DEFAULT_STUB_RESPONSE,
        *,
        reason: str | None = None,
    ) -> None:
        self._message = message
        self._reason = reason or "LLM stub is active (model not configured)."

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        return self._message

    @property
    def last_error(self) -> Optional[str]:
        return self._reason


class MockLLM(LLM):
    """Deterministic language model used for tests and local development."""

    @property
    def model_loaded(self) -> bool:
        return True

    @property
    def model_name(self) -> str:
        return "mock"

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        del max_tokens, temperature  # Unused in the mock implementation.
        return f"MOCK_ANSWER: {prompt[:100]}"


_LLM_LOCK = threading.Lock()
_LLM_INSTANCE: Optional[LLM] = None


def _create_llm(provider: str) -> LLM:
    if provider == "mock":
        return MockLLM()
    if provider != "stub":
        LOGGER.warning("Unknown LLM_PROVIDER %r; falling back to the stub backend", provider)
        return LLMStub(reason=f"Unknown LLM provider {provider!r}")
    return LLMStub()


def get_llm(settings: Optional[Settings] = None) -> LLM:
    """Return the process-wide language model selected by ``LLM_PROVIDER``."""

    global _LLM_INSTANCE
    if _LLM_INSTANCE is not None:
        return _LLM_INSTANCE
    with _LLM_LOCK:
        if _LLM_INSTANCE is None:
            provider = (settings or Settings.from_env()).llm_provider
            _LLM_INSTANCE = _create_llm(provider)
            LOGGER.info("Initialised %s LLM backend", _LLM_INSTANCE.model_name)
        return _LLM_INSTANCE


def reset_llm() -> None:
    """Drop the cached backend so the next :func:`get_llm` re-reads settings."""

    global _LLM_INSTANCE
    with _LLM_LOCK:
        _LLM_INSTANCE = None
