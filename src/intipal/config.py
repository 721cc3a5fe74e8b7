"""Environment driven runtime settings."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_READ_CHUNK_BYTES = 64 * 1024
DEFAULT_MAX_CONTEXT_CHARS = 12000


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _timeout_from_env(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        timeout = float(value)
    except ValueError:
        LOGGER.warning("Invalid timeout for %s: %s; timeouts disabled", name, value)
        return None
    return timeout if timeout > 0 else None


@dataclass(slots=True)
class Settings:
    read_chunk_bytes: int = DEFAULT_READ_CHUNK_BYTES
    read_timeout: Optional[float] = None
    answer_timeout: Optional[float] = None
    llm_provider: str = "stub"
    llm_max_tokens: int = 256
    llm_temperature: float = 0.0
    max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``INTIPAL_*`` and ``LLM_*`` environment variables."""

        chunk_bytes = _int_from_env("INTIPAL_READ_CHUNK_BYTES", DEFAULT_READ_CHUNK_BYTES)
        if chunk_bytes <= 0:
            LOGGER.warning("INTIPAL_READ_CHUNK_BYTES must be positive; using %s", DEFAULT_READ_CHUNK_BYTES)
            chunk_bytes = DEFAULT_READ_CHUNK_BYTES
        return cls(
            read_chunk_bytes=chunk_bytes,
            read_timeout=_timeout_from_env("INTIPAL_READ_TIMEOUT"),
            answer_timeout=_timeout_from_env("INTIPAL_ANSWER_TIMEOUT"),
            llm_provider=os.getenv("LLM_PROVIDER", "stub").strip().lower() or "stub",
            llm_max_tokens=_int_from_env("LLM_MAX_TOKENS", 256),
            llm_temperature=_float_from_env("LLM_TEMPERATURE", 0.0),
            max_context_chars=_int_from_env("INTIPAL_MAX_CONTEXT_CHARS", DEFAULT_MAX_CONTEXT_CHARS),
        )
