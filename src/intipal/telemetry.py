"""Structured lifecycle events for uploads and answers."""

from __future__ import annotations

import logging
import traceback
from typing import Any, Optional

LOGGER = logging.getLogger("intipal.telemetry")


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    session_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if session_id:
        event["session_id"] = session_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_upload_event(
    step: str,
    *,
    file_name: str,
    generation: int,
    session_id: str | None = None,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    pages: int | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "file": file_name,
        "generation": generation,
        "size_bytes": size_bytes,
        "pages": pages,
    }
    level = "warning" if error else "info"
    log_event(
        LOGGER,
        step,
        level=level,
        session_id=session_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_answer_event(
    step: str,
    *,
    session_id: str | None,
    question: str,
    context_chars: int,
    duration_ms: float | None = None,
    answer_preview: str | None = None,
    error: BaseException | None = None,
) -> None:
    details: dict[str, Any] = {
        "question_preview": question[:120],
        "context_chars": context_chars,
    }
    if answer_preview is not None:
        details["answer_preview"] = answer_preview[:120]
    level = "warning" if error else "info"
    log_event(
        LOGGER,
        step,
        level=level,
        session_id=session_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_exception(
    *,
    module: str,
    error: BaseException,
    session_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        session_id=session_id,
        details=details,
        exc=error,
    )
