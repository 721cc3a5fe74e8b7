"""Chat session state machine gating sends on an ingested document."""
from __future__ import annotations

import asyncio
import itertools
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from intipal.answering import AnswerService, LLMAnswerService
from intipal.config import Settings
from intipal.errors import AnswerError
from intipal.ingest import (
    ByteReader,
    DocumentText,
    FileDescriptor,
    IngestionPipeline,
    UploadOutcome,
    UploadState,
    UploadTask,
)
from intipal.logging_config import AUDIT_LOGGER_NAME
from intipal.telemetry import emit_answer_event, emit_exception

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

COMMIT_KEYS = frozenset({"Enter"})
_SENDABLE_UPLOAD_STATES = (UploadState.IDLE, UploadState.SUCCEEDED)


class Author(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    text: str
    origin: Author
    sequence: int


@dataclass(frozen=True, slots=True)
class SessionState:
    """Read-only snapshot consumed by rendering surfaces."""

    session_id: str
    messages: Tuple[Message, ...]
    draft_input: str
    send_in_flight: bool
    upload: UploadTask
    document: Optional[DocumentText]
    can_send: bool
    upload_enabled: bool
    input_enabled: bool


class SessionController:
    """Owns the message log, the draft and the single-flight send flag.

    The current document and the upload task are read from the
    :class:`IngestionPipeline`, which is their only writer.
    """

    def __init__(
        self,
        answer_service: AnswerService,
        *,
        pipeline: Optional[IngestionPipeline] = None,
        answer_timeout: Optional[float] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.answer_service = answer_service
        self.pipeline = pipeline or IngestionPipeline(session_id=self.session_id)
        self.answer_timeout = answer_timeout
        self._messages: List[Message] = []
        self._sequence = itertools.count(1)
        self._draft = ""
        self._send_in_flight = False
        self._generation = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        answer_service: Optional[AnswerService] = None,
        session_id: Optional[str] = None,
    ) -> "SessionController":
        session_id = session_id or uuid.uuid4().hex
        pipeline = IngestionPipeline(
            reader=ByteReader(chunk_size=settings.read_chunk_bytes, timeout=settings.read_timeout),
            session_id=session_id,
        )
        return cls(
            answer_service or LLMAnswerService.from_settings(settings),
            pipeline=pipeline,
            answer_timeout=settings.answer_timeout,
            session_id=session_id,
        )

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def draft_input(self) -> str:
        return self._draft

    @property
    def send_in_flight(self) -> bool:
        return self._send_in_flight

    @property
    def document(self) -> Optional[DocumentText]:
        return self.pipeline.document

    @property
    def upload(self) -> UploadTask:
        return self.pipeline.task

    @property
    def can_send(self) -> bool:
        return (
            not self._send_in_flight
            and self.upload.state in _SENDABLE_UPLOAD_STATES
            and self.document is not None
            and bool(self._draft.strip())
        )

    @property
    def upload_enabled(self) -> bool:
        return not self.pipeline.busy

    @property
    def input_enabled(self) -> bool:
        return not self._send_in_flight and not self.pipeline.busy

    def state(self) -> SessionState:
        return SessionState(
            session_id=self.session_id,
            messages=self.messages,
            draft_input=self._draft,
            send_in_flight=self._send_in_flight,
            upload=self.upload,
            document=self.document,
            can_send=self.can_send,
            upload_enabled=self.upload_enabled,
            input_enabled=self.input_enabled,
        )

    def set_draft(self, text: str) -> None:
        self._draft = text

    async def upload_file(self, descriptor: FileDescriptor, *, replace: bool = False) -> UploadOutcome:
        """Hand ``descriptor`` to the pipeline and log its user-facing result."""

        generation = self._generation
        outcome = await self.pipeline.upload(descriptor, replace=replace)
        if outcome.message is not None and generation == self._generation:
            self._append(outcome.message, Author.ASSISTANT)
        return outcome

    async def send_message(self) -> Optional[Message]:
        """Send the trimmed draft and append the reply.

        Returns the appended assistant message, or ``None`` when the send gate
        is closed or the session was reset while the answer was pending.
        """

        if not self.can_send:
            LOGGER.debug("Send ignored for session %s; gate is closed", self.session_id)
            return None

        document = self.document
        if document is None:
            return None
        text = self._draft.strip()
        self._append(text, Author.USER)
        self._draft = ""
        self._send_in_flight = True
        generation = self._generation

        started = time.perf_counter()
        try:
            reply = await self._ask(document.aggregate, text)
        except AnswerError as error:
            emit_answer_event(
                "answer.failed",
                session_id=self.session_id,
                question=text,
                context_chars=len(document.aggregate),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            )
            reply = error.user_message
        except asyncio.CancelledError:
            if generation == self._generation:
                self._send_in_flight = False
            raise
        else:
            emit_answer_event(
                "answer.complete",
                session_id=self.session_id,
                question=text,
                context_chars=len(document.aggregate),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                answer_preview=reply,
            )

        if generation != self._generation:
            LOGGER.info("Discarding reply for session %s after reset", self.session_id)
            return None

        self._send_in_flight = False
        AUDIT_LOGGER.info({"event": "send", "session_id": self.session_id, "question": text})
        return self._append(reply, Author.ASSISTANT)

    async def handle_key(self, key: str) -> Optional[Message]:
        """Treat a commit key in the input box as a send request."""

        if key not in COMMIT_KEYS:
            return None
        return await self.send_message()

    def reset(self) -> None:
        """Clear the conversation and abandon pending uploads and sends."""

        self._generation += 1
        self._messages.clear()
        self._draft = ""
        self._send_in_flight = False
        self.pipeline.reset()

    async def _ask(self, document_text: str, question: str) -> str:
        try:
            call = self.answer_service.answer(document_text, question)
            if self.answer_timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout=self.answer_timeout)
        except AnswerError:
            raise
        except asyncio.TimeoutError as error:
            raise AnswerError(f"Answer timed out after {self.answer_timeout}s", cause=error) from error
        except Exception as error:
            LOGGER.exception("Answer service failed for session %s", self.session_id)
            emit_exception(module=f"{__name__}.answer", error=error, session_id=self.session_id)
            raise AnswerError("Answer service failed", cause=error) from error

    def _append(self, text: str, origin: Author) -> Message:
        message = Message(text=text, origin=origin, sequence=next(self._sequence))
        self._messages.append(message)
        return message
