"""Upload lifecycle: validation, reading and parsing of a single document."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Callable, List, Optional, Union

from ..errors import ParseError, ReadError
from ..logging_config import AUDIT_LOGGER_NAME
from ..telemetry import emit_exception, emit_upload_event
from .models import (
    DocumentText,
    FileDescriptor,
    ReadCompleted,
    ReadFailed,
    ReadProgress,
    Rejected,
    UploadOutcome,
    UploadState,
    UploadStatus,
    UploadTask,
    ValidationResult,
)
from .parser import DocumentParser
from .reader import ByteReader
from .validation import FileValidator

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

SUCCESS_MESSAGE = (
    "Successfully uploaded and processed {name}. You can now ask questions related to the document."
)

TaskListener = Callable[[UploadTask], None]


class _Superseded(Exception):
    """Internal signal that a newer attempt owns the upload slot."""


class IngestionPipeline:
    """State machine driving ``Idle -> Reading -> Parsing -> Succeeded | Failed -> Idle``.

    The pipeline is the only writer of the current :class:`DocumentText` and of
    the :class:`UploadTask` snapshot. Every attempt is stamped with a generation
    number; work finishing under an older generation is dropped without
    touching either slot.
    """

    def __init__(
        self,
        validator: Optional[FileValidator] = None,
        reader: Optional[ByteReader] = None,
        parser: Optional[DocumentParser] = None,
        *,
        session_id: Optional[str] = None,
    ) -> None:
        self.validator = validator or FileValidator()
        self.reader = reader or ByteReader()
        self.parser = parser or DocumentParser()
        self.session_id = session_id
        self._generation = 0
        self._task = UploadTask()
        self._document: Optional[DocumentText] = None
        self._listeners: List[TaskListener] = []

    @property
    def task(self) -> UploadTask:
        return self._task

    @property
    def document(self) -> Optional[DocumentText]:
        return self._document

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def busy(self) -> bool:
        return self._task.active

    def add_listener(self, listener: TaskListener) -> None:
        """Register a callback receiving every published :class:`UploadTask`."""

        self._listeners.append(listener)

    def validate(self, descriptor: FileDescriptor) -> ValidationResult:
        return self.validator.validate(descriptor)

    async def upload(self, descriptor: FileDescriptor, *, replace: bool = False) -> UploadOutcome:
        """Run one upload attempt to completion.

        While another attempt is active a plain request is ignored. With
        ``replace=True`` an accepted file supersedes the active attempt, whose
        eventual result is discarded.
        """

        if self.busy and not replace:
            LOGGER.info(
                "Ignoring upload of %s while %s is %s",
                descriptor.name,
                self._task.file_name,
                self._task.state.value,
            )
            return UploadOutcome(status=UploadStatus.IGNORED, file_name=descriptor.name)

        verdict = self.validate(descriptor)
        if isinstance(verdict, Rejected):
            return UploadOutcome(
                status=UploadStatus.REJECTED,
                file_name=descriptor.name,
                message=verdict.error.user_message,
            )

        token = self._begin(descriptor)
        started = time.perf_counter()
        try:
            data = await self._read(token, descriptor)
            self._ensure_current(token)
            self._publish(dataclasses.replace(self._task, state=UploadState.PARSING))
            document = await self.parser.parse(data)
            self._ensure_current(token)
        except _Superseded:
            return self._discard(token, descriptor)
        except (ReadError, ParseError) as error:
            if not self._is_current(token):
                return self._discard(token, descriptor)
            return self._fail(token, descriptor, error, started)
        except (Exception, asyncio.CancelledError) as error:
            if self._is_current(token):
                emit_exception(module=f"{__name__}.upload", error=error, session_id=self.session_id)
                self._publish(UploadTask())
            raise

        return self._succeed(token, descriptor, document, started)

    def reset(self) -> None:
        """Forget the current document and abandon any in-flight attempt."""

        self._generation += 1
        self._document = None
        self._publish(UploadTask())

    def _begin(self, descriptor: FileDescriptor) -> int:
        if self.busy:
            LOGGER.info("Upload of %s supersedes %s", descriptor.name, self._task.file_name)
        self._generation += 1
        token = self._generation
        self._publish(
            UploadTask(
                file_name=descriptor.name,
                declared_type=descriptor.type,
                byte_length=descriptor.size,
                state=UploadState.READING,
                progress_percent=0,
            )
        )
        emit_upload_event(
            "upload.start",
            file_name=descriptor.name,
            generation=token,
            session_id=self.session_id,
            size_bytes=descriptor.size,
        )
        return token

    async def _read(self, token: int, descriptor: FileDescriptor) -> bytes:
        events = self.reader.read(descriptor)
        try:
            async for event in events:
                self._ensure_current(token)
                if isinstance(event, ReadProgress):
                    if event.percent != self._task.progress_percent:
                        self._publish(dataclasses.replace(self._task, progress_percent=event.percent))
                elif isinstance(event, ReadFailed):
                    raise event.error
                elif isinstance(event, ReadCompleted):
                    return event.data
        finally:
            await events.aclose()
        raise ReadError(f"Read of {descriptor.name} ended without a result")

    def _is_current(self, token: int) -> bool:
        return token == self._generation

    def _ensure_current(self, token: int) -> None:
        if not self._is_current(token):
            raise _Superseded()

    def _discard(self, token: int, descriptor: FileDescriptor) -> UploadOutcome:
        emit_upload_event(
            "upload.discarded",
            file_name=descriptor.name,
            generation=token,
            session_id=self.session_id,
        )
        return UploadOutcome(status=UploadStatus.DISCARDED, file_name=descriptor.name)

    def _fail(
        self,
        token: int,
        descriptor: FileDescriptor,
        error: Union[ReadError, ParseError],
        started: float,
    ) -> UploadOutcome:
        self._publish(dataclasses.replace(self._task, state=UploadState.FAILED))
        emit_upload_event(
            "upload.failed",
            file_name=descriptor.name,
            generation=token,
            session_id=self.session_id,
            size_bytes=descriptor.size,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            error=error,
        )
        AUDIT_LOGGER.info(
            {
                "event": "upload",
                "session_id": self.session_id,
                "file_name": descriptor.name,
                "status": UploadStatus.FAILED.value,
                "error": error.kind.value,
            }
        )
        self._publish(UploadTask())
        return UploadOutcome(
            status=UploadStatus.FAILED,
            file_name=descriptor.name,
            message=error.user_message,
            error=error,
        )

    def _succeed(
        self,
        token: int,
        descriptor: FileDescriptor,
        document: DocumentText,
        started: float,
    ) -> UploadOutcome:
        self._document = document
        self._publish(dataclasses.replace(self._task, state=UploadState.SUCCEEDED))
        emit_upload_event(
            "upload.complete",
            file_name=descriptor.name,
            generation=token,
            session_id=self.session_id,
            size_bytes=descriptor.size,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            pages=document.page_count,
        )
        AUDIT_LOGGER.info(
            {
                "event": "upload",
                "session_id": self.session_id,
                "file_name": descriptor.name,
                "status": UploadStatus.SUCCEEDED.value,
                "pages": document.page_count,
            }
        )
        self._publish(UploadTask())
        return UploadOutcome(
            status=UploadStatus.SUCCEEDED,
            file_name=descriptor.name,
            message=SUCCESS_MESSAGE.format(name=descriptor.name),
            document=document,
        )

    def _publish(self, task: UploadTask) -> None:
        self._task = task
        for listener in list(self._listeners):
            listener(task)
