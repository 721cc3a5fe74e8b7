"""Data models used by the ingestion pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

from ..errors import InvalidTypeError, ParseError, ReadError

PDF_MEDIA_TYPE = "application/pdf"


@dataclass(slots=True)
class FileDescriptor:
    """A single user-selected file.

    ``stream`` is any binary reader whose ``read(size)`` either returns bytes
    or an awaitable resolving to bytes (``starlette.datastructures.UploadFile``).
    """

    name: str
    type: str
    stream: Any
    size: Optional[int] = None


class UploadState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    PARSING = "parsing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class UploadTask:
    """Snapshot of the upload lifecycle published by the pipeline."""

    file_name: str = ""
    declared_type: str = ""
    byte_length: Optional[int] = None
    state: UploadState = UploadState.IDLE
    progress_percent: int = 0

    @property
    def active(self) -> bool:
        return self.state in (UploadState.READING, UploadState.PARSING)


@dataclass(frozen=True, slots=True)
class DocumentText:
    """Per-page text of a parsed document with its newline-joined aggregate."""

    pages: Tuple[str, ...]
    aggregate: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "aggregate", "\n".join(self.pages))

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def page(self, number: int) -> str:
        """Return the text of the 1-based page ``number``."""

        if number < 1 or number > len(self.pages):
            raise IndexError(f"page {number} is outside 1..{len(self.pages)}")
        return self.pages[number - 1]


@dataclass(frozen=True, slots=True)
class Accepted:
    descriptor: FileDescriptor
    accepted: bool = True


@dataclass(frozen=True, slots=True)
class Rejected:
    descriptor: FileDescriptor
    error: InvalidTypeError
    accepted: bool = False


ValidationResult = Union[Accepted, Rejected]


@dataclass(frozen=True, slots=True)
class ReadProgress:
    loaded: int
    total: int
    percent: int


@dataclass(frozen=True, slots=True)
class ReadCompleted:
    data: bytes


@dataclass(frozen=True, slots=True)
class ReadFailed:
    error: ReadError


ReadEvent = Union[ReadProgress, ReadCompleted, ReadFailed]


class UploadStatus(str, Enum):
    """How a single upload request ended."""

    REJECTED = "rejected"
    IGNORED = "ignored"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DISCARDED = "discarded"


@dataclass(frozen=True, slots=True)
class UploadOutcome:
    """Result of :meth:`IngestionPipeline.upload`.

    ``message`` is the user-facing text to append to the conversation; it is
    ``None`` for ignored and discarded requests.
    """

    status: UploadStatus
    file_name: str
    message: Optional[str] = None
    document: Optional[DocumentText] = None
    error: Optional[Union[ReadError, ParseError]] = None
