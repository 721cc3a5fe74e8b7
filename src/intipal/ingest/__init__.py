"""Document ingestion: validation, reading and page text extraction."""
from __future__ import annotations

from .models import (
    PDF_MEDIA_TYPE,
    Accepted,
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
)
from .parser import DocumentParser
from .pipeline import SUCCESS_MESSAGE, IngestionPipeline
from .reader import ByteReader
from .validation import FileValidator

__all__ = [
    "PDF_MEDIA_TYPE",
    "Accepted",
    "ByteReader",
    "DocumentParser",
    "DocumentText",
    "FileDescriptor",
    "FileValidator",
    "IngestionPipeline",
    "ReadCompleted",
    "ReadFailed",
    "ReadProgress",
    "Rejected",
    "SUCCESS_MESSAGE",
    "UploadOutcome",
    "UploadState",
    "UploadStatus",
    "UploadTask",
]
