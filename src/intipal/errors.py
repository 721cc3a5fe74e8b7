"""Error taxonomy shared by the ingestion pipeline and the chat session."""
from __future__ import annotations

from enum import Enum

INVALID_TYPE_MESSAGE = "Only PDF files are allowed."
READ_FAILURE_MESSAGE = "Failed to read the file. Please try again."
PARSE_FAILURE_MESSAGE = "Failed to process the PDF. Please try another file."
ANSWER_FAILURE_MESSAGE = "Sorry, there was an error processing your request."


class ErrorKind(str, Enum):
    """Recoverable failure categories surfaced to the user."""

    INVALID_TYPE = "invalid_type"
    READ = "read"
    PARSE = "parse"
    ANSWER = "answer"


class IntipalError(RuntimeError):
    """Base class for recoverable domain errors.

    Every subclass carries the user-facing text that replaces it in the
    message log, so callers never format exception strings for display.
    """

    kind: ErrorKind
    user_message: str

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class InvalidTypeError(IntipalError):
    """Raised when a declared MIME type is not the PDF media type."""

    kind = ErrorKind.INVALID_TYPE
    user_message = INVALID_TYPE_MESSAGE


class ReadError(IntipalError):
    """Raised when the bytes of an uploaded file cannot be read."""

    kind = ErrorKind.READ
    user_message = READ_FAILURE_MESSAGE


class ParseError(IntipalError):
    """Raised when a buffer is not a readable paginated document."""

    kind = ErrorKind.PARSE
    user_message = PARSE_FAILURE_MESSAGE


class AnswerError(IntipalError):
    """Raised when the answering backend fails to produce a reply."""

    kind = ErrorKind.ANSWER
    user_message = ANSWER_FAILURE_MESSAGE
