"""Shared fixtures: in-memory PDFs, streams and answer services."""
from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import pytest

from intipal.errors import AnswerError
from intipal.ingest import PDF_MEDIA_TYPE, FileDescriptor


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(pages: Sequence[Sequence[str]]) -> bytes:
    """Return a valid PDF whose pages show the given text fragments.

    Each fragment is drawn in its own ``BT ... ET`` block on its own line so
    the extractor sees it as a separate piece of text.
    """

    objects = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        3: b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    }
    kids: List[str] = []
    next_id = 4
    for fragments in pages:
        page_id, content_id = next_id, next_id + 1
        next_id += 2
        lines = [
            f"BT /F1 12 Tf 72 {720 - 20 * index} Td ({_escape(fragment)}) Tj ET"
            for index, fragment in enumerate(fragments)
        ]
        stream = "\n".join(lines).encode("latin-1")
        objects[page_id] = (
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Contents {content_id} 0 R /Resources << /Font << /F1 3 0 R >> >> >>"
        ).encode("latin-1")
        objects[content_id] = b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream"
        kids.append(f"{page_id} 0 R")
    objects[2] = f"<< /Type /Pages /Kids [{' '.join(kids)}] /Count {len(kids)} >>".encode("latin-1")

    out = bytearray(b"%PDF-1.4\n")
    offsets = {}
    for number in sorted(objects):
        offsets[number] = len(out)
        out += b"%d 0 obj\n" % number + objects[number] + b"\nendobj\n"
    xref_offset = len(out)
    size = max(objects) + 1
    out += b"xref\n0 %d\n" % size
    out += b"0000000000 65535 f \n"
    for number in range(1, size):
        out += b"%010d 00000 n \n" % offsets[number]
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (size, xref_offset)
    return bytes(out)


def make_descriptor(
    data: bytes,
    name: str = "report.pdf",
    mime_type: str = PDF_MEDIA_TYPE,
    *,
    with_size: bool = True,
) -> FileDescriptor:
    return FileDescriptor(
        name=name,
        type=mime_type,
        stream=io.BytesIO(data),
        size=len(data) if with_size else None,
    )


class FailingStream:
    """Binary stream that raises ``error`` after ``fail_after`` successful reads."""

    def __init__(
        self,
        data: bytes,
        fail_after: int = 1,
        error: Optional[Exception] = None,
    ) -> None:
        self._inner = io.BytesIO(data)
        self._remaining = fail_after
        self._error = error or OSError("device not ready")

    def read(self, size: int = -1) -> bytes:
        if self._remaining <= 0:
            raise self._error
        self._remaining -= 1
        return self._inner.read(size)


class GatedStream:
    """Async stream whose reads block until ``release`` is set.

    Must be created inside a running event loop.
    """

    def __init__(self, data: bytes, *, fail: bool = False) -> None:
        self._inner = io.BytesIO(data)
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.fail = fail

    async def read(self, size: int = -1) -> bytes:
        self.started.set()
        await self.release.wait()
        if self.fail:
            raise OSError("connection reset")
        return self._inner.read(size)


@dataclass
class RecordingAnswerService:
    """Answer service that records calls and can be held open or made to fail."""

    reply: str = "The total is 42."
    error: Optional[Exception] = None
    gate: Optional[asyncio.Event] = None
    calls: List[Tuple[str, str]] = field(default_factory=list)

    async def answer(self, document_text: str, user_message: str) -> str:
        self.calls.append((document_text, user_message))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def three_page_pdf() -> bytes:
    return build_pdf([["Invoice summary"], ["Line items"], ["Total due 42"]])


@pytest.fixture
def pdf_factory() -> Callable[[Sequence[Sequence[str]]], bytes]:
    return build_pdf


@pytest.fixture
def failing_answer_service() -> RecordingAnswerService:
    return RecordingAnswerService(error=AnswerError("backend unavailable"))
