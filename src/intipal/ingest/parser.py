"""Page-by-page text extraction from PDF buffers."""
from __future__ import annotations

import asyncio
import io
import logging
from typing import Any, List

from PyPDF2 import PdfReader

from ..errors import ParseError
from .models import DocumentText

LOGGER = logging.getLogger(__name__)


def _normalise_fragment(text: str) -> str:
    return " ".join(text.split())


class DocumentParser:
    """Extract the text of every page of a PDF, all or nothing.

    Each page's text is the sequence of fragments emitted by its content
    stream, whitespace-normalised and joined with single spaces. Any failure,
    on the document or on a single page, fails the whole parse.
    """

    async def parse(self, data: bytes) -> DocumentText:
        reader = self._open(data)
        page_count = self._page_count(reader)

        pages: List[str] = []
        for index in range(page_count):
            pages.append(self._extract_page(reader, index))
            # Yield to the event loop between pages.
            await asyncio.sleep(0)

        LOGGER.debug("Parsed %s pages (%s characters)", page_count, sum(len(page) for page in pages))
        return DocumentText(pages=tuple(pages))

    def _open(self, data: bytes) -> Any:
        if not data:
            raise ParseError("Document is empty")
        try:
            reader = PdfReader(io.BytesIO(data))
            if reader.is_encrypted:
                reader.decrypt("")
        except Exception as error:
            raise ParseError("Failed to open PDF document", cause=error) from error
        return reader

    def _page_count(self, reader: Any) -> int:
        try:
            page_count = len(reader.pages)
        except Exception as error:
            raise ParseError("Failed to read the page tree", cause=error) from error
        if page_count < 1:
            raise ParseError("Document has no pages")
        return page_count

    def _extract_page(self, reader: Any, index: int) -> str:
        fragments: List[str] = []

        def _collect(text: str, *_: Any) -> None:
            fragment = _normalise_fragment(text)
            if fragment:
                fragments.append(fragment)

        try:
            reader.pages[index].extract_text(visitor_text=_collect)
        except Exception as error:
            raise ParseError(f"Failed to extract text from page {index + 1}", cause=error) from error
        return " ".join(fragments)
