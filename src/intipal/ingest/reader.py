"""Asynchronous, progress-reporting reads of uploaded files."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, Optional

from ..config import DEFAULT_READ_CHUNK_BYTES
from ..errors import ReadError
from .models import FileDescriptor, ReadCompleted, ReadEvent, ReadFailed, ReadProgress

LOGGER = logging.getLogger(__name__)


async def _maybe_await(result: Any) -> Any:
    """Await result if it is awaitable."""

    if inspect.isawaitable(result):
        return await result
    return result


def _percent(loaded: int, total: int) -> int:
    return min(100, int(loaded * 100 / total + 0.5))


class ByteReader:
    """Read a file's full contents into memory in fixed-size chunks.

    :meth:`read` yields :class:`ReadProgress` events while the total size is
    known and always finishes with exactly one :class:`ReadCompleted` or
    :class:`ReadFailed`. Consumers abandon a read by closing the iterator.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_READ_CHUNK_BYTES,
        timeout: Optional[float] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        self.chunk_size = chunk_size
        self.timeout = timeout

    async def read(self, descriptor: FileDescriptor) -> AsyncIterator[ReadEvent]:
        total = descriptor.size if descriptor.size and descriptor.size > 0 else None
        buffer = bytearray()
        last_percent = 0

        while True:
            try:
                chunk = await self._read_chunk(descriptor)
                if not chunk:
                    break
                buffer.extend(chunk)
            except asyncio.TimeoutError as error:
                LOGGER.warning("Timed out reading %s after %s bytes", descriptor.name, len(buffer))
                yield ReadFailed(ReadError(f"Timed out reading {descriptor.name}", cause=error))
                return
            except Exception as error:
                LOGGER.warning("Failed to read %s: %s", descriptor.name, error)
                yield ReadFailed(ReadError(f"Failed to read {descriptor.name}", cause=error))
                return

            if total is not None:
                last_percent = max(last_percent, _percent(len(buffer), total))
                yield ReadProgress(loaded=len(buffer), total=total, percent=last_percent)

        LOGGER.debug("Read %s bytes from %s", len(buffer), descriptor.name)
        yield ReadCompleted(data=bytes(buffer))

    async def _read_chunk(self, descriptor: FileDescriptor) -> bytes:
        pending = _maybe_await(descriptor.stream.read(self.chunk_size))
        if self.timeout is None:
            return await pending
        return await asyncio.wait_for(pending, timeout=self.timeout)
