"""Upload validation performed before any I/O begins."""
from __future__ import annotations

import logging

from ..errors import InvalidTypeError
from .models import PDF_MEDIA_TYPE, Accepted, FileDescriptor, Rejected, ValidationResult

LOGGER = logging.getLogger(__name__)


class FileValidator:
    """Accepts files whose declared MIME type is exactly the PDF media type.

    The file name and suffix are deliberately not consulted: a ``report.pdf``
    declared as ``application/octet-stream`` is rejected, and so is
    ``Application/PDF``.
    """

    accepted_type = PDF_MEDIA_TYPE

    def validate(self, descriptor: FileDescriptor) -> ValidationResult:
        if descriptor.type == self.accepted_type:
            return Accepted(descriptor=descriptor)

        LOGGER.info("Rejected %s with declared type %r", descriptor.name, descriptor.type)
        error = InvalidTypeError(
            f"{descriptor.name!r} has type {descriptor.type!r}, expected {self.accepted_type!r}"
        )
        return Rejected(descriptor=descriptor, error=error)
