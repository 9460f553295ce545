"""Upload validation.

Files are checked here before they can reach the extractor: at most
``MAX_UPLOAD_BYTES`` and either an image or a PDF.
"""

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from receipt_reform.core.config import IMAGE_MIME_PREFIX, MAX_UPLOAD_BYTES, PDF_MIME_TYPE
from receipt_reform.core.exceptions import InputValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedDocument:
    """A validated document payload."""

    content: bytes
    mime_type: str
    filename: str | None = None

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == PDF_MIME_TYPE


def is_supported_type(mime_type: str) -> bool:
    return mime_type.startswith(IMAGE_MIME_PREFIX) or mime_type == PDF_MIME_TYPE


def validate_upload(
    content: bytes,
    mime_type: str | None,
    filename: str | None = None,
) -> UploadedDocument:
    """Validate a raw upload.

    Raises:
        InputValidationError: If the file is empty, too large or of an
            unsupported type.
    """
    if not content:
        raise InputValidationError("The uploaded file is empty.")
    if len(content) > MAX_UPLOAD_BYTES:
        raise InputValidationError(
            "File size too large. Please upload a file smaller than 10MB."
        )
    if not mime_type or not is_supported_type(mime_type):
        raise InputValidationError(
            f"Unsupported file type {mime_type or 'unknown'}. Please upload an image or a PDF."
        )
    logger.debug("Accepted %s (%s, %d bytes)", filename or "upload", mime_type, len(content))
    return UploadedDocument(content=content, mime_type=mime_type, filename=filename)


def load_document(path: str | Path, mime_type: str | None = None) -> UploadedDocument:
    """Read and validate a document from disk.

    The media type is guessed from the file extension unless given.
    """
    path = Path(path)
    if not path.is_file():
        raise InputValidationError(f"File not found: {path}")
    if path.stat().st_size > MAX_UPLOAD_BYTES:
        raise InputValidationError(
            "File size too large. Please upload a file smaller than 10MB."
        )
    resolved_type = mime_type or mimetypes.guess_type(path.name)[0]
    return validate_upload(path.read_bytes(), resolved_type, filename=path.name)
