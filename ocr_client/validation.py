"""Client-side file validation.

Runs before any network call: a file rejected here never reaches the
backend.
"""

import logging
from typing import Final, Iterable, Optional

from ocr_client.core.exceptions import (
    EmptyFileError,
    PayloadTooLargeError,
    UnsupportedFileTypeError,
)
from ocr_client.models.files import EXTENSION_CONTENT_TYPES, DocumentFile

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES: Final[frozenset[str]] = frozenset(EXTENSION_CONTENT_TYPES.values())
DEFAULT_MAX_FILE_SIZE_MB: Final = 100

# Leading bytes of each accepted format (PDF header, JPEG SOI, PNG signature).
SIGNATURES: Final[tuple[tuple[bytes, str], ...]] = (
    (b"%PDF", "application/pdf"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
)


def sniff_content_type(content: bytes) -> Optional[str]:
    """MIME type implied by the leading bytes of ``content``, if recognized."""
    for signature, content_type in SIGNATURES:
        if content.startswith(signature):
            return content_type
    return None


def validate_document_file(
    file: DocumentFile, max_size_mb: int = DEFAULT_MAX_FILE_SIZE_MB
) -> str:
    """Validate extension, content type, and size of a file.

    Args:
        file: File to be submitted
        max_size_mb: Client-side size ceiling in MB

    Returns:
        The content type the file will be uploaded with

    Raises:
        UnsupportedFileTypeError: extension or MIME type not PDF/JPEG/PNG
        EmptyFileError: file has no content
        PayloadTooLargeError: file exceeds the size ceiling
    """
    allowed = sorted(EXTENSION_CONTENT_TYPES)
    content_type = file.resolved_content_type
    if file.extension not in EXTENSION_CONTENT_TYPES or content_type not in ALLOWED_CONTENT_TYPES:
        raise UnsupportedFileTypeError(file.name, content_type, allowed)

    if file.size == 0:
        raise EmptyFileError(file.name)

    if file.size > max_size_mb * 1024 * 1024:
        raise PayloadTooLargeError(
            max_size_mb=max_size_mb,
            actual_size_mb=file.size / (1024 * 1024),
        )

    detected = sniff_content_type(file.content)
    if detected != content_type:
        logger.warning(
            "Content-Type mismatch: declared=%s detected=%s",
            content_type,
            detected,
            extra={"file_name": file.name},
        )

    return content_type


def validate_document_files(
    files: Iterable[DocumentFile], max_size_mb: int = DEFAULT_MAX_FILE_SIZE_MB
) -> list[str]:
    """Validate every file of a batch; the first invalid file raises."""
    return [validate_document_file(f, max_size_mb) for f in files]
