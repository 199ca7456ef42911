"""Upload reading and validation for staged images."""
from __future__ import annotations

import logging

from fastapi import UploadFile

from app.core.config import settings
from app.core.errors import ValidationAppError
from app.schemas.generation import UploadedImage
from app.utils.image_validators import resolve_image_mime_type

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def _too_large(max_bytes: int) -> ValidationAppError:
    return ValidationAppError(
        code="file_too_large",
        message=f"File too large. Maximum size: {settings.app.max_upload_size_mb}MB",
        details={"http_status": 413, "max_bytes": max_bytes},
    )


async def read_upload_file_limited(file: UploadFile) -> bytes:
    """Read an uploaded file in chunks enforcing the max size limit.

    Uses ``file.size`` when the multipart headers provide it and enforces the
    limit again while reading.

    Raises:
        ValidationAppError: ``file_too_large`` (HTTP 413).
    """
    max_bytes = settings.app.max_upload_size_mb * 1024 * 1024

    file_size = getattr(file, "size", None)
    if file_size is not None and file_size > max_bytes:
        logger.warning(
            "file_validation.rejected_by_header",
            extra={"file_size": file_size, "max_bytes": max_bytes},
        )
        raise _too_large(max_bytes)

    size = 0
    chunks: list[bytes] = []
    while True:
        chunk = await file.read(_CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "file_validation.rejected_by_chunked_read",
                extra={"size": size, "max_bytes": max_bytes},
            )
            raise _too_large(max_bytes)
        chunks.append(chunk)

    return b"".join(chunks)


async def read_uploaded_image(file: UploadFile) -> UploadedImage:
    """Read and validate one uploaded image.

    Raises:
        ValidationAppError: ``empty_file``, ``unsupported_file_type`` or
            ``file_too_large``.
    """
    data = await read_upload_file_limited(file)
    if not data:
        raise ValidationAppError(
            code="empty_file",
            message=f"Uploaded file '{file.filename or 'unnamed'}' is empty.",
        )

    mime_type = resolve_image_mime_type(data, file.content_type)
    if mime_type is None:
        raise ValidationAppError(
            code="unsupported_file_type",
            message=f"'{file.filename or 'unnamed'}' is not an image. Upload PNG, JPG, WEBP, etc.",
            details={"mime_type": file.content_type or "unknown"},
        )

    return UploadedImage(data=data, mime_type=mime_type, filename=file.filename)
