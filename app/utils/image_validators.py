"""Image upload validation.

Validates file signatures (magic numbers) so a renamed non-image is rejected
even when the client declares an image MIME type.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# (prefix, offset, mime type); WEBP is "RIFF....WEBP"
_SIGNATURES: tuple[tuple[bytes, int, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    (b"\xff\xd8\xff", 0, "image/jpeg"),
    (b"GIF87a", 0, "image/gif"),
    (b"GIF89a", 0, "image/gif"),
    (b"WEBP", 8, "image/webp"),
    (b"BM", 0, "image/bmp"),
)

_HEIF_BRANDS = {
    b"heic": "image/heic",
    b"heix": "image/heic",
    b"mif1": "image/heif",
    b"avif": "image/avif",
}


def sniff_image_mime_type(data: bytes) -> str | None:
    """Detect the image type from its leading bytes.

    Args:
        data: File content as bytes.

    Returns:
        Detected MIME type, or None if the bytes are not a known image format.
    """
    for prefix, offset, mime_type in _SIGNATURES:
        if data[offset:offset + len(prefix)] == prefix:
            if mime_type == "image/webp" and not data.startswith(b"RIFF"):
                continue
            return mime_type

    if data[4:8] == b"ftyp":
        return _HEIF_BRANDS.get(data[8:12])

    return None


def normalize_image_mime_type(mime_type: str | None) -> str | None:
    """Lower-case and strip parameters; map common aliases."""
    if not mime_type:
        return None
    normalized = mime_type.split(";", 1)[0].strip().lower()
    if normalized in {"image/jpg", "image/pjpeg"}:
        return "image/jpeg"
    return normalized or None


def resolve_image_mime_type(data: bytes, declared: str | None) -> str | None:
    """Pick the MIME type for an uploaded image.

    The sniffed type wins over the declared one; a declared non-image type
    with unrecognised content is rejected.

    Returns:
        The MIME type to send to the model, or None if the upload is not an image.
    """
    sniffed = sniff_image_mime_type(data)
    declared_normalized = normalize_image_mime_type(declared)

    if sniffed:
        if declared_normalized and declared_normalized != sniffed:
            logger.info(
                "image_validation.mime_mismatch",
                extra={"declared": declared_normalized, "sniffed": sniffed},
            )
        return sniffed

    if declared_normalized and declared_normalized.startswith("image/"):
        # Formats without a known signature (e.g. SVG) are trusted as declared
        logger.warning(
            "image_validation.unverified_signature",
            extra={"declared": declared_normalized, "prefix": data[:12]},
        )
        return declared_normalized

    return None
