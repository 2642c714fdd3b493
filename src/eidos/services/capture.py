"""Helpers turning raw camera captures into photo drafts."""

import base64

from eidos.domain.errors import InvalidArgumentError
from eidos.domain.models import PhotoDraft, UserSettings

_FORMAT_MIME_TYPES = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def encode_capture(image_bytes: bytes, image_format: str | None = None) -> str:
    """Convert captured bytes to a base64 data URL."""
    if not image_bytes:
        raise InvalidArgumentError("Captured image is empty")
    if image_format is None:
        mime_type = _detect_mime_type(image_bytes)
    else:
        mime_type = _FORMAT_MIME_TYPES.get(image_format.lower())
        if mime_type is None:
            raise InvalidArgumentError(f"Unsupported image format {image_format!r}")
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def draft_from_capture(
    image_bytes: bytes,
    settings: UserSettings,
    *,
    filter_enabled: bool = True,
    image_format: str | None = None,
) -> PhotoDraft:
    """Build a photo draft tagged with the settings in effect at capture time."""
    return PhotoDraft(
        image_data=encode_capture(image_bytes, image_format),
        archetype=settings.archetype,
        iteration_count=settings.iteration_count,
        filter_enabled=filter_enabled,
    )


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
