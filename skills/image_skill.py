"""Image skill — generate an illustration, or edit a base image.

The base image may arrive as raw image bytes, a ``data:<mime>;base64,...``
URI, or a bare base64 payload.  Whatever the form, the mime type and payload
are recovered before the call (``image/jpeg`` when unknown).  The first image
part of the response comes back as a data URI; a response without an image
is ``None``, which callers treat as "no illustration".
"""

from __future__ import annotations

import base64
import logging

from config.prompts.image import build_image_prompt
from errors import ValidationError
from models.ai import DEFAULT_IMAGE_MIME, GenerationRequest, ImagePart
from services.generative import run_generation

logger = logging.getLogger(__name__)

IMAGE_GENERATION_FAILED = "image generation failed"

# Leading magic bytes → mime type
_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def _sniff_mime(data: bytes) -> str:
    for signature, mime in _SIGNATURES:
        if data.startswith(signature):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_IMAGE_MIME


def parse_data_uri(value: str | bytes) -> ImagePart:
    """Recover mime type and base64 payload from any accepted image form.

    Never raises on malformed input; the mime type falls back to
    ``image/jpeg``.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
        if raw.startswith(b"data:"):
            return ImagePart.from_data_uri(raw.decode("ascii", errors="ignore"))
        return ImagePart(mime_type=_sniff_mime(raw), data=base64.b64encode(raw).decode("ascii"))
    return ImagePart.from_data_uri(value)


def to_data_uri(part: ImagePart) -> str:
    return part.to_data_uri()


async def generate_or_edit_image(prompt: str, base_image: str | bytes | None = None) -> str | None:
    """Return the produced image as a data URI, or None if the model drew nothing."""
    if prompt is None or not prompt.strip():
        raise ValidationError("Image prompt must not be empty")

    image = parse_data_uri(base_image) if base_image else None
    request = GenerationRequest(
        operation="generate_image",
        prompt=build_image_prompt(prompt.strip(), editing=image is not None),
        image=image,
        wants_image=True,
    )
    response = await run_generation(request, failure_message=IMAGE_GENERATION_FAILED)
    if not response.images:
        logger.info("Image model returned no image for prompt (len=%d)", len(prompt))
        return None
    return to_data_uri(response.images[0])
