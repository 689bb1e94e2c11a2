"""Illustration prompt — announcement images, generated or edited."""

from __future__ import annotations

IMAGE_STYLE_HINT = (
    "Bright, friendly illustration suitable for a language-class notice board. "
    "No text or lettering in the image."
)


def build_image_prompt(prompt: str, editing: bool) -> str:
    if editing:
        return f"Edit the provided image: {prompt}\n\n{IMAGE_STYLE_HINT}"
    return f"{prompt}\n\n{IMAGE_STYLE_HINT}"
