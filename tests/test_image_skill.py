"""Tests for the image skill — input forms, mime recovery, response handling."""

import base64

import pytest

from errors import GenerationError, ValidationError
from skills.image_skill import IMAGE_GENERATION_FAILED, generate_or_edit_image, parse_data_uri
from tests.helpers import image_response


# ── parse_data_uri ────────────────────────────────────────────


class TestParseDataUri:
    def test_data_uri(self):
        part = parse_data_uri("data:image/png;base64,AAAA")
        assert (part.mime_type, part.data) == ("image/png", "AAAA")

    def test_bare_base64_defaults_to_jpeg(self):
        part = parse_data_uri("AAAA")
        assert (part.mime_type, part.data) == ("image/jpeg", "AAAA")

    @pytest.mark.parametrize("value", ["data:;base64,AAAA", "data:not a mime;base64,AAAA"])
    def test_malformed_mime_falls_back(self, value):
        part = parse_data_uri(value)
        assert part.mime_type == "image/jpeg"
        assert part.data == "AAAA"

    def test_extra_parameters_ignored(self):
        part = parse_data_uri("data:image/webp;name=x.webp;base64,QUJD")
        assert (part.mime_type, part.data) == ("image/webp", "QUJD")

    def test_png_bytes_sniffed(self):
        raw = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8
        part = parse_data_uri(raw)
        assert part.mime_type == "image/png"
        assert base64.b64decode(part.data) == raw

    def test_unknown_bytes_default_to_jpeg(self):
        assert parse_data_uri(b"\x00\x01\x02").mime_type == "image/jpeg"

    def test_data_uri_bytes(self):
        assert parse_data_uri(b"data:image/gif;base64,R0lG").mime_type == "image/gif"


# ── generate_or_edit_image ────────────────────────────────────


class TestGenerateOrEditImage:
    async def test_returns_first_image_as_data_uri(self, capability):
        capability.push(image_response("iVBORw0KGgo=", "image/png"))

        result = await generate_or_edit_image("un dragon rouge")

        assert result == "data:image/png;base64,iVBORw0KGgo="
        [request] = capability.requests
        assert request.wants_image
        assert request.image is None

    async def test_edit_passes_base_image(self, capability):
        capability.push(image_response())

        await generate_or_edit_image("ajoute une lanterne", "data:image/png;base64,AAAA")

        image = capability.requests[0].image
        assert (image.mime_type, image.data) == ("image/png", "AAAA")

    async def test_no_image_in_response(self, capability):
        capability.push("Je ne peux pas dessiner ça.")
        assert await generate_or_edit_image("quelque chose") is None

    async def test_blank_prompt(self, capability):
        with pytest.raises(ValidationError):
            await generate_or_edit_image(" ")

    async def test_capability_failure(self, capability):
        capability.push(ConnectionError("reset"))
        with pytest.raises(GenerationError, match=IMAGE_GENERATION_FAILED):
            await generate_or_edit_image("un chat")
