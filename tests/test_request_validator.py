"""Unit tests for generation request validation.

A request needs at least one image or a non-blank prompt, and must respect
the image count, image size and prompt length limits. Validation never
touches the network.
"""

import pytest

from modelsmith.models.generation import GenerationRequest, ImageUpload
from modelsmith.services.exceptions import ValidationError
from modelsmith.services.rodin.request_validator import validate_request


def make_image(name: str = "front.png", size: int = 16) -> ImageUpload:
    return ImageUpload(filename=name, content=b"\x89PNG" + b"\x00" * size, content_type="image/png")


class TestAtLeastOneInput:
    """Images or prompt must be present."""

    @pytest.mark.parametrize("prompt", [None, "", "   ", "\n\t "])
    def test_no_images_and_blank_prompt_rejected(self, prompt):
        with pytest.raises(ValidationError) as exc_info:
            validate_request(GenerationRequest(images=[], prompt=prompt))

        assert exc_info.value.field == "prompt"
        assert "either images or a prompt" in exc_info.value.message

    def test_prompt_only_accepted(self):
        request = GenerationRequest(prompt="a weathered bronze owl")
        assert validate_request(request) is request

    def test_images_only_accepted(self):
        request = GenerationRequest(images=[make_image()])
        assert validate_request(request) is request

    def test_images_with_blank_prompt_accepted(self):
        request = GenerationRequest(images=[make_image()], prompt="   ")
        assert validate_request(request) is request


class TestLimits:
    """Image count, image size and prompt length limits."""

    def test_eight_images_accepted(self):
        images = [make_image(f"view-{i}.png") for i in range(8)]
        validate_request(GenerationRequest(images=images), max_images=8)

    def test_nine_images_rejected(self):
        images = [make_image(f"view-{i}.png") for i in range(9)]

        with pytest.raises(ValidationError) as exc_info:
            validate_request(GenerationRequest(images=images), max_images=8)

        assert exc_info.value.field == "images"
        assert "At most 8 images" in exc_info.value.message

    def test_oversized_image_rejected(self):
        request = GenerationRequest(images=[make_image("huge.png", size=2048)])

        with pytest.raises(ValidationError) as exc_info:
            validate_request(request, max_image_bytes=1024)

        assert exc_info.value.field == "images"
        assert "huge.png" in exc_info.value.message

    def test_empty_image_rejected(self):
        request = GenerationRequest(images=[ImageUpload(filename="blank.png", content=b"")])

        with pytest.raises(ValidationError) as exc_info:
            validate_request(request)

        assert exc_info.value.field == "images"

    def test_prompt_too_long_rejected(self):
        request = GenerationRequest(prompt="x" * 1001)

        with pytest.raises(ValidationError) as exc_info:
            validate_request(request, max_prompt_length=1000)

        assert exc_info.value.field == "prompt"
        assert "1001" in exc_info.value.message

    def test_prompt_at_limit_accepted(self):
        validate_request(GenerationRequest(prompt="x" * 1000), max_prompt_length=1000)
