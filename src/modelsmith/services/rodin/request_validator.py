"""Generation request validation.

Validates a request locally before anything is sent to the Rodin API.
"""

from modelsmith.models.generation import GenerationRequest
from modelsmith.services.exceptions import ValidationError


def validate_request(
    request: GenerationRequest,
    max_images: int = 8,
    max_image_bytes: int = 10 * 1024 * 1024,
    max_prompt_length: int = 1000,
) -> GenerationRequest:
    """Validate a generation request.

    Args:
        request: Request built from the user's form input
        max_images: Maximum number of reference images
        max_image_bytes: Size ceiling for each image
        max_prompt_length: Maximum prompt length in characters

    Returns:
        Validated request (unchanged if valid)

    Raises:
        ValidationError: If neither images nor a non-blank prompt are given,
            or if any limit is exceeded
    """
    if not request.images and not request.has_prompt:
        raise ValidationError("prompt", "You must provide either images or a prompt")

    if len(request.images) > max_images:
        raise ValidationError(
            "images",
            f"At most {max_images} images are allowed (got {len(request.images)})",
        )

    for image in request.images:
        if not image.content:
            raise ValidationError("images", f"Image {image.filename!r} is empty")
        if len(image.content) > max_image_bytes:
            raise ValidationError(
                "images",
                f"Image {image.filename!r} exceeds maximum size of {max_image_bytes} bytes "
                f"(got {len(image.content)})",
            )

    if request.prompt and len(request.prompt) > max_prompt_length:
        raise ValidationError(
            "prompt",
            f"Prompt exceeds maximum length of {max_prompt_length} characters "
            f"(got {len(request.prompt)})",
        )

    return request
