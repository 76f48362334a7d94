"""Multipart payload construction for Rodin submissions."""

from typing import Any

from modelsmith.models.generation import GenerationOptions, GenerationRequest

FileField = tuple[str, tuple[str, bytes, str]]


def serialize_option(value: Any) -> str:
    """Render a scalar option value the way the upstream form parser expects."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def option_fields(options: GenerationOptions) -> dict[str, str | list[str]]:
    """Flatten options into form fields.

    Lists become repeated ``<key>[]`` fields rather than one encoded value.
    """
    fields: dict[str, str | list[str]] = {}
    for key, value in options.model_dump().items():
        if isinstance(value, (list, tuple)):
            fields[f"{key}[]"] = [serialize_option(item) for item in value]
        else:
            fields[key] = serialize_option(value)
    return fields


def build_multipart(
    request: GenerationRequest,
) -> tuple[dict[str, str | list[str]], list[FileField]]:
    """Build httpx ``data`` and ``files`` arguments for a submission.

    Returns:
        Tuple of (text fields, file parts). Images are sent as repeated
        ``images`` parts in their original order.
    """
    data = option_fields(request.options)
    if request.has_prompt:
        data["prompt"] = request.prompt  # type: ignore[assignment]

    files: list[FileField] = [
        ("images", (image.filename, image.content, image.content_type))
        for image in request.images
    ]
    return data, files
