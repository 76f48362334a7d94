"""Generation session API endpoints.

This module implements the endpoints the browser uses to drive a generation:
- POST /api/sessions - Create a session
- GET /api/sessions/{session_id} - Current phase, subtasks, progress and result URLs
- POST /api/sessions/{session_id}/generations - Submit images/prompt/options, starting a run
- DELETE /api/sessions/{session_id} - Cancel any in-flight run and drop the session

Submitting a new generation supersedes the session's previous run.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import FormData, UploadFile

from modelsmith.api.dependencies import get_session, get_session_registry, get_settings
from modelsmith.core.config import Settings
from modelsmith.models.generation import GenerationOptions, GenerationRequest, ImageUpload
from modelsmith.services.exceptions import ValidationError
from modelsmith.services.session import GenerationSession, SessionRegistry, SessionView

logger = structlog.get_logger()
router = APIRouter(prefix="/api/sessions", tags=["sessions"])

RESERVED_FIELDS = {"images", "prompt"}


class CreateSessionResponse(BaseModel):
    """Response model for session creation."""

    session_id: str = Field(..., description="Opaque session identifier")


def parse_options(form: FormData) -> GenerationOptions:
    """Rebuild GenerationOptions from submitted form fields.

    ``key[]`` fields are collected into lists; everything else is scalar.

    Raises:
        ValidationError: An option was sent as a file part
        pydantic.ValidationError: Unknown option or invalid value
    """
    raw: dict[str, object] = {}
    for key in dict.fromkeys(form.keys()):
        if key in RESERVED_FIELDS:
            continue
        values = form.getlist(key)
        if any(isinstance(value, UploadFile) for value in values):
            name = key[:-2] if key.endswith("[]") else key
            raise ValidationError(name, f"Option {name!r} must be a text field, not a file")
        if key.endswith("[]"):
            raw[key[:-2]] = values
        else:
            raw[key] = form.get(key)
    return GenerationOptions.model_validate(raw)


async def read_image(item: UploadFile, max_image_bytes: int) -> ImageUpload:
    """Read one uploaded image, never buffering more than the size ceiling.

    Raises:
        ValidationError: The upload is larger than ``max_image_bytes``
    """
    filename = item.filename or "image"
    too_large = ValidationError(
        "images", f"Image {filename!r} exceeds maximum size of {max_image_bytes} bytes"
    )
    if item.size is not None and item.size > max_image_bytes:
        raise too_large

    content = await item.read(max_image_bytes + 1)
    if len(content) > max_image_bytes:
        raise too_large

    return ImageUpload(
        filename=filename,
        content=content,
        content_type=item.content_type or "application/octet-stream",
    )


async def parse_generation_request(
    form: FormData,
    max_images: int = 8,
    max_image_bytes: int = 10 * 1024 * 1024,
) -> GenerationRequest:
    """Build a GenerationRequest from a multipart form.

    Image count and size limits are checked before any upload is read.

    Raises:
        ValidationError: Too many images, an oversized image, or a file option
        pydantic.ValidationError: Unknown option or invalid value
    """
    uploads = [item for item in form.getlist("images") if isinstance(item, UploadFile)]
    if len(uploads) > max_images:
        raise ValidationError(
            "images", f"At most {max_images} images are allowed (got {len(uploads)})"
        )

    options = parse_options(form)
    images = [await read_image(item, max_image_bytes) for item in uploads]

    prompt = form.get("prompt")
    return GenerationRequest(
        images=images,
        prompt=prompt if isinstance(prompt, str) else None,
        options=options,
    )


@router.post("", response_model=CreateSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    registry: SessionRegistry = Depends(get_session_registry),
) -> CreateSessionResponse:
    """Create a new generation session."""
    session = registry.create()
    return CreateSessionResponse(session_id=session.session_id)


@router.get("/{session_id}", response_model=SessionView)
async def get_session_view(session: GenerationSession = Depends(get_session)) -> SessionView:
    """Return the session's current run state."""
    return session.view()


@router.post(
    "/{session_id}/generations",
    response_model=SessionView,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_generation(
    request: Request,
    session: GenerationSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> SessionView:
    """Submit a generation request and start a new orchestration run.

    Accepts multipart form data: repeated ``images`` files, an optional
    ``prompt`` text field and option fields (lists as repeated ``key[]``).

    Returns:
        202: Session view of the newly started run

    Raises:
        HTTPException: 422 if the request is invalid (checked before any upstream call)
    """
    form = await request.form()
    try:
        generation_request = await parse_generation_request(
            form,
            max_images=settings.max_images,
            max_image_bytes=settings.max_image_bytes,
        )
        session.start(generation_request)
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_input=False),
        )
    except ValidationError as e:
        logger.info(
            "generation.rejected",
            session_id=session.session_id,
            field=e.field,
            reason=e.message,
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"field": e.field, "message": e.message},
        )
    finally:
        await form.close()

    return session.view()


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    """Cancel the session's in-flight run and remove the session."""
    if not registry.remove(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Session not found: {session_id}"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
