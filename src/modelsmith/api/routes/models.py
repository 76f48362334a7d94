"""Saved model API endpoints.

- POST /api/models - Save a generated model's name, prompt and URL
- GET /api/models - List saved models, newest first
- GET /api/models/{model_id} - Get one saved model
- DELETE /api/models/{model_id} - Delete a saved model
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field, field_validator

from modelsmith.api.dependencies import get_saved_models
from modelsmith.models.saved_model import SavedModel
from modelsmith.repositories.saved_model import SavedModelRepository

logger = structlog.get_logger()
router = APIRouter(prefix="/api/models", tags=["models"])


class SaveModelRequest(BaseModel):
    """Request model for saving a generated model."""

    name: str = Field(..., description="Display name", min_length=1, max_length=200)
    prompt: str = Field(..., description="Prompt the model was generated from", min_length=1)
    model_url: str = Field(..., description="Preview or download URL", min_length=1)

    @field_validator("name", "prompt", "model_url")
    @classmethod
    def strip_and_require(cls, v: str) -> str:
        """Reject blank values after trimming whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("All fields are required")
        return v


class SavedModelDTO(BaseModel):
    """Data Transfer Object for saved models in API responses."""

    id: UUID
    name: str
    prompt: str
    model_url: str
    created_at: datetime

    @classmethod
    def from_entity(cls, model: SavedModel) -> "SavedModelDTO":
        return cls(
            id=model.id,
            name=model.name,
            prompt=model.prompt,
            model_url=model.model_url,
            created_at=model.created_at,
        )


class SavedModelListResponse(BaseModel):
    """Response model for saved model listing."""

    models: list[SavedModelDTO]
    total: int


@router.post("", response_model=SavedModelDTO, status_code=status.HTTP_201_CREATED)
async def save_model(
    payload: SaveModelRequest,
    repo: SavedModelRepository = Depends(get_saved_models),
) -> SavedModelDTO:
    """Save metadata for a generated model."""
    model = await repo.add(
        SavedModel(name=payload.name, prompt=payload.prompt, model_url=payload.model_url)
    )
    logger.info("saved_model.created", model_id=str(model.id))
    return SavedModelDTO.from_entity(model)


@router.get("", response_model=SavedModelListResponse)
async def list_models(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    repo: SavedModelRepository = Depends(get_saved_models),
) -> SavedModelListResponse:
    """List saved models ordered by creation time, newest first."""
    models = await repo.list_all(limit=limit, offset=offset)
    return SavedModelListResponse(
        models=[SavedModelDTO.from_entity(model) for model in models],
        total=len(models),
    )


@router.get("/{model_id}", response_model=SavedModelDTO)
async def get_model(
    model_id: UUID,
    repo: SavedModelRepository = Depends(get_saved_models),
) -> SavedModelDTO:
    """Get one saved model by ID."""
    model = await repo.get_by_id(model_id)
    if model is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Model not found")
    return SavedModelDTO.from_entity(model)


@router.delete("/{model_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_model(
    model_id: UUID,
    repo: SavedModelRepository = Depends(get_saved_models),
) -> Response:
    """Delete a saved model."""
    if not await repo.delete(model_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Model not found")
    logger.info("saved_model.deleted", model_id=str(model_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
