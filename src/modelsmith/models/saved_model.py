"""SavedModel entity - metadata for a generated model kept by the user."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SavedModel(BaseModel):
    """SavedModel records a generated model's name, prompt and URL."""

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(min_length=1, max_length=200)
    prompt: str = Field(min_length=1)
    model_url: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)
