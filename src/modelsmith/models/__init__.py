"""Domain entities for generation orchestration and saved models."""

from modelsmith.models.generation import (
    ArtifactFile,
    GenerationOptions,
    GenerationRequest,
    ImageUpload,
    JobHandle,
    JobStatusSnapshot,
    ProgressView,
    ResolvedArtifact,
    SubtaskState,
    SubtaskStatus,
)
from modelsmith.models.saved_model import SavedModel

__all__ = [
    "ArtifactFile",
    "GenerationOptions",
    "GenerationRequest",
    "ImageUpload",
    "JobHandle",
    "JobStatusSnapshot",
    "ProgressView",
    "ResolvedArtifact",
    "SavedModel",
    "SubtaskState",
    "SubtaskStatus",
]
