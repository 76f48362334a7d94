"""Generation request, job handle and status snapshot entities."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class SubtaskState(str, Enum):
    """Status of one external subtask."""

    QUEUED = "Queued"
    PROCESSING = "Processing"
    DONE = "Done"
    FAILED = "Failed"


class SubtaskStatus(BaseModel):
    """One subtask entry from a status poll."""

    model_config = ConfigDict(frozen=True)

    uuid: str
    status: SubtaskState
    error: str | None = None


class JobStatusSnapshot(BaseModel):
    """Full set of subtask statuses from one poll tick.

    Snapshots are never merged: each tick's snapshot replaces the previous one.
    """

    model_config = ConfigDict(frozen=True)

    subtasks: tuple[SubtaskStatus, ...] = ()

    @property
    def total(self) -> int:
        return len(self.subtasks)

    def count(self, state: SubtaskState) -> int:
        return sum(1 for subtask in self.subtasks if subtask.status == state)

    @property
    def all_done(self) -> bool:
        return self.total > 0 and self.count(SubtaskState.DONE) == self.total

    @property
    def first_failed(self) -> SubtaskStatus | None:
        for subtask in self.subtasks:
            if subtask.status == SubtaskState.FAILED:
                return subtask
        return None


class JobHandle(BaseModel):
    """Task identifier and subscription key returned by a submission."""

    model_config = ConfigDict(frozen=True)

    task_id: str = Field(min_length=1)
    subscription_key: str = Field(min_length=1)


class ArtifactFile(BaseModel):
    """One produced output file from the job's file listing."""

    model_config = ConfigDict(frozen=True)

    name: str
    remote_url: str
    content_type: str | None = None


class ResolvedArtifact(BaseModel):
    """The single output file selected for preview and download."""

    model_config = ConfigDict(frozen=True)

    file: ArtifactFile
    model_url: str = Field(description="URL used for preview (relay URL when the probe succeeds)")
    download_url: str = Field(description="Direct upstream URL for download")
    via_relay: bool


class ProgressView(BaseModel):
    """Derived progress for UI consumption. Never stored apart from its snapshot."""

    model_config = ConfigDict(frozen=True)

    percentage: float = Field(ge=0, le=100)
    stage_index: int = Field(ge=0)
    stage_label: str


class ImageUpload(BaseModel):
    """Reference image carried by a generation request."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


ExportVariant = Literal["web", "mobile", "desktop", "vr", "ar", "print"]


class GenerationOptions(BaseModel):
    """Configuration options forwarded to the generation service."""

    model_config = ConfigDict(extra="forbid")

    condition_mode: Literal["concat", "fuse"] = "concat"
    quality: Literal["high", "medium", "low", "extra-low"] = "medium"
    geometry_file_format: Literal["glb", "usdz", "fbx", "obj", "stl"] = "glb"
    use_hyper: bool = False
    tier: Literal["Regular", "Sketch"] = "Regular"
    TAPose: bool = False
    material: Literal["PBR", "Shaded"] = "PBR"
    mesh_mode: Literal["Quad", "Triangle"] = "Quad"
    mesh_simplify: bool = True
    mesh_smooth: bool = True
    texture_resolution: Literal["1024", "2048", "4096", "8192"] = "2048"
    lighting_mode: Literal["auto", "studio", "outdoor", "indoor", "dramatic", "soft"] = "auto"
    camera_angle: Literal[
        "auto", "front", "side", "top", "diagonal", "isometric", "perspective"
    ] = "auto"
    background_removal: bool = True
    edge_enhancement: bool = False
    detail_boost: Literal["off", "low", "medium", "high", "ultra"] = "off"
    detail_enhancement_mode: Literal["surface", "texture", "geometry", "all"] = "all"
    detail_preservation: bool = True
    surface_refinement: bool = False
    micro_detail_recovery: bool = False
    ai_upscaling: bool = False
    neural_enhancement: bool = False
    adaptive_lod: bool = False
    physics_simulation: bool = False
    animation_ready: bool = False
    uv_optimization: bool = True
    normal_map_generation: bool = False
    ambient_occlusion: bool = False
    subsurface_scattering: bool = False
    metallic_roughness: bool = False
    emission_mapping: bool = False
    displacement_mapping: bool = False
    multi_material_support: bool = False
    texture_atlas_optimization: bool = False
    mesh_compression: Literal["none", "low", "medium", "high"] = "none"
    color_space: Literal["sRGB", "Linear", "Rec2020", "ACES"] = "sRGB"
    export_variants: list[ExportVariant] = Field(default_factory=lambda: ["web"])
    batch_processing: bool = False
    version_control: bool = False

    @property
    def target_extension(self) -> str:
        """File suffix of the artifact to select from the listing."""
        return f".{self.geometry_file_format}"


class GenerationRequest(BaseModel):
    """One user submission: reference images and/or a prompt plus options.

    Created per user action and discarded after submission.
    """

    images: list[ImageUpload] = Field(default_factory=list)
    prompt: str | None = None
    options: GenerationOptions = Field(default_factory=GenerationOptions)

    @property
    def has_prompt(self) -> bool:
        return bool(self.prompt and self.prompt.strip())
