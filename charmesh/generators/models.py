"""
Request and settings models for the mesh generator.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from charmesh.generators.enums import GenerationStep, MeshDensity, TextureQuality
from charmesh.models.character_model import CharacterAnalysis, PixelBuffer, UserPlan


class QualitySettings(BaseModel):
    """Plan-derived quality knobs. Pure lookup data."""

    model_config = ConfigDict(frozen=True)

    texture_quality: TextureQuality = TextureQuality.STANDARD
    mesh_density: MeshDensity = MeshDensity.MEDIUM
    normal_maps: bool = False
    detail_enhancement: bool = False
    texture_resolution: int = Field(default=512, ge=1, le=8192)
    resolution_budget: int = Field(default=96, ge=2, description="Upper bound on grid resolution")


class GenerationRequest(BaseModel):
    """Everything one generation needs."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    pixels: PixelBuffer
    analysis: CharacterAnalysis = Field(default_factory=CharacterAnalysis)
    user_plan: UserPlan = UserPlan.FREE
    max_resolution: int | None = Field(default=None, ge=2, le=255, description="Explicit grid resolution budget")
    time_budget_seconds: float | None = Field(default=None, gt=0)
    include_textures: bool = True
    mesh_scale: float = Field(default=2.0, gt=0)

    @field_validator("user_plan", mode="before")
    @classmethod
    def normalize_plan(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v


class MeshStats(BaseModel):
    """Summary of a generated mesh, reported back to callers."""

    vertex_count: int
    triangle_count: int
    resolution: int
    target_vertices: int
    archetype: str
    bounds_min: list[float]
    bounds_max: list[float]
    glb_bytes: int


class ProgressUpdate(BaseModel):
    """Progress checkpoint emitted during a generation."""

    step: GenerationStep
    progress: float = Field(ge=0.0, le=1.0)
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
