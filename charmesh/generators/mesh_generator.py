"""
Character mesh generation.

``synthesize_mesh`` is the single grid loop that turns a raster plus a
character analysis into a triangle mesh. ``AvatarMeshGenerator`` wraps it with
validation, plan-driven quality selection, texture enhancement, GLB encoding,
progress reporting and the one-shot textureless fallback.
"""

import time
import uuid
from collections.abc import Callable

import numpy as np
import structlog

from charmesh.generators.anatomy_mapper import ArchetypeConfig, map_row, select_archetype
from charmesh.generators.base import (
    CancellationToken,
    GenerationBudget,
    GenerationCancelledError,
    GenerationError,
    GenerationResult,
    GenerationStatus,
    GenerationTimeoutError,
    GLBEncodingError,
    MeshGenerationError,
)
from charmesh.generators.configs import calculate_proportions, processing_capabilities, quality_for_plan
from charmesh.generators.enums import GenerationStep
from charmesh.generators.glb_serializer import DEFAULT_GENERATOR, compute_bounds, encode_glb
from charmesh.generators.missing_anatomy import anatomy_primitives, apply_missing_anatomy
from charmesh.generators.models import GenerationRequest, MeshStats, ProgressUpdate
from charmesh.generators.texture_enhancer import EnhancedTextures, enhance_textures
from charmesh.generators.topology import build_indices, select_resolution, target_vertex_count
from charmesh.generators.trait_overlay import active_traits, apply_traits
from charmesh.generators.vertex_synthesizer import synthesize_row
from charmesh.models.character_model import CharacterAnalysis, Mesh, PixelBuffer
from charmesh.utils.validators import MeshValidator, PixelBufferValidator

logger = structlog.get_logger(__name__)

NORMAL_TILT = 0.2
MIN_FALLBACK_RESOLUTION = 8
TEXTURES_NOT_EMBEDDED = "Textures are returned alongside the GLB and are not embedded in it"

ProgressCallback = Callable[[ProgressUpdate], None]


def fallback_resolution(resolution: int) -> int:
    """Half the grid resolution, at least 8 but never above the original."""
    return min(resolution, max(MIN_FALLBACK_RESOLUTION, resolution // 2))


def synthesize_mesh(
    pixels: PixelBuffer,
    analysis: CharacterAnalysis,
    archetype: ArchetypeConfig,
    resolution: int,
    *,
    scale: float = 2.0,
    cancel_token: CancellationToken | None = None,
    budget: GenerationBudget | None = None,
    on_row: Callable[[int], None] | None = None,
) -> Mesh:
    """
    Build a ``resolution x resolution`` grid mesh.

    Each row is sampled, depth-estimated, overlaid with traits and synthesized
    anatomy, then mapped through the archetype regions. Cancellation and the
    time budget are checked before every row.
    """
    vertex_count = resolution * resolution
    traits = active_traits(analysis)
    primitives = anatomy_primitives(analysis)

    vertices = np.empty((vertex_count, 3), dtype=np.float32)
    uvs = np.empty((vertex_count, 2), dtype=np.float32)
    normals = np.empty((vertex_count, 3), dtype=np.float32)
    body_parts = np.empty(vertex_count, dtype=object)

    u = np.linspace(0.0, 1.0, resolution)
    nx = (u - 0.5) * NORMAL_TILT

    for y in range(resolution):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(row=y)
        if budget is not None:
            budget.check(row=y)

        v = y / (resolution - 1)
        row = synthesize_row(pixels, analysis.character_type, u, v)
        row = apply_traits(row, traits)
        row = apply_missing_anatomy(row, primitives)
        positions = map_row(row, archetype, scale)

        start, stop = y * resolution, (y + 1) * resolution
        vertices[start:stop] = positions
        uvs[start:stop, 0] = u
        uvs[start:stop, 1] = 1.0 - v

        ny = (v - 0.5) * NORMAL_TILT
        normals[start:stop, 0] = nx
        normals[start:stop, 1] = ny
        normals[start:stop, 2] = np.sqrt(np.maximum(0.0, 1.0 - nx**2 - ny**2))
        body_parts[start:stop] = row.body_part

        if on_row is not None:
            on_row(y)

    mesh = Mesh(
        vertices=vertices.ravel(),
        indices=build_indices(resolution, vertex_count),
        uvs=uvs.ravel(),
        normals=normals.ravel(),
        body_parts=body_parts,
        resolution=resolution,
        metadata={"archetype": archetype.archetype.value},
    )
    return MeshValidator.validate(mesh)


class AvatarMeshGenerator:
    """Synchronous, CPU-bound character mesh generator."""

    def __init__(self, generator_name: str = DEFAULT_GENERATOR) -> None:
        self.generator_name = generator_name

    def generate(
        self,
        request: GenerationRequest,
        progress_callback: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> GenerationResult:
        """
        Generate a GLB for a character raster.

        Args:
            request: Raster, analysis and plan for this generation
            progress_callback: Optional callback for progress updates
            cancel_token: Optional token checked once per grid row

        Returns:
            GenerationResult; failures are reported on the result, not raised
        """
        started = time.monotonic()
        result = GenerationResult(
            status=GenerationStatus.IN_PROGRESS,
            generator_name=self.generator_name,
            generation_id=str(uuid.uuid4()),
        )
        budget = GenerationBudget(request.time_budget_seconds)

        logger.info(
            "Starting mesh generation",
            generation_id=result.generation_id,
            character_type=request.analysis.character_type.value,
            user_plan=request.user_plan.value,
        )

        try:
            self._report(progress_callback, GenerationStep.VALIDATION, 0.0, "Validating input")
            PixelBufferValidator.validate(request.pixels)

            archetype = select_archetype(request.analysis)
            quality = quality_for_plan(request.user_plan)
            capabilities = processing_capabilities(request.user_plan)
            target = target_vertex_count(request.analysis.character_type, request.analysis.complexity)
            resolution_budget = request.max_resolution or quality.resolution_budget
            resolution = select_resolution(target, resolution_budget)

            result.request_metadata = {
                "user_plan": request.user_plan.value,
                "character_type": request.analysis.character_type.value,
                "complexity": request.analysis.complexity.value,
                "archetype": archetype.archetype.value,
                "target_vertices": target,
                "resolution_budget": resolution_budget,
                "quality": quality.model_dump(mode="json"),
                "capabilities": {
                    "enhance_textures": capabilities.enhance_textures,
                    "generate_normal_maps": capabilities.generate_normal_maps,
                    "detail_enhancement": capabilities.detail_enhancement,
                },
                "proportions": calculate_proportions(request.analysis).to_dict(),
            }

            try:
                mesh = self._build_mesh(request, archetype, resolution, progress_callback, cancel_token, budget)

                textures = None
                if request.include_textures and capabilities.enhance_textures:
                    self._report(progress_callback, GenerationStep.TEXTURES, 0.7, "Enhancing textures")
                    textures = enhance_textures(request.pixels, quality)
                    if textures.degraded:
                        result.add_warning("Texture enhancement failed; source texture returned instead")

                self._report(progress_callback, GenerationStep.ENCODING, 0.9, "Encoding GLB")
                glb = encode_glb(mesh, textures, generator=self.generator_name)
                if textures is not None:
                    result.add_warning(TEXTURES_NOT_EMBEDDED)

            except (MeshGenerationError, GLBEncodingError) as e:
                mesh, glb, textures = self._fallback(
                    request, archetype, resolution, e, progress_callback, cancel_token, budget
                )
                result.used_fallback = True
                result.add_warning(f"Primary generation failed ({e.error_code}); returned a reduced textureless mesh")

            bounds_min, bounds_max = compute_bounds(mesh.vertices)
            result.glb = glb
            result.textures = textures
            result.stats = MeshStats(
                vertex_count=mesh.vertex_count,
                triangle_count=mesh.triangle_count,
                resolution=mesh.resolution,
                target_vertices=target,
                archetype=archetype.archetype.value,
                bounds_min=bounds_min,
                bounds_max=bounds_max,
                glb_bytes=len(glb),
            ).model_dump()
            result.status = GenerationStatus.COMPLETED

            self._report(progress_callback, GenerationStep.COMPLETE, 1.0, "Generation complete")

        except GenerationError as e:
            result.set_error(e)
        except Exception as e:
            result.set_error(
                MeshGenerationError(
                    f"Unexpected error during mesh generation: {e}",
                    error_code="UNEXPECTED_ERROR",
                    original_exception=e,
                )
            )

        result.processing_time_ms = int((time.monotonic() - started) * 1000)

        if result.is_successful:
            logger.info(
                "Mesh generation completed",
                generation_id=result.generation_id,
                vertices=result.stats["vertex_count"],
                triangles=result.stats["triangle_count"],
                glb_bytes=result.stats["glb_bytes"],
                used_fallback=result.used_fallback,
                processing_time_ms=result.processing_time_ms,
            )
        return result

    def _build_mesh(
        self,
        request: GenerationRequest,
        archetype: ArchetypeConfig,
        resolution: int,
        progress_callback: ProgressCallback | None,
        cancel_token: CancellationToken | None,
        budget: GenerationBudget,
    ) -> Mesh:
        self._report(
            progress_callback,
            GenerationStep.MESH,
            0.1,
            "Synthesizing mesh",
            resolution=resolution,
            archetype=archetype.archetype.value,
        )

        on_row = None
        if progress_callback is not None:
            report_every = max(1, resolution // 10)

            def on_row(y: int) -> None:
                if (y + 1) % report_every == 0:
                    self._report(
                        progress_callback,
                        GenerationStep.MESH,
                        0.1 + 0.6 * (y + 1) / resolution,
                        "Synthesizing mesh",
                        row=y,
                    )

        return synthesize_mesh(
            request.pixels,
            request.analysis,
            archetype,
            resolution,
            scale=request.mesh_scale,
            cancel_token=cancel_token,
            budget=budget,
            on_row=on_row,
        )

    def _fallback(
        self,
        request: GenerationRequest,
        archetype: ArchetypeConfig,
        resolution: int,
        error: GenerationError,
        progress_callback: ProgressCallback | None,
        cancel_token: CancellationToken | None,
        budget: GenerationBudget,
    ) -> tuple[Mesh, bytes, EnhancedTextures | None]:
        """One reduced-resolution textureless attempt. Failures propagate."""
        reduced = fallback_resolution(resolution)
        logger.warning(
            "Generation failed, trying textureless fallback",
            error=error.to_dict(),
            resolution=resolution,
            fallback_resolution=reduced,
        )
        self._report(
            progress_callback,
            GenerationStep.FALLBACK,
            0.5,
            "Retrying with a reduced textureless mesh",
            resolution=reduced,
        )

        try:
            mesh = synthesize_mesh(
                request.pixels,
                request.analysis,
                archetype,
                reduced,
                scale=request.mesh_scale,
                cancel_token=cancel_token,
                budget=budget,
            )
            glb = encode_glb(mesh, None, generator=self.generator_name)
        except (GenerationCancelledError, GenerationTimeoutError):
            raise
        except GenerationError as fallback_error:
            if fallback_error is not error:
                fallback_error.details.setdefault("primary_error", error.to_dict())
            raise
        return mesh, glb, None

    @staticmethod
    def _report(
        progress_callback: ProgressCallback | None,
        step: GenerationStep,
        progress: float,
        message: str,
        **details,
    ) -> None:
        if progress_callback is None:
            return
        progress_callback(
            ProgressUpdate(step=step, progress=min(1.0, progress), message=message, details=details)
        )
