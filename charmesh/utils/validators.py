"""
Input validation for character mesh generation.

This module validates everything that crosses into the engine: raw pixel
buffers, the character analysis payload produced by the analysis step, and
plan identifiers. Failures raise ``InputValidationError`` so they surface as
mesh generation errors with the offending field attached.
"""

from typing import Any

import numpy as np
import pydantic
import structlog

from charmesh.generators.base import InputValidationError, NonFiniteGeometryError
from charmesh.models.character_model import CharacterAnalysis, Mesh, PixelBuffer, UserPlan

logger = structlog.get_logger(__name__)


# Configuration and Constants


class ValidationConfig:
    """Limits applied to engine inputs."""

    ALLOWED_CHANNELS = (3, 4)
    MAX_IMAGE_DIMENSION = 16384
    MAX_MESH_VERTICES = 65535


# Standardized Error Messages


class ErrorMessages:
    """Standardized error messages."""

    EMPTY_BUFFER = "Pixel buffer is empty"
    INVALID_DIMENSIONS = "Pixel buffer dimensions must be positive, got {width}x{height}"
    DIMENSION_TOO_LARGE = "Pixel buffer dimension cannot exceed {max_dimension} pixels"
    INVALID_CHANNELS = "Pixel buffer must have 3 (RGB) or 4 (RGBA) channels, got {channels}"
    LENGTH_MISMATCH = "Pixel buffer holds {actual} bytes, expected {expected} for {width}x{height}x{channels}"
    INVALID_ANALYSIS = "Character analysis is invalid: {reason}"
    UNKNOWN_PLAN = "Unknown plan '{plan}', falling back to '{fallback}'"
    MESH_LENGTH_MISMATCH = "Mesh {name} holds {actual} values, expected {expected}"
    MESH_INDEX_OUT_OF_RANGE = "Mesh index {index} is out of range for {vertex_count} vertices"
    MESH_NON_FINITE = "Mesh {name} contains {count} non-finite values"


# Validators


class PixelBufferValidator:
    """Validates raw raster input."""

    @staticmethod
    def validate(buffer: PixelBuffer) -> PixelBuffer:
        if buffer.width <= 0 or buffer.height <= 0:
            raise InputValidationError(
                ErrorMessages.INVALID_DIMENSIONS.format(width=buffer.width, height=buffer.height),
                field_name="dimensions",
                field_value=[buffer.width, buffer.height],
            )

        if max(buffer.width, buffer.height) > ValidationConfig.MAX_IMAGE_DIMENSION:
            raise InputValidationError(
                ErrorMessages.DIMENSION_TOO_LARGE.format(max_dimension=ValidationConfig.MAX_IMAGE_DIMENSION),
                field_name="dimensions",
                field_value=[buffer.width, buffer.height],
            )

        if buffer.channels not in ValidationConfig.ALLOWED_CHANNELS:
            raise InputValidationError(
                ErrorMessages.INVALID_CHANNELS.format(channels=buffer.channels),
                field_name="channels",
                field_value=buffer.channels,
            )

        if not buffer.data:
            raise InputValidationError(ErrorMessages.EMPTY_BUFFER, field_name="data", field_value=0)

        expected = buffer.width * buffer.height * buffer.channels
        if len(buffer.data) != expected:
            raise InputValidationError(
                ErrorMessages.LENGTH_MISMATCH.format(
                    actual=len(buffer.data),
                    expected=expected,
                    width=buffer.width,
                    height=buffer.height,
                    channels=buffer.channels,
                ),
                field_name="data",
                field_value=len(buffer.data),
            )

        return buffer


class AnalysisValidator:
    """Parses the analysis collaborator's payload."""

    @staticmethod
    def parse(payload: dict[str, Any] | CharacterAnalysis) -> CharacterAnalysis:
        if isinstance(payload, CharacterAnalysis):
            return payload
        try:
            return CharacterAnalysis.model_validate(payload)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            field_name = ".".join(str(part) for part in first["loc"])
            raise InputValidationError(
                ErrorMessages.INVALID_ANALYSIS.format(reason=first["msg"]),
                field_name=field_name or "analysis",
                field_value=first.get("input"),
                original_exception=e,
            ) from e


class PlanValidator:
    """Normalizes plan identifiers."""

    @staticmethod
    def normalize(plan: str | UserPlan | None, fallback: UserPlan = UserPlan.FREE) -> UserPlan:
        if isinstance(plan, UserPlan):
            return plan
        if not plan:
            return fallback
        key = plan.strip().lower().replace("-", "_")
        try:
            return UserPlan(key)
        except ValueError:
            logger.warning(ErrorMessages.UNKNOWN_PLAN.format(plan=plan, fallback=fallback.value))
            return fallback


class MeshValidator:
    """Checks the structural invariants of a finished mesh."""

    @staticmethod
    def validate(mesh: Mesh) -> Mesh:
        vertex_count = mesh.vertex_count

        for name, width in (("vertices", 3), ("uvs", 2), ("normals", 3)):
            actual = len(getattr(mesh, name))
            if actual != width * vertex_count:
                raise InputValidationError(
                    ErrorMessages.MESH_LENGTH_MISMATCH.format(name=name, actual=actual, expected=width * vertex_count),
                    field_name=name,
                    field_value=actual,
                )

        if vertex_count > ValidationConfig.MAX_MESH_VERTICES:
            raise InputValidationError(
                ErrorMessages.MESH_LENGTH_MISMATCH.format(
                    name="vertex count", actual=vertex_count, expected=ValidationConfig.MAX_MESH_VERTICES
                ),
                field_name="vertices",
                field_value=vertex_count,
            )

        if len(mesh.indices):
            lowest, highest = int(mesh.indices.min()), int(mesh.indices.max())
            if lowest < 0 or highest >= vertex_count:
                bad_index = lowest if lowest < 0 else highest
                raise InputValidationError(
                    ErrorMessages.MESH_INDEX_OUT_OF_RANGE.format(index=bad_index, vertex_count=vertex_count),
                    field_name="indices",
                    field_value=bad_index,
                )

        for name in ("vertices", "uvs", "normals"):
            non_finite = int((~np.isfinite(getattr(mesh, name))).sum())
            if non_finite:
                raise NonFiniteGeometryError(
                    ErrorMessages.MESH_NON_FINITE.format(name=name, count=non_finite),
                    stage=name,
                    count=non_finite,
                )

        return mesh
