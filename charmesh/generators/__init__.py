"""
Mesh generation engine for character artwork.

This package holds the depth, anatomy and topology stages that turn a 2D
character image into a GLB mesh, together with the shared error hierarchy,
result format and plan-driven configuration tables. The orchestrating
generator lives in ``charmesh.generators.mesh_generator``.
"""

from .base import (
    CancellationToken,
    ErrorSeverity,
    GenerationBudget,
    GenerationCancelledError,
    GenerationError,
    GenerationResult,
    GenerationStatus,
    GenerationTimeoutError,
    GLBEncodingError,
    GLBFormatError,
    InputValidationError,
    MeshGenerationError,
    NonFiniteGeometryError,
    TextureEnhancementError,
    configure_generator_logging,
)
from .configs import QUALITY_SETTINGS, calculate_proportions, processing_capabilities, quality_for_plan
from .enums import Archetype, GenerationStep, MeshDensity, RegionShape, TextureQuality
from .models import GenerationRequest, MeshStats, ProgressUpdate, QualitySettings

__all__ = [
    # Result format and runtime controls
    "GenerationResult",
    "GenerationStatus",
    "ErrorSeverity",
    "CancellationToken",
    "GenerationBudget",
    # Error classes
    "GenerationError",
    "MeshGenerationError",
    "InputValidationError",
    "NonFiniteGeometryError",
    "GLBEncodingError",
    "GLBFormatError",
    "TextureEnhancementError",
    "GenerationCancelledError",
    "GenerationTimeoutError",
    # Utilities
    "configure_generator_logging",
    # Configuration tables
    "QUALITY_SETTINGS",
    "quality_for_plan",
    "processing_capabilities",
    "calculate_proportions",
    # Enums and request models
    "Archetype",
    "GenerationStep",
    "MeshDensity",
    "RegionShape",
    "TextureQuality",
    "GenerationRequest",
    "MeshStats",
    "ProgressUpdate",
    "QualitySettings",
]
