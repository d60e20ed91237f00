"""
Enums for the mesh generators.

This module contains enums for anatomy layouts, region shapes and plan-driven
quality tiers.
"""

from enum import Enum


class Archetype(str, Enum):
    """Named anatomical region layouts."""

    GENERIC_HUMANOID = "generic_humanoid"
    PENGUIN = "penguin"
    ANTHROPOMORPHIC_APE = "anthropomorphic_ape"


class RegionShape(str, Enum):
    """Depth profile used when evaluating an anatomy region."""

    SPHERE = "sphere"
    CYLINDER = "cylinder"
    OVAL = "oval"
    BOX = "box"  # Accessory regions only (e.g. weapons)


class TextureQuality(str, Enum):
    """Texture quality tiers."""

    STANDARD = "standard"
    HIGH = "high"
    ULTRA = "ultra"


class MeshDensity(str, Enum):
    """Mesh density tiers."""

    MEDIUM = "medium"
    HIGH = "high"
    ULTRA = "ultra"


class GenerationStep(str, Enum):
    """Progress checkpoints reported while generating."""

    VALIDATION = "validation"
    MESH = "mesh"
    TEXTURES = "textures"
    ENCODING = "encoding"
    FALLBACK = "fallback"
    COMPLETE = "complete"
