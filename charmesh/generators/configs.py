"""
Plan-driven configuration tables for mesh generation.

This module contains the lookup tables that map a subscription plan onto
quality settings, grid and texture resolutions, processing capabilities, and
the coarse body proportions reported alongside a generated mesh.
"""

from dataclasses import asdict, dataclass

from charmesh.generators.enums import MeshDensity, TextureQuality
from charmesh.generators.models import QualitySettings
from charmesh.models.character_model import CharacterAnalysis, CharacterType, UserPlan

# Grid resolution ceilings per plan; the topology builder clamps to uint16 space.
PLAN_RESOLUTION_BUDGETS: dict[UserPlan, int] = {
    UserPlan.FREE: 96,
    UserPlan.REPLY_GUY: 96,
    UserPlan.SPARTAN: 128,
    UserPlan.ZEUS: 192,
    UserPlan.GOAT: 256,
}

TEXTURE_RESOLUTIONS: dict[UserPlan, int] = {
    UserPlan.FREE: 512,
    UserPlan.REPLY_GUY: 1024,
    UserPlan.SPARTAN: 2048,
    UserPlan.ZEUS: 3072,
    UserPlan.GOAT: 4096,
}

_QUALITY_TIERS: dict[UserPlan, dict] = {
    UserPlan.GOAT: {
        "texture_quality": TextureQuality.ULTRA,
        "mesh_density": MeshDensity.ULTRA,
        "normal_maps": True,
        "detail_enhancement": True,
    },
    UserPlan.ZEUS: {
        "texture_quality": TextureQuality.HIGH,
        "mesh_density": MeshDensity.HIGH,
        "normal_maps": True,
    },
    UserPlan.SPARTAN: {
        "texture_quality": TextureQuality.HIGH,
        "mesh_density": MeshDensity.MEDIUM,
    },
}

QUALITY_SETTINGS: dict[UserPlan, QualitySettings] = {
    plan: QualitySettings(
        texture_resolution=TEXTURE_RESOLUTIONS[plan],
        resolution_budget=PLAN_RESOLUTION_BUDGETS[plan],
        **_QUALITY_TIERS.get(plan, {}),
    )
    for plan in UserPlan
}


def quality_for_plan(plan: UserPlan) -> QualitySettings:
    """Look up the quality settings for a plan."""
    return QUALITY_SETTINGS[plan]


@dataclass(frozen=True)
class ProcessingCapabilities:
    """Optional processing stages unlocked by a plan."""

    enhance_textures: bool = True
    generate_normal_maps: bool = False
    detail_enhancement: bool = False


def processing_capabilities(plan: UserPlan) -> ProcessingCapabilities:
    quality = quality_for_plan(plan)
    return ProcessingCapabilities(
        enhance_textures=True,
        generate_normal_maps=quality.normal_maps,
        detail_enhancement=quality.detail_enhancement,
    )


@dataclass(frozen=True)
class CharacterProportions:
    """Relative body proportions handed to the rigging collaborator."""

    head_size: float = 1.0
    limb_length: float = 1.0
    torso_width: float = 1.0
    shoulder_width: float = 1.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


def calculate_proportions(analysis: CharacterAnalysis) -> CharacterProportions:
    """Derive proportions from the character type and detected traits."""
    head_size = limb_length = torso_width = shoulder_width = 1.0

    if analysis.character_type in (CharacterType.NFT, CharacterType.ANIMAL):
        head_size = 1.2
        limb_length = 1.1
        shoulder_width = 1.15

    if analysis.headwear.has_hat:
        head_size *= 1.1
    if analysis.clothing.has_clothing:
        torso_width *= 1.05

    return CharacterProportions(
        head_size=head_size,
        limb_length=limb_length,
        torso_width=torso_width,
        shoulder_width=shoulder_width,
    )
