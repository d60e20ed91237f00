"""
Archetype anatomy layouts and final 3D position mapping.

An ``ArchetypeConfig`` is a table of named body regions (sphere, cylinder or
oval profiles) plus optional accessory regions. One config is selected per
generation and every vertex is evaluated against all of its regions; the
deepest result wins.
"""

from dataclasses import dataclass, field, replace

import numpy as np
import structlog

from charmesh.generators.enums import Archetype, RegionShape
from charmesh.models.character_model import BodyPart, CharacterAnalysis, CharacterType, VertexRow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BodyRegion:
    """
    One anatomical region.

    Spheres (and box accessories) use ``center_x``/``center_y`` with both radii.
    Cylinders and ovals span ``start_y``..``end_y`` with ``radius_x`` only.
    The optional modifiers shape archetype-specific anatomy:

    - ``scale``: flat multiplier (head multiplier).
    - ``snout_band``/``snout_factor``: amplify ``center_y < v < center_y + band``.
    - ``bulge``: ``(base, amplitude)`` muscle factor ``base + amplitude * sin(progress * pi)``.
    - ``upper_fraction``/``upper_factor``: amplify where band progress is below the fraction.
    """

    name: str
    label: BodyPart
    shape: RegionShape
    depth: float
    center_x: float
    radius_x: float
    center_y: float = 0.0
    radius_y: float = 0.0
    start_y: float = 0.0
    end_y: float = 1.0
    scale: float = 1.0
    snout_band: float = 0.0
    snout_factor: float = 1.0
    bulge: tuple[float, float] | None = None
    upper_fraction: float = 0.0
    upper_factor: float = 1.0

    def evaluate(self, u: np.ndarray, v: float) -> np.ndarray:
        """Region depth per vertex; ``-inf`` outside the region."""
        outside = np.full(len(u), -np.inf)

        if self.shape is RegionShape.SPHERE:
            dx = (u - self.center_x) / self.radius_x
            dy = (v - self.center_y) / self.radius_y
            distance_sq = dx * dx + dy * dy
            depth = np.sqrt(np.maximum(0.0, 1.0 - distance_sq)) * self.depth * self.scale
            if self.snout_band and self.center_y < v < self.center_y + self.snout_band:
                depth = depth * self.snout_factor
            return np.where(distance_sq <= 1.0, depth, outside)

        if self.shape is RegionShape.BOX:
            dx = np.abs(u - self.center_x) / self.radius_x
            dy = abs(v - self.center_y) / self.radius_y
            if dy > 1.0:
                return outside
            depth = np.sqrt(np.maximum(0.0, 1.0 - dx * dx)) * np.sqrt(max(0.0, 1.0 - dy * dy)) * self.depth
            return np.where(dx <= 1.0, depth, outside)

        # Cylinder and oval share the horizontal profile
        if not self.start_y <= v <= self.end_y:
            return outside
        dx = np.abs(u - self.center_x) / self.radius_x
        depth = np.sqrt(np.maximum(0.0, 1.0 - dx * dx)) * self.depth * self.scale
        progress = (v - self.start_y) / (self.end_y - self.start_y)
        if self.bulge is not None:
            base, amplitude = self.bulge
            depth = depth * (base + amplitude * np.sin(progress * np.pi))
        if self.upper_fraction and progress < self.upper_fraction:
            depth = depth * self.upper_factor
        return np.where(dx <= 1.0, depth, outside)


@dataclass(frozen=True)
class ArchetypeConfig:
    archetype: Archetype
    head_multiplier: float
    regions: tuple[BodyRegion, ...]
    features: tuple[BodyRegion, ...] = field(default=())

    @property
    def all_regions(self) -> tuple[BodyRegion, ...]:
        return self.regions + self.features


def _sphere(name, label, cx, cy, rx, ry, depth, **modifiers) -> BodyRegion:
    return BodyRegion(name, label, RegionShape.SPHERE, depth, center_x=cx, radius_x=rx,
                      center_y=cy, radius_y=ry, **modifiers)


def _band(name, label, shape, cx, start_y, end_y, rx, depth, **modifiers) -> BodyRegion:
    return BodyRegion(name, label, shape, depth, center_x=cx, radius_x=rx,
                      start_y=start_y, end_y=end_y, **modifiers)


def _box(name, label, cx, cy, rx, ry, depth) -> BodyRegion:
    return BodyRegion(name, label, RegionShape.BOX, depth, center_x=cx, radius_x=rx,
                      center_y=cy, radius_y=ry)


CYL = RegionShape.CYLINDER
OVAL = RegionShape.OVAL

GENERIC_HUMANOID = ArchetypeConfig(
    archetype=Archetype.GENERIC_HUMANOID,
    head_multiplier=1.0,
    regions=(
        _sphere("head", BodyPart.HEAD, 0.5, 0.15, 0.12, 0.15, 0.8),
        _band("neck", BodyPart.NECK, CYL, 0.5, 0.25, 0.35, 0.06, 0.4),
        _band("torso", BodyPart.TORSO, OVAL, 0.5, 0.35, 0.65, 0.15, 0.6),
        _band("leftArm", BodyPart.LEFT_ARM, CYL, 0.25, 0.35, 0.65, 0.05, 0.3),
        _band("rightArm", BodyPart.RIGHT_ARM, CYL, 0.75, 0.35, 0.65, 0.05, 0.3),
        _band("leftLeg", BodyPart.LEFT_LEG, CYL, 0.42, 0.65, 1.0, 0.08, 0.4),
        _band("rightLeg", BodyPart.RIGHT_LEG, CYL, 0.58, 0.65, 1.0, 0.08, 0.4),
    ),
)

# Rounder head, egg-shaped body, vestigial flippers, short webbed feet
PENGUIN = ArchetypeConfig(
    archetype=Archetype.PENGUIN,
    head_multiplier=1.2,
    regions=(
        _sphere("head", BodyPart.HEAD, 0.5, 0.2, 0.18, 0.18, 0.9, scale=1.2),
        _band("neck", BodyPart.NECK, CYL, 0.5, 0.32, 0.38, 0.12, 0.3),
        _band("torso", BodyPart.TORSO, OVAL, 0.5, 0.38, 0.75, 0.22, 0.8),
        _band("leftArm", BodyPart.LEFT_ARM, CYL, 0.22, 0.45, 0.65, 0.03, 0.2),
        _band("rightArm", BodyPart.RIGHT_ARM, CYL, 0.78, 0.45, 0.65, 0.03, 0.2),
        _band("leftLeg", BodyPart.LEFT_LEG, CYL, 0.44, 0.75, 0.95, 0.06, 0.3),
        _band("rightLeg", BodyPart.RIGHT_LEG, CYL, 0.56, 0.75, 0.95, 0.06, 0.3),
    ),
)

_ARM_BULGE = (1.1, 0.3)

ANTHROPOMORPHIC_APE = ArchetypeConfig(
    archetype=Archetype.ANTHROPOMORPHIC_APE,
    head_multiplier=1.6,
    regions=(
        _sphere("head", BodyPart.HEAD, 0.52, 0.18, 0.18, 0.20, 0.8, scale=1.6,
                snout_band=0.08, snout_factor=1.4),
        _band("neck", BodyPart.NECK, CYL, 0.5, 0.30, 0.38, 0.08, 0.4),
        _band("torso", BodyPart.TORSO, OVAL, 0.51, 0.38, 0.72, 0.20, 0.85,
              upper_fraction=0.4, upper_factor=1.3),
        _band("leftArm", BodyPart.LEFT_ARM, CYL, 0.28, 0.40, 0.75, 0.08, 0.45, bulge=_ARM_BULGE),
        _band("rightArm", BodyPart.RIGHT_ARM, CYL, 0.75, 0.40, 0.75, 0.08, 0.45, bulge=_ARM_BULGE),
        _band("leftLeg", BodyPart.LEFT_LEG, CYL, 0.45, 0.72, 1.0, 0.12, 0.6),
        _band("rightLeg", BodyPart.RIGHT_LEG, CYL, 0.58, 0.72, 1.0, 0.12, 0.6),
    ),
    features=(
        _sphere("leftEar", BodyPart.EAR, 0.35, 0.20, 0.08, 0.12, 0.35),
        _sphere("rightEar", BodyPart.EAR, 0.68, 0.20, 0.08, 0.12, 0.35),
        _box("weaponBarrel", BodyPart.WEAPON, 0.72, 0.55, 0.12, 0.04, 0.3),
        _box("weaponGrip", BodyPart.WEAPON, 0.68, 0.62, 0.04, 0.08, 0.25),
    ),
)

ARCHETYPE_CONFIGS: dict[Archetype, ArchetypeConfig] = {
    Archetype.GENERIC_HUMANOID: GENERIC_HUMANOID,
    Archetype.PENGUIN: PENGUIN,
    Archetype.ANTHROPOMORPHIC_APE: ANTHROPOMORPHIC_APE,
}

HELMET_REGIONS = (
    _sphere("helmetTop", BodyPart.HELMET, 0.52, 0.08, 0.16, 0.12, 0.4),
    _sphere("helmetVisor", BodyPart.HELMET, 0.52, 0.15, 0.18, 0.08, 0.35),
)

FANGED_MOUTH = _sphere("mouth", BodyPart.MOUTH, 0.52, 0.28, 0.08, 0.06, 0.45)

PENGUIN_FUR_PATTERNS = frozenset({"simple", "moderate"})


def detect_archetype(analysis: CharacterAnalysis) -> Archetype:
    if analysis.character_type is CharacterType.ANTHROPOMORPHIC_APE:
        return Archetype.ANTHROPOMORPHIC_APE
    if analysis.character_type is CharacterType.PENGUIN:
        return Archetype.PENGUIN
    fur = analysis.fur
    if (fur.primary_color or "").lower() == "black" and (fur.pattern or "").lower() in PENGUIN_FUR_PATTERNS:
        return Archetype.PENGUIN
    return Archetype.GENERIC_HUMANOID


def select_archetype(analysis: CharacterAnalysis) -> ArchetypeConfig:
    """Pick the anatomy layout once per generation, with analysis-driven accessories."""
    config = ARCHETYPE_CONFIGS[detect_archetype(analysis)]

    extra: list[BodyRegion] = []
    if analysis.headwear.has_hat and (analysis.headwear.hat_type or "").lower() == "military_helmet":
        extra.extend(HELMET_REGIONS)
    if analysis.mouth.style.lower() == "fanged":
        extra.append(FANGED_MOUTH)
    if extra:
        config = replace(config, features=config.features + tuple(extra))

    logger.debug(
        "Archetype selected",
        archetype=config.archetype.value,
        regions=len(config.regions),
        features=len(config.features),
    )
    return config


def resolve_depth(row: VertexRow, config: ArchetypeConfig) -> np.ndarray:
    """
    Max-wins depth across the candidate depth and every region.

    Relabels ``row.body_part`` wherever a region beats the running maximum.
    """
    depth = row.depth.copy()
    for region in config.all_regions:
        region_depth = region.evaluate(row.u, row.v)
        wins = region_depth > depth
        if wins.any():
            depth = np.where(wins, region_depth, depth)
            row.body_part[wins] = region.label
    return depth


def map_row(row: VertexRow, config: ArchetypeConfig, scale: float = 1.0) -> np.ndarray:
    """Final ``(n, 3)`` positions: ``x=(u-0.5)*2, y=(0.5-v)*2, z=depth``, scaled."""
    depth = resolve_depth(row, config)
    positions = np.empty((len(row), 3), dtype=np.float64)
    positions[:, 0] = (row.u - 0.5) * 2.0
    positions[:, 1] = (0.5 - row.v) * 2.0
    positions[:, 2] = depth
    return positions * scale
