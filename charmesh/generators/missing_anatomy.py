"""
Procedural geometry for anatomy the source art crops or omits.

Limbs are fabricated with a linear signed-distance falloff around a
centerline: inside half-width ``r`` of centerline ``c`` the depth becomes
``max(depth, floor * (1 - |x - c| / r))``. Hands use the same falloff on the
radial distance from a center point.
"""

import math
from dataclasses import dataclass

import numpy as np

from charmesh.models.character_model import BodyPart, CharacterAnalysis, VertexRow


@dataclass(frozen=True)
class LimbBand:
    """Vertical limb segment centred on ``u = center`` inside a ``v`` band."""

    label: BodyPart
    center: float
    half_width: float
    depth_floor: float
    v_min: float
    v_max: float = math.inf
    u_min: float = -math.inf
    u_max: float = math.inf
    taper: bool = False  # narrows linearly to zero width at v_max

    def profile(self, u: np.ndarray, v: float) -> np.ndarray:
        if not self.v_min < v < self.v_max:
            return np.zeros_like(u)
        half_width = self.half_width
        if self.taper:
            half_width *= 1.0 - (v - self.v_min) / (self.v_max - self.v_min)
        if half_width <= 0.0:
            return np.zeros_like(u)
        gate = (u > self.u_min) & (u < self.u_max)
        distance = np.abs(u - self.center)
        return np.where(gate & (distance < half_width), 1.0 - distance / half_width, 0.0)


@dataclass(frozen=True)
class RadialPatch:
    """Circular patch inside a bounding box, used for hands at the arm ends."""

    label: BodyPart
    center_u: float
    center_v: float
    radius: float
    depth_floor: float
    v_min: float = -math.inf
    v_max: float = math.inf
    u_min: float = -math.inf
    u_max: float = math.inf

    def profile(self, u: np.ndarray, v: float) -> np.ndarray:
        if not self.v_min < v < self.v_max:
            return np.zeros_like(u)
        gate = (u > self.u_min) & (u < self.u_max)
        distance = np.sqrt((u - self.center_u) ** 2 + (v - self.center_v) ** 2)
        return np.where(gate & (distance < self.radius), 1.0 - distance / self.radius, 0.0)


ARMS = (
    LimbBand(BodyPart.GENERATED_LEFT_ARM, center=0.25, half_width=0.08, depth_floor=0.4,
             v_min=0.4, v_max=0.8, u_max=0.3),
    LimbBand(BodyPart.GENERATED_RIGHT_ARM, center=0.75, half_width=0.08, depth_floor=0.4,
             v_min=0.4, v_max=0.8, u_min=0.7),
)

LEGS = (
    LimbBand(BodyPart.GENERATED_LEFT_LEG, center=0.4, half_width=0.05, depth_floor=0.5,
             v_min=0.8, u_min=0.35, u_max=0.45),
    LimbBand(BodyPart.GENERATED_RIGHT_LEG, center=0.6, half_width=0.05, depth_floor=0.5,
             v_min=0.8, u_min=0.55, u_max=0.65),
)

HANDS = (
    RadialPatch(BodyPart.GENERATED_LEFT_HAND, center_u=0.15, center_v=0.7, radius=0.06, depth_floor=0.3,
                v_min=0.6, v_max=0.8, u_max=0.2),
    RadialPatch(BodyPart.GENERATED_RIGHT_HAND, center_u=0.85, center_v=0.7, radius=0.06, depth_floor=0.3,
                v_min=0.6, v_max=0.8, u_min=0.8),
)

TORSO = (
    LimbBand(BodyPart.GENERATED_TORSO, center=0.5, half_width=0.15, depth_floor=0.5,
             v_min=0.4, v_max=0.8, taper=True),
)


def anatomy_primitives(analysis: CharacterAnalysis) -> tuple[LimbBand | RadialPatch, ...]:
    """Primitives to fabricate for the parts flagged missing."""
    missing = analysis.missing_parts
    primitives: list[LimbBand | RadialPatch] = []
    if missing.arms:
        primitives.extend(ARMS)
    if missing.legs:
        primitives.extend(LEGS)
    if missing.hands:
        primitives.extend(HANDS)
    if missing.torso:
        primitives.extend(TORSO)
    return tuple(primitives)


def apply_missing_anatomy(row: VertexRow, primitives: tuple[LimbBand | RadialPatch, ...]) -> VertexRow:
    for primitive in primitives:
        candidate = primitive.depth_floor * primitive.profile(row.u, row.v)
        raised = candidate > row.depth
        if not raised.any():
            continue
        row.depth = np.where(raised, candidate, row.depth)
        row.body_part[raised] = primitive.label
    return row
