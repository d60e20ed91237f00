"""
Accessory protrusions.

Each detected accessory raises the depth of a fixed screen-space region to a
floor and relabels the covered vertices. Depths are only ever raised.
"""

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from charmesh.models.character_model import BodyPart, CharacterAnalysis, VertexRow

RegionTest = Callable[[np.ndarray, float], np.ndarray]


@dataclass(frozen=True)
class TraitRegion:
    name: str
    label: BodyPart
    depth_floor: float
    contains: RegionTest
    is_active: Callable[[CharacterAnalysis], bool]


def _sunglasses_region(u: np.ndarray, v: float) -> np.ndarray:
    if not 0.2 < v < 0.4:
        return np.zeros(len(u), dtype=bool)
    return ((u > 0.2) & (u < 0.4)) | ((u > 0.6) & (u < 0.8))


def _hat_region(u: np.ndarray, v: float) -> np.ndarray:
    return np.full(len(u), v < 0.3)


def _clothing_region(u: np.ndarray, v: float) -> np.ndarray:
    return np.full(len(u), 0.4 < v < 0.8)


def _necklace_region(u: np.ndarray, v: float) -> np.ndarray:
    if not 0.35 < v < 0.45:
        return np.zeros(len(u), dtype=bool)
    return np.abs(u - 0.5) < 0.15


# Applied in order; later entries relabel overlapping vertices.
TRAIT_REGIONS: tuple[TraitRegion, ...] = (
    TraitRegion(
        name="sunglasses",
        label=BodyPart.SUNGLASSES,
        depth_floor=0.6,
        contains=_sunglasses_region,
        is_active=lambda analysis: analysis.eyewear.has_sunglasses,
    ),
    TraitRegion(
        name="hat",
        label=BodyPart.HAT,
        depth_floor=0.5,
        contains=_hat_region,
        is_active=lambda analysis: analysis.headwear.has_hat,
    ),
    TraitRegion(
        name="clothing",
        label=BodyPart.CLOTHING,
        depth_floor=0.4,
        contains=_clothing_region,
        is_active=lambda analysis: analysis.clothing.has_clothing,
    ),
    TraitRegion(
        name="necklace",
        label=BodyPart.NECKLACE,
        depth_floor=0.3,
        contains=_necklace_region,
        is_active=lambda analysis: analysis.has_accessory("necklace"),
    ),
)


def active_traits(analysis: CharacterAnalysis) -> tuple[TraitRegion, ...]:
    """Trait regions switched on by the analysis, in application order."""
    return tuple(trait for trait in TRAIT_REGIONS if trait.is_active(analysis))


def apply_traits(row: VertexRow, traits: tuple[TraitRegion, ...]) -> VertexRow:
    for trait in traits:
        inside = trait.contains(row.u, row.v)
        if not inside.any():
            continue
        row.depth = np.where(inside, np.maximum(row.depth, trait.depth_floor), row.depth)
        row.body_part[inside] = trait.label
    return row
