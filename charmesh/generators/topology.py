"""
Grid resolution policy and triangle index generation.
"""

import math

import numpy as np
import structlog

from charmesh.generators.base import MeshGenerationError
from charmesh.models.character_model import CharacterType, Complexity

logger = structlog.get_logger(__name__)

MAX_VERTICES = 65535  # uint16 index space
MAX_GRID_RESOLUTION = math.isqrt(MAX_VERTICES)  # 255
MIN_GRID_RESOLUTION = 2

DEFAULT_TARGET_VERTICES = 15000

TARGET_VERTICES: dict[CharacterType, int] = {
    CharacterType.ANIME: 15000,
    CharacterType.NFT: 20000,
    CharacterType.CARTOON: 12000,
    CharacterType.ANIMAL: 18000,
    CharacterType.ROBOT: 22000,
    CharacterType.HUMAN: 25000,
    CharacterType.GENERIC: DEFAULT_TARGET_VERTICES,
}

COMPLEXITY_MULTIPLIERS: dict[Complexity, float] = {
    Complexity.SIMPLE: 0.6,
    Complexity.MODERATE: 1.0,
    Complexity.COMPLEX: 1.4,
    Complexity.ULTRA_COMPLEX: 1.8,
}


def target_vertex_count(character_type: CharacterType, complexity: Complexity) -> int:
    base = TARGET_VERTICES.get(character_type, DEFAULT_TARGET_VERTICES)
    return math.floor(base * COMPLEXITY_MULTIPLIERS.get(complexity, 1.0))


def select_resolution(target_vertices: int, budget: int | None = None) -> int:
    """
    Grid resolution for a vertex target.

    ``floor(sqrt(target))``, capped by the caller's budget and by the uint16
    index space so that ``resolution ** 2 <= 65535``.
    """
    resolution = math.isqrt(max(target_vertices, 0))
    if budget is not None:
        resolution = min(resolution, budget)
    resolution = min(resolution, MAX_GRID_RESOLUTION)

    if resolution < MIN_GRID_RESOLUTION:
        raise MeshGenerationError(
            f"Grid resolution {resolution} is too small to form a triangle",
            details={"target_vertices": target_vertices, "budget": budget},
        )
    return resolution


def triangle_count(resolution: int) -> int:
    return 2 * (resolution - 1) ** 2


def build_indices(resolution: int, vertex_count: int | None = None) -> np.ndarray:
    """
    Two counter-clockwise triangles per grid cell.

    ``(topLeft, bottomLeft, topRight)`` and ``(topRight, bottomLeft, bottomRight)``,
    skipping any cell with a corner at or beyond ``vertex_count``.
    """
    if vertex_count is None:
        vertex_count = resolution * resolution
    if vertex_count > MAX_VERTICES:
        raise MeshGenerationError(
            f"{vertex_count} vertices exceed the uint16 index space",
            details={"resolution": resolution, "vertex_count": vertex_count},
        )

    rows, cols = np.meshgrid(np.arange(resolution - 1), np.arange(resolution - 1), indexing="ij")
    top_left = (rows * resolution + cols).ravel()
    top_right = top_left + 1
    bottom_left = top_left + resolution
    bottom_right = bottom_left + 1

    in_bounds = bottom_right < vertex_count
    top_left, top_right = top_left[in_bounds], top_right[in_bounds]
    bottom_left, bottom_right = bottom_left[in_bounds], bottom_right[in_bounds]

    indices = np.empty((len(top_left), 6), dtype=np.uint16)
    indices[:, 0] = top_left
    indices[:, 1] = bottom_left
    indices[:, 2] = top_right
    indices[:, 3] = top_right
    indices[:, 4] = bottom_left
    indices[:, 5] = bottom_right
    return indices.ravel()
