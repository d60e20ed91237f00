import numpy as np
import pytest

from charmesh.generators.base import MeshGenerationError
from charmesh.generators.topology import (
    MAX_GRID_RESOLUTION,
    build_indices,
    select_resolution,
    target_vertex_count,
    triangle_count,
)
from charmesh.models.character_model import CharacterType, Complexity


class TestResolutionPolicy:
    """Vertex targets and grid resolution."""

    def test_target_vertices(self) -> None:
        assert target_vertex_count(CharacterType.GENERIC, Complexity.MODERATE) == 15000
        assert target_vertex_count(CharacterType.HUMAN, Complexity.MODERATE) == 25000
        assert target_vertex_count(CharacterType.PENGUIN, Complexity.MODERATE) == 15000, (
            "Types without a target use the default"
        )

    def test_complexity_orders_targets(self) -> None:
        targets = [target_vertex_count(CharacterType.ROBOT, level) for level in Complexity]
        assert targets == sorted(targets), "Higher complexity never lowers the target"

    def test_resolution_is_isqrt_of_target(self) -> None:
        assert select_resolution(15000) == 122, "floor(sqrt(15000)) = 122"

    def test_budget_caps_resolution(self) -> None:
        assert select_resolution(15000, 96) == 96

    def test_uint16_ceiling(self) -> None:
        """No budget can push the grid past 255 x 255 vertices."""
        assert MAX_GRID_RESOLUTION == 255
        assert select_resolution(100000, 256) == 255
        assert 255 * 255 <= 65535

    def test_too_small_raises(self) -> None:
        with pytest.raises(MeshGenerationError, match="too small"):
            select_resolution(3)


class TestBuildIndices:
    """Triangle index generation."""

    def test_triangle_count(self) -> None:
        assert triangle_count(96) == 18050

    def test_small_grid_winding(self) -> None:
        """Each cell is (tl, bl, tr) then (tr, bl, br)."""
        # Execute
        indices = build_indices(3)

        # Assert
        assert indices.dtype == np.uint16
        assert len(indices) == 3 * triangle_count(3)
        assert indices[:6].tolist() == [0, 3, 1, 1, 3, 4]
        assert indices[-6:].tolist() == [4, 7, 5, 5, 7, 8]
        assert int(indices.max()) < 9, "Every index references a vertex"

    def test_cells_past_vertex_count_are_skipped(self) -> None:
        indices = build_indices(3, vertex_count=8)
        assert len(indices) == 18, "The last cell touches vertex 8 and is dropped"
        assert int(indices.max()) < 8

    def test_full_resolution_fits_uint16(self) -> None:
        indices = build_indices(MAX_GRID_RESOLUTION)
        assert int(indices.max()) == MAX_GRID_RESOLUTION**2 - 1

    def test_too_many_vertices(self) -> None:
        with pytest.raises(MeshGenerationError, match="uint16"):
            build_indices(256)
