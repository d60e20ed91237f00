import struct

import numpy as np
import pytest

from charmesh.generators.base import GLBEncodingError, GLBFormatError
from charmesh.generators.glb_serializer import (
    CHUNK_TYPE_BIN,
    CHUNK_TYPE_JSON,
    align,
    compute_bounds,
    encode_glb,
    parse_glb,
    read_header,
    validate_document,
)
from charmesh.generators.texture_enhancer import EnhancedTextures
from charmesh.generators.topology import build_indices
from charmesh.models.character_model import Mesh


def grid_mesh(resolution: int = 4) -> Mesh:
    u, v = np.meshgrid(np.linspace(0, 1, resolution), np.linspace(0, 1, resolution))
    u, v = u.ravel(), v.ravel()
    vertices = np.stack([(u - 0.5) * 2, (0.5 - v) * 2, 0.1 + 0.5 * u * v], axis=1).astype(np.float32)
    uvs = np.stack([u, 1 - v], axis=1).astype(np.float32)
    normals = np.tile(np.array([0.0, 0.0, 1.0], dtype=np.float32), (len(u), 1))
    return Mesh(
        vertices=vertices.ravel(),
        indices=build_indices(resolution),
        uvs=uvs.ravel(),
        normals=normals.ravel(),
        resolution=resolution,
    )


class TestEncodeGLB:
    """Container layout."""

    def test_header(self) -> None:
        # Execute
        glb = encode_glb(grid_mesh())

        # Assert
        magic, version, total_length = read_header(glb)
        assert glb[:4] == b"glTF", "Output starts with the glTF magic"
        assert version == 2
        assert total_length == len(glb), "Declared length matches the buffer"

    def test_chunks_are_aligned(self) -> None:
        # Setup
        glb = encode_glb(grid_mesh(5))

        # Execute
        json_length, json_type = struct.unpack_from("<II", glb, 12)
        bin_length, bin_type = struct.unpack_from("<II", glb, 20 + json_length)

        # Assert
        assert json_type == CHUNK_TYPE_JSON
        assert bin_type == CHUNK_TYPE_BIN
        assert json_length % 4 == 0, "JSON chunk is padded to 4 bytes"
        assert bin_length % 4 == 0, "BIN chunk is padded to 4 bytes"
        assert 28 + json_length + bin_length == len(glb)

    def test_idempotent(self) -> None:
        mesh = grid_mesh()
        assert encode_glb(mesh) == encode_glb(mesh), "Encoding is a pure function of the mesh"

    def test_textures_are_not_embedded(self) -> None:
        # Setup
        mesh = grid_mesh()
        textures = EnhancedTextures(diffuse=b"\x89PNG", normal=None, resolution=1)

        # Assert
        assert encode_glb(mesh, textures) == encode_glb(mesh), "Texture bytes are shipped separately"

    def test_round_trip_document(self) -> None:
        # Setup
        mesh = grid_mesh(6)

        # Execute
        parsed = parse_glb(encode_glb(mesh, generator="unit-test"))

        # Assert
        document = parsed.document
        assert validate_document(document) == [], "Encoded documents are structurally valid"
        assert document["asset"] == {"version": "2.0", "generator": "unit-test"}
        counts = [accessor["count"] for accessor in document["accessors"]]
        assert counts == [36, 36, 36, len(mesh.indices)]
        assert all(view["byteOffset"] % 4 == 0 for view in document["bufferViews"]), "Views are 4-byte aligned"

    def test_binary_payload(self) -> None:
        # Setup
        mesh = grid_mesh()

        # Execute
        parsed = parse_glb(encode_glb(mesh))
        views = parsed.document["bufferViews"]

        # Assert
        positions = np.frombuffer(parsed.binary, dtype="<f4", count=len(mesh.vertices), offset=views[0]["byteOffset"])
        indices = np.frombuffer(parsed.binary, dtype="<u2", count=len(mesh.indices), offset=views[3]["byteOffset"])
        assert np.array_equal(positions, mesh.vertices)
        assert np.array_equal(indices, mesh.indices)

    def test_bounds(self) -> None:
        # Setup
        mesh = grid_mesh()

        # Execute
        bounds_min, bounds_max = compute_bounds(mesh.vertices)
        accessor = parse_glb(encode_glb(mesh)).document["accessors"][0]

        # Assert
        assert all(lo <= hi for lo, hi in zip(bounds_min, bounds_max))
        assert bounds_min[:2] == [-1.0, -1.0]
        assert bounds_max[:2] == [1.0, 1.0]
        assert accessor["min"] == bounds_min and accessor["max"] == bounds_max

    def test_non_finite_positions_are_rejected(self) -> None:
        mesh = grid_mesh()
        mesh.vertices[4] = np.nan
        with pytest.raises(GLBEncodingError, match="non-finite"):
            encode_glb(mesh)

    def test_index_out_of_range(self) -> None:
        mesh = grid_mesh()
        mesh.indices = mesh.indices.copy()
        mesh.indices[0] = 16
        with pytest.raises(GLBEncodingError, match="out of range"):
            encode_glb(mesh)

    def test_negative_index_is_rejected(self) -> None:
        """A negative index would wrap to 65535 in the uint16 buffer."""
        # Setup
        mesh = grid_mesh()
        mesh.indices = mesh.indices.astype(np.int32)
        mesh.indices[2] = -1

        # Execute
        with pytest.raises(GLBEncodingError, match="out of range") as exc_info:
            encode_glb(mesh)

        # Assert
        assert exc_info.value.details["min_index"] == -1

    def test_empty_mesh(self) -> None:
        mesh = Mesh(
            vertices=np.empty(0, dtype=np.float32),
            indices=np.empty(0, dtype=np.uint16),
            uvs=np.empty(0, dtype=np.float32),
            normals=np.empty(0, dtype=np.float32),
        )
        with pytest.raises(GLBEncodingError):
            encode_glb(mesh)


class TestParseGLB:
    """Container parsing errors."""

    def test_wrong_magic(self) -> None:
        data = b"abcd" + bytes(24)
        with pytest.raises(GLBFormatError, match="magic"):
            parse_glb(data)

    def test_too_small(self) -> None:
        with pytest.raises(GLBFormatError, match="too small"):
            parse_glb(b"glTF")

    def test_truncated(self) -> None:
        glb = encode_glb(grid_mesh())
        with pytest.raises(GLBFormatError, match="exceeds"):
            parse_glb(glb[:-8])

    def test_validate_empty_document(self) -> None:
        issues = validate_document({})
        assert 'Missing required "asset" property' in issues
        assert "GLB must have at least one scene" in issues


@pytest.mark.parametrize(("value", "expected"), [(0, 0), (1, 4), (4, 4), (5, 8)])
def test_align(value: int, expected: int) -> None:
    assert align(value) == expected
