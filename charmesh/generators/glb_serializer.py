"""
GLB (binary glTF 2.0) container encoding, parsing and validation.

Layout of an encoded buffer::

    header      magic 'glTF' | version 2 | totalLength      (3 x uint32)
    JSON chunk  chunkLength | 'JSON' | UTF-8 document padded with 0x20
    BIN chunk   chunkLength | 'BIN\\0' | positions, uvs, normals, indices
                each block 4-byte aligned, chunk padded with 0x00

All integers are little-endian and every chunk length includes its padding.
"""

import json
import math
import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import structlog

from charmesh.generators.base import GLBEncodingError, GLBFormatError
from charmesh.models.character_model import Mesh

if TYPE_CHECKING:
    from charmesh.generators.texture_enhancer import EnhancedTextures

logger = structlog.get_logger(__name__)

GLB_MAGIC = 0x46546C67
GLB_VERSION = 2
CHUNK_TYPE_JSON = 0x4E4F534A
CHUNK_TYPE_BIN = 0x004E4942
HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8

COMPONENT_FLOAT = 5126
COMPONENT_UNSIGNED_SHORT = 5123
TARGET_ARRAY_BUFFER = 34962
TARGET_ELEMENT_ARRAY_BUFFER = 34963
MODE_TRIANGLES = 4

MAX_INDEXABLE_VERTICES = 65535
DEFAULT_GENERATOR = "charmesh"

_HEADER = struct.Struct("<III")
_CHUNK_HEADER = struct.Struct("<II")


@dataclass
class GLBStructure:
    """Decoded container contents."""

    version: int
    total_length: int
    document: dict[str, Any] | None
    binary: bytes | None


def align(value: int, boundary: int = 4) -> int:
    """Smallest multiple of ``boundary`` that is >= ``value``."""
    return -(-value // boundary) * boundary


def compute_bounds(vertices: np.ndarray) -> tuple[list[float], list[float]]:
    """Per-axis min and max of a flat ``[x, y, z, ...]`` array."""
    positions = np.asarray(vertices, dtype=np.float32).reshape(-1, 3)
    if len(positions) == 0:
        raise GLBEncodingError("Cannot compute bounds of an empty vertex set")
    if not np.isfinite(positions).all():
        raise GLBEncodingError(
            "Vertex positions contain non-finite values",
            details={"non_finite": int((~np.isfinite(positions)).sum())},
        )
    return (
        [float(value) for value in positions.min(axis=0)],
        [float(value) for value in positions.max(axis=0)],
    )


def _check_mesh(mesh: Mesh) -> None:
    if len(mesh.vertices) == 0 or len(mesh.vertices) % 3:
        raise GLBEncodingError(
            "Vertex array length must be a positive multiple of 3",
            details={"length": len(mesh.vertices)},
        )
    vertex_count = len(mesh.vertices) // 3
    if vertex_count > MAX_INDEXABLE_VERTICES:
        raise GLBEncodingError(
            f"{vertex_count} vertices exceed the uint16 index space",
            details={"vertex_count": vertex_count},
        )
    if len(mesh.uvs) != 2 * vertex_count or len(mesh.normals) != 3 * vertex_count:
        raise GLBEncodingError(
            "Attribute arrays do not match the vertex count",
            details={"vertex_count": vertex_count, "uvs": len(mesh.uvs), "normals": len(mesh.normals)},
        )
    if len(mesh.indices) % 3:
        raise GLBEncodingError("Index array length must be a multiple of 3", details={"length": len(mesh.indices)})
    if len(mesh.indices):
        lowest, highest = int(np.min(mesh.indices)), int(np.max(mesh.indices))
        if lowest < 0 or highest >= vertex_count:
            raise GLBEncodingError(
                "Index references a vertex out of range",
                details={"min_index": lowest, "max_index": highest, "vertex_count": vertex_count},
            )
    for name in ("uvs", "normals"):
        if not np.isfinite(np.asarray(getattr(mesh, name), dtype=np.float32)).all():
            raise GLBEncodingError(f"{name} contain non-finite values")


def build_document(
    vertex_count: int,
    index_count: int,
    bounds: tuple[list[float], list[float]],
    views: list[tuple[int, int, int]],
    buffer_length: int,
    generator: str = DEFAULT_GENERATOR,
) -> dict[str, Any]:
    """Minimal scene graph: one scene, node, mesh and primitive."""
    bounds_min, bounds_max = bounds
    return {
        "asset": {"version": "2.0", "generator": generator},
        "scene": 0,
        "scenes": [{"nodes": [0]}],
        "nodes": [{"mesh": 0, "name": "Character"}],
        "meshes": [{
            "name": "CharacterMesh",
            "primitives": [{
                "attributes": {"POSITION": 0, "TEXCOORD_0": 1, "NORMAL": 2},
                "indices": 3,
                "material": 0,
                "mode": MODE_TRIANGLES,
            }],
        }],
        "materials": [{
            "name": "CharacterMaterial",
            "pbrMetallicRoughness": {
                "baseColorFactor": [0.8, 0.7, 0.6, 1.0],
                "metallicFactor": 0.0,
                "roughnessFactor": 0.8,
            },
            "doubleSided": True,
        }],
        "accessors": [
            {"bufferView": 0, "componentType": COMPONENT_FLOAT, "count": vertex_count,
             "type": "VEC3", "min": bounds_min, "max": bounds_max},
            {"bufferView": 1, "componentType": COMPONENT_FLOAT, "count": vertex_count, "type": "VEC2"},
            {"bufferView": 2, "componentType": COMPONENT_FLOAT, "count": vertex_count, "type": "VEC3"},
            {"bufferView": 3, "componentType": COMPONENT_UNSIGNED_SHORT, "count": index_count, "type": "SCALAR"},
        ],
        "bufferViews": [
            {"buffer": 0, "byteOffset": offset, "byteLength": length, "target": target}
            for offset, length, target in views
        ],
        "buffers": [{"byteLength": buffer_length}],
    }


def encode_glb(
    mesh: Mesh,
    textures: "EnhancedTextures | None" = None,
    generator: str = DEFAULT_GENERATOR,
) -> bytes:
    """
    Serialize a mesh into a GLB byte buffer.

    Texture images are not embedded yet. When ``textures`` is supplied the
    omission is logged so callers can ship the textures alongside the GLB.
    """
    _check_mesh(mesh)
    bounds = compute_bounds(mesh.vertices)

    blocks = [
        (np.asarray(mesh.vertices, dtype="<f4").tobytes(), TARGET_ARRAY_BUFFER),
        (np.asarray(mesh.uvs, dtype="<f4").tobytes(), TARGET_ARRAY_BUFFER),
        (np.asarray(mesh.normals, dtype="<f4").tobytes(), TARGET_ARRAY_BUFFER),
        (np.asarray(mesh.indices, dtype="<u2").tobytes(), TARGET_ELEMENT_ARRAY_BUFFER),
    ]

    binary = bytearray()
    views: list[tuple[int, int, int]] = []
    for data, target in blocks:
        offset = align(len(binary))
        binary.extend(b"\x00" * (offset - len(binary)))
        binary.extend(data)
        views.append((offset, len(data), target))
    buffer_length = len(binary)
    binary.extend(b"\x00" * (align(len(binary)) - len(binary)))

    document = build_document(
        vertex_count=mesh.vertex_count,
        index_count=len(mesh.indices),
        bounds=bounds,
        views=views,
        buffer_length=buffer_length,
        generator=generator,
    )
    json_bytes = json.dumps(document, separators=(",", ":"), allow_nan=False).encode("utf-8")
    json_bytes += b" " * (align(len(json_bytes)) - len(json_bytes))

    total_length = HEADER_SIZE + CHUNK_HEADER_SIZE + len(json_bytes) + CHUNK_HEADER_SIZE + len(binary)
    output = b"".join([
        _HEADER.pack(GLB_MAGIC, GLB_VERSION, total_length),
        _CHUNK_HEADER.pack(len(json_bytes), CHUNK_TYPE_JSON),
        json_bytes,
        _CHUNK_HEADER.pack(len(binary), CHUNK_TYPE_BIN),
        bytes(binary),
    ])

    if len(output) != total_length or len(json_bytes) % 4 or len(binary) % 4:
        raise GLBEncodingError(
            "Container layout invariant violated",
            details={"declared": total_length, "actual": len(output)},
        )

    if textures is not None:
        logger.warning(
            "texture_embedding_deferred",
            diffuse_bytes=len(textures.diffuse),
            normal_bytes=len(textures.normal) if textures.normal else 0,
        )

    logger.debug(
        "GLB encoded",
        total_bytes=total_length,
        json_bytes=len(json_bytes),
        bin_bytes=len(binary),
        vertices=mesh.vertex_count,
        triangles=mesh.triangle_count,
    )
    return output


def read_header(data: bytes) -> tuple[int, int, int]:
    """``(magic, version, total_length)`` from the first 12 bytes."""
    if len(data) < HEADER_SIZE:
        raise GLBFormatError("Buffer too small for a GLB header", details={"length": len(data)})
    return _HEADER.unpack_from(data, 0)


def parse_glb(data: bytes) -> GLBStructure:
    """Split a GLB buffer into its JSON document and binary payload."""
    if len(data) < HEADER_SIZE + CHUNK_HEADER_SIZE:
        raise GLBFormatError("Invalid GLB file: too small", details={"length": len(data)})

    magic, version, total_length = read_header(data)
    if magic != GLB_MAGIC:
        raise GLBFormatError("Invalid GLB file: wrong magic number", details={"magic": hex(magic)})
    if version != GLB_VERSION:
        raise GLBFormatError(f"Unsupported GLB version: {version}", details={"version": version})
    if total_length > len(data):
        raise GLBFormatError(
            "Invalid GLB file: declared length exceeds buffer size",
            details={"declared": total_length, "actual": len(data)},
        )

    document = None
    binary = None
    offset = HEADER_SIZE
    while offset + CHUNK_HEADER_SIZE <= total_length:
        chunk_length, chunk_type = _CHUNK_HEADER.unpack_from(data, offset)
        offset += CHUNK_HEADER_SIZE
        if offset + chunk_length > total_length:
            raise GLBFormatError("Invalid GLB file: chunk extends beyond file", details={"offset": offset})

        payload = data[offset:offset + chunk_length]
        if chunk_type == CHUNK_TYPE_JSON:
            try:
                document = json.loads(payload.rstrip(b"\x00 ").decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise GLBFormatError("Invalid GLB file: JSON chunk is not valid JSON", original_exception=e) from e
        elif chunk_type == CHUNK_TYPE_BIN:
            binary = bytes(payload)
        offset += chunk_length

    return GLBStructure(version=version, total_length=total_length, document=document, binary=binary)


def validate_document(document: dict[str, Any]) -> list[str]:
    """Structural checks on a glTF document. Returns a list of issues."""
    issues: list[str] = []

    asset = document.get("asset")
    if not asset:
        issues.append('Missing required "asset" property')
    elif not asset.get("version"):
        issues.append('Missing required "asset.version" property')

    if document.get("scene") is None and not document.get("scenes"):
        issues.append("GLB must have at least one scene")

    for index, node in enumerate(document.get("nodes", [])):
        if "matrix" in node and any(key in node for key in ("translation", "rotation", "scale")):
            issues.append(f"Node {index}: Cannot specify both matrix and TRS properties")

    for mesh_index, mesh in enumerate(document.get("meshes", [])):
        primitives = mesh.get("primitives") or []
        if not primitives:
            issues.append(f"Mesh {mesh_index}: Must have at least one primitive")
        for prim_index, primitive in enumerate(primitives):
            attributes = primitive.get("attributes")
            if not attributes:
                issues.append(f"Mesh {mesh_index}, primitive {prim_index}: Missing attributes")
            elif not isinstance(attributes.get("POSITION"), int):
                issues.append(f"Mesh {mesh_index}, primitive {prim_index}: Missing POSITION attribute")

    for index, accessor in enumerate(document.get("accessors", [])):
        count = accessor.get("count")
        if not isinstance(count, int) or count < 0:
            issues.append(f"Accessor {index}: Invalid count")
        if not accessor.get("type"):
            issues.append(f"Accessor {index}: Missing type")
        if not isinstance(accessor.get("componentType"), int):
            issues.append(f"Accessor {index}: Missing componentType")
        for key in ("min", "max"):
            if key in accessor and not all(math.isfinite(value) for value in accessor[key]):
                issues.append(f"Accessor {index}: Non-finite {key}")

    return issues
