"""
Raw vertex records for one grid row: depth, coarse body part and color.
"""

import numpy as np

from charmesh.generators.depth_estimator import estimate_depth
from charmesh.generators.pixel_sampler import sample_row
from charmesh.models.character_model import BodyPart, CharacterType, PixelBuffer, VertexRow


def classify_body_part(v: float) -> BodyPart:
    """Coarse label from the vertical coordinate alone."""
    if v < 0.3:
        return BodyPart.HEAD_TOP
    if v < 0.6:
        return BodyPart.FACE
    if v < 0.8:
        return BodyPart.TORSO
    return BodyPart.LEGS


def synthesize_row(
    buffer: PixelBuffer,
    character_type: CharacterType,
    u: np.ndarray,
    v: float,
) -> VertexRow:
    rgb, brightness = sample_row(buffer, u, v)
    depth = estimate_depth(character_type, u, v, rgb, brightness)

    body_part = np.empty(len(u), dtype=object)
    body_part.fill(classify_body_part(v))

    return VertexRow(
        u=u,
        v=v,
        depth=depth,
        body_part=body_part,
        color=rgb.astype(np.uint8),
    )
