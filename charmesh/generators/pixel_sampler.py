"""
Bounds-checked pixel lookup at normalized image coordinates.
"""

import math

import numpy as np

from charmesh.models.character_model import PixelBuffer


def _pixel_indices(coords: np.ndarray, size: int) -> tuple[np.ndarray, np.ndarray]:
    """Map normalized coordinates to pixel indices and an in-bounds mask."""
    valid = np.isfinite(coords) & (coords >= 0.0) & (coords <= 1.0)
    safe = np.where(valid, coords, 0.0)
    index = np.floor(safe * (size - 1)).astype(np.intp)
    return np.clip(index, 0, size - 1), valid


def sample_row(buffer: PixelBuffer, u: np.ndarray, v: float) -> tuple[np.ndarray, np.ndarray]:
    """
    Sample one grid row.

    Returns an ``(n, 3)`` float array of RGB values in [0, 255] and the
    matching brightness array in [0, 1]. Coordinates outside [0, 1] sample
    as black.
    """
    pixels = buffer.as_array()
    u = np.asarray(u, dtype=np.float64)

    px, u_valid = _pixel_indices(u, buffer.width)
    py, v_valid = _pixel_indices(np.asarray([v], dtype=np.float64), buffer.height)

    rgb = pixels[py[0], px, :3].astype(np.float64)
    mask = u_valid & bool(v_valid[0])
    rgb[~mask] = 0.0

    brightness = rgb.sum(axis=1) / (3.0 * 255.0)
    return rgb, brightness


def sample_pixel(buffer: PixelBuffer, u: float, v: float) -> tuple[int, int, int]:
    """Color at a single normalized coordinate."""
    if not (math.isfinite(u) and math.isfinite(v)) or not (0.0 <= u <= 1.0 and 0.0 <= v <= 1.0):
        return 0, 0, 0
    px = int(math.floor(u * (buffer.width - 1)))
    py = int(math.floor(v * (buffer.height - 1)))
    offset = (py * buffer.width + px) * buffer.channels
    r, g, b = buffer.data[offset:offset + 3]
    return r, g, b


def brightness_at(buffer: PixelBuffer, u: float, v: float) -> float:
    r, g, b = sample_pixel(buffer, u, v)
    return (r + g + b) / (3.0 * 255.0)
