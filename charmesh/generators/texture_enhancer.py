"""
Best-effort raster enhancement of the source artwork.

Produces an enhanced diffuse texture and, for plans that include them, a
normal map derived from a grayscale height proxy. Failures never propagate:
the caller always gets textures back, falling back to the unmodified source.
"""

import io
from dataclasses import dataclass
from typing import Any

import numpy as np
import structlog
from PIL import Image, ImageEnhance, ImageFilter, ImageOps

from charmesh.generators.base import TextureEnhancementError
from charmesh.generators.models import QualitySettings
from charmesh.models.character_model import PixelBuffer

logger = structlog.get_logger(__name__)

BRIGHTNESS = 1.2
SATURATION = 1.3
GAMMA = 1.1
NORMAL_MAP_BRIGHTNESS = 1.5
EDGE_KERNEL = (-1, -1, -1, -1, 8, -1, -1, -1, -1)


@dataclass(frozen=True)
class FacialRegion:
    name: str
    x: float
    y: float
    radius: float
    factor: float


FACIAL_REGIONS: tuple[FacialRegion, ...] = (
    FacialRegion("left_eye", 0.3, 0.25, 0.08, 1.3),
    FacialRegion("right_eye", 0.7, 0.25, 0.08, 1.3),
    FacialRegion("mouth", 0.5, 0.65, 0.12, 1.2),
    FacialRegion("nose", 0.5, 0.45, 0.06, 1.1),
    FacialRegion("left_cheek", 0.25, 0.5, 0.15, 1.05),
    FacialRegion("right_cheek", 0.75, 0.5, 0.15, 1.05),
)


@dataclass
class EnhancedTextures:
    """
    Texture outputs.

    ``encoding`` is ``"png"`` except when the source raster itself could not be
    decoded; ``diffuse`` then holds the raw interleaved pixel bytes and
    ``encoding`` is ``"raw"``.
    """

    diffuse: bytes
    normal: bytes | None
    resolution: int
    degraded: bool = False
    error: TextureEnhancementError | None = None
    encoding: str = "png"

    def to_dict(self) -> dict[str, Any]:
        return {
            "diffuse_bytes": len(self.diffuse),
            "normal_bytes": len(self.normal) if self.normal is not None else None,
            "resolution": self.resolution,
            "encoding": self.encoding,
            "degraded": self.degraded,
            "error": self.error.to_dict() if self.error else None,
        }


def encode_png(image: Image.Image) -> bytes:
    output = io.BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


def _gamma_table(gamma: float) -> list[int]:
    return [round(255 * (level / 255) ** (1.0 / gamma)) for level in range(256)]


def apply_radial_boost(pixels: np.ndarray, region: FacialRegion) -> None:
    """Brighten a circular region in place with linear falloff from its center."""
    height, width = pixels.shape[:2]
    center_x = int(region.x * width)
    center_y = int(region.y * height)
    radius = int(region.radius * min(width, height))
    if radius <= 0:
        return

    y0, y1 = max(0, center_y - radius), min(height, center_y + radius)
    x0, x1 = max(0, center_x - radius), min(width, center_x + radius)
    if y0 >= y1 or x0 >= x1:
        return

    ys, xs = np.mgrid[y0:y1, x0:x1]
    distance = np.sqrt((xs - center_x) ** 2 + (ys - center_y) ** 2)
    falloff = np.clip(1.0 - distance / radius, 0.0, None)
    enhancement = np.where(distance <= radius, 1.0 + (region.factor - 1.0) * falloff, 1.0)

    patch = pixels[y0:y1, x0:x1, :3].astype(np.float64)
    pixels[y0:y1, x0:x1, :3] = np.minimum(255.0, patch * enhancement[..., None]).astype(np.uint8)


def enhance_facial_features(image: Image.Image) -> Image.Image:
    pixels = np.array(image.convert("RGB"), dtype=np.uint8)
    for region in FACIAL_REGIONS:
        apply_radial_boost(pixels, region)
    return Image.fromarray(pixels)


def enhance_diffuse(image: Image.Image, resolution: int) -> Image.Image:
    """Resize, brighten, saturate, sharpen and gamma-correct, then boost facial regions."""
    working = ImageOps.fit(image.convert("RGB"), (resolution, resolution), method=Image.Resampling.LANCZOS)
    working = ImageEnhance.Brightness(working).enhance(BRIGHTNESS)
    working = ImageEnhance.Color(working).enhance(SATURATION)
    working = working.filter(ImageFilter.UnsharpMask(radius=1.5, percent=120, threshold=2))
    working = working.point(_gamma_table(GAMMA) * 3)
    return enhance_facial_features(working)


def derive_normal_map(image: Image.Image, resolution: int) -> Image.Image:
    """Edge-emphasis normal map from a normalized grayscale height proxy."""
    height_map = ImageOps.fit(image.convert("RGB"), (resolution, resolution), method=Image.Resampling.LANCZOS)
    height_map = ImageOps.autocontrast(ImageOps.grayscale(height_map))
    edges = height_map.filter(ImageFilter.Kernel((3, 3), EDGE_KERNEL, scale=1))
    return ImageEnhance.Brightness(edges).enhance(NORMAL_MAP_BRIGHTNESS)


def _render_textures(source: Image.Image, quality: QualitySettings) -> EnhancedTextures:
    resolution = quality.texture_resolution
    try:
        diffuse = encode_png(enhance_diffuse(source, resolution))
    except Exception as e:
        raise TextureEnhancementError(
            "Diffuse texture enhancement failed",
            details={"stage": "diffuse", "resolution": resolution},
            original_exception=e,
        ) from e

    normal = None
    if quality.normal_maps:
        try:
            normal = encode_png(derive_normal_map(source, resolution))
        except Exception as e:
            raise TextureEnhancementError(
                "Normal map derivation failed",
                details={"stage": "normal_map", "resolution": resolution},
                original_exception=e,
            ) from e

    return EnhancedTextures(diffuse=diffuse, normal=normal, resolution=resolution)


def enhance_textures(pixels: PixelBuffer, quality: QualitySettings) -> EnhancedTextures:
    """
    Enhanced diffuse (and optional normal) textures for the source raster.

    Never raises. On failure both outputs are the unmodified source texture,
    PNG encoded unless the raster is undecodable (see ``EnhancedTextures``).
    """
    try:
        source = pixels.to_image()
    except Exception as e:
        error = TextureEnhancementError("Source raster could not be decoded", original_exception=e)
        logger.warning("Texture enhancement skipped", error=error.to_dict())
        return EnhancedTextures(
            diffuse=bytes(pixels.data), normal=None, resolution=0, degraded=True, error=error, encoding="raw"
        )

    try:
        textures = _render_textures(source, quality)
    except TextureEnhancementError as error:
        logger.warning("Texture enhancement failed, using source texture", error=error.to_dict())
        original = encode_png(source)
        return EnhancedTextures(
            diffuse=original,
            normal=original if quality.normal_maps else None,
            resolution=max(source.width, source.height),
            degraded=True,
            error=error,
        )

    logger.info(
        "Textures enhanced",
        resolution=textures.resolution,
        diffuse_bytes=len(textures.diffuse),
        normal_bytes=len(textures.normal) if textures.normal else 0,
    )
    return textures
