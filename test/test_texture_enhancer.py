import io

import numpy as np
import pytest
from PIL import Image

from charmesh.generators.base import TextureEnhancementError
from charmesh.generators.configs import quality_for_plan
from charmesh.generators.models import QualitySettings
from charmesh.generators.texture_enhancer import (
    FACIAL_REGIONS,
    apply_radial_boost,
    derive_normal_map,
    enhance_diffuse,
    enhance_textures,
)
from charmesh.models.character_model import PixelBuffer, UserPlan

from conftest import solid_pixels

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def decode(png: bytes) -> Image.Image:
    return Image.open(io.BytesIO(png))


class TestEnhanceTextures:
    """Best-effort texture enhancement."""

    def test_free_plan_diffuse_only(self, gray_pixels: PixelBuffer) -> None:
        """Free plans get a 512px diffuse texture and no normal map."""
        # Execute
        textures = enhance_textures(gray_pixels, quality_for_plan(UserPlan.FREE))

        # Assert
        assert textures.diffuse.startswith(PNG_SIGNATURE), "Diffuse is PNG encoded"
        assert decode(textures.diffuse).size == (512, 512)
        assert textures.normal is None, "Normal maps are a premium feature"
        assert textures.encoding == "png"
        assert not textures.degraded

    def test_normal_map_when_enabled(self, gray_pixels: PixelBuffer) -> None:
        # Setup
        quality = QualitySettings(normal_maps=True, texture_resolution=64)

        # Execute
        textures = enhance_textures(gray_pixels, quality)

        # Assert
        assert textures.normal is not None
        assert decode(textures.normal).size == (64, 64)
        assert textures.resolution == 64

    def test_failure_falls_back_to_source(self, mocker, gray_pixels: PixelBuffer) -> None:
        """A failing stage degrades to the unmodified source texture."""
        # Setup
        mocker.patch(
            "charmesh.generators.texture_enhancer.enhance_diffuse",
            side_effect=RuntimeError("filter exploded"),
        )
        quality = QualitySettings(normal_maps=True, texture_resolution=64)

        # Execute
        textures = enhance_textures(gray_pixels, quality)

        # Assert
        assert textures.degraded, "Result should be flagged as degraded"
        assert isinstance(textures.error, TextureEnhancementError)
        assert textures.error.details["stage"] == "diffuse"
        assert decode(textures.diffuse).size == (64, 64), "Diffuse is the source image"
        assert textures.normal == textures.diffuse, "Normal map degrades to the source as well"

    def test_undecodable_source_never_raises(self) -> None:
        # Setup
        broken = PixelBuffer(width=4, height=4, data=b"\x00" * 5, channels=4)

        # Execute
        textures = enhance_textures(broken, QualitySettings(texture_resolution=16))

        # Assert
        assert textures.degraded
        assert textures.diffuse == b"\x00" * 5, "Raw bytes are passed through"
        assert textures.encoding == "raw", "Undecodable sources are flagged as raw bytes"
        assert textures.to_dict()["error"]["error_code"] == "TEXTURE_ENHANCEMENT_ERROR"


class TestFilters:
    """Individual enhancement stages."""

    def test_diffuse_is_brighter(self) -> None:
        # Setup
        source = solid_pixels(32, 32, (100, 100, 100)).to_image()

        # Execute
        enhanced = np.asarray(enhance_diffuse(source, 32))

        # Assert
        assert enhanced[0, 0].mean() > 100, "Brightness and gamma lift mid-gray"

    def test_radial_boost_center(self) -> None:
        """The eye center is boosted by the full factor; far pixels are untouched."""
        # Setup
        pixels = np.full((100, 100, 3), 100, dtype=np.uint8)
        left_eye = FACIAL_REGIONS[0]

        # Execute
        apply_radial_boost(pixels, left_eye)

        # Assert
        assert pixels[25, 30, 0] == 130, "1.3x at the center of the left eye"
        assert pixels[99, 99, 0] == 100

    def test_normal_map_of_flat_image_is_dark(self) -> None:
        """A flat image has no edges for the kernel to pick up."""
        source = solid_pixels(16, 16, (200, 50, 50)).to_image()
        normal = np.asarray(derive_normal_map(source, 16))
        assert normal[1:-1, 1:-1].max() == 0


@pytest.mark.parametrize(("plan", "has_normal"), [(UserPlan.SPARTAN, False), (UserPlan.ZEUS, True)])
def test_plan_controls_normal_maps(plan: UserPlan, has_normal: bool) -> None:
    assert quality_for_plan(plan).normal_maps is has_normal
