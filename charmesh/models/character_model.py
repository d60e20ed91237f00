"""
Data models for character mesh synthesis.

This module defines the inputs handed to the engine (pixel buffers and the
structured character analysis) and the in-memory geometry it produces.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Enums for controlled vocabularies

class CharacterType(str, Enum):
    """Character archetypes recognised by the analysis step."""
    GENERIC = "generic"
    HUMAN = "human"
    ANIME = "anime"
    NFT = "nft"
    CARTOON = "cartoon"
    ANIMAL = "animal"
    ROBOT = "robot"
    PENGUIN = "penguin"
    ANTHROPOMORPHIC_APE = "anthropomorphic_ape"


class Complexity(str, Enum):
    """Declared visual complexity of the source artwork."""
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    ULTRA_COMPLEX = "ultra-complex"


class UserPlan(str, Enum):
    """Subscription tiers that drive quality settings."""
    FREE = "free"
    REPLY_GUY = "reply_guy"
    SPARTAN = "spartan"
    ZEUS = "zeus"
    GOAT = "goat"


class BodyPart(str, Enum):
    """Per-vertex anatomical labels."""
    HEAD_TOP = "head_top"
    FACE = "face"
    TORSO = "torso"
    LEGS = "legs"
    # Fabricated anatomy
    GENERATED_LEFT_ARM = "generated_left_arm"
    GENERATED_RIGHT_ARM = "generated_right_arm"
    GENERATED_LEFT_LEG = "generated_left_leg"
    GENERATED_RIGHT_LEG = "generated_right_leg"
    GENERATED_LEFT_HAND = "generated_left_hand"
    GENERATED_RIGHT_HAND = "generated_right_hand"
    GENERATED_TORSO = "generated_torso"
    # Trait overlays
    SUNGLASSES = "sunglasses"
    HAT = "hat"
    CLOTHING = "clothing"
    NECKLACE = "necklace"
    # Archetype regions
    HEAD = "head"
    NECK = "neck"
    LEFT_ARM = "left_arm"
    RIGHT_ARM = "right_arm"
    LEFT_LEG = "left_leg"
    RIGHT_LEG = "right_leg"
    HELMET = "helmet"
    WEAPON = "weapon"
    MOUTH = "mouth"
    EAR = "ear"


# Character analysis

class _AnalysisModel(BaseModel):
    """Immutable model that also accepts the analyser's camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Headwear(_AnalysisModel):
    has_hat: bool = False
    hat_type: str | None = None


class Eyewear(_AnalysisModel):
    has_sunglasses: bool = False


class Mouth(_AnalysisModel):
    style: str = "neutral"


class Clothing(_AnalysisModel):
    has_clothing: bool = False
    accessories: list[str] = Field(default_factory=list)


class Fur(_AnalysisModel):
    primary_color: str | None = None
    pattern: str | None = None


class MissingParts(_AnalysisModel):
    """Anatomy the source artwork crops or omits."""

    arms: bool = False
    legs: bool = False
    hands: bool = False
    torso: bool = False


class CharacterAnalysis(_AnalysisModel):
    """Structured feature analysis of a single character image."""

    character_type: CharacterType = CharacterType.GENERIC
    complexity: Complexity = Complexity.MODERATE
    headwear: Headwear = Field(default_factory=Headwear)
    eyewear: Eyewear = Field(default_factory=Eyewear)
    mouth: Mouth = Field(default_factory=Mouth)
    clothing: Clothing = Field(default_factory=Clothing)
    fur: Fur = Field(default_factory=Fur)
    missing_parts: MissingParts = Field(default_factory=MissingParts)
    accessories: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("character_type", mode="before")
    @classmethod
    def normalize_character_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower().replace("-", "_")
            if v == "nft_character":
                return CharacterType.NFT
        return v

    @field_validator("complexity", mode="before")
    @classmethod
    def normalize_complexity(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower().replace("_", "-")
            if v == "maximum":
                return Complexity.ULTRA_COMPLEX
        return v

    @field_validator("accessories", mode="before")
    @classmethod
    def normalize_accessories(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(str(item).strip().lower() for item in v)
        return v

    def has_accessory(self, name: str) -> bool:
        """Check both the top-level and clothing accessory lists."""
        name = name.lower()
        return name in self.accessories or any(item.lower() == name for item in self.clothing.accessories)


# Raster input

@dataclass(frozen=True)
class PixelBuffer:
    """Interleaved 8-bit RGB or RGBA pixels, row-major."""

    width: int
    height: int
    data: bytes
    channels: int = 4

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
        return cls(
            width=image.width,
            height=image.height,
            data=image.tobytes(),
            channels=len(image.getbands()),
        )

    def as_array(self) -> np.ndarray:
        """Read-only ``(height, width, channels)`` view over the raw bytes."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, self.channels)

    def to_image(self) -> Image.Image:
        mode = "RGBA" if self.channels == 4 else "RGB"
        return Image.frombytes(mode, (self.width, self.height), self.data)


# Geometry

@dataclass
class VertexRow:
    """One grid row of intermediate vertices.

    ``depth`` stays within [0, 1]; ``body_part`` holds ``BodyPart`` members.
    """

    u: np.ndarray
    v: float
    depth: np.ndarray
    body_part: np.ndarray
    color: np.ndarray

    def __len__(self) -> int:
        return len(self.u)


@dataclass
class Mesh:
    """Flat triangle mesh ready for serialization."""

    vertices: np.ndarray
    indices: np.ndarray
    uvs: np.ndarray
    normals: np.ndarray
    body_parts: np.ndarray | None = None
    resolution: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices) // 3

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3
