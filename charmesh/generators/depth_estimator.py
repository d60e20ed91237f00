"""
Multi-view depth synthesis.

A single front-facing image has no depth, so four synthetic views are
fabricated from brightness and a per-archetype feature boost, blended with
fixed weights, then shaped by an archetype bias. Every function here works on
one grid row at a time: ``u`` is an array of horizontal coordinates and ``v``
the row's vertical coordinate.
"""

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from charmesh.models.character_model import CharacterType

MIN_DEPTH = 0.1
MAX_DEPTH = 1.0

VIEW_WEIGHTS = {"front": 0.5, "back": 0.2, "left": 0.15, "right": 0.15}

BoostFn = Callable[[np.ndarray, float, np.ndarray], np.ndarray]
BiasFn = Callable[[np.ndarray, np.ndarray, float], np.ndarray]


@dataclass
class ViewDepths:
    front: np.ndarray
    back: np.ndarray
    left: np.ndarray
    right: np.ndarray


# Feature boosts


def _anime_boost(u: np.ndarray, v: float, rgb: np.ndarray) -> np.ndarray:
    boost = np.zeros_like(u)
    if v < 0.4:
        eyes = (np.abs(u - 0.3) < 0.1) | (np.abs(u - 0.7) < 0.1)
        boost += np.where(eyes, 0.3, 0.0)
    if 0.6 < v < 0.8:
        boost += np.where(np.abs(u - 0.5) < 0.1, 0.2, 0.0)
    return boost


def _nft_boost(u: np.ndarray, v: float, rgb: np.ndarray) -> np.ndarray:
    r, g, b = rgb[:, 0], rgb[:, 1], rgb[:, 2]
    contrast = (np.abs(r - g) + np.abs(g - b) + np.abs(b - r)) / 255.0 * 0.4
    in_face = (np.abs(u - 0.5) < 0.3) & (abs(v - 0.4) < 0.3)
    return np.where(in_face, contrast, contrast * 0.5)


def _cartoon_boost(u: np.ndarray, v: float, rgb: np.ndarray) -> np.ndarray:
    distance = np.sqrt((u - 0.5) ** 2 + (v - 0.4) ** 2)
    return np.maximum(0.0, 0.3 - distance)


def _animal_boost(u: np.ndarray, v: float, rgb: np.ndarray) -> np.ndarray:
    boost = np.zeros_like(u)
    if 0.5 < v < 0.7:
        boost += np.where(np.abs(u - 0.5) < 0.15, 0.4, 0.0)
    if v < 0.3:
        ears = (np.abs(u - 0.2) < 0.1) | (np.abs(u - 0.8) < 0.1)
        boost += np.where(ears, 0.3, 0.0)
    return boost


def _robot_boost(u: np.ndarray, v: float, rgb: np.ndarray) -> np.ndarray:
    metallic = rgb.mean(axis=1) > 180.0
    angular = (np.abs(u - 0.5) < 0.1) | (abs(v - 0.5) < 0.1)
    return np.where(metallic & angular, 0.3, 0.0)


def _human_boost(u: np.ndarray, v: float, rgb: np.ndarray) -> np.ndarray:
    boost = np.zeros_like(u)
    if 0.4 < v < 0.6:
        boost += np.where(np.abs(u - 0.5) < 0.05, 0.25, 0.0)
    if 0.3 < v < 0.6:
        cheeks = (np.abs(u - 0.3) < 0.1) | (np.abs(u - 0.7) < 0.1)
        boost += np.where(cheeks, 0.15, 0.0)
    return boost


FEATURE_BOOSTS: dict[CharacterType, BoostFn] = {
    CharacterType.ANIME: _anime_boost,
    CharacterType.NFT: _nft_boost,
    CharacterType.CARTOON: _cartoon_boost,
    CharacterType.ANIMAL: _animal_boost,
    CharacterType.ROBOT: _robot_boost,
    CharacterType.HUMAN: _human_boost,
}


def feature_boost(character_type: CharacterType, u: np.ndarray, v: float, rgb: np.ndarray) -> np.ndarray:
    boost_fn = FEATURE_BOOSTS.get(character_type)
    if boost_fn is None:
        return np.zeros_like(u, dtype=np.float64)
    return boost_fn(u, v, rgb)


# Archetype biases


def _anime_bias(depth: np.ndarray, u: np.ndarray, v: float) -> np.ndarray:
    if v < 0.4:
        depth = depth * 1.3
        if v < 0.25:
            depth = np.where(np.abs(u - 0.5) < 0.15, depth * 1.2, depth)
    return depth


def _animal_bias(depth: np.ndarray, u: np.ndarray, v: float) -> np.ndarray:
    if 0.15 < v < 0.3:
        depth = depth * 1.4
    if v < 0.2:
        depth = np.where((u < 0.3) | (u > 0.7), depth * 1.3, depth)
    return depth


def _robot_bias(depth: np.ndarray, u: np.ndarray, v: float) -> np.ndarray:
    depth = depth * 1.1
    if v < 0.35:
        depth = depth * 1.25
    return depth


def _human_bias(depth: np.ndarray, u: np.ndarray, v: float) -> np.ndarray:
    if v < 0.35:
        depth = depth * 1.15
    if 0.35 < v < 0.65:
        depth = depth * 1.1
    return depth


ARCHETYPE_BIASES: dict[CharacterType, BiasFn] = {
    CharacterType.ANIME: _anime_bias,
    CharacterType.ANIMAL: _animal_bias,
    CharacterType.ROBOT: _robot_bias,
    CharacterType.HUMAN: _human_bias,
}


def apply_archetype_bias(character_type: CharacterType, depth: np.ndarray, u: np.ndarray, v: float) -> np.ndarray:
    bias_fn = ARCHETYPE_BIASES.get(character_type)
    if bias_fn is None:
        return depth
    return bias_fn(depth, u, v)


# Multi-view synthesis


def synthesize_views(
    character_type: CharacterType,
    u: np.ndarray,
    v: float,
    rgb: np.ndarray,
    brightness: np.ndarray,
) -> ViewDepths:
    """Fabricate front/back/left/right depth estimates for one row."""
    front = np.clip(brightness * 0.5 + feature_boost(character_type, u, v, rgb), 0.0, 1.0)
    back = front * 0.3 + (1.0 - brightness) * 0.2
    side = front * (0.7 - 0.4 * np.abs(u - 0.5))
    return ViewDepths(front=front, back=back, left=side, right=side.copy())


def blend_views(views: ViewDepths) -> np.ndarray:
    return (
        views.front * VIEW_WEIGHTS["front"]
        + views.back * VIEW_WEIGHTS["back"]
        + views.left * VIEW_WEIGHTS["left"]
        + views.right * VIEW_WEIGHTS["right"]
    )


def estimate_depth(
    character_type: CharacterType,
    u: np.ndarray,
    v: float,
    rgb: np.ndarray,
    brightness: np.ndarray,
) -> np.ndarray:
    """Blended, archetype-biased depth for one row, clamped to [0.1, 1.0]."""
    views = synthesize_views(character_type, u, v, rgb, brightness)
    depth = apply_archetype_bias(character_type, blend_views(views), u, v)
    # NaN would survive np.clip; map it to the floor first.
    depth = np.nan_to_num(depth, nan=MIN_DEPTH, posinf=MAX_DEPTH, neginf=MIN_DEPTH)
    return np.clip(depth, MIN_DEPTH, MAX_DEPTH)
