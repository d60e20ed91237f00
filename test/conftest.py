from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import MagicMock

import numpy as np
import pytest
import structlog

from charmesh.core.task_manager import TaskManager
from charmesh.models.character_model import BodyPart, CharacterAnalysis, PixelBuffer, VertexRow
from charmesh.utils.config import EngineConfig

GRAY = (128, 128, 128)
BLACK = (0, 0, 0)


def solid_pixels(width: int, height: int, color: tuple[int, int, int], channels: int = 4) -> PixelBuffer:
    pixel = bytes(color) + (b"\xff" if channels == 4 else b"")
    return PixelBuffer(width=width, height=height, data=pixel * (width * height), channels=channels)


def make_row(u: np.ndarray, v: float, depth: float = 0.1, body_part: BodyPart = BodyPart.FACE) -> VertexRow:
    u = np.asarray(u, dtype=np.float64)
    labels = np.empty(len(u), dtype=object)
    labels.fill(body_part)
    return VertexRow(
        u=u,
        v=v,
        depth=np.full(len(u), depth),
        body_part=labels,
        color=np.zeros((len(u), 3), dtype=np.uint8),
    )


@pytest.fixture
def gray_pixels() -> PixelBuffer:
    return solid_pixels(64, 64, GRAY)


@pytest.fixture
def black_pixels() -> PixelBuffer:
    return solid_pixels(64, 64, BLACK)


@pytest.fixture
def gradient_pixels() -> PixelBuffer:
    """8x8 RGBA buffer where pixel (x, y) is (10x, 10y, 0)."""
    data = bytearray()
    for y in range(8):
        for x in range(8):
            data.extend((x * 10, y * 10, 0, 255))
    return PixelBuffer(width=8, height=8, data=bytes(data), channels=4)


@pytest.fixture
def make_analysis() -> Callable[..., CharacterAnalysis]:
    def factory(**fields: Any) -> CharacterAnalysis:
        return CharacterAnalysis.model_validate(fields)

    return factory


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture(autouse=True)
def mock_logger(mocker: Any) -> MagicMock:
    return mocker.patch.object(structlog, "get_logger", return_value=MagicMock())


@pytest.fixture
async def task_manager() -> AsyncGenerator[TaskManager]:
    manager = TaskManager(cleanup_interval=1, max_task_age=0)
    yield manager
    await manager.shutdown()
