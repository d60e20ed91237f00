import json
import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from charmesh import main as cli
from charmesh.utils.config import config_manager


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, mocker) -> Iterator[Path]:
    """Temporary working directory with a clean environment and untouched global logging."""
    monkeypatch.chdir(tmp_path)
    mocker.patch.object(cli, "configure_generator_logging")
    with patch.dict(os.environ):
        for key in [key for key in os.environ if key.upper().startswith("CHARMESH_")]:
            del os.environ[key]
        yield tmp_path
    config_manager._config = None


@pytest.fixture
def character_image(workspace: Path) -> Path:
    path = workspace / "character.png"
    Image.new("RGB", (32, 32), color=(120, 90, 60)).save(path)
    return path


def test_parser_defaults() -> None:
    args = cli.build_parser().parse_args(["avatar.png"])
    assert args.image == Path("avatar.png")
    assert args.plan is None
    assert not args.no_textures


def test_load_analysis_formats(tmp_path: Path) -> None:
    # Setup
    json_path = tmp_path / "analysis.json"
    json_path.write_text(json.dumps({"characterType": "robot"}), encoding="utf-8")
    yaml_path = tmp_path / "analysis.yaml"
    yaml_path.write_text("characterType: penguin\n", encoding="utf-8")

    # Assert
    assert cli.load_analysis(json_path) == {"characterType": "robot"}
    assert cli.load_analysis(yaml_path) == {"characterType": "penguin"}
    assert cli.load_analysis(None) is None


def test_generates_glb_and_textures(workspace: Path, character_image: Path, capsys) -> None:
    # Setup
    analysis = workspace / "analysis.json"
    analysis.write_text(json.dumps({"characterType": "nft", "headwear": {"hasHat": True}}), encoding="utf-8")
    output = workspace / "out" / "avatar.glb"

    # Execute
    cli.main([str(character_image), "--analysis", str(analysis), "--plan", "zeus", "--max-resolution", "16", "-o", str(output)])

    # Assert
    assert output.read_bytes()[:4] == b"glTF", "A GLB container should be written"
    assert (workspace / "out" / "avatar_diffuse.png").exists()
    assert (workspace / "out" / "avatar_normal.png").exists(), "Zeus plans get a normal map"
    captured = capsys.readouterr()
    assert "256 vertices" in captured.out
    assert "warning:" in captured.err


def test_default_output_path(workspace: Path, character_image: Path) -> None:
    # Execute
    cli.main([str(character_image), "--no-textures", "--max-resolution", "8"])

    # Assert
    assert (workspace / "character.glb").exists(), "Output defaults to the image name"
    assert not (workspace / "character_diffuse.png").exists()


def test_missing_image_exits_with_failure(workspace: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main([str(workspace / "missing.png")])

    assert exc_info.value.code == cli.EXIT_FAILURE
    assert "Generation failed" in capsys.readouterr().err


def test_invalid_analysis_exits_with_failure(workspace: Path, character_image: Path) -> None:
    # Setup
    analysis = workspace / "analysis.json"
    analysis.write_text(json.dumps({"characterType": "dragon"}), encoding="utf-8")

    # Execute
    with pytest.raises(SystemExit) as exc_info:
        cli.main([str(character_image), "--analysis", str(analysis)])

    # Assert
    assert exc_info.value.code == cli.EXIT_FAILURE
