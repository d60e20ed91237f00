import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pydantic
import pytest

from charmesh.models.character_model import UserPlan
from charmesh.utils.config import ConfigManager, EngineConfig


@pytest.fixture
def clean_env() -> Iterator[None]:
    """Run with no CHARMESH_ variables set and restore the environment afterwards."""
    with patch.dict(os.environ):
        for key in [key for key in os.environ if key.upper().startswith("CHARMESH_")]:
            del os.environ[key]
        yield


@pytest.fixture
def manager(clean_env: None, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.chdir(tmp_path)
    return ConfigManager()


def write_yaml(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestEngineConfig:
    """Test suite for EngineConfig defaults and validation."""

    def test_defaults(self, clean_env: None) -> None:
        # Execute
        config = EngineConfig()

        # Assert
        assert config.environment == "development"
        assert config.logging.level == "INFO"
        assert config.generation.default_plan is UserPlan.FREE
        assert config.generation.max_resolution is None
        assert config.generation.mesh_scale == 2.0
        assert config.tasks.cleanup_interval_seconds == 300
        assert config.tasks.max_task_age_seconds == 3600

    def test_nested_env_vars(self, clean_env: None) -> None:
        env_vars = {
            "CHARMESH_LOGGING__LEVEL": "debug",
            "CHARMESH_GENERATION__DEFAULT_PLAN": "Reply-Guy",
            "CHARMESH_GENERATION__MAX_RESOLUTION": "64",
        }

        with patch.dict(os.environ, env_vars):
            config = EngineConfig()

            assert config.logging.level == "DEBUG", "Level is upper-cased"
            assert config.generation.default_plan is UserPlan.REPLY_GUY
            assert config.generation.max_resolution == 64

    def test_invalid_values(self, clean_env: None) -> None:
        with pytest.raises(pydantic.ValidationError):
            EngineConfig(generation={"max_resolution": 512})
        with pytest.raises(pydantic.ValidationError):
            EngineConfig(logging={"level": "VERBOSE"})


class TestConfigManager:
    """Test suite for ConfigManager."""

    def test_load_without_file(self, manager: ConfigManager) -> None:
        config = manager.load_config()
        assert config.app_name == "charmesh"
        assert manager.config is config

    def test_yaml_file(self, manager: ConfigManager, tmp_path: Path) -> None:
        # Setup
        path = write_yaml(
            tmp_path / "config.yaml",
            "environment: production\n"
            "generation:\n"
            "  default_plan: zeus\n"
            "  time_budget_seconds: 2.5\n"
            "tasks:\n"
            "  cleanup_interval_seconds: 10\n",
        )

        # Execute
        config = manager.load_config(path)

        # Assert
        assert config.environment == "production"
        assert config.generation.default_plan is UserPlan.ZEUS
        assert config.generation.time_budget_seconds == 2.5
        assert config.tasks.cleanup_interval_seconds == 10
        assert config.tasks.max_task_age_seconds == 3600, "Unset keys keep their defaults"

    def test_env_beats_yaml(self, manager: ConfigManager, tmp_path: Path) -> None:
        # Setup
        path = write_yaml(tmp_path / "config.yaml", "generation:\n  max_resolution: 32\n  include_textures: true\n")

        # Execute
        with patch.dict(os.environ, {"CHARMESH_GENERATION__MAX_RESOLUTION": "48", "CHARMESH_DEBUG": "true"}):
            config = manager.load_config(path)

        # Assert
        assert config.generation.max_resolution == 48, "Environment overrides the file"
        assert config.generation.include_textures is True
        assert config.debug is True

    def test_config_file_from_env(self, manager: ConfigManager, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "engine.yaml", "app_name: from-env-file\n")

        with patch.dict(os.environ, {"CHARMESH_CONFIG_FILE": str(path)}):
            config = manager.load_config()

        assert config.app_name == "from-env-file"

    def test_dotenv_file(self, manager: ConfigManager, tmp_path: Path) -> None:
        # Setup
        env_file = tmp_path / "settings.env"
        env_file.write_text("CHARMESH_OUTPUT_DIR=/tmp/meshes\n", encoding="utf-8")

        # Execute
        config = manager.load_config(env_file=env_file)

        # Assert
        assert config.output_dir == "/tmp/meshes"

    def test_missing_file_uses_defaults(self, manager: ConfigManager, tmp_path: Path) -> None:
        config = manager.load_config(tmp_path / "absent.yaml")
        assert config.environment == "development"

    def test_invalid_yaml(self, manager: ConfigManager, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "broken.yaml", "generation: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            manager.load_config(path)

    def test_non_mapping_yaml(self, manager: ConfigManager, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "list.yaml", "- one\n- two\n")
        with pytest.raises(ValueError, match="mapping"):
            manager.load_config(path)

    def test_config_before_load(self) -> None:
        with pytest.raises(RuntimeError):
            ConfigManager().config

    def test_reload_uses_last_path(self, manager: ConfigManager, tmp_path: Path) -> None:
        # Setup
        path = write_yaml(tmp_path / "config.yaml", "app_name: first\n")
        manager.load_config(path)
        write_yaml(path, "app_name: second\n")

        # Execute
        config = manager.reload_config()

        # Assert
        assert config.app_name == "second"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("true", True),
            ("False", False),
            ("42", 42),
            ("0.25", 0.25),
            ("a, b,c", ["a", "b", "c"]),
            ("plain", "plain"),
        ],
    )
    def test_convert_env_value(self, value: str, expected) -> None:
        assert ConfigManager()._convert_env_value(value) == expected
