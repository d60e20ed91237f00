"""
Configuration management for the character mesh generator.

This module provides:
- YAML-based configuration files
- Environment variable overrides (``CHARMESH_`` prefix, ``__`` nesting)
- ``.env`` loading
- Pydantic validation
"""

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from charmesh.models.character_model import UserPlan

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHARMESH_"

# Configuration Models


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Logging level")
    json_format: bool = Field(default=False, description="Use JSON log format")
    include_timestamp: bool = Field(default=True, description="Add ISO timestamps to log events")

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        return v.upper() if isinstance(v, str) else v


class GenerationConfig(BaseModel):
    """Defaults applied to every generation request."""

    default_plan: UserPlan = Field(default=UserPlan.FREE, description="Plan used when a request names none")
    max_resolution: int | None = Field(default=None, ge=2, le=255, description="Grid resolution ceiling")
    time_budget_seconds: float | None = Field(default=None, gt=0, description="Abort generations running longer")
    include_textures: bool = Field(default=True, description="Run texture enhancement")
    mesh_scale: float = Field(default=2.0, gt=0, description="Uniform scale applied to vertex positions")
    generator_name: str = Field(default="charmesh", description="glTF asset.generator value")

    @field_validator("default_plan", mode="before")
    @classmethod
    def normalize_plan(cls, v):
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v


class TaskConfig(BaseModel):
    """Background task tracking."""

    cleanup_interval_seconds: int = Field(default=300, ge=1, description="Interval between finished-task sweeps")
    max_task_age_seconds: int = Field(default=3600, ge=1, description="Age after which finished tasks are dropped")


class EngineConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = Field(default="development")
    debug: bool = Field(default=False)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    tasks: TaskConfig = Field(default_factory=TaskConfig)

    app_name: str = Field(default="charmesh")
    output_dir: str = Field(default=".", description="Directory for generated files when no path is given")


class ConfigManager:
    """Configuration manager for loading and validating configuration."""

    def __init__(self):
        self._config: EngineConfig | None = None
        self._config_path: Path | None = None

    def load_config(self, config_path: str | Path | None = None, env_file: str | Path | None = None) -> EngineConfig:
        """Load configuration from an optional YAML file plus the environment."""
        dotenv_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if dotenv_path.exists():
            load_dotenv(dotenv_path, override=False)
            logger.info(f"Loaded environment variables from: {dotenv_path}")

        if config_path is None:
            config_path = os.getenv(f"{ENV_PREFIX}CONFIG_FILE")
        self._config_path = Path(config_path) if config_path else None

        config_data = self._load_yaml_config(self._config_path)
        config_data = self._apply_env_overrides(config_data)

        self._config = EngineConfig(**config_data)

        logger.info("Configuration loaded successfully")
        return self._config

    def _load_yaml_config(self, config_path: Path | None) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if config_path is None:
            return {}

        if not config_path.exists():
            logger.warning(f"Configuration file not found: {config_path}")
            return {}

        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration: {e}")
            raise ValueError(f"Invalid YAML configuration: {e}") from e

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_path}")

        logger.info(f"Loaded configuration from: {config_path}")
        return config_data

    def _apply_env_overrides(self, config_data: dict[str, Any]) -> dict[str, Any]:
        """Apply ``CHARMESH_`` environment variable overrides to configuration."""
        env_overrides: dict[str, Any] = {}

        for key, value in os.environ.items():
            if not key.upper().startswith(ENV_PREFIX) or key.upper() == f"{ENV_PREFIX}CONFIG_FILE":
                continue

            parts = key[len(ENV_PREFIX):].lower().split("__")
            current = env_overrides
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = self._convert_env_value(value)

        self._deep_merge(config_data, env_overrides)
        return config_data

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable string value to appropriate type."""
        if value.lower() in ("true", "false"):
            return value.lower() == "true"

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        if "," in value:
            return [item.strip() for item in value.split(",")]

        return value

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> None:
        """Deep merge override dictionary into base dictionary."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    @property
    def config(self) -> EngineConfig:
        """Get current configuration."""
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load_config() first.")
        return self._config

    def reload_config(self) -> EngineConfig:
        """Reload configuration from the last used file."""
        return self.load_config(self._config_path)


# Global configuration manager instance
config_manager = ConfigManager()


def get_config() -> EngineConfig:
    """Get the current configuration, loading defaults on first use."""
    if config_manager._config is None:
        return config_manager.load_config()
    return config_manager.config


def load_config(config_path: str | Path | None = None) -> EngineConfig:
    """Load configuration from an optional YAML file."""
    return config_manager.load_config(config_path)
