"""Configuration management for imgopt."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from imgopt.constants import (
    CONFIG_FILENAME,
    DEFAULT_ERRORS_DIR,
    DEFAULT_FILE_TIMEOUT,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_MAX_DIMENSION,
    DEFAULT_TARGET_FORMAT,
    DEFAULT_USER_CONFIG_DIR,
    DEFAULT_WEBP_QUALITY,
    DEFAULT_WORKERS,
    MAX_QUALITY,
    MIN_QUALITY,
)
from imgopt.exceptions import ConfigurationError
from imgopt.formats import parse_target_format


class _Section(BaseModel):
    model_config = ConfigDict(validate_assignment=True, extra="forbid")


class ConvertConfig(_Section):
    """What to convert and how."""

    format: Literal["png", "jpg", "webp"] = DEFAULT_TARGET_FORMAT
    webp_quality: int = Field(default=DEFAULT_WEBP_QUALITY, ge=MIN_QUALITY, le=MAX_QUALITY)
    jpeg_quality: int = Field(default=DEFAULT_JPEG_QUALITY, ge=MIN_QUALITY, le=MAX_QUALITY)
    max_dimension: int = Field(default=DEFAULT_MAX_DIMENSION, ge=1)
    no_limit: bool = False
    recursive: bool = False

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        # "jpeg" and "JPG" are accepted and stored as "jpg"
        if isinstance(value, str):
            try:
                return parse_target_format(value).value
            except ConfigurationError:
                return value
        return value


class BatchConfig(_Section):
    """Batch processing configuration."""

    workers: int = Field(default=DEFAULT_WORKERS, ge=1)
    file_timeout: float | None = Field(default=DEFAULT_FILE_TIMEOUT, gt=0)


class OutputConfig(_Section):
    """Output configuration."""

    dir: str | None = None  # None -> <input>/<format>
    copy_failed: bool = False
    errors_dir: str = DEFAULT_ERRORS_DIR


class LogConfig(_Section):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class ImgoptConfig(_Section):
    """Main configuration model."""

    convert: ConvertConfig = Field(default_factory=ConvertConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    log: LogConfig = Field(default_factory=LogConfig)


class ConfigManager:
    """Configuration manager for loading and merging configs."""

    CONFIG_FILENAME = CONFIG_FILENAME
    DEFAULT_USER_CONFIG_DIR = Path(DEFAULT_USER_CONFIG_DIR).expanduser()

    def __init__(self) -> None:
        self._config: ImgoptConfig | None = None
        self._config_path: Path | None = None

    @property
    def config(self) -> ImgoptConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def config_path(self) -> Path | None:
        """Get the path of the loaded configuration file."""
        return self._config_path

    def load(
        self,
        config_path: Path | str | None = None,
        env_override: bool = True,
    ) -> ImgoptConfig:
        """
        Load configuration from file with fallback chain.

        Priority (highest to lowest):
        1. Explicit config_path parameter
        2. IMGOPT_CONFIG environment variable
        3. ./imgopt.json (current directory)
        4. ~/.imgopt/config.json (user directory)
        5. Default values

        Raises:
            ConfigurationError: An explicitly named file is missing, or the
                file is not valid JSON or fails validation.
        """
        config_data: dict[str, Any] = {}
        self._config_path = None

        resolved_path = self._resolve_config_path(config_path, env_override)
        if resolved_path is not None:
            if not resolved_path.exists():
                raise ConfigurationError(f"Config file not found: {resolved_path}")
            config_data = self._load_json(resolved_path)
            self._config_path = resolved_path

        try:
            self._config = ImgoptConfig.model_validate(config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        return self._config

    def _resolve_config_path(
        self,
        config_path: Path | str | None,
        env_override: bool,
    ) -> Path | None:
        """Resolve configuration file path based on priority."""
        if config_path:
            return Path(config_path).expanduser()

        if env_override:
            env_path = os.environ.get("IMGOPT_CONFIG")
            if env_path:
                return Path(env_path).expanduser()

        cwd_config = Path.cwd() / self.CONFIG_FILENAME
        if cwd_config.exists():
            return cwd_config

        user_config = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        if user_config.exists():
            return user_config

        return None

    def _load_json(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config {path} must contain a JSON object")
        return data

    def save(
        self,
        path: Path | str | None = None,
        config: ImgoptConfig | None = None,
    ) -> Path:
        """Write ``config`` (default: the current configuration) as JSON.

        Returns:
            The path written
        """
        cfg = config or self.config
        save_path = Path(path) if path else self._config_path
        if save_path is None:
            save_path = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        elif save_path.is_dir():
            save_path = save_path / self.CONFIG_FILENAME

        save_path.parent.mkdir(parents=True, exist_ok=True)
        with open(save_path, "w", encoding="utf-8") as f:
            json.dump(cfg.model_dump(mode="json"), f, indent=2)
            f.write("\n")
        return save_path

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by dot-separated key path.

        Example: config_manager.get("convert.webp_quality")
        """
        value: Any = self.config
        for part in key.split("."):
            if not isinstance(value, BaseModel):
                return default
            value = getattr(value, part, None)
            if value is None:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value by dot-separated key path.

        Assignments are validated; a bad value or unknown key raises
        ``ConfigurationError`` and leaves the configuration unchanged.

        Example: config_manager.set("batch.workers", 4)
        """
        *parents, final_key = key.split(".")
        target: Any = self.config
        for part in parents:
            target = getattr(target, part, None)
            if not isinstance(target, BaseModel):
                raise ConfigurationError(f"Unknown config key: {key}")
        if final_key not in type(target).model_fields:
            raise ConfigurationError(f"Unknown config key: {key}")
        try:
            setattr(target, final_key, value)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid value for {key}: {e}") from e

    def merge_cli_args(self, **kwargs: Any) -> None:
        """Merge CLI arguments into configuration.

        Argument names use ``__`` between section and field, e.g.
        ``convert__webp_quality=90``. ``None`` means "not given".
        """
        for key, value in kwargs.items():
            if value is not None:
                self.set(key.replace("__", "."), value)


def get_config(config_path: Path | str | None = None) -> ImgoptConfig:
    """Load configuration with the standard lookup chain."""
    return ConfigManager().load(config_path)
