"""Configuration management for xnbtedit."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from xnbtedit.constants import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    DEFAULT_BATCH_CONCURRENCY,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STABILITY_THRESHOLD,
)
from xnbtedit.utils.fs import atomic_write_text


class EditorConfig(BaseModel):
    """External editor launched in edit mode."""

    command: str | None = None
    args: list[str] = Field(default_factory=list)


class BatchConfig(BaseModel):
    """Batch processing configuration."""

    concurrency: int = Field(default=DEFAULT_BATCH_CONCURRENCY, ge=1)
    # Threads for codec passes; None sizes the pool from the CPU count
    codec_workers: int | None = Field(default=None, ge=1)


class WatchConfig(BaseModel):
    """Edit watcher timing."""

    stability_threshold: float = Field(default=DEFAULT_STABILITY_THRESHOLD, ge=0)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class XnbtEditConfig(BaseModel):
    """Main configuration model."""

    editor: EditorConfig = Field(default_factory=EditorConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    log: LogConfig = Field(default_factory=LogConfig)


def is_known_key(key: str) -> bool:
    """Whether the dot-separated ``key`` names a field of ``XnbtEditConfig``."""
    model: Any = XnbtEditConfig
    for part in key.split("."):
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            return False
        field = model.model_fields.get(part)
        if field is None:
            return False
        model = field.annotation
    return True


def _set_nested_value(data: dict[str, Any], key_path: str, value: Any) -> None:
    """Set a nested value in a dict using dot-separated key path.

    Creates intermediate dicts if they don't exist.
    """
    parts = key_path.split(".")
    current = data
    for part in parts[:-1]:
        if part not in current or not isinstance(current[part], dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


class ConfigManager:
    """Loads, edits and saves the JSON configuration file."""

    CONFIG_FILENAME = CONFIG_FILENAME
    DEFAULT_USER_CONFIG_DIR = Path.home() / ".config" / "xnbtedit"

    def __init__(self) -> None:
        self._config: XnbtEditConfig | None = None
        self._config_path: Path | None = None
        self._raw_data: dict[str, Any] = {}  # Preserve original JSON structure
        self._modified_keys: set[str] = set()

    @property
    def config(self) -> XnbtEditConfig:
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
    ) -> XnbtEditConfig:
        """
        Load configuration from file with fallback chain.

        Priority (highest to lowest):
        1. Explicit config_path parameter
        2. XNBTEDIT_CONFIG environment variable
        3. ./xnbtedit.json (current directory)
        4. ~/.config/xnbtedit/config.json (user directory)
        5. Default values
        """
        config_data: dict[str, Any] = {}

        resolved_path = self._resolve_config_path(config_path, env_override)
        self._config_path = resolved_path

        if resolved_path and resolved_path.exists():
            config_data = self._load_json(resolved_path)

        self._raw_data = config_data.copy()
        self._modified_keys.clear()

        self._config = XnbtEditConfig.model_validate(config_data)
        return self._config

    def _resolve_config_path(
        self,
        config_path: Path | str | None,
        env_override: bool,
    ) -> Path | None:
        """Resolve configuration file path based on priority."""
        if config_path:
            return Path(config_path)

        if env_override:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            if env_path:
                return Path(env_path)

        cwd_config = Path.cwd() / self.CONFIG_FILENAME
        if cwd_config.exists():
            return cwd_config

        user_config = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        if user_config.exists():
            return user_config

        return None

    def _load_json(self, path: Path) -> dict[str, Any]:
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def save(self, path: Path | str | None = None, full_dump: bool = False) -> Path:
        """Save the configuration atomically.

        Args:
            path: Where to save. Defaults to the loaded file, else the user
                config file.
            full_dump: Write every field, defaults included. Otherwise only
                keys changed with ``set()`` are merged into the original JSON.

        Returns:
            The path written
        """
        if self._config is None:
            self._config = XnbtEditConfig()

        save_path = Path(path) if path else self._config_path
        if save_path is None:
            save_path = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        elif save_path.is_dir():
            save_path = save_path / self.CONFIG_FILENAME

        if full_dump:
            output_data = self._config.model_dump(mode="json")
        else:
            output_data = self._raw_data.copy()
            for key in sorted(self._modified_keys):
                _set_nested_value(output_data, key, self.get(key))

        content = json.dumps(output_data, indent=2, ensure_ascii=False) + "\n"
        atomic_write_text(save_path, content)
        self._config_path = save_path
        return save_path

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by dot-separated key path.

        Example: config_manager.get("editor.command")
        """
        parts = key.split(".")
        value: Any = self.config

        for part in parts:
            if isinstance(value, BaseModel):
                value = getattr(value, part, None)
            elif isinstance(value, dict):
                value = value.get(part)
            else:
                return default

            if value is None:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value by dot-separated key path.

        The whole configuration is re-validated, so an invalid value raises
        ``pydantic.ValidationError`` and leaves the current config unchanged.

        Example: config_manager.set("editor.command", "/usr/bin/vim")

        Raises:
            KeyError: ``key`` does not name a configuration field
        """
        if not is_known_key(key):
            raise KeyError(key)
        data = self.config.model_dump()
        _set_nested_value(data, key, value)
        self._config = XnbtEditConfig.model_validate(data)
        self._modified_keys.add(key)
