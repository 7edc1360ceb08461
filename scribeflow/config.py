"""
scribeflow.config - Persisted settings loading, default merging, validation.

Settings live in a YAML key-value file under the user's scribeflow home.
They are loaded once per session, merged field by field over the built-in
defaults (a persisted file is never trusted to be complete), and passed
explicitly into every extraction and transcription request.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from scribeflow.exceptions import ConfigError
from scribeflow.io import write_text

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.yaml"

SUPPORTED_LANGUAGES: dict[str, str] = {
    "en-US": "English (US)",
    "en-GB": "English (UK)",
    "es-ES": "Spanish",
    "fr-FR": "French",
    "de-DE": "German",
    "ja-JP": "Japanese",
    "zh-CN": "Chinese (Simplified)",
    "hi-IN": "Hindi",
    "ar-SA": "Arabic",
    "ru-RU": "Russian",
    "pt-BR": "Portuguese (Brazil)",
    "it-IT": "Italian",
}


# Whisper model size used for each accuracy level unless whisper_model pins one
ACCURACY_WHISPER_MODELS: dict[str, str] = {
    "standard": "small",
    "high": "medium",
    "maximum": "large-v3",
}


class Settings(BaseModel):
    """Resolved user settings for a Scribeflow session."""

    language: str = "en-US"
    accuracy: str = "high"
    model: str = "whisper-1"

    backend: str = "simulated"
    whisper_backend: str = "faster"
    whisper_model: str | None = None
    api_url: str = "https://api.openai.com/v1"
    api_key: str = ""

    max_file_size_mb: int = Field(default=5120, gt=0)
    large_file_warning_mb: int = Field(default=1024, gt=0)
    enable_large_file_support: bool = True
    memory_optimization: bool = True
    chunk_processing: bool = True

    request_timeout_seconds: float = Field(default=300.0, gt=0.0)
    auto_save: bool = True
    storage: str = "local"
    user_id: str = "local"
    output_dir: str | None = None

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"language must be one of: {sorted(SUPPORTED_LANGUAGES)}")
        return v

    @field_validator("accuracy")
    @classmethod
    def validate_accuracy(cls, v: str) -> str:
        valid = set(ACCURACY_WHISPER_MODELS)
        if v not in valid:
            raise ValueError(f"accuracy must be one of: {valid}")
        return v

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        valid = {"simulated", "whisper", "http"}
        if v not in valid:
            raise ValueError(f"backend must be one of: {valid}")
        return v

    @field_validator("whisper_backend")
    @classmethod
    def validate_whisper_backend(cls, v: str) -> str:
        valid = {"mlx", "faster"}
        if v not in valid:
            raise ValueError(f"whisper_backend must be one of: {valid}")
        return v

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: str) -> str:
        valid = {"local", "supabase"}
        if v not in valid:
            raise ValueError(f"storage must be one of: {valid}")
        return v

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def large_file_warning_bytes(self) -> int:
        return self.large_file_warning_mb * 1024 * 1024

    @property
    def upload_ceiling_bytes(self) -> int:
        """Largest accepted upload. Without large file support, the warning threshold is the limit."""
        if self.enable_large_file_support:
            return self.max_file_size_bytes
        return min(self.max_file_size_bytes, self.large_file_warning_bytes)

    @property
    def resolved_whisper_model(self) -> str:
        return self.whisper_model or ACCURACY_WHISPER_MODELS[self.accuracy]


DEFAULT_SETTINGS: dict[str, Any] = Settings().model_dump()


def settings_home() -> Path:
    """Directory holding the settings file and the local transcription store."""
    override = os.environ.get("SCRIBEFLOW_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".scribeflow"


def default_settings_path() -> Path:
    return settings_home() / SETTINGS_FILENAME


def merge_settings(stored: dict[str, Any], defaults: dict[str, Any]) -> dict[str, Any]:
    """Merge stored values over defaults. Unknown keys and None values are dropped."""
    merged = defaults.copy()
    for key, value in stored.items():
        if key not in defaults:
            logger.debug("Ignoring unknown setting %r", key)
            continue
        if value is not None:
            merged[key] = value
    return merged


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults for anything missing.

    A missing file yields the defaults. An unreadable file is logged and
    ignored. A file whose values fail validation raises ConfigError.
    """
    path = path or default_settings_path()
    if not path.exists():
        return Settings()

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read settings from %s, using defaults: %s", path, e)
        return Settings()

    if not isinstance(raw, dict):
        logger.warning("Settings file %s is not a mapping, using defaults", path)
        return Settings()

    merged = merge_settings(raw, DEFAULT_SETTINGS)
    try:
        return Settings(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Write settings to YAML atomically."""
    path = path or default_settings_path()
    content = yaml.dump(settings.model_dump(), default_flow_style=False, sort_keys=False)
    write_text(path, content)
    return path


def update_setting(settings: Settings, key: str, value: Any) -> Settings:
    """Return a new Settings with one field changed and re-validated."""
    if key not in DEFAULT_SETTINGS:
        raise ConfigError(f"Unknown setting: {key}")
    data = settings.model_dump()
    data[key] = value
    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {e}") from e
