"""Ferry Assist configuration management.

Loads configuration from .env files and YAML config files, merges them,
and provides validated settings via pydantic models.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    EnvSettingsSource,
    SettingsConfigDict,
)

from ferry_assist.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Default VOICEVOX engine endpoint
DEFAULT_ENGINE_URL = "http://127.0.0.1:50021"

# Default ETS2 telemetry server endpoint
DEFAULT_TELEMETRY_URL = "http://localhost:25555/api/ets2/telemetry"


class Language(str, Enum):
    """Languages with a built-in phrase book."""
    JA = "ja"
    EN = "en"


class EngineConfig(BaseModel):
    """Configuration for the VOICEVOX synthesis engine."""

    executable_path: str = ""
    base_url: str = DEFAULT_ENGINE_URL
    speaker_id: int = 0
    timeout_seconds: float = 30.0
    poll_interval: float = 1.0

    @field_validator("timeout_seconds", "poll_interval")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Ensure durations are positive."""
        if v <= 0:
            raise ValueError("engine durations must be positive")
        return v

    @field_validator("speaker_id")
    @classmethod
    def validate_speaker_id(cls, v: int) -> int:
        """Ensure speaker_id is not negative."""
        if v < 0:
            raise ValueError("speaker_id must not be negative")
        return v

    @property
    def has_executable_path(self) -> bool:
        """Check whether an engine path has been configured at all."""
        return bool(self.executable_path.strip())

    def validate_executable(self) -> Path:
        """Check that the configured path points at a VOICEVOX executable.

        Returns:
            The resolved executable path.

        Raises:
            ConfigurationError: If the path is missing, does not exist, or
                does not look like the VOICEVOX executable.
        """
        if not self.has_executable_path:
            raise ConfigurationError(
                "VOICEVOX executable is not configured. "
                "Set engine.executable_path in the config file."
            )

        path = Path(self.executable_path).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"VOICEVOX executable not found: {path}")

        if "voicevox" not in path.name.lower():
            raise ConfigurationError(
                f"{path.name} is not the VOICEVOX executable. "
                "Select the VOICEVOX program file."
            )

        return path


class RecognitionConfig(BaseModel):
    """Configuration for speech recognition."""

    model: str = "small"
    device: str = "cpu"
    compute_type: str = "int8"
    input_device: str | None = None
    capture_seconds: float = 3.0

    @field_validator("capture_seconds")
    @classmethod
    def validate_capture_seconds(cls, v: float) -> float:
        """Ensure the capture window is positive."""
        if v <= 0:
            raise ValueError("capture_seconds must be positive")
        return v


class HotkeyConfig(BaseModel):
    """Configuration for the push-to-talk hotkey."""

    key: str = "^"
    poll_interval: float = 0.1

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        """Ensure the poll interval is positive."""
        if v <= 0:
            raise ValueError("poll_interval must be positive")
        return v


class TelemetryConfig(BaseModel):
    """Configuration for the game telemetry feed."""

    enabled: bool = True
    url: str = DEFAULT_TELEMETRY_URL
    poll_interval: float = 0.5
    request_timeout: float = 2.0

    # Dotted paths into the telemetry JSON document
    connected_field: str = "game.connected"
    cargo_loaded_field: str = "trailer.attached"
    city_source_field: str = "job.sourceCity"
    city_destination_field: str = "job.destinationCity"

    @field_validator("poll_interval", "request_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Ensure intervals are positive."""
        if v <= 0:
            raise ValueError("telemetry intervals must be positive")
        return v


class IntentConfig(BaseModel):
    """Configuration for the spoken language and intent keywords.

    Empty keyword lists fall back to the language's phrase book.
    """

    language: Language = Language.JA
    exit_keywords: list[str] = Field(default_factory=list)
    navigation_keywords: list[str] = Field(default_factory=list)


class FerryConfig(BaseSettings):
    """
    Ferry Assist's main configuration.

    Loads from:
    1. .env file (via pydantic-settings)
    2. YAML config files (via load() classmethod)
    3. Environment variables with FERRY_ prefix
    """

    model_config = SettingsConfigDict(
        env_prefix="FERRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    name: str = "Ferry Assist"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    database_path: str = "data/ferry_routes.db"

    engine: EngineConfig = Field(default_factory=EngineConfig)
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig)
    hotkey: HotkeyConfig = Field(default_factory=HotkeyConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    intents: IntentConfig = Field(default_factory=IntentConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log_level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def expand_database_path(self) -> "FerryConfig":
        """Expand user home directory in database_path."""
        self.database_path = str(Path(self.database_path).expanduser())
        return self

    @property
    def effective_log_level(self) -> str:
        """Log level after applying the debug flag."""
        return "DEBUG" if self.debug else self.log_level

    @classmethod
    def load(cls, yaml_path: Path | str | None = None) -> "FerryConfig":
        """
        Load configuration from YAML and environment.

        FERRY_ environment variables (and .env) take precedence over the YAML
        file, nested keys included.

        Args:
            yaml_path: Path to YAML config file. If None, searches default locations.

        Returns:
            Validated FerryConfig instance.
        """
        yaml_file = cls._find_yaml_config(yaml_path)

        yaml_data: dict[str, Any] = {}
        if yaml_file and yaml_file.exists():
            yaml_data = cls._load_yaml_file(yaml_file)
            logger.debug(f"Loaded config from {yaml_file}")
        elif yaml_path:
            raise ConfigurationError(f"Config file not found: {yaml_path}")

        # The YAML may wrap settings in a top-level 'ferry_assist' section
        if "ferry_assist" in yaml_data:
            merged_data = dict(yaml_data["ferry_assist"] or {})
            merged_data.update({k: v for k, v in yaml_data.items() if k != "ferry_assist"})
            yaml_data = merged_data

        env_data = _deep_merge(DotEnvSettingsSource(cls)(), EnvSettingsSource(cls)())
        return cls(**_deep_merge(yaml_data, env_data))

    @classmethod
    def _find_yaml_config(cls, yaml_path: Path | str | None) -> Path | None:
        """Find the YAML config file to load."""
        if yaml_path:
            return Path(yaml_path)

        default_locations = [
            Path("config/default.yaml"),
            Path("config/default.yml"),
            Path.home() / ".ferry_assist" / "config.yaml",
        ]

        for location in default_locations:
            if location.exists():
                return location

        return None

    @classmethod
    def _load_yaml_file(cls, path: Path) -> dict[str, Any]:
        """Load YAML file and return parsed data."""
        try:
            with path.open("r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse YAML file {path}: {e}")
            return {}

    def get_log_config(self) -> dict[str, Any]:
        """Get logging configuration dict for use with logging.config."""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": self.effective_log_level,
                    "formatter": "standard",
                },
            },
            "root": {
                "level": self.effective_log_level,
                "handlers": ["console"],
            },
        }


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, recursing into sections."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
