"""Configuration management using Pydantic settings."""

from pathlib import Path
from typing import Self

import yaml
from pydantic import BaseModel, Field, model_validator

from callscribe.exceptions import ConfigError

SOURCE_KINDS = ("microphone", "headphones", "system", "meeting", "multimedia", "voip")


class CaptureConfig(BaseModel):
    """Built-in capture constraints applied before per-source overrides."""

    sample_rate: int = Field(default=16000, ge=8000, le=192000)
    channels: int = Field(default=1, ge=1, le=2)
    echo_cancellation: bool = Field(default=True)
    noise_suppression: bool = Field(default=True)
    auto_gain_control: bool = Field(default=True)
    frame_duration_ms: int = Field(default=256, ge=20, le=2000)


class RecognitionConfig(BaseModel):
    """Recognition engine configuration."""

    language: str = Field(default="en-US")
    continuous: bool = Field(default=True)
    interim_results: bool = Field(default=True)
    max_alternatives: int = Field(default=3, ge=1, le=10)
    model_size: str = Field(default="small")
    device: str = Field(default="auto")
    compute_type: str = Field(default="default")
    no_speech_timeout_s: float = Field(default=8.0, ge=1.0, le=120.0)
    interim_interval_s: float = Field(default=1.0, ge=0.2, le=10.0)


class RestartConfig(BaseModel):
    """Backoff policy for automatic recognizer restarts."""

    initial_backoff_ms: float = Field(default=1000.0, ge=0.0, le=60000.0)
    backoff_multiplier: float = Field(default=1.5, ge=1.0, le=10.0)
    max_backoff_ms: float = Field(default=10000.0, ge=0.0, le=600000.0)
    max_attempts: int = Field(default=5, ge=1, le=100)

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> Self:
        if self.initial_backoff_ms > self.max_backoff_ms:
            raise ValueError("initial_backoff_ms must not exceed max_backoff_ms")
        return self


class SilenceConfig(BaseModel):
    """Voice activity thresholds."""

    threshold_db: float = Field(default=-45.0, ge=-120.0, le=0.0)
    loopback_threshold_db: float = Field(default=-40.0, ge=-120.0, le=0.0)
    min_duration_ms: int = Field(default=1000, ge=0, le=60000)


class DiarizationConfig(BaseModel):
    """Energy-based speaker change heuristic."""

    enabled: bool = Field(default=True)
    energy_floor: float = Field(default=0.01, ge=0.0, le=1.0)
    change_threshold: float = Field(default=0.5, gt=0.0, le=1.0)
    debounce_frames: int = Field(default=3, ge=1, le=100)
    max_speakers: int = Field(default=5, ge=1, le=5)


class DuplicateConfig(BaseModel):
    """Near-duplicate phrase suppression."""

    history_size: int = Field(default=10, ge=1, le=1000)
    similarity_threshold: float = Field(default=0.75, ge=0.0, le=1.0)


class SessionConfig(BaseModel):
    """Recording session behaviour."""

    inactivity_timeout_s: float = Field(default=10.0, ge=1.0, le=3600.0)
    default_source: str = Field(default="microphone")

    @model_validator(mode="after")
    def validate_default_source(self) -> Self:
        if self.default_source not in SOURCE_KINDS:
            raise ValueError(f"default_source must be one of: {', '.join(SOURCE_KINDS)}")
        return self


class Settings(BaseModel):
    """Application settings loaded from settings.yml."""

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig)
    restart: RestartConfig = Field(default_factory=RestartConfig)
    silence: SilenceConfig = Field(default_factory=SilenceConfig)
    diarization: DiarizationConfig = Field(default_factory=DiarizationConfig)
    duplicates: DuplicateConfig = Field(default_factory=DuplicateConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> "Settings":
        """Load settings from YAML file.

        Args:
            config_path: Path to settings file. Defaults to ./settings.yml

        Returns:
            Loaded Settings instance

        Raises:
            ConfigError: If config file exists but is invalid
        """
        if config_path is None:
            config_path = Path("./settings.yml")

        if not config_path.exists():
            return cls()

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}") from e

        if data is None:
            return cls()

        try:
            return cls.model_validate(data)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


_settings: Settings | None = None


def get_settings(config_path: Path | None = None) -> Settings:
    """Get application settings (singleton).

    Args:
        config_path: Optional path to config file

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings.load(config_path)
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (for testing)."""
    global _settings
    _settings = None
