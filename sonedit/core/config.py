"""
Configuration management for the sonedit audio editor.
Loads settings from environment variables.
"""

from typing import List, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "sonedit"
    app_version: str = "0.1.0"
    env: Literal["development", "staging", "production"] = "development"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_allow_origins: List[str] = ["*"]
    cors_allow_credentials: bool = False

    # Audio defaults
    sample_rate: int = 44100
    master_volume: float = 0.8

    # Capture
    capture_chunk_frames: int = 4096
    capture_channels: int = 2

    # Editing
    history_max_size: int = 50
    waveform_samples_per_peak: int = 512

    # Export
    export_formats: List[str] = ["wav", "mp3", "flac", "ogg"]

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env == "development"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get settings instance.
    Useful for dependency injection in FastAPI.
    """
    return settings
