"""
Packager configuration settings

Values come from the environment (prefix ``HLS_``) or a ``.env`` file.
Everything a job needs is copied into its ``TranscodeJob`` when the job is
created, so running jobs never read these settings again.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hls_packager.models import (
    DEFAULT_AUDIO_BITRATE_KBPS,
    DEFAULT_RENDITIONS,
    Rendition,
    RenditionLadder,
)


class Settings(BaseSettings):
    """Packager settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="HLS_",
        extra="ignore",
    )

    # Engine binaries
    FFMPEG_PATH: str = Field(default="ffmpeg", description="FFmpeg executable")
    FFPROBE_PATH: str = Field(default="ffprobe", description="FFprobe executable")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    DEBUG: bool = Field(default=False, description="Human readable console logs")

    # Encoding
    SEGMENT_DURATION: int = Field(default=5, description="HLS segment duration in seconds")
    VIDEO_CODEC: str = Field(default="libx264", description="Video encoder")
    AUDIO_CODEC: str = Field(default="aac", description="Audio encoder")
    PRESET: Optional[str] = Field(default="veryfast", description="Encoder speed preset")
    AUDIO_BITRATE_KBPS: int = Field(default=DEFAULT_AUDIO_BITRATE_KBPS, description="Shared audio bitrate")
    ALIGN_KEYFRAMES: bool = Field(default=True, description="Force keyframes on segment boundaries")
    LADDER: List[Rendition] = Field(default_factory=lambda: list(DEFAULT_RENDITIONS))

    # Manifest
    MANIFEST_VERSION: int = Field(default=3, description="EXT-X-VERSION of the master playlist")
    DETECT_AUDIO: bool = Field(default=False, description="Drop audio from BANDWIDTH when the source has none")

    # Process
    ENGINE_TIMEOUT: Optional[float] = Field(default=None, description="Seconds before FFmpeg is terminated")
    FORWARD_ENGINE_OUTPUT: bool = Field(default=True, description="Echo FFmpeg output to stderr")

    @field_validator("SEGMENT_DURATION", "AUDIO_BITRATE_KBPS", "MANIFEST_VERSION")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("ENGINE_TIMEOUT")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    def default_ladder(self) -> RenditionLadder:
        return RenditionLadder(renditions=tuple(self.LADDER), audio_bitrate_kbps=self.AUDIO_BITRATE_KBPS)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
