"""
Tests for packager settings
"""
import pytest
from pydantic import ValidationError

from hls_packager.config import Settings


class TestSettings:
    """Test defaults and environment overrides."""

    @pytest.mark.unit
    def test_defaults(self, monkeypatch):
        """Test default settings."""
        for name in ("HLS_SEGMENT_DURATION", "HLS_LADDER", "HLS_AUDIO_BITRATE_KBPS", "HLS_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert settings.FFMPEG_PATH == "ffmpeg"
        assert settings.SEGMENT_DURATION == 5
        assert settings.AUDIO_BITRATE_KBPS == 128
        assert settings.MANIFEST_VERSION == 3
        assert settings.ENGINE_TIMEOUT is None
        assert not settings.DETECT_AUDIO
        assert settings.default_ladder().labels == ["360p", "480p", "720p", "1080p"]

    @pytest.mark.unit
    def test_environment_overrides(self, monkeypatch):
        """Test environment variable overrides."""
        monkeypatch.setenv("HLS_SEGMENT_DURATION", "6")
        monkeypatch.setenv("HLS_FFMPEG_PATH", "/opt/ffmpeg/bin/ffmpeg")
        monkeypatch.setenv("HLS_LOG_LEVEL", "debug")
        monkeypatch.setenv("HLS_ENGINE_TIMEOUT", "900")

        settings = Settings(_env_file=None)

        assert settings.SEGMENT_DURATION == 6
        assert settings.FFMPEG_PATH == "/opt/ffmpeg/bin/ffmpeg"
        assert settings.LOG_LEVEL == "DEBUG"
        assert settings.ENGINE_TIMEOUT == 900.0

    @pytest.mark.unit
    def test_ladder_from_environment(self, monkeypatch):
        """Test ladder loading from the environment."""
        monkeypatch.setenv(
            "HLS_LADDER",
            '[{"label": "240p", "width": 426, "height": 240, "video_bitrate_kbps": 400},'
            ' {"label": "720p", "width": 1280, "height": 720, "video_bitrate_kbps": 2800}]',
        )
        monkeypatch.setenv("HLS_AUDIO_BITRATE_KBPS", "96")

        ladder = Settings(_env_file=None).default_ladder()

        assert ladder.labels == ["240p", "720p"]
        assert ladder.audio_bitrate_kbps == 96

    @pytest.mark.unit
    @pytest.mark.parametrize("name,value", [
        ("HLS_SEGMENT_DURATION", "0"),
        ("HLS_AUDIO_BITRATE_KBPS", "-128"),
        ("HLS_MANIFEST_VERSION", "0"),
        ("HLS_ENGINE_TIMEOUT", "-1"),
        ("HLS_LOG_LEVEL", "verbose"),
    ])
    def test_invalid_values(self, monkeypatch, name, value):
        """Test invalid setting values."""
        monkeypatch.setenv(name, value)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    @pytest.mark.unit
    def test_invalid_ladder_entry(self, monkeypatch):
        """Test invalid ladder entry in the environment."""
        monkeypatch.setenv("HLS_LADDER", '[{"label": "720p", "width": 0, "height": 720, "video_bitrate_kbps": 2800}]')
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
