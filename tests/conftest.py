"""
Test configuration and fixtures
"""
from pathlib import Path

import pytest

from hls_packager.config import Settings
from hls_packager.models import Rendition, RenditionLadder
from hls_packager.processors.streaming import HLSPackager
from tests.mocks.ffmpeg import FakeFFmpegRunner, FakeSourceProber


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, FORWARD_ENGINE_OUTPUT=False)


@pytest.fixture
def default_ladder():
    return RenditionLadder.default()


@pytest.fixture
def two_tier_ladder():
    return RenditionLadder(
        renditions=(
            Rendition(label="240p", width=426, height=240, video_bitrate_kbps=400),
            Rendition(label="720p", width=1280, height=720, video_bitrate_kbps=2800),
        ),
        audio_bitrate_kbps=96,
    )


@pytest.fixture
def source_file(tmp_path) -> Path:
    """A stand-in source file; the fake engine never reads it."""
    path = tmp_path / "input" / "movie.mp4"
    path.parent.mkdir()
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return path


@pytest.fixture
def output_dir(tmp_path) -> Path:
    return tmp_path / "hls" / "out"


@pytest.fixture
def fake_runner():
    return FakeFFmpegRunner()


@pytest.fixture
def fake_prober():
    return FakeSourceProber()


@pytest.fixture
def packager(settings, fake_runner, fake_prober):
    """Packager wired to the fake engine."""
    return HLSPackager(settings, runner=fake_runner, prober=fake_prober)


@pytest.fixture
def job(packager, source_file, output_dir):
    return packager.create_job(source_file, output_dir)
