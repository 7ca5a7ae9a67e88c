"""
Tests for master playlist generation
"""
import pytest

from hls_packager.errors import ManifestWriteError
from hls_packager.models import RenditionLadder, TranscodeJob
from hls_packager.utils.playlist import MasterPlaylistGenerator

EXPECTED_DEFAULT_MASTER = (
    "#EXTM3U\n"
    "#EXT-X-VERSION:3\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=928000,RESOLUTION=640x360\n"
    "360p-movie.m3u8\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=1528000,RESOLUTION=854x480\n"
    "480p-movie.m3u8\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=2928000,RESOLUTION=1280x720\n"
    "720p-movie.m3u8\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=5128000,RESOLUTION=1920x1080\n"
    "1080p-movie.m3u8\n"
)


@pytest.fixture
def job(tmp_path):
    return TranscodeJob(
        input_path=tmp_path / "movie.mp4",
        output_dir=tmp_path,
        base_name="movie",
        audio_bitrate_kbps=128,
        ladder=RenditionLadder.default(),
    )


class TestMasterPlaylistGenerator:
    """Test master playlist rendering and writing."""

    @pytest.mark.unit
    def test_render_default_ladder(self, job):
        """Test master text for the default ladder."""
        assert MasterPlaylistGenerator().render(job) == EXPECTED_DEFAULT_MASTER

    @pytest.mark.unit
    def test_render_is_deterministic(self, job):
        """Test deterministic rendering."""
        generator = MasterPlaylistGenerator()
        assert generator.render(job) == generator.render(job)

    @pytest.mark.unit
    def test_stream_info_in_ladder_order(self, job):
        """Test stream order."""
        lines = MasterPlaylistGenerator().render(job).splitlines()
        uris = [line for line in lines if not line.startswith("#")]
        assert uris == ["360p-movie.m3u8", "480p-movie.m3u8", "720p-movie.m3u8", "1080p-movie.m3u8"]

    @pytest.mark.unit
    def test_bandwidth_includes_shared_audio(self, job):
        """Test bandwidth with shared audio."""
        text = MasterPlaylistGenerator().render(job)
        assert "BANDWIDTH=2928000,RESOLUTION=1280x720" in text

    @pytest.mark.unit
    def test_bandwidth_without_audio(self, job):
        """Test bandwidth without audio."""
        text = MasterPlaylistGenerator().render(job, include_audio=False)
        assert "BANDWIDTH=2800000,RESOLUTION=1280x720" in text
        assert "BANDWIDTH=800000,RESOLUTION=640x360" in text

    @pytest.mark.unit
    def test_version_header(self, job):
        """Test version header."""
        text = MasterPlaylistGenerator(version=6).render(job)
        assert text.startswith("#EXTM3U\n#EXT-X-VERSION:6\n")

    @pytest.mark.unit
    def test_write(self, job, tmp_path):
        """Test master playlist writing."""
        path = MasterPlaylistGenerator().write(job)
        assert path == tmp_path / "master_movie.m3u8"
        assert path.read_text() == EXPECTED_DEFAULT_MASTER
        assert not (tmp_path / "master_movie.m3u8.tmp").exists()

    @pytest.mark.unit
    def test_write_replaces_existing_master(self, job, tmp_path):
        """Test replacing an existing master."""
        (tmp_path / "master_movie.m3u8").write_text("#EXTM3U\nstale\n")
        MasterPlaylistGenerator().write(job)
        assert (tmp_path / "master_movie.m3u8").read_text() == EXPECTED_DEFAULT_MASTER

    @pytest.mark.unit
    def test_write_failure(self, job, tmp_path):
        """Test master write failure."""
        missing = job.model_copy(update={"output_dir": tmp_path / "missing"})
        with pytest.raises(ManifestWriteError) as exc_info:
            MasterPlaylistGenerator().write(missing)
        assert exc_info.value.code == "MANIFEST_WRITE_ERROR"
        assert exc_info.value.path == str(tmp_path / "missing" / "master_movie.m3u8")
