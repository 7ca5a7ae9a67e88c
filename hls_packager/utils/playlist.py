"""
HLS master playlist generation.
"""
import os
from pathlib import Path

import structlog

from hls_packager.errors import ManifestWriteError
from hls_packager.models import TranscodeJob

logger = structlog.get_logger()


class MasterPlaylistGenerator:
    """Render and write ``master_{base_name}.m3u8``."""

    def __init__(self, version: int = 3):
        self.version = version

    def render(self, job: TranscodeJob, include_audio: bool = True) -> str:
        """
        Master playlist text, renditions in ladder order.

        ``BANDWIDTH`` adds the shared audio bitrate to every rendition unless
        ``include_audio`` is False.
        """
        audio_kbps = job.audio_bitrate_kbps if include_audio else 0
        lines = ["#EXTM3U", f"#EXT-X-VERSION:{self.version}"]
        for rendition in job.renditions:
            lines.append(
                f"#EXT-X-STREAM-INF:BANDWIDTH={rendition.bandwidth(audio_kbps)},"
                f"RESOLUTION={rendition.resolution}"
            )
            lines.append(job.playlist_name(rendition))
        return "\n".join(lines) + "\n"

    def write(self, job: TranscodeJob, include_audio: bool = True) -> Path:
        content = self.render(job, include_audio=include_audio)
        path = job.master_playlist_path
        tmp_path = path.with_name(path.name + ".tmp")

        try:
            with open(tmp_path, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise ManifestWriteError(f"Cannot write master playlist {path}: {e}", path=str(path)) from e

        logger.info("Master playlist created", path=str(path), renditions=len(job.renditions))
        return path
