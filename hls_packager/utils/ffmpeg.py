"""
FFmpeg command building for single-pass HLS ladders.

One decode of the source feeds a ``-filter_complex`` graph that produces a
scaled stream per rendition; each scaled stream gets its own HLS output
in the same FFmpeg invocation.
"""
import asyncio
import json
import math
import re
from typing import Any, Dict, List, Optional, Tuple

import structlog

from hls_packager.errors import EmptyLadderError, ProbeError
from hls_packager.models import Rendition, RenditionLadder, TranscodeJob

logger = structlog.get_logger()

SOURCE_VIDEO_STREAM = "0:v"
SOURCE_AUDIO_STREAM = "0:a?"


def scaled_dimensions(source_width: int, source_height: int,
                      target_width: int, target_height: int) -> Tuple[int, int]:
    """
    Dimensions the scale expression of ``FilterGraphBuilder`` evaluates to.

    Fits the source inside the target box keeping aspect ratio and
    truncates both sides to an even number.
    """
    factor = min(target_width / source_width, target_height / source_height)
    width = math.trunc(source_width * factor / 2) * 2
    height = math.trunc(source_height * factor / 2) * 2
    return width, height


class FilterGraphBuilder:
    """Build the scaling filter graph for a rendition ladder."""

    def __init__(self, source_stream: str = SOURCE_VIDEO_STREAM):
        self.source_stream = source_stream

    @staticmethod
    def output_label(index: int) -> str:
        return f"v{index}"

    def scale_expression(self, rendition: Rendition) -> str:
        # Evaluated by FFmpeg once the input size is known. The comma inside
        # min() is escaped so the graph parser does not split on it.
        factor = f"min({rendition.width}/iw\\,{rendition.height}/ih)"
        return f"scale='trunc(iw*{factor}/2)*2':'trunc(ih*{factor}/2)*2'"

    def build(self, ladder: RenditionLadder) -> str:
        """Return the filter graph, or an empty string for an empty ladder."""
        chains = [
            f"[{self.source_stream}]{self.scale_expression(rendition)}[{self.output_label(i)}]"
            for i, rendition in enumerate(ladder.renditions)
        ]
        return ";".join(chains)


class HLSCommandBuilder:
    """Build the complete FFmpeg argument list for a ``TranscodeJob``."""

    def __init__(self, ffmpeg_path: str = "ffmpeg",
                 filter_builder: Optional[FilterGraphBuilder] = None):
        self.ffmpeg_path = ffmpeg_path
        self.filter_builder = filter_builder or FilterGraphBuilder()

    def build_command(self, job: TranscodeJob) -> List[str]:
        if job.ladder.is_empty():
            raise EmptyLadderError()

        filter_graph = self.filter_builder.build(job.ladder)
        cmd = [self.ffmpeg_path, '-y', '-i', str(job.input_path), '-filter_complex', filter_graph]

        for index, rendition in enumerate(job.renditions):
            cmd.extend(self._map_streams(index))
            cmd.extend(self._encode_options(job, rendition))
            cmd.extend(self._hls_options(job, rendition))

        logger.debug("Built FFmpeg command", base_name=job.base_name, command=' '.join(cmd))
        return cmd

    def _map_streams(self, index: int) -> List[str]:
        # Audio is optional so sources without an audio track still encode
        return ['-map', f"[{self.filter_builder.output_label(index)}]", '-map', SOURCE_AUDIO_STREAM]

    def _encode_options(self, job: TranscodeJob, rendition: Rendition) -> List[str]:
        cmd_parts = ['-c:v', job.video_codec, '-b:v', f"{rendition.video_bitrate_kbps}k"]
        if job.preset:
            cmd_parts.extend(['-preset', job.preset])
        if job.align_keyframes:
            cmd_parts.extend([
                '-force_key_frames', f"expr:gte(t,n_forced*{job.segment_duration})",
                '-sc_threshold', '0',
            ])
        cmd_parts.extend(['-c:a', job.audio_codec, '-b:a', f"{job.audio_bitrate_kbps}k"])
        return cmd_parts

    def _hls_options(self, job: TranscodeJob, rendition: Rendition) -> List[str]:
        return [
            '-f', 'hls',
            '-hls_time', str(job.segment_duration),
            '-hls_list_size', '0',
            '-hls_playlist_type', 'vod',
            '-hls_segment_filename', str(job.segment_template(rendition)),
            str(job.playlist_path(rendition)),
        ]


class FFmpegProgressParser:
    """Parse FFmpeg progress output."""

    def __init__(self, total_duration: Optional[float] = None):
        self.total_duration = total_duration
        self.frame_pattern = re.compile(r'frame=\s*(\d+)')
        self.fps_pattern = re.compile(r'fps=\s*([\d.]+)')
        self.time_pattern = re.compile(r'time=(\d{2}):(\d{2}):(\d{2})\.(\d{2})')
        self.bitrate_pattern = re.compile(r'bitrate=\s*([\d.]+)kbits/s')
        self.speed_pattern = re.compile(r'speed=\s*([\d.]+)x')

    def parse_progress(self, line: str) -> Optional[Dict[str, Any]]:
        """Parse progress information from one FFmpeg output line."""
        time_match = self.time_pattern.search(line)
        if not time_match:
            return None

        hours, minutes, seconds, centis = (int(g) for g in time_match.groups())
        progress: Dict[str, Any] = {'time': hours * 3600 + minutes * 60 + seconds + centis / 100}

        frame_match = self.frame_pattern.search(line)
        if frame_match:
            progress['frame'] = int(frame_match.group(1))
        fps_match = self.fps_pattern.search(line)
        if fps_match:
            progress['fps'] = float(fps_match.group(1))
        bitrate_match = self.bitrate_pattern.search(line)
        if bitrate_match:
            progress['bitrate'] = float(bitrate_match.group(1))
        speed_match = self.speed_pattern.search(line)
        if speed_match:
            progress['speed'] = float(speed_match.group(1))

        if self.total_duration:
            progress['percentage'] = min(100.0, progress['time'] / self.total_duration * 100)

        return progress


class SourceProber:
    """Inspect source files with ffprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe"):
        self.ffprobe_path = ffprobe_path

    async def probe(self, file_path: str) -> Dict[str, Any]:
        cmd = [
            self.ffprobe_path,
            '-v', 'error',
            '-print_format', 'json',
            '-show_format',
            '-show_streams',
            file_path,
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise ProbeError(f"Cannot launch {self.ffprobe_path}: {e}", path=file_path) from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise ProbeError(f"FFprobe failed: {stderr.decode(errors='ignore').strip()}", path=file_path)

        try:
            return json.loads(stdout.decode())
        except json.JSONDecodeError as e:
            raise ProbeError(f"Failed to parse FFprobe output: {e}", path=file_path) from e

    @staticmethod
    def has_audio(probe_info: Dict[str, Any]) -> bool:
        return any(s.get('codec_type') == 'audio' for s in probe_info.get('streams', []))

    @staticmethod
    def video_size(probe_info: Dict[str, Any]) -> Optional[Tuple[int, int]]:
        for stream in probe_info.get('streams', []):
            if stream.get('codec_type') == 'video' and stream.get('width') and stream.get('height'):
                return int(stream['width']), int(stream['height'])
        return None

    @staticmethod
    def duration(probe_info: Dict[str, Any]) -> Optional[float]:
        try:
            return float(probe_info['format']['duration'])
        except (KeyError, TypeError, ValueError):
            return None
