"""
HLS adaptive bitrate packaging.
"""
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog

from hls_packager.config import Settings, get_settings
from hls_packager.errors import EmptyLadderError, PackagingError, ProbeError
from hls_packager.models import (
    PackageResult,
    RenditionLadder,
    RenditionOutput,
    TranscodeJob,
    base_name_for,
)
from hls_packager.utils.ffmpeg import HLSCommandBuilder, SourceProber
from hls_packager.utils.playlist import MasterPlaylistGenerator
from hls_packager.utils.runner import FFmpegRunner, ProgressCallback, stderr_sink
from hls_packager.utils.workspace import OutputWorkspaceManager

logger = structlog.get_logger()


class HLSPackager:
    """
    Package one source file into an HLS ladder.

    A run is: clear stale artifacts, build one FFmpeg command for the whole
    ladder, run it, and write the master playlist only if FFmpeg succeeded.
    The packager holds no per-job state, so one instance can serve
    concurrent jobs as long as each uses its own output directory or
    base name.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 runner: Optional[FFmpegRunner] = None,
                 workspace: Optional[OutputWorkspaceManager] = None,
                 command_builder: Optional[HLSCommandBuilder] = None,
                 playlist_generator: Optional[MasterPlaylistGenerator] = None,
                 prober: Optional[SourceProber] = None):
        self.settings = settings or get_settings()
        self.runner = runner or FFmpegRunner(
            output_sink=stderr_sink if self.settings.FORWARD_ENGINE_OUTPUT else None
        )
        self.workspace = workspace or OutputWorkspaceManager()
        self.command_builder = command_builder or HLSCommandBuilder(self.settings.FFMPEG_PATH)
        self.playlist_generator = playlist_generator or MasterPlaylistGenerator(self.settings.MANIFEST_VERSION)
        self.prober = prober or SourceProber(self.settings.FFPROBE_PATH)

    def create_job(self, input_path: Union[str, Path], output_dir: Union[str, Path],
                   ladder: Optional[RenditionLadder] = None,
                   audio_bitrate_kbps: Optional[int] = None) -> TranscodeJob:
        """Resolve a job from arguments, falling back to settings."""
        ladder = ladder if ladder is not None else self.settings.default_ladder()
        if audio_bitrate_kbps is None:
            audio_bitrate_kbps = ladder.audio_bitrate_kbps

        job = TranscodeJob(
            input_path=Path(input_path),
            output_dir=Path(output_dir),
            base_name=base_name_for(input_path),
            audio_bitrate_kbps=audio_bitrate_kbps,
            ladder=ladder,
            segment_duration=self.settings.SEGMENT_DURATION,
            video_codec=self.settings.VIDEO_CODEC,
            audio_codec=self.settings.AUDIO_CODEC,
            preset=self.settings.PRESET,
            align_keyframes=self.settings.ALIGN_KEYFRAMES,
        )

        if not ladder.is_monotonic():
            logger.warning("Rendition ladder is not monotonic", base_name=job.base_name,
                           labels=ladder.labels)
        return job

    def plan(self, job: TranscodeJob) -> List[str]:
        """FFmpeg argument list for ``job`` without running anything."""
        return self.command_builder.build_command(job)

    async def package(self, input_path: Union[str, Path], output_dir: Union[str, Path],
                      ladder: Optional[RenditionLadder] = None,
                      audio_bitrate_kbps: Optional[int] = None,
                      progress_callback: Optional[ProgressCallback] = None,
                      timeout: Optional[float] = None) -> PackageResult:
        """
        Package ``input_path`` into ``output_dir``.

        Args:
            input_path: Source video file
            output_dir: Directory receiving playlists and segments
            ladder: Rendition ladder, settings default when omitted
            audio_bitrate_kbps: Override of the ladder's audio bitrate
            progress_callback: Awaited with parsed FFmpeg progress
            timeout: Seconds before FFmpeg is terminated

        Returns:
            PackageResult with the master playlist path

        Raises:
            PackagingError subclass describing the failed stage
        """
        job = self.create_job(input_path, output_dir, ladder, audio_bitrate_kbps)
        return await self.package_job(job, progress_callback=progress_callback, timeout=timeout)

    async def package_job(self, job: TranscodeJob,
                          progress_callback: Optional[ProgressCallback] = None,
                          timeout: Optional[float] = None) -> PackageResult:
        log = logger.bind(base_name=job.base_name, output_dir=str(job.output_dir))

        if job.ladder.is_empty():
            log.warning("Empty rendition ladder, nothing to transcode")
            raise EmptyLadderError()

        if timeout is None:
            timeout = self.settings.ENGINE_TIMEOUT

        log.info("Starting HLS packaging", input_path=str(job.input_path), renditions=job.ladder.labels)

        try:
            cmd = self.command_builder.build_command(job)
            removed = self.workspace.prepare(job.output_dir, job.base_name)

            probe_info = await self._probe(job)
            include_audio = self.prober.has_audio(probe_info) if probe_info else True
            total_duration = self.prober.duration(probe_info) if probe_info else None

            result = await self.runner.run(
                cmd,
                progress_callback=progress_callback,
                timeout=timeout,
                total_duration=total_duration,
            )
            result.raise_for_status()

            master = self.playlist_generator.write(job, include_audio=include_audio)
        except PackagingError as e:
            log.error("HLS packaging failed", error_code=e.code, error=e.message)
            raise

        log.info("HLS packaging completed", master_playlist=str(master))
        audio_kbps = job.audio_bitrate_kbps if include_audio else 0
        return PackageResult(
            base_name=job.base_name,
            master_playlist=master,
            renditions=[
                RenditionOutput(
                    label=r.label,
                    resolution=r.resolution,
                    bandwidth=r.bandwidth(audio_kbps),
                    playlist=job.playlist_path(r),
                )
                for r in job.renditions
            ],
            command=cmd,
            removed_artifacts=len(removed),
            audio_in_bandwidth=include_audio,
        )

    def package_sync(self, input_path: Union[str, Path], output_dir: Union[str, Path],
                     **kwargs: Any) -> PackageResult:
        """Blocking wrapper around ``package``."""
        return asyncio.run(self.package(input_path, output_dir, **kwargs))

    async def write_manifest(self, job: TranscodeJob) -> Path:
        """Rewrite the master playlist of an already encoded job."""
        probe_info = await self._probe(job)
        include_audio = self.prober.has_audio(probe_info) if probe_info else True
        return self.playlist_generator.write(job, include_audio=include_audio)

    def validate_package(self, job: TranscodeJob) -> Dict[str, Any]:
        """Check which of the job's artifacts exist on disk."""
        playlists_found = []
        missing_files = []
        for playlist in job.expected_playlists():
            if playlist.is_file():
                playlists_found.append(str(playlist))
            else:
                missing_files.append(str(playlist))

        master_found = job.master_playlist_path.is_file()
        if not master_found:
            missing_files.append(str(job.master_playlist_path))

        segments = [
            str(p) for p in self.workspace.find_artifacts(job.output_dir, job.base_name)
            if p.suffix == ".ts"
        ]

        return {
            'valid': not missing_files and bool(segments),
            'master_playlist': str(job.master_playlist_path) if master_found else None,
            'playlists_found': playlists_found,
            'missing_files': missing_files,
            'segments': segments,
        }

    async def _probe(self, job: TranscodeJob) -> Optional[Dict[str, Any]]:
        if not self.settings.DETECT_AUDIO:
            return None
        try:
            return await self.prober.probe(str(job.input_path))
        except ProbeError as e:
            logger.warning("Source probe failed, assuming audio is present",
                           base_name=job.base_name, error=e.message)
            return None
