"""
Error types for HLS packaging
"""
from typing import List, Optional


class PackagingError(Exception):
    """Base exception for packaging failures."""

    def __init__(self, message: str, code: str = "PACKAGING_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class LadderError(PackagingError):
    """Invalid rendition ladder configuration."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(message, "LADDER_ERROR")


class EmptyLadderError(LadderError):
    """The ladder has no renditions, so there is nothing to transcode."""

    def __init__(self, message: str = "Rendition ladder is empty"):
        super().__init__(message)
        self.code = "EMPTY_LADDER"


class WorkspaceError(PackagingError):
    """Output directory could not be created."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message, "WORKSPACE_ERROR")


class ProbeError(PackagingError):
    """ffprobe could not inspect the source."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message, "PROBE_ERROR")


class LaunchError(PackagingError):
    """The engine binary could not be started."""

    def __init__(self, message: str, binary: Optional[str] = None):
        self.binary = binary
        super().__init__(message, "LAUNCH_ERROR")


class EngineFailure(PackagingError):
    """The engine ran and exited with a non-zero status."""

    def __init__(self, exit_code: int, output_tail: Optional[List[str]] = None):
        self.exit_code = exit_code
        self.output_tail = list(output_tail or [])
        message = f"FFmpeg exited with code {exit_code}"
        if self.output_tail:
            message += ": " + self.output_tail[-1]
        super().__init__(message, "ENGINE_FAILURE")


class EngineTerminated(PackagingError):
    """The engine was killed by a signal before it exited on its own."""

    def __init__(self, signal: int, reason: Optional[str] = None):
        self.signal = signal
        self.reason = reason
        message = f"FFmpeg terminated by signal {signal}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, "ENGINE_TERMINATED")


class ManifestWriteError(PackagingError):
    """Segments were produced but the master playlist could not be written."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message, "MANIFEST_WRITE_ERROR")
