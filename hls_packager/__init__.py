"""
Rendiff HLS - single-pass FFmpeg adaptive bitrate packaging
"""
from .errors import (
    EmptyLadderError,
    EngineFailure,
    EngineTerminated,
    LadderError,
    LaunchError,
    ManifestWriteError,
    PackagingError,
    WorkspaceError,
)
from .models import PackageResult, Rendition, RenditionLadder, TranscodeJob
from .processors.streaming import HLSPackager

__version__ = "1.0.0"

__all__ = [
    "HLSPackager",
    "Rendition",
    "RenditionLadder",
    "TranscodeJob",
    "PackageResult",
    "PackagingError",
    "LadderError",
    "EmptyLadderError",
    "WorkspaceError",
    "LaunchError",
    "EngineFailure",
    "EngineTerminated",
    "ManifestWriteError",
]
