"""
Rendition ladder, job and result models
"""
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hls_packager.errors import LadderError

LABEL_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

MASTER_PREFIX = "master_"
PLAYLIST_EXTENSION = ".m3u8"
SEGMENT_EXTENSION = ".ts"


class Rendition(BaseModel):
    """One quality tier of the ladder."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    label: str = Field(..., description="Rendition label, conventionally the height, e.g. '720p'")
    width: int = Field(..., gt=0, description="Target width in pixels")
    height: int = Field(..., gt=0, description="Target height in pixels")
    video_bitrate_kbps: int = Field(..., gt=0, description="Video bitrate in kbit/s")

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        # Labels never contain '-' so "{label}-{base_name}" splits unambiguously.
        if not LABEL_PATTERN.match(v):
            raise ValueError("label may only contain letters, digits and underscores")
        return v

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    def bandwidth(self, audio_bitrate_kbps: int) -> int:
        """Advertised peak bandwidth in bits per second."""
        return self.video_bitrate_kbps * 1000 + audio_bitrate_kbps * 1000


DEFAULT_RENDITIONS: Tuple[Rendition, ...] = (
    Rendition(label="360p", width=640, height=360, video_bitrate_kbps=800),
    Rendition(label="480p", width=854, height=480, video_bitrate_kbps=1400),
    Rendition(label="720p", width=1280, height=720, video_bitrate_kbps=2800),
    Rendition(label="1080p", width=1920, height=1080, video_bitrate_kbps=5000),
)
DEFAULT_AUDIO_BITRATE_KBPS = 128


class RenditionLadder(BaseModel):
    """Ordered, immutable set of renditions sharing one audio bitrate."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    renditions: Tuple[Rendition, ...] = DEFAULT_RENDITIONS
    audio_bitrate_kbps: int = Field(DEFAULT_AUDIO_BITRATE_KBPS, gt=0)

    @field_validator("renditions")
    @classmethod
    def validate_unique_labels(cls, v: Tuple[Rendition, ...]) -> Tuple[Rendition, ...]:
        labels = [r.label for r in v]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise ValueError(f"duplicate rendition labels: {', '.join(duplicates)}")
        return v

    @classmethod
    def default(cls) -> "RenditionLadder":
        return cls()

    @classmethod
    def from_entries(cls, entries: List[Dict[str, Any]],
                     audio_bitrate_kbps: int = DEFAULT_AUDIO_BITRATE_KBPS,
                     source: Optional[str] = None) -> "RenditionLadder":
        """Build a ladder from plain mappings, e.g. parsed configuration."""
        try:
            return cls(
                renditions=tuple(Rendition.model_validate(entry) for entry in entries),
                audio_bitrate_kbps=audio_bitrate_kbps,
            )
        except (ValidationError, TypeError) as e:
            raise LadderError(f"Invalid rendition ladder: {e}", source=source) from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RenditionLadder":
        """
        Load a ladder from a YAML or JSON file.

        The file holds either a list of renditions, or a mapping with a
        ``renditions`` list and an optional ``audio_bitrate_kbps``.
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise LadderError(f"Cannot read ladder file {path}: {e}", source=str(path)) from e

        audio_bitrate_kbps = DEFAULT_AUDIO_BITRATE_KBPS
        if isinstance(data, dict):
            audio_bitrate_kbps = data.get("audio_bitrate_kbps", DEFAULT_AUDIO_BITRATE_KBPS)
            data = data.get("renditions")
        if not isinstance(data, list):
            raise LadderError(f"Ladder file {path} must contain a list of renditions", source=str(path))

        return cls.from_entries(data, audio_bitrate_kbps=audio_bitrate_kbps, source=str(path))

    def __len__(self) -> int:
        return len(self.renditions)

    @property
    def labels(self) -> List[str]:
        return [r.label for r in self.renditions]

    def is_empty(self) -> bool:
        return not self.renditions

    def is_monotonic(self) -> bool:
        """True when bitrate and resolution strictly increase in ladder order."""
        for lower, higher in zip(self.renditions, self.renditions[1:]):
            if higher.video_bitrate_kbps <= lower.video_bitrate_kbps:
                return False
            if higher.width * higher.height <= lower.width * lower.height:
                return False
        return True

    def with_audio_bitrate(self, audio_bitrate_kbps: int) -> "RenditionLadder":
        return RenditionLadder(renditions=self.renditions, audio_bitrate_kbps=audio_bitrate_kbps)


def base_name_for(input_path: Union[str, Path]) -> str:
    """Source file name without its extension."""
    return Path(input_path).stem


def is_owned_artifact(name: str, base_name: str) -> bool:
    """
    Whether a file name in the output directory belongs to ``base_name``.

    Matches the master playlist (and its temporary file), rendition
    playlists ``{label}-{base_name}.m3u8`` and segments
    ``{label}-{base_name}_<digits>.ts``.
    """
    master = f"{MASTER_PREFIX}{base_name}{PLAYLIST_EXTENSION}"
    if name == master or name == master + ".tmp":
        return True

    label, sep, rest = name.partition("-")
    if not sep or not LABEL_PATTERN.match(label):
        return False
    if rest == f"{base_name}{PLAYLIST_EXTENSION}":
        return True
    segment = re.fullmatch(re.escape(base_name) + r"_\d+" + re.escape(SEGMENT_EXTENSION), rest)
    return segment is not None


class TranscodeJob(BaseModel):
    """A single packaging run for one source file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    input_path: Path
    output_dir: Path
    base_name: str = Field(..., min_length=1)
    audio_bitrate_kbps: int = Field(..., gt=0)
    ladder: RenditionLadder

    segment_duration: int = Field(5, gt=0)
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: Optional[str] = "veryfast"
    align_keyframes: bool = True

    @property
    def renditions(self) -> Tuple[Rendition, ...]:
        return self.ladder.renditions

    def playlist_name(self, rendition: Rendition) -> str:
        return f"{rendition.label}-{self.base_name}{PLAYLIST_EXTENSION}"

    def playlist_path(self, rendition: Rendition) -> Path:
        return self.output_dir / self.playlist_name(rendition)

    def segment_template(self, rendition: Rendition) -> Path:
        """printf-style segment file template handed to the engine."""
        # '%' in a file name is literal, only the sequence number is a directive
        base_name = self.base_name.replace("%", "%%")
        return self.output_dir / f"{rendition.label}-{base_name}_%03d{SEGMENT_EXTENSION}"

    @property
    def master_playlist_name(self) -> str:
        return f"{MASTER_PREFIX}{self.base_name}{PLAYLIST_EXTENSION}"

    @property
    def master_playlist_path(self) -> Path:
        return self.output_dir / self.master_playlist_name

    def expected_playlists(self) -> List[Path]:
        return [self.playlist_path(r) for r in self.renditions]


class RenditionOutput(BaseModel):
    """What one rendition contributed to a finished package."""

    label: str
    resolution: str
    bandwidth: int
    playlist: Path


class PackageResult(BaseModel):
    """Outcome of a successful packaging run."""

    base_name: str
    master_playlist: Path
    renditions: List[RenditionOutput]
    command: List[str]
    removed_artifacts: int = 0
    audio_in_bandwidth: bool = True
