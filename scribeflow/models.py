"""
scribeflow.models - Core data types shared across the pipeline.

Media handles, extraction requests and results, progress events, and
transcript segments. Everything here is immutable except TranscriptSegment,
whose text is replaced by user edits.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

ProgressCallback = Callable[[float, str], None]


class QualityTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ExtractionMode(str, Enum):
    AUDIO_ONLY = "audio_only"
    COMPRESS = "compress"


@dataclass(frozen=True)
class MediaAsset:
    """Immutable handle to a user-supplied media file."""

    path: Path
    size: int
    mime_type: str
    name: str

    @classmethod
    def from_path(cls, path: Path, mime_type: str | None = None) -> MediaAsset:
        """Build an asset from a file on disk, guessing the MIME type from its name."""
        path = Path(path)
        if mime_type is None:
            guessed, _ = mimetypes.guess_type(path.name)
            mime_type = guessed or "application/octet-stream"
        return cls(path=path, size=path.stat().st_size, mime_type=mime_type, name=path.name)

    @property
    def stem(self) -> str:
        return Path(self.name).stem


@dataclass(frozen=True)
class CompressionSettings:
    quality: QualityTier
    max_width: int
    max_height: int
    frame_rate: int
    audio_bitrate: str

    def to_dict(self) -> dict[str, object]:
        return {
            "quality": self.quality.value,
            "max_width": self.max_width,
            "max_height": self.max_height,
            "frame_rate": self.frame_rate,
            "audio_bitrate": self.audio_bitrate,
        }


@dataclass(frozen=True)
class ExtractionRequest:
    source: MediaAsset
    mode: ExtractionMode
    settings: CompressionSettings | None = None


@dataclass(frozen=True)
class ProgressEvent:
    percent: float
    stage: str


@dataclass(frozen=True)
class AudioBlob:
    """In-memory encoded audio payload."""

    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        base = self.mime_type.split(";")[0].strip()
        return {
            "audio/ogg": ".ogg",
            "audio/flac": ".flac",
            "audio/wav": ".wav",
            "audio/x-wav": ".wav",
            "audio/mpeg": ".mp3",
            "audio/mp3": ".mp3",
            "audio/webm": ".webm",
            "audio/mp4": ".m4a",
            "video/webm": ".webm",
            "video/mp4": ".mp4",
        }.get(base, ".bin")


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of one successful extraction or compression run.

    ``output_size`` may exceed ``original_size``; ratio and savings are
    reported as-is in that case.
    """

    output: AudioBlob
    original_size: int
    output_size: int
    audio_only: bool
    processing_time_seconds: float
    strategy: str
    codec: str | None = None

    @property
    def compression_ratio(self) -> float:
        if self.output_size <= 0:
            return 0.0
        return self.original_size / self.output_size

    @property
    def saved_bytes(self) -> int:
        return self.original_size - self.output_size


CompressionOutcome = ExtractionResult


@dataclass
class TranscriptSegment:
    id: int
    start_time: float
    end_time: float
    text: str
    confidence: float | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "text": self.text,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> TranscriptSegment:
        confidence = data.get("confidence")
        return cls(
            id=int(data["id"]),
            start_time=float(data["start_time"]),
            end_time=float(data["end_time"]),
            text=str(data.get("text", "")),
            confidence=float(confidence) if confidence is not None else None,
        )


@dataclass(frozen=True)
class RawSegment:
    """A segment as returned by a transcription backend, relative to its chunk."""

    start_time: float
    end_time: float
    text: str
    confidence: float | None = None


@dataclass
class TranscriptionMetadata:
    file_name: str
    duration: float
    language: str
    file_size: int
    file_type: str
    title: str | None = None
    large_file: bool = False
    compressed: bool = False
    created_at: str | None = None
