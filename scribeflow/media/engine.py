"""
scribeflow.media.engine - FFmpeg transcoding engine.

The fallback path for audio extraction and the only path for full video
re-compression. FFmpeg runs as an asyncio subprocess inside a scratch
directory; ``-progress pipe:1`` output is parsed against the probed source
duration to report progress, and the scratch directory is removed on every
exit path.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import tempfile
import time
from functools import lru_cache
from pathlib import Path

from scribeflow.exceptions import CompressionError, DependencyError, EngineError
from scribeflow.media.base import ExtractionStrategy
from scribeflow.media.probe import probe_video
from scribeflow.media.progress import ProgressReporter
from scribeflow.models import (
    AudioBlob,
    CompressionOutcome,
    CompressionSettings,
    ExtractionResult,
    MediaAsset,
    QualityTier,
)
from scribeflow.utils import BYTES_PER_MB

logger = logging.getLogger(__name__)

SPEECH_BITRATE = "64k"

# (encoder, container, audio encoder, MIME type), preferred first
VIDEO_CODECS: list[tuple[str, str, str, str]] = [
    ("libvpx-vp9", "webm", "libopus", "video/webm;codecs=vp9"),
    ("libvpx", "webm", "libopus", "video/webm;codecs=vp8"),
    ("libx264", "mp4", "aac", "video/mp4;codecs=avc1"),
    ("mpeg4", "mp4", "aac", "video/mp4"),
]

VIDEO_BITRATES: dict[QualityTier, int] = {
    QualityTier.HIGH: 2_500_000,
    QualityTier.MEDIUM: 1_500_000,
    QualityTier.LOW: 800_000,
}

STDERR_TAIL_LINES = 12


def _missing_ffmpeg(e: Exception) -> DependencyError:
    error = DependencyError(
        "ffmpeg",
        "FFmpeg not found in PATH",
        "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)",
    )
    error.__cause__ = e
    return error


@lru_cache(maxsize=1)
def ffmpeg_encoders() -> frozenset[str]:
    """Names of the encoders the local ffmpeg build provides."""
    try:
        proc = subprocess.run(
            ["ffmpeg", "-hide_banner", "-encoders"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except FileNotFoundError as e:
        raise _missing_ffmpeg(e) from e
    return parse_encoders(proc.stdout)


def parse_encoders(output: str) -> frozenset[str]:
    """Parse ``ffmpeg -encoders`` output into a set of encoder names."""
    names = set()
    in_table = False
    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith("------"):
            in_table = True
            continue
        if not in_table or not stripped:
            continue
        parts = stripped.split()
        if len(parts) >= 2:
            names.add(parts[1])
    return frozenset(names)


def negotiate_video_codec(
    available: frozenset[str],
    preferences: list[tuple[str, str, str, str]] = VIDEO_CODECS,
) -> tuple[str, str, str, str]:
    """Return the first preferred video codec the engine can encode.

    Raises:
        CompressionError: If none of the preferred encoders is available
    """
    for codec in preferences:
        if codec[0] in available:
            return codec
    raise CompressionError(
        "No supported video codec found (tried " + ", ".join(c[0] for c in preferences) + ")"
    )


def target_dimensions(
    settings: CompressionSettings, source_width: int | None, source_height: int | None
) -> tuple[int, int]:
    """Output frame size: source size capped by the settings, rounded down to even."""
    width = min(settings.max_width, source_width or settings.max_width)
    height = min(settings.max_height, source_height or settings.max_height)
    return max(2, width - width % 2), max(2, height - height % 2)


def parse_progress_seconds(line: str) -> float | None:
    """Extract the output timestamp from one ``-progress`` line, in seconds."""
    key, _, value = line.strip().partition("=")
    if key not in ("out_time_us", "out_time_ms"):
        return None
    try:
        # ffmpeg reports microseconds under both keys
        return int(value) / 1_000_000
    except ValueError:
        return None


def build_audio_command(source: Path, output: Path) -> list[str]:
    return [
        "ffmpeg",
        "-y",
        "-nostats",
        "-progress",
        "pipe:1",
        "-i",
        str(source),
        "-vn",
        "-acodec",
        "libmp3lame",
        "-ac",
        "1",
        "-ar",
        "16000",
        "-ab",
        SPEECH_BITRATE,
        "-f",
        "mp3",
        str(output),
    ]


def build_compress_command(
    source: Path,
    output: Path,
    settings: CompressionSettings,
    codec: tuple[str, str, str, str],
    width: int,
    height: int,
) -> list[str]:
    encoder, container, audio_encoder, _ = codec
    return [
        "ffmpeg",
        "-y",
        "-nostats",
        "-progress",
        "pipe:1",
        "-i",
        str(source),
        "-vf",
        f"scale={width}:{height}",
        "-r",
        str(settings.frame_rate),
        "-c:v",
        encoder,
        "-b:v",
        str(VIDEO_BITRATES[settings.quality]),
        "-c:a",
        audio_encoder,
        "-b:a",
        settings.audio_bitrate,
        "-f",
        container,
        str(output),
    ]


async def run_ffmpeg(
    cmd: list[str],
    duration: float,
    reporter: ProgressReporter,
    start: float,
    end: float,
    stage: str,
) -> None:
    """Run ffmpeg, mapping its progress into [start, end] of the reporter.

    Raises:
        DependencyError: If ffmpeg is not installed
        EngineError: If ffmpeg exits non-zero
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise _missing_ffmpeg(e) from e

    stderr_task = asyncio.create_task(process.stderr.read())
    try:
        while True:
            line = await process.stdout.readline()
            if not line:
                break
            seconds = parse_progress_seconds(line.decode(errors="replace"))
            if seconds is not None and duration > 0:
                fraction = min(seconds / duration, 1.0)
                reporter.report(start + (end - start) * fraction, stage)
        returncode = await process.wait()
        stderr = (await stderr_task).decode(errors="replace")
    finally:
        if process.returncode is None:
            process.kill()
            await process.wait()
        if not stderr_task.done():
            stderr_task.cancel()

    if returncode != 0:
        tail = "\n".join(stderr.strip().splitlines()[-STDERR_TAIL_LINES:])
        logger.debug("ffmpeg failed (%s): %s", returncode, stderr)
        raise EngineError(f"FFmpeg exited with code {returncode}: {tail}", returncode, stderr)


class FFmpegEngine:
    """Decode the container and re-encode with explicit parameters."""

    async def probe(self, asset: MediaAsset) -> dict:
        return await asyncio.to_thread(probe_video, asset.path)

    async def extract_audio(self, asset: MediaAsset, reporter: ProgressReporter) -> AudioBlob:
        """Transcode the source to mono 16 kHz speech MP3."""
        reporter.report(20, "Using FFmpeg fallback...")
        metadata = await self.probe(asset)
        if metadata.get("audio_codec") is None:
            raise EngineError(f"{asset.name} has no audio track")

        with tempfile.TemporaryDirectory(prefix="scribeflow_") as scratch:
            output = Path(scratch) / "output.mp3"
            reporter.report(40, "Processing with FFmpeg...")
            await run_ffmpeg(
                build_audio_command(asset.path, output),
                metadata["duration_seconds"],
                reporter,
                40,
                80,
                "Processing with FFmpeg...",
            )
            reporter.report(80, "Reading extracted audio...")
            data = output.read_bytes()

        reporter.report(100, "FFmpeg audio extraction complete")
        return AudioBlob(data=data, mime_type="audio/mpeg")

    async def compress(
        self,
        asset: MediaAsset,
        settings: CompressionSettings,
        reporter: ProgressReporter,
    ) -> CompressionOutcome:
        """Re-encode the video at reduced resolution, frame rate and bitrate."""
        started = time.monotonic()
        reporter.report(15, "Reading video metadata...")
        metadata = await self.probe(asset)
        width, height = target_dimensions(settings, metadata.get("width"), metadata.get("height"))
        reporter.report(25, "Preparing compression...")

        codec = negotiate_video_codec(await asyncio.to_thread(ffmpeg_encoders))
        mime_type = codec[3]
        reporter.report(30, f"Setting up compression with {mime_type}...")
        logger.debug("Compressing %s to %dx%d with %s", asset.name, width, height, codec[0])

        with tempfile.TemporaryDirectory(prefix="scribeflow_") as scratch:
            output = Path(scratch) / f"compressed.{codec[1]}"
            reporter.report(40, "Compressing video...")
            await run_ffmpeg(
                build_compress_command(asset.path, output, settings, codec, width, height),
                metadata["duration_seconds"],
                reporter,
                40,
                99,
                "Compressing video...",
            )
            data = output.read_bytes()

        blob = AudioBlob(data=data, mime_type=mime_type)
        outcome = ExtractionResult(
            output=blob,
            original_size=asset.size,
            output_size=blob.size,
            audio_only=False,
            processing_time_seconds=time.monotonic() - started,
            strategy="engine",
            codec=codec[0],
        )
        reporter.report(
            100,
            f"Compressed {outcome.compression_ratio:.2f}x "
            f"(saved {outcome.saved_bytes / BYTES_PER_MB:.2f} MB)",
        )
        return outcome


class EngineStrategy(ExtractionStrategy):
    """Fallback extraction through the ffmpeg engine."""

    name = "engine"

    def __init__(self, engine: FFmpegEngine | None = None) -> None:
        self.engine = engine or FFmpegEngine()

    async def extract(self, asset: MediaAsset, reporter: ProgressReporter) -> ExtractionResult:
        started = time.monotonic()
        blob = await self.engine.extract_audio(asset, reporter)
        return ExtractionResult(
            output=blob,
            original_size=asset.size,
            output_size=blob.size,
            audio_only=True,
            processing_time_seconds=time.monotonic() - started,
            strategy=self.name,
            codec="libmp3lame",
        )
