"""
scribeflow.media.orchestrator - Extraction strategy selection and fallback.

Picks the native or engine strategy for each request, recovers from a
native failure with exactly one full engine run, and presents a single
monotonic 0-100 progress stream to the caller whichever backend is active.
"""

from __future__ import annotations

import logging
from typing import Callable

from scribeflow.exceptions import (
    CompressionError,
    ExtractionFailed,
    ScribeflowError,
)
from scribeflow.media.base import ExtractionStrategy
from scribeflow.media.engine import EngineStrategy, FFmpegEngine
from scribeflow.media.native import NativeStrategy, playback_rate_for_size
from scribeflow.media.probe import probe
from scribeflow.media.progress import ProgressReporter, as_reporter
from scribeflow.models import (
    CompressionOutcome,
    CompressionSettings,
    ExtractionMode,
    ExtractionRequest,
    ExtractionResult,
    MediaAsset,
    ProgressCallback,
    QualityTier,
)
from scribeflow.utils import size_in_gb

logger = logging.getLogger(__name__)

__all__ = [
    "MediaOrchestrator",
    "get_recommended_compression_settings",
    "playback_rate_for_size",
]


def get_recommended_compression_settings(size_bytes: int) -> CompressionSettings:
    """Recommended compression settings for a source of the given size.

    Quality never increases as size grows.

    Raises:
        ValueError: If size_bytes is negative
    """
    if size_bytes < 0:
        raise ValueError(f"size_bytes must be non-negative, got {size_bytes}")

    size_gb = size_in_gb(size_bytes)
    if size_gb > 4:
        return CompressionSettings(QualityTier.LOW, 854, 480, 24, "96k")
    if size_gb > 2:
        return CompressionSettings(QualityTier.LOW, 1280, 720, 24, "128k")
    if size_gb > 1:
        return CompressionSettings(QualityTier.MEDIUM, 1280, 720, 30, "128k")
    return CompressionSettings(QualityTier.HIGH, 1920, 1080, 30, "192k")


class MediaOrchestrator:
    """Drives one extraction or compression run to completion."""

    def __init__(
        self,
        native: ExtractionStrategy | None = None,
        fallback: ExtractionStrategy | None = None,
        engine: FFmpegEngine | None = None,
        capability_probe: Callable[[], bool] = probe,
    ) -> None:
        self.engine = engine or FFmpegEngine()
        self.native = native or NativeStrategy()
        self.fallback = fallback or EngineStrategy(self.engine)
        self.capability_probe = capability_probe

    async def run(
        self,
        request: ExtractionRequest,
        on_progress: ProgressCallback | ProgressReporter | None = None,
    ) -> ExtractionResult:
        if request.mode is ExtractionMode.AUDIO_ONLY:
            return await self.extract_audio_only(request.source, on_progress)
        return await self.compress_video(request.source, request.settings, on_progress)

    async def extract_audio_only(
        self,
        asset: MediaAsset,
        on_progress: ProgressCallback | ProgressReporter | None = None,
    ) -> ExtractionResult:
        """Extract speech audio, native path first, engine once on failure.

        Raises:
            ExtractionFailed: If the engine path fails (after native, or alone)
        """
        reporter = as_reporter(on_progress)
        reporter.report(5, "Initializing fast audio extraction...")

        native_error: Exception | None = None
        if self.capability_probe():
            try:
                result = await self.native.extract(asset, reporter.remaining())
                reporter.complete(f"Audio extracted in {result.processing_time_seconds:.1f}s")
                return result
            except Exception as e:
                native_error = e
                logger.warning("Native audio extraction failed, falling back to FFmpeg: %s", e)
                reporter.note("Native extraction failed, switching to FFmpeg...")
        else:
            logger.info("Native media primitives unavailable, using FFmpeg engine")

        try:
            result = await self.fallback.extract(asset, reporter.remaining())
        except Exception as e:
            logger.error("FFmpeg audio extraction failed: %s", e)
            raise ExtractionFailed(
                f"Audio extraction failed: {e}. "
                "Try a smaller file or compress the video before transcribing.",
                native_error=native_error,
                engine_error=e,
            ) from e

        reporter.complete("FFmpeg audio extraction complete")
        return result

    async def compress_video(
        self,
        asset: MediaAsset,
        settings: CompressionSettings | None = None,
        on_progress: ProgressCallback | ProgressReporter | None = None,
    ) -> CompressionOutcome:
        """Re-encode the video with the given (or recommended) settings.

        Raises:
            CompressionError: On any engine failure
        """
        reporter = as_reporter(on_progress)
        settings = settings or get_recommended_compression_settings(asset.size)
        reporter.report(5, "Initializing compression...")
        reporter.report(10, "Processing video...")
        try:
            outcome = await self.engine.compress(asset, settings, reporter)
        except CompressionError:
            raise
        except (ScribeflowError, OSError) as e:
            raise CompressionError(f"Failed to compress video: {e}") from e

        reporter.complete(
            f"Compressed {outcome.compression_ratio:.2f}x from {asset.name}"
        )
        return outcome

