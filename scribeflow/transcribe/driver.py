"""
scribeflow.transcribe.driver - Direct and chunked transcription.

Payloads up to 25 MB go to the backend in one call. Larger payloads are cut
into 20 MB byte ranges, each turned into a decodable payload and submitted
one after another. Each chunk's segments are shifted by the chunk's
estimated start time, clipped to the chunk's window and appended in chunk
order. Segment ids are assigned once, over the whole result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from scribeflow.config import Settings
from scribeflow.exceptions import (
    TranscriptionError,
    TranscriptionFailed,
    TranscriptionTimeout,
)
from scribeflow.media.progress import ProgressReporter, as_reporter, estimate_progress
from scribeflow.models import AudioBlob, ProgressCallback, RawSegment, TranscriptSegment
from scribeflow.transcribe.backends import TranscriptionBackend
from scribeflow.transcribe.chunking import split_audio
from scribeflow.transcript.store import TranscriptSet
from scribeflow.utils import BYTES_PER_MB

logger = logging.getLogger(__name__)

DIRECT_LIMIT_BYTES = 25 * BYTES_PER_MB
CHUNK_SIZE_BYTES = 20 * BYTES_PER_MB
CHUNK_PACING_SECONDS = 0.1
# Rough backend turnaround used for the direct-mode progress estimate
SECONDS_PER_MB = 2.0


@dataclass
class TranscriptionOptions:
    language: str = "en-US"
    duration_hint: float | None = None
    model_hint: str | None = None
    timeout: float | None = None
    allow_chunking: bool = True

    @classmethod
    def from_settings(cls, settings: Settings, duration_hint: float | None = None) -> TranscriptionOptions:
        return cls(
            language=settings.language,
            duration_hint=duration_hint,
            model_hint=settings.model,
            timeout=settings.request_timeout_seconds,
            allow_chunking=settings.chunk_processing,
        )


def plan_chunks(size: int, chunk_size: int = CHUNK_SIZE_BYTES) -> list[tuple[int, int]]:
    """Byte ranges [start, end) covering ``size`` bytes in order."""
    return [(start, min(start + chunk_size, size)) for start in range(0, size, chunk_size)]


def rebase_segments(
    raw: list[RawSegment],
    offset: float,
    window: float | None = None,
    floor: float = 0.0,
) -> list[RawSegment]:
    """Shift payload-relative segments onto the global timeline.

    Times are clipped to [0, window] within the payload, and no segment may
    start before ``floor`` (the end of the previous kept segment). Segments
    left with no duration are dropped.
    """
    rebased = []
    for seg in sorted(raw, key=lambda s: s.start_time):
        start = max(seg.start_time, 0.0)
        end = seg.end_time
        if window is not None:
            start = min(start, window)
            end = min(end, window)
        start = max(start + offset, floor)
        end = end + offset
        if end <= start:
            logger.debug("Dropping empty segment %r after rebasing", seg.text[:40])
            continue
        rebased.append(RawSegment(start, end, seg.text, seg.confidence))
        floor = end
    return rebased


def number_segments(raw: list[RawSegment]) -> TranscriptSet:
    return TranscriptSet(
        TranscriptSegment(
            id=i,
            start_time=seg.start_time,
            end_time=seg.end_time,
            text=seg.text,
            confidence=seg.confidence,
        )
        for i, seg in enumerate(raw, start=1)
    )


class ChunkedTranscriptionDriver:
    """Submits audio to a backend and assembles the transcript."""

    def __init__(
        self,
        backend: TranscriptionBackend,
        direct_limit: int = DIRECT_LIMIT_BYTES,
        chunk_size: int = CHUNK_SIZE_BYTES,
        pacing: float = CHUNK_PACING_SECONDS,
    ) -> None:
        self.backend = backend
        self.direct_limit = direct_limit
        self.chunk_size = chunk_size
        self.pacing = pacing

    def uses_chunks(self, audio: AudioBlob, options: TranscriptionOptions) -> bool:
        return options.allow_chunking and audio.size > self.direct_limit

    async def transcribe(
        self,
        audio: AudioBlob,
        options: TranscriptionOptions | None = None,
        on_progress: ProgressCallback | ProgressReporter | None = None,
    ) -> TranscriptSet:
        """Transcribe ``audio`` into one time-ordered transcript.

        Raises:
            TranscriptionTimeout: If a backend call timed out
            TranscriptionFailed: On any other failure
        """
        options = options or TranscriptionOptions()
        reporter = as_reporter(on_progress)
        if audio.size == 0:
            raise TranscriptionFailed("Audio payload is empty; nothing to transcribe")

        try:
            if self.uses_chunks(audio, options):
                raw = await self._transcribe_chunked(audio, options, reporter)
            else:
                raw = await self._transcribe_direct(audio, options, reporter)
        except TranscriptionError:
            raise
        except (asyncio.TimeoutError, TimeoutError) as e:
            logger.error("Transcription timed out: %s", e)
            raise TranscriptionTimeout(
                "Transcription timed out. Please try again with a smaller file or shorter audio."
            ) from e
        except Exception as e:
            logger.error("Transcription failed: %s", e)
            raise TranscriptionFailed(
                f"Transcription failed: {e}. Please try again or reduce the file size."
            ) from e

        reporter.report(90, "Finalizing transcription...")
        transcript = number_segments(raw)
        reporter.complete(f"Transcription complete ({len(transcript)} segments)")
        return transcript

    async def _submit(self, payload: bytes, audio: AudioBlob, options: TranscriptionOptions, duration: float | None) -> list[RawSegment]:
        call = self.backend.submit(
            payload,
            mime_type=audio.mime_type,
            language=options.language,
            model_hint=options.model_hint,
            duration_hint=duration,
        )
        if options.timeout:
            return await asyncio.wait_for(call, timeout=options.timeout)
        return await call

    async def _transcribe_direct(
        self, audio: AudioBlob, options: TranscriptionOptions, reporter: ProgressReporter
    ) -> list[RawSegment]:
        logger.info("Transcribing %.1f MB in a single request", audio.size / BYTES_PER_MB)
        ticker = asyncio.create_task(
            estimate_progress(
                reporter,
                expected_seconds=max(audio.size / BYTES_PER_MB * SECONDS_PER_MB, 1.0),
                stage="Processing speech to text...",
                cap=90.0,
            )
        )
        try:
            raw = await self._submit(audio.data, audio, options, options.duration_hint)
        finally:
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass
        return rebase_segments(raw, 0.0)

    async def _transcribe_chunked(
        self, audio: AudioBlob, options: TranscriptionOptions, reporter: ProgressReporter
    ) -> list[RawSegment]:
        chunks = plan_chunks(audio.size, self.chunk_size)
        count = len(chunks)
        chunk_duration = options.duration_hint / count if options.duration_hint else None
        logger.info("Large audio (%.1f MB) split into %d chunks", audio.size / BYTES_PER_MB, count)
        reporter.report(30, f"Processing large audio file in {count} chunks...")

        stitched: list[RawSegment] = []
        for index, payload in enumerate(split_audio(audio, chunks)):
            reporter.note(f"Processing chunk {index + 1} of {count}...")
            raw = await self._submit(payload.data, audio, options, chunk_duration)
            floor = stitched[-1].end_time if stitched else 0.0
            if chunk_duration is not None:
                offset = index * chunk_duration
            else:
                # Without a duration hint, chunks are laid end to end
                offset = floor
            stitched.extend(rebase_segments(raw, offset, chunk_duration, floor))
            reporter.report(30 + 60 * (index + 1) / count, f"Processed chunk {index + 1} of {count}")
            if index < count - 1 and self.pacing:
                await asyncio.sleep(self.pacing)
        return stitched
