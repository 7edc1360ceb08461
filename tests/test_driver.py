"""Tests for scribeflow.transcribe.driver - direct and chunked transcription."""

from __future__ import annotations

import asyncio
import io

import numpy as np
import pytest
import soundfile as sf

from scribeflow.config import Settings
from scribeflow.exceptions import TranscriptionFailed, TranscriptionTimeout
from scribeflow.media.native import SpeechRecorder
from scribeflow.models import AudioBlob, RawSegment
from scribeflow.transcribe.backends import TranscriptionBackend
from scribeflow.transcribe.driver import (
    CHUNK_SIZE_BYTES,
    DIRECT_LIMIT_BYTES,
    ChunkedTranscriptionDriver,
    TranscriptionOptions,
    plan_chunks,
    rebase_segments,
)
from scribeflow.utils import BYTES_PER_MB


class FakeBackend(TranscriptionBackend):
    """Two segments per call; the second runs 5s past the payload's duration."""

    name = "fake"

    def __init__(self, fail: Exception | None = None, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.calls: list[dict] = []

    async def submit(self, audio, *, mime_type, language=None, model_hint=None, duration_hint=None):
        self.calls.append(
            {"size": len(audio), "mime_type": mime_type, "language": language, "duration_hint": duration_hint}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        duration = duration_hint or 10.0
        n = len(self.calls)
        return [
            RawSegment(duration / 2, duration + 5, f"chunk {n} second half"),
            RawSegment(0.0, duration / 2, f"chunk {n} first half"),
        ]


class DecodingBackend(TranscriptionBackend):
    """Opens every payload the way a real ASR backend would."""

    name = "decoding"

    def __init__(self) -> None:
        self.frames: list[int] = []

    async def submit(self, audio, *, mime_type, language=None, model_hint=None, duration_hint=None):
        samples, rate = sf.read(io.BytesIO(audio))
        self.frames.append(len(samples))
        return [RawSegment(0.0, len(samples) / rate, f"{len(samples)} frames")]


def blob(size: int) -> AudioBlob:
    return AudioBlob(b"\x00" * size, "audio/mpeg")


class TestPlanChunks:
    def test_exact_multiple(self) -> None:
        assert plan_chunks(60, 20) == [(0, 20), (20, 40), (40, 60)]

    def test_remainder_chunk(self) -> None:
        assert plan_chunks(45, 20) == [(0, 20), (20, 40), (40, 45)]


class TestRebaseSegments:
    def test_offsets_and_sorts(self) -> None:
        raw = [RawSegment(5.0, 8.0, "b"), RawSegment(0.0, 5.0, "a")]
        rebased = rebase_segments(raw, 100.0)
        assert [(s.start_time, s.end_time, s.text) for s in rebased] == [(100.0, 105.0, "a"), (105.0, 108.0, "b")]

    def test_clamps_to_window(self) -> None:
        rebased = rebase_segments([RawSegment(30.0, 45.0, "late")], 40.0, window=40.0)
        assert (rebased[0].start_time, rebased[0].end_time) == (70.0, 80.0)

    def test_drops_segments_entirely_outside_window(self) -> None:
        rebased = rebase_segments([RawSegment(45.0, 50.0, "beyond")], 0.0, window=40.0)
        assert rebased == []

    def test_never_starts_before_floor(self) -> None:
        rebased = rebase_segments([RawSegment(0.0, 4.0, "overlap")], 10.0, floor=12.0)
        assert (rebased[0].start_time, rebased[0].end_time) == (12.0, 14.0)


class TestDirectMode:
    def test_single_call_with_full_duration(self) -> None:
        backend = FakeBackend()
        driver = ChunkedTranscriptionDriver(backend)

        transcript = asyncio.run(
            driver.transcribe(blob(1024), TranscriptionOptions(language="en-US", duration_hint=30.0))
        )

        assert len(backend.calls) == 1
        assert backend.calls[0]["duration_hint"] == 30.0
        assert [s.id for s in transcript] == [1, 2]
        assert transcript[0].start_time == 0.0
        assert transcript[-1].end_time == 35.0

    def test_limit_is_inclusive(self) -> None:
        backend = FakeBackend()
        driver = ChunkedTranscriptionDriver(backend, direct_limit=25, chunk_size=20, pacing=0)

        asyncio.run(driver.transcribe(blob(25), TranscriptionOptions(duration_hint=10.0)))

        assert len(backend.calls) == 1

    def test_chunking_can_be_disabled(self) -> None:
        backend = FakeBackend()
        driver = ChunkedTranscriptionDriver(backend, direct_limit=25, chunk_size=20, pacing=0)

        asyncio.run(driver.transcribe(blob(100), TranscriptionOptions(allow_chunking=False)))

        assert len(backend.calls) == 1

    def test_progress_is_monotonic(self) -> None:
        events: list[float] = []
        driver = ChunkedTranscriptionDriver(FakeBackend(delay=0.05))

        asyncio.run(
            driver.transcribe(blob(1024), TranscriptionOptions(), lambda percent, stage: events.append(percent))
        )

        assert events == sorted(events)
        assert 90.0 in events
        assert events[-1] == 100.0


class TestChunkedMode:
    def test_sixty_megabytes_in_three_chunks(self) -> None:
        backend = FakeBackend()
        driver = ChunkedTranscriptionDriver(backend, pacing=0)
        events: list[float] = []

        transcript = asyncio.run(
            driver.transcribe(
                blob(60 * BYTES_PER_MB),
                TranscriptionOptions(duration_hint=120.0),
                lambda percent, stage: events.append(percent),
            )
        )

        assert DIRECT_LIMIT_BYTES == 25 * BYTES_PER_MB
        assert [call["size"] for call in backend.calls] == [CHUNK_SIZE_BYTES] * 3
        assert all(call["duration_hint"] == 40.0 for call in backend.calls)
        assert [s.id for s in transcript] == [1, 2, 3, 4, 5, 6]
        assert [(s.start_time, s.end_time) for s in transcript] == [
            (0.0, 20.0),
            (20.0, 40.0),
            (40.0, 60.0),
            (60.0, 80.0),
            (80.0, 100.0),
            (100.0, 120.0),
        ]
        assert transcript[-1].end_time == pytest.approx(120.0)
        assert events == sorted(events)
        assert events[-1] == 100.0

    def test_segments_stay_in_chunk_order(self) -> None:
        driver = ChunkedTranscriptionDriver(FakeBackend(), direct_limit=25, chunk_size=20, pacing=0)

        transcript = asyncio.run(driver.transcribe(blob(50), TranscriptionOptions(duration_hint=30.0)))

        assert [s.text for s in transcript] == [
            "chunk 1 first half",
            "chunk 1 second half",
            "chunk 2 first half",
            "chunk 2 second half",
            "chunk 3 first half",
            "chunk 3 second half",
        ]
        starts = [s.start_time for s in transcript]
        assert starts == sorted(starts)

    def test_without_duration_hint_chunks_are_laid_end_to_end(self) -> None:
        driver = ChunkedTranscriptionDriver(FakeBackend(), direct_limit=25, chunk_size=20, pacing=0)

        transcript = asyncio.run(driver.transcribe(blob(40), TranscriptionOptions()))

        assert [(s.start_time, s.end_time) for s in transcript] == [
            (0.0, 5.0),
            (5.0, 15.0),
            (15.0, 20.0),
            (20.0, 30.0),
        ]

    def test_recorded_audio_chunks_reach_backend_decodable(self) -> None:
        recorder = SpeechRecorder("WAV", "PCM_16", "audio/wav")
        t = np.arange(30 * 16000) / 16000
        recorder.write((0.3 * np.sin(2 * np.pi * 220 * t)).astype(np.float32))
        audio = recorder.stop()
        backend = DecodingBackend()
        driver = ChunkedTranscriptionDriver(backend, direct_limit=200_000, chunk_size=400_000, pacing=0)

        transcript = asyncio.run(driver.transcribe(audio, TranscriptionOptions(duration_hint=30.0)))

        assert len(backend.frames) == 3
        assert sum(backend.frames) == 30 * 16000
        assert [(s.start_time, s.end_time) for s in transcript][:2] == [(0.0, 10.0), (10.0, 20.0)]
        assert transcript[-1].start_time == 20.0
        assert transcript[-1].end_time == pytest.approx(25.0, abs=0.01)

    def test_failure_in_later_chunk_fails_the_run(self) -> None:
        class FlakyBackend(FakeBackend):
            async def submit(self, audio, **kwargs):
                if self.calls:
                    raise RuntimeError("service unavailable")
                return await super().submit(audio, **kwargs)

        driver = ChunkedTranscriptionDriver(FlakyBackend(), direct_limit=25, chunk_size=20, pacing=0)

        with pytest.raises(TranscriptionFailed, match="service unavailable"):
            asyncio.run(driver.transcribe(blob(50), TranscriptionOptions(duration_hint=30.0)))


class TestFailures:
    def test_empty_audio(self) -> None:
        with pytest.raises(TranscriptionFailed, match="empty"):
            asyncio.run(ChunkedTranscriptionDriver(FakeBackend()).transcribe(blob(0)))

    def test_per_call_timeout(self) -> None:
        driver = ChunkedTranscriptionDriver(FakeBackend(delay=1.0))

        with pytest.raises(TranscriptionTimeout, match="smaller"):
            asyncio.run(driver.transcribe(blob(10), TranscriptionOptions(timeout=0.01)))

    def test_backend_timeout(self) -> None:
        driver = ChunkedTranscriptionDriver(FakeBackend(fail=TimeoutError("read timed out")))

        with pytest.raises(TranscriptionTimeout):
            asyncio.run(driver.transcribe(blob(10)))

    def test_other_errors_are_failures(self) -> None:
        driver = ChunkedTranscriptionDriver(FakeBackend(fail=ConnectionError("refused")))

        with pytest.raises(TranscriptionFailed, match="reduce the file size"):
            asyncio.run(driver.transcribe(blob(10)))

    def test_typed_backend_errors_pass_through(self) -> None:
        error = TranscriptionFailed("quota exceeded")
        driver = ChunkedTranscriptionDriver(FakeBackend(fail=error))

        with pytest.raises(TranscriptionFailed) as excinfo:
            asyncio.run(driver.transcribe(blob(10)))
        assert excinfo.value is error


class TestOptionsFromSettings:
    def test_copies_relevant_settings(self) -> None:
        settings = Settings(language="es-ES", chunk_processing=False, request_timeout_seconds=60)

        options = TranscriptionOptions.from_settings(settings, duration_hint=42.0)

        assert options.language == "es-ES"
        assert options.allow_chunking is False
        assert options.timeout == 60
        assert options.duration_hint == 42.0
