"""
scribeflow.media.native - In-process accelerated audio extraction.

The fast path. The source is decoded through whichever decoding backend the
platform offers (audioread), "played" through a small processing graph
(downmix to mono, resample to 16 kHz) at an accelerated rate, and captured
by a recorder writing a compact speech-quality stream with the first
recording format the local libsndfile supports.

Playback rate is the amount of media time pulled per pump tick before the
event loop gets control back, so larger files advance in bigger steps.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from pathlib import Path
from typing import Any, Callable

import numpy as np

from scribeflow.exceptions import NativeExtractionError
from scribeflow.media.base import ExtractionStrategy
from scribeflow.media.progress import ProgressReporter
from scribeflow.models import AudioBlob, ExtractionResult, MediaAsset
from scribeflow.utils import size_in_gb

logger = logging.getLogger(__name__)

SPEECH_SAMPLE_RATE = 16000
TICK_SECONDS = 1.0
POLL_INTERVAL = 0.1

# (libsndfile format, subtype, MIME type), most compact first
RECORDING_FORMATS: list[tuple[str, str, str]] = [
    ("OGG", "OPUS", "audio/ogg;codecs=opus"),
    ("OGG", "VORBIS", "audio/ogg;codecs=vorbis"),
    ("FLAC", "PCM_16", "audio/flac"),
    ("WAV", "PCM_16", "audio/wav"),
]


def playback_rate_for_size(size_bytes: int) -> int:
    """Playback speed multiplier for a source of the given size."""
    size_gb = size_in_gb(size_bytes)
    if size_gb > 2:
        return 16
    if size_gb > 1:
        return 8
    if size_gb > 0.5:
        return 4
    return 2


def negotiate_recording_format(
    formats: list[tuple[str, str, str]] = RECORDING_FORMATS,
) -> tuple[str, str, str]:
    """Return the first recording format libsndfile can write.

    Raises:
        NativeExtractionError: If none of the formats is supported
    """
    import soundfile as sf

    for fmt, subtype, mime in formats:
        if sf.check_format(fmt, subtype):
            return fmt, subtype, mime
    raise NativeExtractionError(
        "No supported recording format: " + ", ".join(f"{f}/{s}" for f, s, _ in formats)
    )


def _open_decoder(path: Path) -> Any:
    import audioread

    return audioread.audio_open(str(path))


class MediaPlayback:
    """Decodes a source as timed blocks and exposes its lifecycle as futures.

    ``metadata_loaded`` resolves once duration, sample rate and channel count
    are known; ``ended`` resolves when the last block has been delivered.
    Decoder failures are set on whichever of the two is still pending.
    """

    def __init__(
        self,
        path: Path,
        playback_rate: float,
        tick_seconds: float = TICK_SECONDS,
        opener: Callable[[Path], Any] = _open_decoder,
    ) -> None:
        loop = asyncio.get_running_loop()
        self.path = path
        self.playback_rate = playback_rate
        self.tick_seconds = tick_seconds
        self.metadata_loaded: asyncio.Future[None] = loop.create_future()
        self.ended: asyncio.Future[None] = loop.create_future()
        self.position = 0.0
        self.duration = 0.0
        self.sample_rate = 0
        self.channels = 0
        self._opener = opener
        self._handle: Any = None
        self._buffers: Any = None
        self._load_task: asyncio.Task[None] | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._read: asyncio.Future[tuple[bytes, bool]] | None = None

    def load(self) -> None:
        self._load_task = asyncio.create_task(self._load())

    def play(self, on_data: Callable[[np.ndarray], None]) -> None:
        """Start pumping blocks into ``on_data`` once metadata is loaded."""
        self._pump_task = asyncio.create_task(self._pump(on_data))

    async def close(self) -> None:
        for task in (self._load_task, self._pump_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, Exception):
                    pass
        if self._read is not None and not self._read.done():
            # The worker thread keeps iterating the decoder after cancellation
            await asyncio.wait([self._read])
        if self._handle is not None:
            try:
                self._handle.close()
            except Exception as e:
                logger.debug("Decoder close failed: %s", e)
            self._handle = None
        for signal in (self.metadata_loaded, self.ended):
            if not signal.done():
                signal.cancel()

    async def _load(self) -> None:
        try:
            self._handle = await asyncio.to_thread(self._opener, self.path)
            self.sample_rate = int(self._handle.samplerate)
            self.channels = int(self._handle.channels)
            self.duration = float(self._handle.duration or 0.0)
            if self.sample_rate <= 0 or self.channels <= 0:
                raise NativeExtractionError(f"{self.path.name} has no decodable audio track")
            self._buffers = iter(self._handle)
            self.metadata_loaded.set_result(None)
        except Exception as e:
            self.metadata_loaded.set_exception(e)

    def _read_tick(self) -> tuple[bytes, bool]:
        """Pull one tick's worth of PCM. Returns (data, exhausted)."""
        wanted = self.playback_rate * self.tick_seconds * self.sample_rate * self.channels * 2
        chunks = []
        collected = 0
        for buf in self._buffers:
            chunks.append(buf)
            collected += len(buf)
            if collected >= wanted:
                return b"".join(chunks), False
        return b"".join(chunks), True

    async def _pump(self, on_data: Callable[[np.ndarray], None]) -> None:
        import librosa

        try:
            while True:
                self._read = asyncio.get_running_loop().run_in_executor(None, self._read_tick)
                data, exhausted = await asyncio.shield(self._read)
                usable = len(data) // (2 * self.channels) * 2 * self.channels
                if usable:
                    samples = librosa.util.buf_to_float(data[:usable], n_bytes=2)
                    block = samples.reshape(-1, self.channels).T
                    on_data(block)
                    self.position += block.shape[1] / self.sample_rate
                if exhausted:
                    break
                await asyncio.sleep(0)
            self.ended.set_result(None)
        except Exception as e:
            self.ended.set_exception(e)


class SpeechGraph:
    """Downmix and resample decoded blocks for speech recognition.

    Resampling runs through one streaming resampler for the whole source,
    so block boundaries leave no edge artifacts. Call ``flush`` after the
    last block to drain the resampler's delay line.
    """

    def __init__(self, source_rate: int, target_rate: int = SPEECH_SAMPLE_RATE) -> None:
        import soxr

        self.source_rate = source_rate
        self.target_rate = target_rate
        self._stream = None
        if source_rate != target_rate:
            self._stream = soxr.ResampleStream(source_rate, target_rate, 1, dtype="float32", quality="HQ")

    def process(self, block: np.ndarray) -> np.ndarray:
        import librosa

        mono = librosa.to_mono(block) if block.ndim > 1 else block
        mono = np.ascontiguousarray(mono, dtype=np.float32)
        if self._stream is not None:
            mono = self._stream.resample_chunk(mono)
        return np.clip(mono, -1.0, 1.0).astype(np.float32)

    def flush(self) -> np.ndarray:
        if self._stream is None:
            return np.zeros(0, dtype=np.float32)
        tail = self._stream.resample_chunk(np.zeros(0, dtype=np.float32), last=True)
        return np.clip(tail, -1.0, 1.0).astype(np.float32)


class SpeechRecorder:
    """Encodes mono float samples into an in-memory audio file."""

    def __init__(self, fmt: str, subtype: str, mime_type: str, sample_rate: int = SPEECH_SAMPLE_RATE):
        import soundfile as sf

        self.mime_type = mime_type
        self.frames = 0
        self._buffer = io.BytesIO()
        self._file = sf.SoundFile(
            self._buffer,
            mode="w",
            samplerate=sample_rate,
            channels=1,
            format=fmt,
            subtype=subtype,
        )

    def write(self, samples: np.ndarray) -> None:
        if samples.size:
            self._file.write(samples)
            self.frames += samples.size

    def stop(self) -> AudioBlob:
        self._file.close()
        return AudioBlob(data=self._buffer.getvalue(), mime_type=self.mime_type)

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


async def _poll_progress(playback: MediaPlayback, reporter: ProgressReporter) -> None:
    while True:
        if playback.duration > 0:
            fraction = min(playback.position / playback.duration, 1.0)
            reporter.report(30 + fraction * 60, f"Extracting audio... {round(fraction * 100)}%")
        await asyncio.sleep(POLL_INTERVAL)


class NativeStrategy(ExtractionStrategy):
    """Fast in-process extraction at an accelerated playback rate."""

    name = "native"

    def __init__(
        self,
        tick_seconds: float = TICK_SECONDS,
        formats: list[tuple[str, str, str]] | None = None,
        opener: Callable[[Path], Any] = _open_decoder,
    ) -> None:
        self.tick_seconds = tick_seconds
        self.formats = formats or RECORDING_FORMATS
        self.opener = opener

    async def extract(self, asset: MediaAsset, reporter: ProgressReporter) -> ExtractionResult:
        started = time.monotonic()
        reporter.report(10, "Setting up native audio processing...")

        rate = playback_rate_for_size(asset.size)
        fmt, subtype, mime_type = negotiate_recording_format(self.formats)
        logger.debug("Native extraction of %s at %dx using %s/%s", asset.name, rate, fmt, subtype)

        playback = MediaPlayback(asset.path, rate, self.tick_seconds, opener=self.opener)
        recorder: SpeechRecorder | None = None
        poller: asyncio.Task[None] | None = None
        try:
            playback.load()
            await playback.metadata_loaded
            reporter.report(20, "Preparing audio extraction...")

            graph = SpeechGraph(playback.sample_rate)
            recorder = SpeechRecorder(fmt, subtype, mime_type)
            reporter.report(30, "Starting optimized audio extraction...")

            poller = asyncio.create_task(_poll_progress(playback, reporter))
            playback.play(lambda block: recorder.write(graph.process(block)))
            await playback.ended
            recorder.write(graph.flush())

            poller.cancel()
            reporter.report(90, "Finalizing audio extraction...")
            blob = recorder.stop()
        except NativeExtractionError:
            raise
        except Exception as e:
            raise NativeExtractionError(f"Native audio extraction failed: {e}") from e
        finally:
            if poller is not None:
                poller.cancel()
            await playback.close()
            if recorder is not None:
                recorder.close()

        if recorder.frames == 0:
            raise NativeExtractionError(f"No audio captured from {asset.name}")

        elapsed = time.monotonic() - started
        logger.info("Audio extraction completed in %.2f seconds", elapsed)
        reporter.report(100, f"Audio extracted in {elapsed:.1f}s")

        return ExtractionResult(
            output=blob,
            original_size=asset.size,
            output_size=blob.size,
            audio_only=True,
            processing_time_seconds=elapsed,
            strategy=self.name,
            codec=f"{fmt}/{subtype}",
        )
