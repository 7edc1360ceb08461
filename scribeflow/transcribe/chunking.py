"""
scribeflow.transcribe.chunking - Decodable chunk payloads for large audio.

The chunk plan is made in bytes, but a byte range of a container file
(OGG, FLAC, WAV) is not a file a backend can open. Frame-synced MPEG audio
can be cut at any byte and still decodes; every other payload is decoded,
cut at the sample frame proportional to each range's start, and re-encoded
with the source's own format and subtype. Chunks are produced one at a time
so only one chunk's samples are held in memory.
"""

from __future__ import annotations

import io
import logging
from typing import Iterator

import numpy as np

from scribeflow.exceptions import TranscriptionFailed
from scribeflow.models import AudioBlob

logger = logging.getLogger(__name__)

FRAME_SYNCED_TYPES = ("audio/mpeg", "audio/mp3")


def base_mime_type(mime_type: str) -> str:
    return mime_type.split(";")[0].strip().lower()


def is_frame_synced(audio: AudioBlob) -> bool:
    return base_mime_type(audio.mime_type) in FRAME_SYNCED_TYPES


def split_audio(audio: AudioBlob, ranges: list[tuple[int, int]]) -> Iterator[AudioBlob]:
    """Yield one independently decodable payload per byte range.

    Raises:
        TranscriptionFailed: If a container payload cannot be decoded or
            re-encoded
    """
    if is_frame_synced(audio):
        view = memoryview(audio.data)
        for start, end in ranges:
            yield AudioBlob(bytes(view[start:end]), audio.mime_type)
        return

    yield from _reencode_ranges(audio, ranges)


def _reencode_ranges(audio: AudioBlob, ranges: list[tuple[int, int]]) -> Iterator[AudioBlob]:
    import soundfile as sf

    from scribeflow.media.native import SpeechRecorder

    try:
        source = sf.SoundFile(io.BytesIO(audio.data))
    except (RuntimeError, TypeError) as e:
        raise TranscriptionFailed(f"Cannot split {audio.mime_type} audio into chunks: {e}") from e

    with source:
        total = source.frames
        if total <= 0:
            raise TranscriptionFailed(f"Cannot split {audio.mime_type} audio: no frames decoded")
        logger.debug(
            "Re-encoding %d frames of %s/%s into %d chunks",
            total,
            source.format,
            source.subtype,
            len(ranges),
        )
        for start, end in ranges:
            first = total * start // audio.size
            last = total * end // audio.size
            try:
                source.seek(first)
                samples = source.read(last - first, dtype="float32", always_2d=True)
                recorder = SpeechRecorder(
                    source.format, source.subtype, audio.mime_type, sample_rate=source.samplerate
                )
                recorder.write(np.ascontiguousarray(samples.mean(axis=1), dtype=np.float32))
                chunk = recorder.stop()
            except (RuntimeError, TypeError, ValueError) as e:
                raise TranscriptionFailed(
                    f"Could not re-encode frames {first}-{last} of {audio.mime_type} audio: {e}"
                ) from e
            yield chunk
