"""
scribeflow.transcribe.backends - Speech-to-text backends.

Every backend takes one encoded audio payload and returns segments whose
timestamps are relative to the start of that payload. The chunked driver
handles splitting, rebasing and id assignment.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import httpx

from scribeflow.config import Settings
from scribeflow.exceptions import DependencyError, TranscriptionFailed
from scribeflow.models import AudioBlob, RawSegment

logger = logging.getLogger(__name__)

SIMULATED_PHRASES = [
    "Welcome to our video presentation.",
    "Today we'll be discussing the key features of our new platform.",
    "Our application is designed to be user-friendly and intuitive.",
    "Let's start by examining the dashboard interface.",
    "As you can see, the analytics section provides comprehensive insights.",
    "Users can easily navigate between different sections using the sidebar menu.",
    "One of the most powerful features is the ability to generate custom reports.",
    "Data visualization tools help make sense of complex information.",
    "Security is a top priority in our application design.",
    "All user data is encrypted both in transit and at rest.",
    "The collaboration tools enable teams to work together effectively.",
    "Real-time updates ensure everyone has access to the latest information.",
    "Let's move on to the mobile experience.",
    "Our responsive design works seamlessly across all devices.",
    "Push notifications keep users informed about important updates.",
    "The offline mode allows for productivity even without internet access.",
    "Integration with third-party services extends the platform's capabilities.",
    "API documentation is comprehensive and well-maintained.",
    "Let's summarize what we've covered today.",
    "Thank you for watching this demonstration.",
]

DEFAULT_SIMULATED_DURATION = 60.0


def whisper_language(language: str | None) -> str | None:
    """Reduce a locale tag such as ``en-US`` to the bare code Whisper expects."""
    if not language:
        return None
    return language.split("-")[0].lower()


class TranscriptionBackend(ABC):
    """Submits one audio payload and returns payload-relative segments."""

    name: str = "backend"

    @abstractmethod
    async def submit(
        self,
        audio: bytes,
        *,
        mime_type: str,
        language: str | None = None,
        model_hint: str | None = None,
        duration_hint: float | None = None,
    ) -> list[RawSegment]:
        """Transcribe ``audio``.

        Raises:
            TimeoutError: If the backend did not answer in time
            TranscriptionFailed: On any other backend failure
        """


def generate_simulated_segments(
    duration: float,
    rng: random.Random,
    phrases: list[str] = SIMULATED_PHRASES,
    min_length: float = 3.0,
    max_length: float = 10.0,
) -> list[RawSegment]:
    """Consecutive segments of min_length-max_length seconds covering ``duration``."""
    segments = []
    current = 0.0
    index = 0
    while current < duration:
        length = min(rng.uniform(min_length, max_length), duration - current)
        end = current + length
        segments.append(RawSegment(current, end, phrases[index % len(phrases)]))
        current = end
        index += 1
    return segments


class SimulatedBackend(TranscriptionBackend):
    """Offline stand-in producing demo phrases across the payload duration."""

    name = "simulated"

    def __init__(self, latency: float = 0.0, seed: int | None = None) -> None:
        self.latency = latency
        self.rng = random.Random(seed)

    async def submit(
        self,
        audio: bytes,
        *,
        mime_type: str,
        language: str | None = None,
        model_hint: str | None = None,
        duration_hint: float | None = None,
    ) -> list[RawSegment]:
        if self.latency:
            await asyncio.sleep(self.latency)
        duration = duration_hint if duration_hint and duration_hint > 0 else DEFAULT_SIMULATED_DURATION
        return generate_simulated_segments(duration, self.rng)


class WhisperBackend(TranscriptionBackend):
    """Local Whisper inference via faster-whisper or mlx-whisper."""

    name = "whisper"

    def __init__(self, model: str = "medium", backend: str = "faster") -> None:
        if backend not in ("faster", "mlx"):
            raise TranscriptionFailed(f"Unknown Whisper backend: {backend}")
        self.model = model
        self.backend = backend

    async def submit(
        self,
        audio: bytes,
        *,
        mime_type: str,
        language: str | None = None,
        model_hint: str | None = None,
        duration_hint: float | None = None,
    ) -> list[RawSegment]:
        suffix = AudioBlob(b"", mime_type).extension
        with tempfile.TemporaryDirectory(prefix="scribeflow_") as scratch:
            audio_path = Path(scratch) / f"chunk{suffix}"
            audio_path.write_bytes(audio)
            return await asyncio.to_thread(
                self._transcribe, audio_path, whisper_language(language)
            )

    def _transcribe(self, audio_path: Path, language: str | None) -> list[RawSegment]:
        if self.backend == "mlx":
            result = _transcribe_mlx(audio_path, self.model, language)
        else:
            result = _transcribe_faster(audio_path, self.model, language)
        return parse_whisper_segments(result)


def _transcribe_mlx(audio_path: Path, model: str, language: str | None) -> dict[str, Any]:
    """Transcribe using mlx-whisper."""
    try:
        import mlx_whisper
    except ImportError as e:
        raise DependencyError(
            "mlx-whisper",
            "mlx-whisper not installed",
            "Install with: pip install 'scribeflow[mlx]'",
        ) from e

    kwargs: dict[str, Any] = {"path_or_hf_repo": f"mlx-community/whisper-{model}-mlx"}
    if language:
        kwargs["language"] = language
    return mlx_whisper.transcribe(str(audio_path), **kwargs)


def _transcribe_faster(audio_path: Path, model: str, language: str | None) -> dict[str, Any]:
    """Transcribe using faster-whisper."""
    try:
        from faster_whisper import WhisperModel
    except ImportError as e:
        raise DependencyError(
            "faster-whisper",
            "faster-whisper not installed",
            "Install with: pip install 'scribeflow[whisper]'",
        ) from e

    model_instance = WhisperModel(model, device="auto", compute_type="auto")
    kwargs: dict[str, Any] = {}
    if language:
        kwargs["language"] = language
    segments, info = model_instance.transcribe(str(audio_path), **kwargs)
    return {
        "language": info.language,
        "segments": [
            {
                "start": segment.start,
                "end": segment.end,
                "text": segment.text,
                "avg_logprob": segment.avg_logprob,
            }
            for segment in segments
        ],
    }


def parse_whisper_segments(result: dict[str, Any]) -> list[RawSegment]:
    """Whisper-style ``segments`` (local or verbose_json) to RawSegments.

    ``avg_logprob`` is converted to a 0-1 confidence.
    """
    segments = []
    for seg in result.get("segments") or []:
        text = str(seg.get("text", "")).strip()
        if not text:
            continue
        confidence = None
        if seg.get("avg_logprob") is not None:
            confidence = round(min(max(math.exp(float(seg["avg_logprob"])), 0.0), 1.0), 2)
        segments.append(
            RawSegment(
                start_time=float(seg.get("start", 0.0)),
                end_time=float(seg.get("end", 0.0)),
                text=text,
                confidence=confidence,
            )
        )
    return segments


class HttpBackend(TranscriptionBackend):
    """OpenAI-compatible ``/audio/transcriptions`` endpoint."""

    name = "http"

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        model: str = "whisper-1",
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport

    async def submit(
        self,
        audio: bytes,
        *,
        mime_type: str,
        language: str | None = None,
        model_hint: str | None = None,
        duration_hint: float | None = None,
    ) -> list[RawSegment]:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        data = {"model": model_hint or self.model, "response_format": "verbose_json"}
        code = whisper_language(language)
        if code:
            data["language"] = code
        files = {"file": (f"audio{AudioBlob(b'', mime_type).extension}", audio, mime_type)}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.api_url}/audio/transcriptions",
                    headers=headers,
                    data=data,
                    files=files,
                )
                response.raise_for_status()
            except httpx.TimeoutException as e:
                raise TimeoutError(f"Transcription request timed out after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise TranscriptionFailed(
                    f"Transcription service returned {e.response.status_code}: {e.response.text[:200]}"
                ) from e
            except httpx.HTTPError as e:
                raise TranscriptionFailed(f"Could not reach transcription service: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise TranscriptionFailed("Transcription service returned invalid JSON") from e
        logger.debug("Received %d segments from %s", len(payload.get("segments") or []), self.api_url)
        return parse_whisper_segments(payload)


def create_backend(settings: Settings) -> TranscriptionBackend:
    """Build the backend named by ``settings.backend``."""
    if settings.backend == "whisper":
        return WhisperBackend(model=settings.resolved_whisper_model, backend=settings.whisper_backend)
    if settings.backend == "http":
        return HttpBackend(
            api_url=settings.api_url,
            api_key=settings.api_key,
            model=settings.model,
            timeout=settings.request_timeout_seconds,
        )
    return SimulatedBackend(latency=1.0)
