"""Tests for scribeflow.transcribe.backends module."""

from __future__ import annotations

import asyncio
import random

import httpx
import pytest

from scribeflow.config import Settings
from scribeflow.exceptions import TranscriptionFailed
from scribeflow.transcribe.backends import (
    SIMULATED_PHRASES,
    HttpBackend,
    SimulatedBackend,
    WhisperBackend,
    create_backend,
    generate_simulated_segments,
    parse_whisper_segments,
    whisper_language,
)

VERBOSE_JSON = {
    "language": "english",
    "duration": 8.0,
    "segments": [
        {"id": 0, "start": 0.0, "end": 3.5, "text": " Hello there.", "avg_logprob": 0.0},
        {"id": 1, "start": 3.5, "end": 8.0, "text": " General Kenobi.", "avg_logprob": -0.5},
    ],
}


class TestSimulatedSegments:
    def test_covers_duration_contiguously(self) -> None:
        segments = generate_simulated_segments(95.0, random.Random(7))

        assert segments[0].start_time == 0.0
        assert segments[-1].end_time == pytest.approx(95.0)
        for previous, current in zip(segments, segments[1:]):
            assert current.start_time == previous.end_time

    def test_segment_lengths(self) -> None:
        segments = generate_simulated_segments(200.0, random.Random(1))
        lengths = [s.end_time - s.start_time for s in segments]
        assert all(3.0 <= length <= 10.0 for length in lengths[:-1])
        assert lengths[-1] <= 10.0

    def test_cycles_through_phrases(self) -> None:
        segments = generate_simulated_segments(300.0, random.Random(3))
        assert segments[0].text == SIMULATED_PHRASES[0]
        assert segments[len(SIMULATED_PHRASES)].text == SIMULATED_PHRASES[0]

    def test_zero_duration(self) -> None:
        assert generate_simulated_segments(0.0, random.Random(0)) == []


class TestSimulatedBackend:
    def test_seeded_runs_match(self) -> None:
        async def run(seed: int):
            return await SimulatedBackend(seed=seed).submit(b"x", mime_type="audio/mpeg", duration_hint=30.0)

        assert asyncio.run(run(5)) == asyncio.run(run(5))

    def test_defaults_duration_without_hint(self) -> None:
        segments = asyncio.run(SimulatedBackend(seed=0).submit(b"x", mime_type="audio/mpeg"))
        assert segments[-1].end_time == pytest.approx(60.0)


class TestParseWhisperSegments:
    def test_converts_logprob_to_confidence(self) -> None:
        segments = parse_whisper_segments(VERBOSE_JSON)

        assert [s.text for s in segments] == ["Hello there.", "General Kenobi."]
        assert segments[0].confidence == 1.0
        assert segments[1].confidence == 0.61

    def test_skips_blank_text(self) -> None:
        result = {"segments": [{"start": 0, "end": 1, "text": "   "}]}
        assert parse_whisper_segments(result) == []

    def test_missing_segments(self) -> None:
        assert parse_whisper_segments({}) == []


class TestWhisperLanguage:
    def test_strips_region(self) -> None:
        assert whisper_language("en-US") == "en"
        assert whisper_language("zh-CN") == "zh"

    def test_none(self) -> None:
        assert whisper_language(None) is None


class TestWhisperBackend:
    def test_unknown_backend_raises(self) -> None:
        with pytest.raises(TranscriptionFailed):
            WhisperBackend(backend="cpp")


class TestHttpBackend:
    def test_posts_verbose_json_request(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = request.content
            return httpx.Response(200, json=VERBOSE_JSON)

        backend = HttpBackend(
            "https://asr.example.com/v1/", api_key="sk-test", transport=httpx.MockTransport(handler)
        )
        segments = asyncio.run(backend.submit(b"ID3audio", mime_type="audio/mpeg", language="fr-FR"))

        assert seen["url"] == "https://asr.example.com/v1/audio/transcriptions"
        assert seen["auth"] == "Bearer sk-test"
        assert b"verbose_json" in seen["body"]
        assert b"whisper-1" in seen["body"]
        assert b'filename="audio.mp3"' in seen["body"]
        assert len(segments) == 2

    def test_model_hint_overrides_model(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content
            return httpx.Response(200, json={"segments": []})

        backend = HttpBackend("https://asr.example.com/v1", transport=httpx.MockTransport(handler))
        asyncio.run(backend.submit(b"x", mime_type="audio/mpeg", model_hint="large-v3"))

        assert b"large-v3" in seen["body"]

    def test_timeout_maps_to_timeout_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        backend = HttpBackend("https://asr.example.com/v1", transport=httpx.MockTransport(handler))

        with pytest.raises(TimeoutError):
            asyncio.run(backend.submit(b"x", mime_type="audio/mpeg"))

    def test_http_error_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="overloaded")

        backend = HttpBackend("https://asr.example.com/v1", transport=httpx.MockTransport(handler))

        with pytest.raises(TranscriptionFailed, match="500"):
            asyncio.run(backend.submit(b"x", mime_type="audio/mpeg"))

    def test_connection_error_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        backend = HttpBackend("https://asr.example.com/v1", transport=httpx.MockTransport(handler))

        with pytest.raises(TranscriptionFailed, match="Could not reach"):
            asyncio.run(backend.submit(b"x", mime_type="audio/mpeg"))

    def test_invalid_json_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="not json")

        backend = HttpBackend("https://asr.example.com/v1", transport=httpx.MockTransport(handler))

        with pytest.raises(TranscriptionFailed, match="invalid JSON"):
            asyncio.run(backend.submit(b"x", mime_type="audio/mpeg"))


class TestCreateBackend:
    def test_simulated_by_default(self) -> None:
        assert isinstance(create_backend(Settings()), SimulatedBackend)

    def test_whisper(self) -> None:
        backend = create_backend(Settings(backend="whisper", whisper_backend="mlx", whisper_model="small"))
        assert isinstance(backend, WhisperBackend)
        assert (backend.backend, backend.model) == ("mlx", "small")

    def test_accuracy_picks_whisper_model(self) -> None:
        standard = create_backend(Settings(backend="whisper", accuracy="standard"))
        maximum = create_backend(Settings(backend="whisper", accuracy="maximum"))
        assert (standard.model, maximum.model) == ("small", "large-v3")

    def test_pinned_whisper_model_overrides_accuracy(self) -> None:
        backend = create_backend(Settings(backend="whisper", accuracy="maximum", whisper_model="tiny"))
        assert backend.model == "tiny"

    def test_http(self) -> None:
        backend = create_backend(Settings(backend="http", api_url="https://x.test/v1", api_key="k"))
        assert isinstance(backend, HttpBackend)
        assert backend.api_url == "https://x.test/v1"
