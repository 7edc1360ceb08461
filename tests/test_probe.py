"""Tests for scribeflow.media.probe."""

from __future__ import annotations

import pytest

from scribeflow.media import probe as probe_module
from scribeflow.media.probe import NATIVE_PRIMITIVES, capabilities, parse_probe_output


class TestCapabilities:
    def test_reports_every_primitive(self) -> None:
        assert set(capabilities()) == set(NATIVE_PRIMITIVES)

    def test_probe_false_when_primitive_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            probe_module, "capabilities", lambda: {"numpy": True, "audioread": False}
        )
        probe_module.probe.cache_clear()
        try:
            assert probe_module.probe() is False
        finally:
            probe_module.probe.cache_clear()

    def test_probe_true_when_all_present(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(probe_module, "capabilities", lambda: dict.fromkeys(NATIVE_PRIMITIVES, True))
        probe_module.probe.cache_clear()
        try:
            assert probe_module.probe() is True
        finally:
            probe_module.probe.cache_clear()


class TestParseProbeOutput:
    def test_video_with_audio(self) -> None:
        data = {
            "format": {"duration": "125.5"},
            "streams": [
                {"codec_type": "video", "codec_name": "h264", "width": 1920, "height": 1080, "r_frame_rate": "30000/1001"},
                {"codec_type": "audio", "codec_name": "aac", "sample_rate": "48000", "channels": 2},
            ],
        }

        metadata = parse_probe_output(data)

        assert metadata["duration_seconds"] == 125.5
        assert (metadata["width"], metadata["height"]) == (1920, 1080)
        assert metadata["frame_rate"] == 29.97
        assert metadata["video_codec"] == "h264"
        assert metadata["audio_codec"] == "aac"
        assert metadata["sample_rate"] == 48000
        assert metadata["audio_channels"] == 2

    def test_video_without_audio(self) -> None:
        data = {"format": {"duration": "10"}, "streams": [{"codec_type": "video", "r_frame_rate": "25/1"}]}

        metadata = parse_probe_output(data)

        assert metadata["frame_rate"] == 25.0
        assert metadata["audio_codec"] is None
        assert metadata["sample_rate"] is None

    def test_empty_output(self) -> None:
        metadata = parse_probe_output({})
        assert metadata["duration_seconds"] == 0.0
        assert metadata["video_codec"] is None
