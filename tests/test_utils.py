"""Tests for scribeflow.utils module."""

from __future__ import annotations

from scribeflow.utils import BYTES_PER_GB, format_duration, format_size, size_in_gb


class TestFormatDuration:
    def test_seconds_only(self) -> None:
        assert format_duration(45.0) == "0:45"

    def test_minutes_and_seconds(self) -> None:
        assert format_duration(125.0) == "2:05"

    def test_hours_minutes_seconds(self) -> None:
        assert format_duration(3725.0) == "1:02:05"

    def test_zero(self) -> None:
        assert format_duration(0.0) == "0:00"

    def test_float_seconds(self) -> None:
        assert format_duration(90.7) == "1:30"


class TestFormatSize:
    def test_bytes(self) -> None:
        assert format_size(512) == "512.0 B"

    def test_megabytes(self) -> None:
        assert format_size(1.5 * 1024 * 1024) == "1.5 MB"

    def test_gigabytes(self) -> None:
        assert format_size(5 * BYTES_PER_GB) == "5.0 GB"


class TestSizeInGb:
    def test_binary_gigabytes(self) -> None:
        assert size_in_gb(BYTES_PER_GB) == 1.0
        assert size_in_gb(BYTES_PER_GB // 2) == 0.5
