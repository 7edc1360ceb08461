"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from scribeflow.models import TranscriptSegment


@pytest.fixture(autouse=True)
def scribeflow_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep settings and saved transcriptions inside the test's tmp dir."""
    home = tmp_path / "home"
    monkeypatch.setenv("SCRIBEFLOW_HOME", str(home))
    return home


@pytest.fixture
def video_file(tmp_path: Path) -> Path:
    """A small file with a video extension. Its contents are not real media."""
    path = tmp_path / "lecture.mp4"
    path.write_bytes(b"\x00" * 4096)
    return path


@pytest.fixture
def sample_segments() -> list[TranscriptSegment]:
    return [
        TranscriptSegment(1, 0.0, 4.5, "Welcome to the quarterly review."),
        TranscriptSegment(2, 4.5, 9.0, "The main goal is to improve retention by 15% this year."),
        TranscriptSegment(3, 9.0, 15.25, "First, we need to fix the onboarding problem."),
        TranscriptSegment(4, 15.25, 21.0, "Second, the budget for support will increase next quarter."),
        TranscriptSegment(5, 21.0, 30.0, "Thank you all for joining the call today."),
    ]
