"""
scribeflow.export.subtitles - SRT and WebVTT subtitle formatting.
"""

from __future__ import annotations

from typing import Iterable

from scribeflow.exceptions import ExportError
from scribeflow.models import TranscriptSegment

SUBTITLE_FORMATS = ("srt", "vtt")


def seconds_to_subtitle_time(seconds: float, separator: str = ",") -> str:
    """Convert float seconds to HH:MM:SS,mmm (SRT) or HH:MM:SS.mmm (VTT).

    Args:
        seconds: Time in seconds
        separator: Character between seconds and milliseconds

    Returns:
        Timestamp string
    """
    total_ms = max(round(seconds * 1000), 0)
    ms = total_ms % 1000
    total_seconds = total_ms // 1000
    ss = total_seconds % 60
    mm = (total_seconds // 60) % 60
    hh = total_seconds // 3600
    return f"{hh:02d}:{mm:02d}:{ss:02d}{separator}{ms:03d}"


def format_srt(segments: Iterable[TranscriptSegment]) -> str:
    blocks = []
    for i, segment in enumerate(segments, start=1):
        start = seconds_to_subtitle_time(segment.start_time)
        end = seconds_to_subtitle_time(segment.end_time)
        blocks.append(f"{i}\n{start} --> {end}\n{segment.text}\n")
    return "\n".join(blocks)


def format_vtt(segments: Iterable[TranscriptSegment]) -> str:
    blocks = []
    for i, segment in enumerate(segments, start=1):
        start = seconds_to_subtitle_time(segment.start_time, ".")
        end = seconds_to_subtitle_time(segment.end_time, ".")
        blocks.append(f"{i}\n{start} --> {end}\n{segment.text}")
    return "WEBVTT\n\n" + "\n\n".join(blocks) + "\n"


def format_subtitles(segments: Iterable[TranscriptSegment], fmt: str) -> str:
    """Render segments as subtitles.

    Raises:
        ExportError: If fmt is not srt or vtt
    """
    fmt = fmt.lower()
    if fmt == "srt":
        return format_srt(segments)
    if fmt == "vtt":
        return format_vtt(segments)
    raise ExportError(f"Unknown subtitle format: {fmt} (expected one of {SUBTITLE_FORMATS})")
