"""
scribeflow.transcript.store - Ordered, editable transcript segments.

A TranscriptSet is the time-ordered result of one transcription run. The
TranscriptStore holds the session's live set and supports text edits,
case-insensitive search with highlighting, and jump-to-time lookups.
Edits only ever replace segment text, so ordering and ids never change.
"""

from __future__ import annotations

import re
from typing import Iterable, Iterator, Sequence

from scribeflow.exceptions import ValidationError
from scribeflow.models import TranscriptSegment


class TranscriptSet(Sequence[TranscriptSegment]):
    """Time-ordered, non-overlapping transcript segments."""

    def __init__(self, segments: Iterable[TranscriptSegment] = ()) -> None:
        self._segments = list(segments)
        validate_segments(self._segments)

    def __getitem__(self, index):  # type: ignore[override]
        return self._segments[index]

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[TranscriptSegment]:
        return iter(self._segments)

    def __repr__(self) -> str:
        return f"TranscriptSet({len(self._segments)} segments)"

    @property
    def duration(self) -> float:
        return self._segments[-1].end_time if self._segments else 0.0

    def get(self, segment_id: int) -> TranscriptSegment | None:
        for segment in self._segments:
            if segment.id == segment_id:
                return segment
        return None

    def to_list(self) -> list[dict[str, object]]:
        return [segment.to_dict() for segment in self._segments]

    @classmethod
    def from_list(cls, data: Iterable[dict[str, object]]) -> TranscriptSet:
        return cls(TranscriptSegment.from_dict(item) for item in data)


def validate_segments(segments: Sequence[TranscriptSegment]) -> None:
    """Check timing and id invariants.

    Raises:
        ValidationError: If a segment has start >= end, starts before the
            previous one ends, or reuses an id
    """
    seen: set[int] = set()
    previous: TranscriptSegment | None = None
    for segment in segments:
        if segment.id < 1 or segment.id in seen:
            raise ValidationError(f"Invalid or duplicate segment id: {segment.id}")
        seen.add(segment.id)
        if segment.start_time >= segment.end_time:
            raise ValidationError(
                f"Segment {segment.id} starts at {segment.start_time} but ends at {segment.end_time}"
            )
        if previous is not None and segment.start_time < previous.end_time:
            raise ValidationError(
                f"Segment {segment.id} overlaps segment {previous.id} "
                f"({segment.start_time} < {previous.end_time})"
            )
        previous = segment


class TranscriptStore:
    """The session's live transcript."""

    def __init__(self, transcript: TranscriptSet | None = None) -> None:
        self._transcript = transcript or TranscriptSet()

    @property
    def transcript(self) -> TranscriptSet:
        return self._transcript

    @property
    def segments(self) -> list[TranscriptSegment]:
        return list(self._transcript)

    def __len__(self) -> int:
        return len(self._transcript)

    def replace(self, transcript: TranscriptSet) -> None:
        """Swap in the result of a completed transcription run."""
        self._transcript = transcript

    def clear(self) -> None:
        self._transcript = TranscriptSet()

    def edit(self, segment_id: int, text: str) -> bool:
        """Replace a segment's text. Returns False (and changes nothing) for unknown ids."""
        segment = self._transcript.get(segment_id)
        if segment is None:
            return False
        segment.text = text
        return True

    def search(self, term: str) -> Iterator[TranscriptSegment]:
        """Segments whose text contains ``term``, case-insensitively, in order.

        An empty term yields every segment.
        """
        needle = term.lower()
        return (segment for segment in self._transcript if needle in segment.text.lower())

    def find_active(self, current_time: float) -> TranscriptSegment | None:
        """The first segment with start <= current_time <= end, if any."""
        for segment in self._transcript:
            if segment.start_time <= current_time <= segment.end_time:
                return segment
        return None

    def full_text(self, separator: str = "\n\n") -> str:
        return separator.join(segment.text for segment in self._transcript)


def highlight(text: str, term: str, marker: str = "[bold yellow]{}[/bold yellow]") -> str:
    """Wrap every case-insensitive occurrence of ``term`` with ``marker``."""
    if not term:
        return text
    pattern = re.compile(re.escape(term), re.IGNORECASE)
    return pattern.sub(lambda m: marker.format(m.group(0)), text)
