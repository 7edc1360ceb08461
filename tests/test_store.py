"""Tests for scribeflow.transcript.store module."""

from __future__ import annotations

import pytest

from scribeflow.exceptions import ValidationError
from scribeflow.models import TranscriptSegment
from scribeflow.transcript.store import TranscriptSet, TranscriptStore, highlight


@pytest.fixture
def store(sample_segments: list[TranscriptSegment]) -> TranscriptStore:
    return TranscriptStore(TranscriptSet(sample_segments))


class TestTranscriptSet:
    def test_sequence_access(self, sample_segments: list[TranscriptSegment]) -> None:
        transcript = TranscriptSet(sample_segments)
        assert len(transcript) == 5
        assert transcript[0].id == 1
        assert transcript[-1].end_time == 30.0
        assert transcript.duration == 30.0

    def test_empty_set(self) -> None:
        transcript = TranscriptSet()
        assert len(transcript) == 0
        assert transcript.duration == 0.0

    def test_rejects_zero_length_segment(self) -> None:
        with pytest.raises(ValidationError):
            TranscriptSet([TranscriptSegment(1, 5.0, 5.0, "instant")])

    def test_rejects_overlap(self) -> None:
        with pytest.raises(ValidationError, match="overlaps"):
            TranscriptSet([TranscriptSegment(1, 0.0, 5.0, "a"), TranscriptSegment(2, 4.0, 8.0, "b")])

    def test_rejects_duplicate_ids(self) -> None:
        with pytest.raises(ValidationError):
            TranscriptSet([TranscriptSegment(1, 0.0, 5.0, "a"), TranscriptSegment(1, 5.0, 8.0, "b")])

    def test_dict_round_trip(self, sample_segments: list[TranscriptSegment]) -> None:
        transcript = TranscriptSet(sample_segments)
        assert list(TranscriptSet.from_list(transcript.to_list())) == sample_segments


class TestEdit:
    def test_changes_text_only(self, store: TranscriptStore) -> None:
        before = [(s.id, s.start_time, s.end_time) for s in store.segments]

        assert store.edit(2, "Edited text") is True

        assert store.transcript.get(2).text == "Edited text"
        assert [(s.id, s.start_time, s.end_time) for s in store.segments] == before

    def test_edit_then_revert(self, store: TranscriptStore) -> None:
        original = store.transcript.get(3).text
        store.edit(3, "Temporary")
        store.edit(3, original)
        assert store.transcript.get(3).text == original

    def test_unknown_id_is_noop(self, store: TranscriptStore) -> None:
        before = [s.text for s in store.segments]
        assert store.edit(99, "Nothing") is False
        assert [s.text for s in store.segments] == before


class TestSearch:
    def test_case_insensitive(self, store: TranscriptStore) -> None:
        assert [s.id for s in store.search("BUDGET")] == [4]

    def test_empty_term_returns_all_in_order(self, store: TranscriptStore) -> None:
        assert [s.id for s in store.search("")] == [1, 2, 3, 4, 5]

    def test_no_match(self, store: TranscriptStore) -> None:
        assert list(store.search("zebra")) == []

    def test_results_are_lazy(self, store: TranscriptStore) -> None:
        results = store.search("the")
        assert next(results).id == 1


class TestFindActive:
    def test_inside_segment(self, store: TranscriptStore) -> None:
        assert store.find_active(10.0).id == 3

    def test_shared_boundary_picks_first(self, store: TranscriptStore) -> None:
        assert store.find_active(4.5).id == 1

    def test_outside_any_segment(self, store: TranscriptStore) -> None:
        assert store.find_active(45.0) is None

    def test_empty_store(self) -> None:
        assert TranscriptStore().find_active(1.0) is None


class TestStoreLifecycle:
    def test_replace_and_clear(self, store: TranscriptStore) -> None:
        store.replace(TranscriptSet([TranscriptSegment(1, 0.0, 1.0, "new")]))
        assert len(store) == 1

        store.clear()
        assert len(store) == 0

    def test_full_text(self, store: TranscriptStore) -> None:
        text = store.full_text()
        assert text.startswith("Welcome to the quarterly review.\n\nThe main goal")
        assert text.count("\n\n") == 4


class TestHighlight:
    def test_wraps_all_matches_preserving_case(self) -> None:
        assert highlight("The cat and the hat", "the", "<{}>") == "<The> cat and <the> hat"

    def test_empty_term_returns_text(self) -> None:
        assert highlight("unchanged", "") == "unchanged"

    def test_escapes_regex_characters(self) -> None:
        assert highlight("costs $5 (approx.)", "(approx.)", "[{}]") == "costs $5 [(approx.)]"
