"""Tests for scribeflow.export - content selection and document formats."""

from __future__ import annotations

from pathlib import Path

import pytest
from docx import Document

from scribeflow.exceptions import ExportError
from scribeflow.export.content import (
    NO_KEY_POINTS,
    NO_SUMMARY,
    generate_key_points,
    generate_summary,
    score_key_point,
    score_summary_sentence,
)
from scribeflow.export.formatter import (
    build_document,
    export_all,
    export_filename,
    export_transcript,
    render_txt,
)
from scribeflow.models import TranscriptSegment


class TestGenerateSummary:
    def test_empty_transcript(self) -> None:
        assert generate_summary([]) == NO_SUMMARY

    def test_keyword_sentences_rank_first(self, sample_segments: list[TranscriptSegment]) -> None:
        summary = generate_summary(sample_segments)
        # 5 sentences -> ceil(1.5) = 2 picked
        assert summary.count(".") == 2
        assert summary.startswith("The main goal is to improve retention by 15% this year")
        assert summary.endswith(".")

    def test_at_most_ten_sentences(self) -> None:
        segments = [
            TranscriptSegment(i + 1, float(i), float(i + 1), f"This is the important sentence number {i}.")
            for i in range(60)
        ]
        assert generate_summary(segments).count(".") == 10

    def test_scoring(self) -> None:
        assert score_summary_sentence("The key result") == 4
        assert score_summary_sentence("We sold 12 units") == 1


class TestGenerateKeyPoints:
    def test_empty_transcript(self) -> None:
        assert generate_key_points([]) == [NO_KEY_POINTS]

    def test_scored_points_first(self, sample_segments: list[TranscriptSegment]) -> None:
        points = generate_key_points(sample_segments)
        assert 0 < len(points) <= 10
        assert points[0].startswith("Second, the budget")
        assert any(point.startswith("First, we need to") for point in points)

    def test_at_most_ten(self) -> None:
        segments = [
            TranscriptSegment(i + 1, float(i), float(i + 1), f"Next steps include item {i} for the budget.")
            for i in range(30)
        ]
        assert len(generate_key_points(segments)) == 10

    def test_scoring(self) -> None:
        assert score_key_point("Next steps: cut cost by 10%") >= 3 + 3 + 2 + 2
        assert score_key_point("A plain remark about weather") == 0


class TestBuildDocument:
    def test_titles_and_tags(self, sample_segments: list[TranscriptSegment]) -> None:
        full = build_document(sample_segments, "full", "meeting")
        summary = build_document(sample_segments, "summary", "meeting")
        points = build_document(sample_segments, "keypoints", "meeting")

        assert (full.title, full.tag) == ("meeting - Full Transcript", None)
        assert (summary.title, summary.tag) == ("meeting - Summary", "SUMMARY")
        assert (points.title, points.tag) == ("meeting - Key Points", "KEY POINTS")
        assert full.text.count("\n\n") == 4
        assert points.points

    def test_unknown_type(self, sample_segments: list[TranscriptSegment]) -> None:
        with pytest.raises(ExportError, match="Invalid export type"):
            build_document(sample_segments, "outline", "meeting")

    def test_txt_numbers_key_points(self, sample_segments: list[TranscriptSegment]) -> None:
        text = render_txt(build_document(sample_segments, "keypoints", "meeting"))
        assert text.startswith("1. ")
        assert "\n\n2. " in text


class TestExportFilename:
    def test_suffixes(self) -> None:
        assert export_filename("talk", "full", "txt") == "talk_full_transcript.txt"
        assert export_filename("talk", "summary", "html") == "talk_summary.html"
        assert export_filename("talk", "keypoints", "docx") == "talk_key_points.docx"


class TestExportTranscript:
    def test_txt(self, sample_segments: list[TranscriptSegment], tmp_path: Path) -> None:
        filename = export_transcript(sample_segments, "full", "txt", "talk", tmp_path)

        assert filename == "talk_full_transcript.txt"
        content = (tmp_path / filename).read_text(encoding="utf-8")
        assert content.startswith("Welcome to the quarterly review.")

    def test_html_escapes_text(self, tmp_path: Path) -> None:
        segments = [TranscriptSegment(1, 0.0, 2.0, "Use <script> tags & friends")]

        filename = export_transcript(segments, "full", "html", "talk", tmp_path)

        html = (tmp_path / filename).read_text(encoding="utf-8")
        assert "<h1>talk - Full Transcript</h1>" in html
        assert "&lt;script&gt;" in html
        assert "<script>" not in html

    def test_html_key_points_are_a_list(self, sample_segments: list[TranscriptSegment], tmp_path: Path) -> None:
        filename = export_transcript(sample_segments, "keypoints", "html", "talk", tmp_path)

        html = (tmp_path / filename).read_text(encoding="utf-8")
        assert "<li>" in html
        assert "KEY POINTS" in html

    def test_docx(self, sample_segments: list[TranscriptSegment], tmp_path: Path) -> None:
        filename = export_transcript(sample_segments, "summary", "docx", "talk", tmp_path)

        doc = Document(str(tmp_path / filename))
        texts = [p.text for p in doc.paragraphs]
        assert texts[0] == "talk - Summary"
        assert "SUMMARY" in texts
        assert texts[-1].startswith("Generated on")

    def test_empty_transcript(self, tmp_path: Path) -> None:
        with pytest.raises(ExportError, match="No transcription data"):
            export_transcript([], "full", "txt", "talk", tmp_path)

    def test_unknown_format(self, sample_segments: list[TranscriptSegment], tmp_path: Path) -> None:
        with pytest.raises(ExportError, match="Invalid file format"):
            export_transcript(sample_segments, "full", "pdf", "talk", tmp_path)


class TestExportAll:
    def test_one_failure_does_not_stop_others(
        self, sample_segments: list[TranscriptSegment], tmp_path: Path
    ) -> None:
        results = export_all(sample_segments, ["full", "outline", "keypoints"], "txt", "talk", tmp_path)

        assert [r.success for r in results] == [True, False, True]
        assert results[1].error is not None
        assert (tmp_path / "talk_full_transcript.txt").exists()
        assert (tmp_path / "talk_key_points.txt").exists()

    def test_reports_each_item(self, sample_segments: list[TranscriptSegment], tmp_path: Path) -> None:
        results = export_all(sample_segments, ["full", "summary"], "html", "talk", tmp_path)

        assert [(r.type, r.format, r.filename) for r in results] == [
            ("full", "html", "talk_full_transcript.html"),
            ("summary", "html", "talk_summary.html"),
        ]
