"""
scribeflow.export.content - Extractive summary and key point selection.

Both heuristics score sentences of the joined transcript text and keep
the best ones; nothing here calls a model.
"""

from __future__ import annotations

import re
from typing import Iterable

from scribeflow.models import TranscriptSegment

SUMMARY_KEYWORDS = [
    "important", "key", "main", "significant", "conclusion", "summary",
    "result", "findings", "recommend", "suggest", "critical", "essential",
    "primary", "focus", "goal", "objective", "solution", "problem", "issue",
    "challenge",
]

KEY_PHRASES = [
    "the main point", "key takeaway", "important to note", "remember that",
    "first", "second", "third", "finally", "in conclusion", "to summarize",
    "the goal is", "we need to", "it's crucial", "essential that",
    "the problem is", "the solution", "we recommend", "next steps",
    "action items", "deliverables", "timeline", "deadline",
    "budget", "cost", "revenue", "profit", "loss",
    "increase", "decrease", "improve", "optimize", "enhance",
]

MAX_SUMMARY_SENTENCES = 10
MAX_KEY_POINTS = 10
MIN_KEY_POINTS = 5

NO_SUMMARY = "No transcription data available for summary."
NO_KEY_POINTS = "No transcription data available for key points."

_SENTENCE_END = re.compile(r"[.!?]+")
_SEQUENCE_WORDS = re.compile(
    r"first|second|third|fourth|fifth|next|then|also|additionally|furthermore|moreover",
    re.IGNORECASE,
)
_NUMBERED = re.compile(r"^\s*\d+[.)]")
_METRIC = re.compile(r"\d+%|\$\d+|\d+\s*(minutes|hours|days|weeks|months|years)", re.IGNORECASE)


def full_text(segments: Iterable[TranscriptSegment], separator: str = "\n\n") -> str:
    return separator.join(segment.text for segment in segments)


def split_sentences(text: str, min_length: int) -> list[str]:
    """Split on sentence punctuation, keeping pieces longer than min_length."""
    return [s for s in _SENTENCE_END.split(text) if len(s.strip()) > min_length]


def score_summary_sentence(sentence: str) -> int:
    lowered = sentence.lower()
    score = sum(2 for word in SUMMARY_KEYWORDS if word in lowered)
    if 50 < len(sentence) < 200:
        score += 1
    if any(ch.isdigit() for ch in sentence):
        score += 1
    return score


def generate_summary(segments: list[TranscriptSegment]) -> str:
    """Keyword-scored extractive summary, at most 30% of sentences (max 10)."""
    if not segments:
        return NO_SUMMARY

    sentences = split_sentences(full_text(segments, " "), 10)
    if not sentences:
        return NO_SUMMARY
    # ceil(30%) in integer math
    length = min(-(-len(sentences) * 3 // 10), MAX_SUMMARY_SENTENCES)
    # sorted() is stable, so equal scores keep transcript order
    ranked = sorted(sentences, key=score_summary_sentence, reverse=True)
    chosen = [s.strip() for s in ranked[:length] if s.strip()]
    return ". ".join(chosen) + "."


def score_key_point(sentence: str) -> int:
    lowered = sentence.lower()
    score = sum(3 for phrase in KEY_PHRASES if phrase in lowered)
    if _NUMBERED.search(sentence) or _SEQUENCE_WORDS.search(sentence):
        score += 2
    if "?" in sentence:
        score += 1
    if _METRIC.search(sentence):
        score += 2
    return score


def generate_key_points(segments: list[TranscriptSegment]) -> list[str]:
    """Up to ten phrase-scored sentences, padded with plain ones when few score."""
    if not segments:
        return [NO_KEY_POINTS]

    sentences = split_sentences(full_text(segments, " "), 15)
    points = []
    for sentence in sentences:
        score = score_key_point(sentence)
        if score > 0:
            points.append((sentence.strip(), score))

    if len(points) < MIN_KEY_POINTS:
        extra = [s for s in sentences if 30 < len(s) < 150][: 8 - len(points)]
        points.extend((s.strip(), 1) for s in extra)

    points.sort(key=lambda item: item[1], reverse=True)
    return [text for text, _ in points[:MAX_KEY_POINTS] if text]
