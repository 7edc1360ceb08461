"""
Scribeflow - video transcription workflow toolkit.

Takes a video file and produces an editable, searchable, exportable
transcript through a four-stage pipeline: upload validation → adaptive
audio extraction (native fast path, ffmpeg engine fallback) → chunked
speech-to-text → segment editing and export.
"""

__version__ = "0.1.0"
