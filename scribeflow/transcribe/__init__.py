"""
scribeflow.transcribe - Speech-to-text submission.

Pipeline Stage 2: submit extracted audio to a transcription backend,
directly or in fixed-size chunks, and stitch the result into one
time-ordered transcript.
"""

from __future__ import annotations
