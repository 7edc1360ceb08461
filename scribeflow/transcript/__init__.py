"""
scribeflow.transcript - In-memory transcript segment store.

Holds the session's editable, searchable transcript.
"""

from __future__ import annotations

from scribeflow.transcript.store import TranscriptSet, TranscriptStore, highlight

__all__ = ["TranscriptSet", "TranscriptStore", "highlight"]
