"""
scribeflow.export - Transcript export to documents and subtitles.
"""

from __future__ import annotations
