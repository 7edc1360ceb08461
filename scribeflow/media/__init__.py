"""
scribeflow.media - Audio extraction and video compression.

Pipeline Stage 1: turn an uploaded video into a speech-optimized audio
payload, using the in-process native path when the runtime supports it and
the ffmpeg engine otherwise.
"""

from __future__ import annotations
