"""
scribeflow.media.probe - Runtime capability and media metadata probing.

``probe()`` answers whether the in-process (native) extraction path can be
attempted at all. ``probe_video()`` reads container metadata with ffprobe.
"""

from __future__ import annotations

import importlib.util
import json
import subprocess
from functools import lru_cache
from pathlib import Path
from typing import Any

from scribeflow.exceptions import DependencyError, EngineError

# blob handling, file reading/decoding, file-object construction/encoding, resampling
NATIVE_PRIMITIVES = ("numpy", "audioread", "soundfile", "soxr", "librosa")


def capabilities() -> dict[str, bool]:
    """Report which native media primitives are importable."""
    return {name: importlib.util.find_spec(name) is not None for name in NATIVE_PRIMITIVES}


@lru_cache(maxsize=1)
def probe() -> bool:
    """True when every native primitive is available.

    False means the orchestrator skips the native path and uses the engine.
    """
    return all(capabilities().values())


def probe_video(path: Path) -> dict[str, Any]:
    """Probe a media file for metadata using ffprobe.

    Returns:
        Dict with duration_seconds, width, height, frame_rate, video_codec,
        audio_codec, sample_rate, audio_channels

    Raises:
        DependencyError: If ffprobe is not installed
        EngineError: If ffprobe cannot read the file
    """
    cmd = [
        "ffprobe",
        "-v",
        "quiet",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise DependencyError(
            "ffprobe",
            "FFprobe not found in PATH",
            "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)",
        ) from e
    if result.returncode != 0:
        raise EngineError(
            f"ffprobe failed for {path}", returncode=result.returncode, stderr=result.stderr
        )

    return parse_probe_output(json.loads(result.stdout or "{}"))


def parse_probe_output(data: dict[str, Any]) -> dict[str, Any]:
    """Reduce raw ffprobe JSON to the fields the pipeline uses."""
    video_stream = None
    audio_stream = None
    for stream in data.get("streams", []):
        if stream.get("codec_type") == "video" and video_stream is None:
            video_stream = stream
        elif stream.get("codec_type") == "audio" and audio_stream is None:
            audio_stream = stream

    format_info = data.get("format", {})
    duration = float(format_info.get("duration", 0) or 0)

    metadata: dict[str, Any] = {
        "duration_seconds": duration,
        "width": None,
        "height": None,
        "frame_rate": None,
        "video_codec": None,
        "audio_codec": None,
        "sample_rate": None,
        "audio_channels": None,
    }

    if video_stream:
        fps_str = video_stream.get("r_frame_rate", "0/1")
        if "/" in fps_str:
            num, den = fps_str.split("/")
            fps = float(num) / float(den) if float(den) > 0 else 0.0
        else:
            fps = float(fps_str)
        metadata["frame_rate"] = round(fps, 3) if fps else None
        metadata["width"] = video_stream.get("width")
        metadata["height"] = video_stream.get("height")
        metadata["video_codec"] = video_stream.get("codec_name")

    if audio_stream:
        metadata["audio_codec"] = audio_stream.get("codec_name")
        metadata["sample_rate"] = int(audio_stream.get("sample_rate", 0) or 0) or None
        metadata["audio_channels"] = audio_stream.get("channels")

    return metadata
