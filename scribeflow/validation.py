"""
scribeflow.validation - Upload boundary checks and dependency validation.

Rejects unusable input before any processing starts, and verifies the
ffmpeg engine is present before the engine path is attempted.
"""

from __future__ import annotations

import mimetypes
import shutil
import subprocess
from pathlib import Path
from typing import Any

from scribeflow.config import Settings
from scribeflow.exceptions import DependencyError, InputRejected
from scribeflow.utils import format_size

VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv", ".webm", ".m4v", ".mpg", ".mpeg", ".wmv", ".flv"}


def check_ffmpeg() -> dict[str, str]:
    """Check if FFmpeg and FFprobe are installed and get versions.

    Returns:
        Dict with 'ffmpeg_version' and 'ffprobe_version'

    Raises:
        DependencyError: If FFmpeg or FFprobe not found
    """
    result = {}

    for tool in ("ffmpeg", "ffprobe"):
        tool_path = shutil.which(tool)
        if not tool_path:
            raise DependencyError(
                tool,
                f"{tool} not found in PATH",
                "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)",
            )

        try:
            proc = subprocess.run(
                [tool_path, "-version"],
                capture_output=True,
                text=True,
                timeout=5,
            )
            version_line = proc.stdout.split("\n")[0]
            result[f"{tool}_version"] = version_line.split()[2] if version_line else "unknown"
        except (subprocess.TimeoutExpired, IndexError):
            result[f"{tool}_version"] = "unknown"

    return result


def resolve_mime_type(path: Path, declared: str | None = None) -> str:
    """Return the declared MIME type, or one guessed from the file name."""
    if declared:
        return declared
    guessed, _ = mimetypes.guess_type(path.name)
    if guessed:
        return guessed
    if path.suffix.lower() in VIDEO_EXTENSIONS:
        return f"video/{path.suffix.lower().lstrip('.')}"
    return "application/octet-stream"


def validate_upload(
    path: Path,
    settings: Settings,
    mime_type: str | None = None,
) -> dict[str, Any]:
    """Validate a file at the upload boundary.

    Args:
        path: Path to the uploaded file
        settings: Active settings (hard ceiling and warning threshold)
        mime_type: Declared MIME type, guessed from the name if omitted

    Returns:
        Dict with 'path', 'size', 'mime_type', 'large_file', 'warnings'

    Raises:
        InputRejected: Missing file, non-video type, or over the hard ceiling
    """
    if not path.exists():
        raise InputRejected(f"File not found: {path}", reason="missing")
    if not path.is_file():
        raise InputRejected(f"Not a file: {path}", reason="missing")

    resolved = resolve_mime_type(path, mime_type)
    if not resolved.startswith("video/"):
        raise InputRejected(
            f"{path.name} is not a video file ({resolved}). "
            "Supported formats: MP4, MOV, AVI, MKV, WebM",
            reason="mime_type",
        )

    size = path.stat().st_size
    if size > settings.upload_ceiling_bytes:
        raise InputRejected(
            f"File size exceeds {format_size(settings.upload_ceiling_bytes)} limit. "
            f"Your file is {format_size(size)}.",
            reason="too_large",
        )

    warnings = []
    large_file = size > settings.large_file_warning_bytes
    if large_file:
        warnings.append(
            f"Large file detected ({format_size(size)}). Processing may take longer; "
            "consider compressing the video first."
        )

    return {
        "path": str(path),
        "size": size,
        "mime_type": resolved,
        "large_file": large_file,
        "warnings": warnings,
    }
