"""
scribeflow.exceptions - Custom exception classes.

All Scribeflow-specific exceptions inherit from ScribeflowError.
"""

from __future__ import annotations


class ScribeflowError(Exception):
    """Base exception for all Scribeflow errors."""

    pass


class ConfigError(ScribeflowError):
    """Settings loading or validation error."""

    pass


class InputRejected(ScribeflowError):
    """Upload rejected before any processing (wrong type or too large)."""

    def __init__(self, message: str, reason: str = "invalid"):
        self.reason = reason
        super().__init__(message)


class ExtractionError(ScribeflowError):
    """Audio extraction error."""

    pass


class NativeExtractionError(ExtractionError):
    """The in-process extraction path failed. Recoverable via the engine."""

    pass


class EngineError(ExtractionError):
    """The ffmpeg engine failed to decode or encode the source."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class ExtractionFailed(ExtractionError):
    """Both extraction strategies failed. Terminal for the run."""

    def __init__(self, message: str, native_error: Exception | None = None, engine_error: Exception | None = None):
        self.native_error = native_error
        self.engine_error = engine_error
        super().__init__(message)


class CompressionError(ScribeflowError):
    """Video re-encode error."""

    pass


class TranscriptionError(ScribeflowError):
    """Transcription error."""

    pass


class TranscriptionTimeout(TranscriptionError):
    """Backend did not answer in time. Smaller input usually helps."""

    pass


class TranscriptionFailed(TranscriptionError):
    """Backend call failed for a reason other than a timeout."""

    pass


class PersistenceError(ScribeflowError):
    """Transcription store read or write error."""

    pass


class ExportError(ScribeflowError):
    """Transcript export error."""

    pass


class ValidationError(ScribeflowError):
    """Environment or data validation error."""

    pass


class DependencyError(ScribeflowError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")
