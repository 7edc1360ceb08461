"""
scribeflow.session - One upload-to-transcript workflow.

A Session owns the loaded video and the live transcript. A transcription
run composes extraction (0-45%), transcription (45-90%) and finalizing
(90-100%) into a single monotonic progress stream. Starting a new run
detaches the previous run's listener, and only the most recent run may
replace the transcript.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from scribeflow.config import Settings
from scribeflow.exceptions import InputRejected, ScribeflowError
from scribeflow.media.orchestrator import MediaOrchestrator
from scribeflow.media.progress import ProgressReporter
from scribeflow.models import (
    AudioBlob,
    ExtractionResult,
    MediaAsset,
    ProgressCallback,
    TranscriptionMetadata,
)
from scribeflow.transcribe.driver import ChunkedTranscriptionDriver, TranscriptionOptions
from scribeflow.transcript.store import TranscriptSet, TranscriptStore
from scribeflow.validation import validate_upload

logger = logging.getLogger(__name__)


class Session:
    """The loaded video, its extraction and its editable transcript."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.asset: MediaAsset | None = None
        self.upload: dict[str, Any] | None = None
        self.store = TranscriptStore()
        self.extraction: ExtractionResult | None = None
        self.duration: float | None = None
        self._reporter: ProgressReporter | None = None

    def load(self, path: Path, mime_type: str | None = None) -> dict[str, Any]:
        """Validate and load a new video, discarding the previous transcript.

        Returns:
            The upload check result, including any large-file warnings

        Raises:
            InputRejected: If the file fails the upload checks
        """
        upload = validate_upload(Path(path), self.settings, mime_type)
        for warning in upload["warnings"]:
            logger.warning(warning)
        self.cancel()
        self.asset = MediaAsset.from_path(Path(path), upload["mime_type"])
        self.upload = upload
        self.extraction = None
        self.duration = None
        self.store.clear()
        return upload

    def cancel(self) -> None:
        """Stop observing the active run, if any."""
        if self._reporter is not None:
            self._reporter.detach()
            self._reporter = None

    async def run_transcription(
        self,
        orchestrator: MediaOrchestrator,
        driver: ChunkedTranscriptionDriver,
        on_progress: ProgressCallback | None = None,
    ) -> TranscriptSet:
        """Extract audio from the loaded video and transcribe it.

        Raises:
            InputRejected: If no video is loaded
            ExtractionFailed: If both extraction strategies fail
            TranscriptionError: If the backend fails
        """
        if self.asset is None:
            raise InputRejected("No video loaded", reason="missing")

        self.cancel()
        reporter = ProgressReporter(on_progress)
        self._reporter = reporter
        asset = self.asset

        duration = await self._probe_duration(orchestrator, asset)
        extraction = await orchestrator.extract_audio_only(asset, reporter.span(0, 45))
        options = TranscriptionOptions.from_settings(self.settings, duration)
        transcript = await driver.transcribe(extraction.output, options, reporter.span(45, 90))

        if self._reporter is not reporter:
            logger.info("Discarding result of a superseded transcription run")
            return transcript

        reporter.report(90, "Finalizing transcript...")
        if self.settings.memory_optimization:
            # Keep the extraction stats but release the audio payload
            extraction = dataclasses.replace(extraction, output=AudioBlob(b"", extraction.output.mime_type))
        self.extraction = extraction
        self.duration = duration or transcript.duration
        self.store.replace(transcript)
        self._reporter = None
        reporter.complete(f"Transcribed {len(transcript)} segments")
        return transcript

    async def _probe_duration(self, orchestrator: MediaOrchestrator, asset: MediaAsset) -> float | None:
        try:
            metadata = await orchestrator.engine.probe(asset)
        except (ScribeflowError, OSError) as e:
            logger.debug("Could not probe duration of %s: %s", asset.name, e)
            return None
        duration = metadata.get("duration_seconds")
        return float(duration) if duration else None

    def metadata(self, title: str | None = None) -> TranscriptionMetadata:
        """Metadata describing the current transcript, for saving."""
        if self.asset is None:
            raise InputRejected("No video loaded", reason="missing")
        return TranscriptionMetadata(
            file_name=self.asset.name,
            title=title or self.asset.stem,
            duration=round(self.duration or self.store.transcript.duration, 2),
            language=self.settings.language,
            file_size=self.asset.size,
            file_type=self.asset.mime_type,
            large_file=bool(self.upload and self.upload["large_file"]),
            compressed=bool(self.extraction and not self.extraction.audio_only),
            created_at=datetime.now().isoformat(timespec="seconds"),
        )
