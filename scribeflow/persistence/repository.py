"""
scribeflow.persistence.repository - Transcription repository contract and
local JSON implementation.

Each saved transcription is one JSON document holding its metadata and
segments, written atomically under ``<home>/transcriptions/<user_id>/``.
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from scribeflow.config import settings_home
from scribeflow.exceptions import PersistenceError, ValidationError
from scribeflow.io import read_json, write_json
from scribeflow.models import TranscriptionMetadata, TranscriptSegment
from scribeflow.transcript.store import TranscriptSet

logger = logging.getLogger(__name__)

DEFAULT_USER = "local"


@dataclass
class StoredTranscription:
    id: str
    user_id: str
    status: str
    metadata: TranscriptionMetadata
    segments: TranscriptSet

    def summary(self) -> dict[str, Any]:
        """Listing row: metadata plus id and segment count."""
        row = asdict(self.metadata)
        row.update(id=self.id, status=self.status, segment_count=len(self.segments))
        return row


class TranscriptionRepository(ABC):
    """Storage for completed transcriptions, scoped to one user."""

    def __init__(self, user_id: str = DEFAULT_USER) -> None:
        self.user_id = user_id

    @abstractmethod
    def save_transcription(
        self, metadata: TranscriptionMetadata, segments: Iterable[TranscriptSegment]
    ) -> str:
        """Store metadata and segments; return the new transcription id."""

    @abstractmethod
    def list_for_user(self) -> list[dict[str, Any]]:
        """The user's transcriptions, newest first."""

    @abstractmethod
    def get_with_segments(self, transcription_id: str) -> StoredTranscription:
        """Raises PersistenceError if the transcription does not exist."""

    @abstractmethod
    def update_segment(self, transcription_id: str, segment_id: int, text: str) -> TranscriptSegment:
        """Replace one segment's text. Raises PersistenceError for unknown ids."""

    @abstractmethod
    def delete(self, transcription_id: str) -> None:
        """Remove a transcription and its segments."""


def default_store_dir() -> Path:
    return settings_home() / "transcriptions"


class JsonRepository(TranscriptionRepository):
    """One JSON file per transcription on the local filesystem."""

    def __init__(self, root: Path | None = None, user_id: str = DEFAULT_USER) -> None:
        super().__init__(user_id)
        self.root = Path(root) if root else default_store_dir()

    @property
    def user_dir(self) -> Path:
        return self.root / self.user_id

    def _path(self, transcription_id: str) -> Path:
        if not transcription_id or "/" in transcription_id or "\\" in transcription_id:
            raise PersistenceError(f"Invalid transcription id: {transcription_id!r}")
        return self.user_dir / f"{transcription_id}.json"

    def _load(self, path: Path) -> StoredTranscription:
        try:
            data = read_json(path)
            return StoredTranscription(
                id=data["id"],
                user_id=data.get("user_id", self.user_id),
                status=data.get("status", "completed"),
                metadata=TranscriptionMetadata(**data["metadata"]),
                segments=TranscriptSet.from_list(data["segments"]),
            )
        except FileNotFoundError as e:
            raise PersistenceError(f"Transcription not found: {path.stem}") from e
        except (
            OSError, json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError, ValidationError
        ) as e:
            raise PersistenceError(f"Corrupt transcription file {path}: {e}") from e

    def _write(self, record: StoredTranscription) -> None:
        data = {
            "id": record.id,
            "user_id": record.user_id,
            "status": record.status,
            "metadata": asdict(record.metadata),
            "segments": record.segments.to_list(),
        }
        try:
            write_json(self._path(record.id), data)
        except OSError as e:
            raise PersistenceError(f"Could not save transcription {record.id}: {e}") from e

    def save_transcription(
        self, metadata: TranscriptionMetadata, segments: Iterable[TranscriptSegment]
    ) -> str:
        if metadata.created_at is None:
            metadata.created_at = datetime.now().isoformat(timespec="seconds")
        if not metadata.title:
            metadata.title = metadata.file_name
        try:
            transcript = TranscriptSet(segments)
        except ValidationError as e:
            raise PersistenceError(f"Refusing to save invalid transcript: {e}") from e

        record = StoredTranscription(
            id=uuid.uuid4().hex[:12],
            user_id=self.user_id,
            status="completed",
            metadata=metadata,
            segments=transcript,
        )
        self._write(record)
        logger.info("Saved transcription %s (%d segments)", record.id, len(transcript))
        return record.id

    def list_for_user(self) -> list[dict[str, Any]]:
        if not self.user_dir.exists():
            return []
        rows = []
        for path in self.user_dir.glob("*.json"):
            try:
                rows.append(self._load(path).summary())
            except PersistenceError as e:
                logger.warning("Skipping unreadable transcription: %s", e)
        rows.sort(key=lambda row: row.get("created_at") or "", reverse=True)
        return rows

    def get_with_segments(self, transcription_id: str) -> StoredTranscription:
        return self._load(self._path(transcription_id))

    def update_segment(self, transcription_id: str, segment_id: int, text: str) -> TranscriptSegment:
        record = self.get_with_segments(transcription_id)
        segment = record.segments.get(segment_id)
        if segment is None:
            raise PersistenceError(f"Segment {segment_id} not found in {transcription_id}")
        segment.text = text
        self._write(record)
        return segment

    def delete(self, transcription_id: str) -> None:
        path = self._path(transcription_id)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise PersistenceError(f"Transcription not found: {transcription_id}") from e
        logger.info("Deleted transcription %s", transcription_id)
