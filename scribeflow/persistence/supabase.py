"""
scribeflow.persistence.supabase - Supabase-backed transcription repository.

Transcriptions and their segments live in two tables; segments are removed
with their parent through an ON DELETE CASCADE foreign key.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Iterable

from scribeflow.exceptions import DependencyError, PersistenceError, ValidationError
from scribeflow.models import TranscriptionMetadata, TranscriptSegment
from scribeflow.persistence.repository import StoredTranscription, TranscriptionRepository
from scribeflow.transcript.store import TranscriptSet

logger = logging.getLogger(__name__)

TRANSCRIPTIONS_TABLE = "transcriptions"
SEGMENTS_TABLE = "transcription_segments"

_METADATA_FIELDS = (
    "file_name",
    "title",
    "duration",
    "language",
    "file_size",
    "file_type",
    "large_file",
    "compressed",
    "created_at",
)


def get_supabase_client() -> Any:
    """Create a Supabase client from SUPABASE_URL and SUPABASE_KEY."""
    try:
        from supabase import create_client
    except ImportError as e:
        raise DependencyError(
            "supabase",
            "supabase not installed",
            "Install with: pip install 'scribeflow[supabase]'",
        ) from e

    url = os.getenv("SUPABASE_URL", "")
    key = os.getenv("SUPABASE_KEY", "")
    if not url or not key:
        raise PersistenceError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


class SupabaseRepository(TranscriptionRepository):
    """Transcriptions stored in Supabase tables, scoped by user id."""

    def __init__(self, client: Any, user_id: str) -> None:
        super().__init__(user_id)
        self.client = client

    def save_transcription(
        self, metadata: TranscriptionMetadata, segments: Iterable[TranscriptSegment]
    ) -> str:
        segments = list(segments)
        try:
            result = (
                self.client.table(TRANSCRIPTIONS_TABLE)
                .insert(
                    {
                        "user_id": self.user_id,
                        "title": metadata.title or metadata.file_name,
                        "file_name": metadata.file_name,
                        "duration": metadata.duration,
                        "language": metadata.language or "en-US",
                        "status": "completed",
                        "file_size": metadata.file_size,
                        "file_type": metadata.file_type,
                        "large_file": metadata.large_file,
                        "compressed": metadata.compressed,
                    }
                )
                .execute()
            )
            transcription_id = str(result.data[0]["id"])

            rows = [
                {
                    "transcription_id": transcription_id,
                    "start_time": segment.start_time,
                    "end_time": segment.end_time,
                    "text": segment.text,
                    "confidence": segment.confidence,
                }
                for segment in segments
            ]
            if rows:
                self.client.table(SEGMENTS_TABLE).insert(rows).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to save transcription: {e}") from e

        logger.info("Saved transcription %s (%d segments)", transcription_id, len(segments))
        return transcription_id

    def list_for_user(self) -> list[dict[str, Any]]:
        try:
            result = (
                self.client.table(TRANSCRIPTIONS_TABLE)
                .select("*")
                .eq("user_id", self.user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to fetch transcriptions: {e}") from e
        return list(result.data or [])

    def get_with_segments(self, transcription_id: str) -> StoredTranscription:
        try:
            head = (
                self.client.table(TRANSCRIPTIONS_TABLE)
                .select("*")
                .eq("id", transcription_id)
                .eq("user_id", self.user_id)
                .execute()
            )
            rows = (
                self.client.table(SEGMENTS_TABLE)
                .select("*")
                .eq("transcription_id", transcription_id)
                .order("start_time")
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to fetch transcription {transcription_id}: {e}") from e

        if not head.data:
            raise PersistenceError(f"Transcription not found: {transcription_id}")
        row = head.data[0]
        metadata = TranscriptionMetadata(**{k: row.get(k) for k in _METADATA_FIELDS if k in row})
        try:
            # Remote segment ids are table-wide; renumber for the session
            segments = TranscriptSet(
                TranscriptSegment(
                    id=i,
                    start_time=float(seg["start_time"]),
                    end_time=float(seg["end_time"]),
                    text=seg.get("text", ""),
                    confidence=seg.get("confidence"),
                )
                for i, seg in enumerate(rows.data or [], start=1)
            )
        except ValidationError as e:
            raise PersistenceError(f"Stored segments are invalid: {e}") from e
        return StoredTranscription(
            id=str(row["id"]),
            user_id=self.user_id,
            status=row.get("status", "completed"),
            metadata=metadata,
            segments=segments,
        )

    def update_segment(self, transcription_id: str, segment_id: int, text: str) -> TranscriptSegment:
        record = self.get_with_segments(transcription_id)
        segment = record.segments.get(segment_id)
        if segment is None:
            raise PersistenceError(f"Segment {segment_id} not found in {transcription_id}")
        try:
            (
                self.client.table(SEGMENTS_TABLE)
                .update({"text": text})
                .eq("transcription_id", transcription_id)
                .eq("start_time", segment.start_time)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to update segment {segment_id}: {e}") from e
        segment.text = text
        return segment

    def delete(self, transcription_id: str) -> None:
        try:
            (
                self.client.table(TRANSCRIPTIONS_TABLE)
                .delete()
                .eq("id", transcription_id)
                .eq("user_id", self.user_id)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to delete transcription {transcription_id}: {e}") from e
        logger.info("Deleted transcription %s", transcription_id)
