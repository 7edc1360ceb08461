"""
scribeflow.persistence.factory - Repository selection from settings.
"""

from __future__ import annotations

from scribeflow.config import Settings
from scribeflow.persistence.repository import JsonRepository, TranscriptionRepository


def open_repository(settings: Settings) -> TranscriptionRepository:
    """The repository named by ``settings.storage``, scoped to ``settings.user_id``."""
    if settings.storage == "supabase":
        from scribeflow.persistence.supabase import SupabaseRepository, get_supabase_client

        return SupabaseRepository(get_supabase_client(), settings.user_id)
    return JsonRepository(user_id=settings.user_id)
