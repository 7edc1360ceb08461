"""
scribeflow.persistence - Saved transcriptions.

Local JSON storage by default, Supabase when the ``supabase`` extra is
installed and configured.
"""

from __future__ import annotations
