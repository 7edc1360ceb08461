"""
scribeflow.media.base - Extraction strategy interface.

Native and engine backends both implement ``extract(asset, reporter)``.
The orchestrator only knows this contract and its own fallback policy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from scribeflow.media.progress import ProgressReporter
from scribeflow.models import ExtractionResult, MediaAsset


class ExtractionStrategy(ABC):
    """One interchangeable audio extraction backend."""

    name: str = "strategy"

    @abstractmethod
    async def extract(self, asset: MediaAsset, reporter: ProgressReporter) -> ExtractionResult:
        """Produce a speech-optimized audio payload from ``asset``.

        Progress is reported on the reporter's local 0-100 scale.

        Raises:
            ExtractionError: The strategy could not produce audio
        """
