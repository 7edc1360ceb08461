"""
scribeflow.media.progress - Unified progress reporting.

A run's stages report progress on their own local 0-100 scale. A
ProgressReporter maps that into the slice of the overall budget the stage
owns, clamps it so the caller only ever sees non-decreasing percentages,
and can be detached when a newer run takes over the listener.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from scribeflow.models import ProgressCallback, ProgressEvent

logger = logging.getLogger(__name__)


@dataclass
class _ProgressState:
    callback: ProgressCallback | None
    last: float = 0.0
    detached: bool = False
    last_event: ProgressEvent | None = None


class ProgressReporter:
    """Maps stage-local percentages into a slice of one run's 0-100 budget."""

    def __init__(
        self,
        callback: ProgressCallback | None = None,
        start: float = 0.0,
        end: float = 100.0,
        _state: _ProgressState | None = None,
    ) -> None:
        self._state = _state or _ProgressState(callback)
        self.start = start
        self.end = end

    def __call__(self, percent: float, stage: str) -> None:
        self.report(percent, stage)

    def report(self, percent: float, stage: str) -> None:
        """Report stage-local progress (0-100)."""
        percent = min(max(percent, 0.0), 100.0)
        overall = self.start + (self.end - self.start) * percent / 100.0
        self._emit(overall, stage)

    def span(self, start: float, end: float) -> ProgressReporter:
        """Child reporter owning [start, end] of this reporter's local scale."""
        width = self.end - self.start
        return ProgressReporter(
            start=self.start + width * start / 100.0,
            end=self.start + width * end / 100.0,
            _state=self._state,
        )

    def remaining(self) -> ProgressReporter:
        """Child reporter owning whatever is left between the last event and the end."""
        width = self.end - self.start
        if width <= 0:
            return self.span(100.0, 100.0)
        done = (self._state.last - self.start) / width * 100.0
        return self.span(min(max(done, 0.0), 100.0), 100.0)

    def complete(self, stage: str) -> None:
        """Emit this reporter's final (local 100%) event."""
        self.report(100.0, stage)

    def note(self, stage: str) -> None:
        """Change the stage label without moving the percentage."""
        self._emit(self._state.last, stage)

    def detach(self) -> None:
        """Stop delivering events; the run may keep going unobserved."""
        self._state.detached = True

    @property
    def detached(self) -> bool:
        return self._state.detached

    @property
    def last_percent(self) -> float:
        return self._state.last

    @property
    def last_event(self) -> ProgressEvent | None:
        return self._state.last_event

    def _emit(self, overall: float, stage: str) -> None:
        state = self._state
        overall = max(state.last, min(overall, 100.0))
        state.last = overall
        event = ProgressEvent(percent=round(overall, 2), stage=stage)
        state.last_event = event
        if state.detached or state.callback is None:
            return
        try:
            state.callback(event.percent, event.stage)
        except Exception:
            logger.exception("Progress listener raised; detaching it")
            state.detached = True


def as_reporter(on_progress: ProgressCallback | ProgressReporter | None) -> ProgressReporter:
    if isinstance(on_progress, ProgressReporter):
        return on_progress
    return ProgressReporter(on_progress)


async def estimate_progress(
    reporter: ProgressReporter,
    expected_seconds: float,
    stage: str,
    cap: float = 95.0,
    interval: float = 0.25,
) -> None:
    """Report time-based estimated progress until cancelled.

    Progress climbs linearly towards ``cap`` over ``expected_seconds`` and
    never reaches it; the caller cancels this task when the real result is in.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    expected_seconds = max(expected_seconds, interval)
    while True:
        elapsed = loop.time() - started
        percent = min(cap * elapsed / expected_seconds, cap - 1.0)
        reporter.report(percent, stage)
        await asyncio.sleep(interval)
