"""
wavesplit.progress - Percent-complete and ETA reporting.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field


class ExtractionProgress(BaseModel):
    """Snapshot of a running extraction."""

    model_config = ConfigDict(frozen=True)

    percent: int = Field(ge=0, le=100)
    frames_processed: int = Field(ge=0)
    total_frames: int = Field(ge=0)
    elapsed: timedelta
    estimated_remaining: timedelta | None = None


ProgressCallback = Callable[[ExtractionProgress], None]


def compute_progress(
    frames_processed: int,
    total_frames: int,
    elapsed: float,
) -> ExtractionProgress:
    """Derive percent complete and ETA from frame counters.

    An empty source (total_frames == 0) reports 100% with no ETA.

    Args:
        frames_processed: Frames written so far
        total_frames: Frames in the whole source
        elapsed: Wall-clock seconds since streaming started

    Returns:
        ExtractionProgress snapshot
    """
    if total_frames <= 0:
        percent = 100
    else:
        percent = min(100, frames_processed * 100 // total_frames)

    remaining = None
    if frames_processed > 0:
        left = max(0, total_frames - frames_processed)
        remaining = timedelta(seconds=elapsed / frames_processed * left)

    return ExtractionProgress(
        percent=percent,
        frames_processed=frames_processed,
        total_frames=max(0, total_frames),
        elapsed=timedelta(seconds=elapsed),
        estimated_remaining=remaining,
    )


class ProgressTracker:
    """Accumulates frame counts and forwards progress on percent changes only."""

    def __init__(
        self,
        total_frames: int,
        callback: ProgressCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total_frames = total_frames
        self.callback = callback
        self.clock = clock
        self.frames_processed = 0
        self.last_percent = -1
        self.started = clock()

    def update(self, frames: int) -> ExtractionProgress | None:
        """Add processed frames; return the emitted snapshot, if any."""
        self.frames_processed += frames
        progress = compute_progress(
            self.frames_processed,
            self.total_frames,
            self.clock() - self.started,
        )
        if progress.percent <= self.last_percent:
            return None
        self.last_percent = progress.percent
        if self.callback:
            self.callback(progress)
        return progress
