"""
wavesplit.extract - Streaming multichannel demultiplexer.

Reads the source in fixed-size chunks of whole frames, copies each plan
entry's channels out of the interleaved chunk (one task per entry on a
thread pool, joined before writing) and appends the results to the
entry's output file. Memory use is bounded by the chunk size regardless
of the source length.

Run states: idle → validating → planning → streaming → completed,
cancelled or failed. Cancellation is checked once per chunk, before the
next read; output files written so far are kept.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import nullcontext
from enum import Enum
from pathlib import Path

import numpy as np
from pydantic import BaseModel

from wavesplit.channels import ChannelPlan, build_channel_plan
from wavesplit.config import DEFAULT_CHUNK_FRAMES
from wavesplit.exceptions import ConfigError, ExtractionError, FormatError
from wavesplit.progress import ProgressCallback, ProgressTracker
from wavesplit.sinks import OutputSinks
from wavesplit.wavfile import (
    WAVE_FORMAT_IEEE_FLOAT,
    WAVE_FORMAT_PCM,
    WavFormat,
    WavReader,
)

logger = logging.getLogger(__name__)


class ExtractionStatus(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PLANNING = "planning"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ExtractionResult(BaseModel):
    """Outcome of a completed or cancelled run."""

    status: ExtractionStatus
    plan: ChannelPlan
    output_files: list[Path]
    frames_processed: int
    total_frames: int
    chunks_written: int


def validate_format(fmt: WavFormat) -> None:
    """Check the source is PCM or IEEE float with a consistent block alignment.

    Raises:
        FormatError: If the encoding or frame layout is unsupported
    """
    if fmt.format_tag not in (WAVE_FORMAT_PCM, WAVE_FORMAT_IEEE_FLOAT):
        raise FormatError(
            f"Only PCM or IEEE float formats are supported (got {fmt.encoding})"
        )
    if fmt.bytes_per_sample < 1:
        raise FormatError(f"Unsupported sample size: {fmt.bits_per_sample} bits")
    expected = fmt.bytes_per_sample * fmt.channels
    if fmt.block_align != expected:
        raise FormatError(
            f"Block alignment mismatch: header says {fmt.block_align}, "
            f"{fmt.channels} x {fmt.bytes_per_sample}-byte samples need {expected}"
        )


def demux_chunk(chunk: bytes, indices: Sequence[int], fmt: WavFormat) -> bytes:
    """Copy the given source channels out of an interleaved chunk.

    Samples are moved as raw bytes, so any bit depth and encoding is
    relocated exactly. Selecting two indices yields interleaved stereo.

    Args:
        chunk: Interleaved source frames; a trailing partial frame is ignored
        indices: Source channel indices, in output channel order
        fmt: Source sample format

    Returns:
        Interleaved frames holding only the selected channels
    """
    frames = len(chunk) // fmt.block_align
    view = np.frombuffer(chunk, dtype=np.uint8, count=frames * fmt.block_align)
    view = view.reshape(frames, fmt.channels, fmt.bytes_per_sample)
    return view[:, list(indices), :].tobytes()


class ChannelExtractor:
    """Demultiplexes one source stream into the files of a channel plan."""

    def __init__(
        self,
        labels: Sequence[str],
        chunk_frames: int = DEFAULT_CHUNK_FRAMES,
        max_workers: int | None = None,
    ) -> None:
        if not labels:
            raise ConfigError("Channel label list is empty")
        if chunk_frames <= 0:
            raise ConfigError(f"chunk_frames must be positive, got {chunk_frames}")
        self.labels = list(labels)
        self.chunk_frames = chunk_frames
        self.max_workers = max_workers
        self.status = ExtractionStatus.IDLE
        self.plan: ChannelPlan | None = None

    def _transition(self, status: ExtractionStatus) -> None:
        logger.debug("Extraction %s -> %s", self.status.value, status.value)
        self.status = status

    def _executor(self, entries: int) -> Executor | nullcontext:
        if self.max_workers == 1 or entries < 2:
            return nullcontext()
        return ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="wavesplit",
        )

    def _scatter(
        self,
        pool: Executor | None,
        chunk: bytes,
        fmt: WavFormat,
    ) -> list[bytes]:
        entries = self.plan.entries
        if pool is None:
            return [demux_chunk(chunk, entry.indices, fmt) for entry in entries]
        futures = [pool.submit(demux_chunk, chunk, entry.indices, fmt) for entry in entries]
        return [future.result() for future in futures]

    def run(
        self,
        reader: WavReader,
        output_dir: Path,
        cancel_event: threading.Event | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> ExtractionResult:
        """Stream the reader into one output file per plan entry.

        Returns:
            ExtractionResult with status COMPLETED or CANCELLED

        Raises:
            FormatError: Unsupported source format (no files are created)
            ConfigError: Labels do not fit the source channel count
            ExtractionError: Read or write failure; open files are closed first
        """
        try:
            return self._run(reader, output_dir, cancel_event, progress_callback)
        except Exception as e:
            self._transition(ExtractionStatus.FAILED)
            logger.info("Extraction failed: %s", e)
            raise

    def _run(
        self,
        reader: WavReader,
        output_dir: Path,
        cancel_event: threading.Event | None,
        progress_callback: ProgressCallback | None,
    ) -> ExtractionResult:
        self._transition(ExtractionStatus.VALIDATING)
        fmt = reader.format
        validate_format(fmt)

        self._transition(ExtractionStatus.PLANNING)
        self.plan = build_channel_plan(self.labels, fmt.channels)

        self._transition(ExtractionStatus.STREAMING)
        total_frames = reader.total_frames
        tracker = ProgressTracker(total_frames, progress_callback)
        chunk_bytes = self.chunk_frames * fmt.block_align
        chunks_written = 0
        cancelled = False

        with OutputSinks(self.plan, fmt, output_dir) as sinks:
            with self._executor(len(self.plan.entries)) as pool:
                while True:
                    if cancel_event is not None and cancel_event.is_set():
                        cancelled = True
                        break

                    try:
                        chunk = reader.read(chunk_bytes)
                    except OSError as e:
                        raise ExtractionError(f"Read failed on {reader.path}: {e}") from e
                    if not chunk:
                        break

                    frames = len(chunk) // fmt.block_align
                    if frames == 0:
                        continue

                    buffers = self._scatter(pool, chunk, fmt)
                    for index, buffer in enumerate(buffers):
                        try:
                            sinks.write(index, buffer)
                        except OSError as e:
                            raise ExtractionError(
                                f"Write failed on {sinks.paths[index]}: {e}"
                            ) from e

                    chunks_written += 1
                    tracker.update(frames)

            if not cancelled and tracker.last_percent < 0:
                tracker.update(0)
            output_files = sinks.paths

        status = ExtractionStatus.CANCELLED if cancelled else ExtractionStatus.COMPLETED
        self._transition(status)
        logger.info(
            "Extraction %s: %d/%d frames in %d chunk(s)",
            status.value,
            tracker.frames_processed,
            total_frames,
            chunks_written,
        )
        return ExtractionResult(
            status=status,
            plan=self.plan,
            output_files=output_files,
            frames_processed=tracker.frames_processed,
            total_frames=total_frames,
            chunks_written=chunks_written,
        )


def extract_channels(
    input_path: Path,
    output_dir: Path,
    labels: Sequence[str],
    *,
    chunk_frames: int = DEFAULT_CHUNK_FRAMES,
    max_workers: int | None = None,
    cancel_event: threading.Event | None = None,
    progress_callback: ProgressCallback | None = None,
) -> ExtractionResult:
    """Split a multichannel WAV file into labelled mono and stereo files.

    Args:
        input_path: Source WAV file
        output_dir: Destination directory (created if missing)
        labels: One label per source channel; "(unused)" drops a channel
        chunk_frames: Frames processed per chunk
        max_workers: Copy worker threads per chunk (1 = inline)
        cancel_event: Set from another thread to stop after the current chunk
        progress_callback: Called whenever the integer percent changes

    Returns:
        ExtractionResult with status COMPLETED or CANCELLED

    Raises:
        ConfigError, FormatError, ExtractionError
    """
    extractor = ChannelExtractor(labels, chunk_frames=chunk_frames, max_workers=max_workers)
    try:
        reader = WavReader(input_path)
    except OSError as e:
        raise ExtractionError(f"Cannot open {input_path}: {e}") from e

    with reader:
        return extractor.run(reader, output_dir, cancel_event, progress_callback)
