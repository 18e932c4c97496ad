"""
wavesplit.sinks - Output file lifecycle for a channel plan.

Opens one WAV writer per plan entry before streaming starts and closes
every one of them exactly once, whatever way the run ends.
"""

from __future__ import annotations

import logging
from pathlib import Path

from wavesplit.channels import ChannelPlan
from wavesplit.exceptions import ExtractionError, SinkCloseError
from wavesplit.wavfile import WavFormat, WavWriter

logger = logging.getLogger(__name__)


class OutputSinks:
    """One open WavWriter per plan entry, addressed by entry position."""

    def __init__(self, plan: ChannelPlan, source_format: WavFormat, output_dir: Path) -> None:
        self.plan = plan
        self.output_dir = output_dir
        self.writers: list[WavWriter] = []
        self.closed = False

        for entry in plan.entries:
            path = output_dir / entry.filename
            try:
                writer = WavWriter(path, source_format.with_channels(entry.channels))
            except (OSError, ValueError) as e:
                logger.error("Could not open %s: %s", path, e)
                self._close_quietly()
                raise ExtractionError(f"Cannot create output file {path}: {e}") from e
            logger.debug("Opened %s (%d ch)", path, entry.channels)
            self.writers.append(writer)

    @property
    def paths(self) -> list[Path]:
        return [writer.path for writer in self.writers]

    def write(self, entry_index: int, data: bytes) -> None:
        self.writers[entry_index].write(data)

    def close(self) -> None:
        """Close every writer, then raise SinkCloseError if any failed."""
        if self.closed:
            return
        self.closed = True
        failures: list[tuple[Path, BaseException]] = []
        for writer in self.writers:
            try:
                writer.close()
                logger.debug("Closed %s (%d data bytes)", writer.path, writer.data_length)
            except OSError as e:
                logger.error("Failed to close %s: %s", writer.path, e)
                failures.append((writer.path, e))
        if failures:
            raise SinkCloseError(failures)

    def _close_quietly(self) -> None:
        try:
            self.close()
        except SinkCloseError:
            pass

    def __enter__(self) -> OutputSinks:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            # Keep the original failure; close errors were already logged.
            self._close_quietly()
