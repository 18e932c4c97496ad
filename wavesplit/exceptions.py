"""
wavesplit.exceptions - Custom exception classes.

All Wavesplit-specific exceptions inherit from WavesplitError.
"""

from __future__ import annotations

from pathlib import Path


class WavesplitError(Exception):
    """Base exception for all Wavesplit errors."""

    pass


class ConfigError(WavesplitError):
    """Channel label list or configuration is empty, invalid or conflicting."""

    pass


class FormatError(WavesplitError):
    """Source audio container or sample encoding is unsupported."""

    pass


class ExtractionError(WavesplitError):
    """Read or write failure while demultiplexing."""

    pass


class SinkCloseError(ExtractionError):
    """One or more output files could not be finalized."""

    def __init__(self, failures: list[tuple[Path, BaseException]]):
        self.failures = failures
        names = ", ".join(str(path) for path, _ in failures)
        super().__init__(f"Failed to close {len(failures)} output file(s): {names}")


class ValidationError(WavesplitError):
    """Input file or destination failed a pre-flight check."""

    pass
