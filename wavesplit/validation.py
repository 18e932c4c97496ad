"""
wavesplit.validation - Pre-flight checks for input files and destinations.

Validates the source WAV and the output location before any file is
written.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any

from wavesplit.channels import ChannelPlan
from wavesplit.exceptions import FormatError, ValidationError
from wavesplit.wavfile import WavReader

HEADER_BYTES = 44


def validate_input_file(path: Path) -> dict[str, Any]:
    """Validate the input path points at an existing .wav file.

    Args:
        path: Path to the source WAV file

    Returns:
        Dict with 'exists' and 'size_mb'

    Raises:
        ValidationError: If the file is missing, a directory or not .wav
    """
    if not path.exists():
        raise ValidationError(f"File does not exist: {path}")
    if not path.is_file():
        raise ValidationError(f"Not a file: {path}")
    if path.suffix.lower() != ".wav":
        raise ValidationError(f"Input file must be a .wav file: {path.name}")

    size_mb = path.stat().st_size // (1024 * 1024)
    return {"exists": True, "size_mb": size_mb}


def probe_wav(path: Path, min_channels: int = 2) -> dict[str, Any]:
    """Read the WAV header and check it is a multichannel source.

    Returns:
        Dict with 'channels', 'sample_rate', 'bits_per_sample', 'encoding',
        'total_frames', 'duration_seconds' and 'data_bytes'

    Raises:
        ValidationError: If the header cannot be read or has too few channels
    """
    try:
        with WavReader(path) as reader:
            fmt = reader.format
            total_frames = reader.total_frames
            data_bytes = reader.data_length
    except (OSError, FormatError) as e:
        raise ValidationError(f"Error reading WAV file: {e}") from e

    if fmt.channels < min_channels:
        raise ValidationError(
            f"Input WAV file must have multiple channels (found {fmt.channels})"
        )

    return {
        "channels": fmt.channels,
        "sample_rate": fmt.sample_rate,
        "bits_per_sample": fmt.bits_per_sample,
        "bytes_per_sample": fmt.bytes_per_sample,
        "encoding": fmt.encoding,
        "total_frames": total_frames,
        "duration_seconds": total_frames / fmt.sample_rate if fmt.sample_rate else 0.0,
        "data_bytes": data_bytes,
    }


def estimate_output_bytes(plan: ChannelPlan, bytes_per_sample: int, total_frames: int) -> int:
    """Estimate the bytes the plan will write across all output files."""
    samples = sum(entry.channels for entry in plan.entries) * total_frames
    return samples * bytes_per_sample + HEADER_BYTES * len(plan.entries)


def check_disk_space(path: Path, required_mb: int) -> dict[str, Any]:
    """Check if there's enough disk space at the given path.

    Args:
        path: Path to check (nearest existing parent is used)
        required_mb: Required space in megabytes

    Returns:
        Dict with 'available_mb', 'required_mb', 'sufficient'

    Raises:
        ValidationError: If no existing parent can be checked
    """
    check_path = path
    while not check_path.exists() and check_path != check_path.parent:
        check_path = check_path.parent

    try:
        stat = shutil.disk_usage(check_path)
        available_mb = stat.free // (1024 * 1024)

        return {
            "available_mb": available_mb,
            "required_mb": required_mb,
            "sufficient": available_mb >= required_mb,
        }
    except OSError as e:
        raise ValidationError(f"Cannot check disk space: {e}") from e
