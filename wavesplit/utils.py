"""
wavesplit.utils - Shared formatting helpers.

Used by the CLI to render progress, ETA and output file sizes.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path


def format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS or MM:SS.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (HH:MM:SS if >= 1 hour, otherwise MM:SS)
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_eta(remaining: timedelta | None) -> str:
    """Format an optional remaining time, '--:--' when unknown."""
    if remaining is None:
        return "--:--"
    return format_duration(remaining.total_seconds())


def format_bytes(size: float) -> str:
    """Format a byte count in human-readable units."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def format_size(path: Path) -> str:
    """Format file size in human-readable format."""
    if not path.exists():
        return "-"
    return format_bytes(path.stat().st_size)
