"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Callable
from pathlib import Path

import pytest


def sample_bytes(channel: int, frame: int, width: int) -> bytes:
    """Deterministic sample content identifying its channel and frame."""
    value = (channel * 1000 + frame) & ((1 << (8 * width)) - 1)
    return value.to_bytes(width, "little")


def build_frames(channels: int, frames: int, width: int) -> bytes:
    return b"".join(
        sample_bytes(ch, frame, width) for frame in range(frames) for ch in range(channels)
    )


def channel_bytes(indices: list[int], frames: int, width: int) -> bytes:
    """Expected interleaved bytes for the given source channels."""
    return b"".join(
        sample_bytes(ch, frame, width) for frame in range(frames) for ch in indices
    )


def wav_bytes(
    data: bytes,
    channels: int,
    bits: int = 16,
    sample_rate: int = 48000,
    format_tag: int = 1,
    block_align: int | None = None,
    extra_chunks: bytes = b"",
) -> bytes:
    """Build a canonical WAV file image around raw sample data."""
    if block_align is None:
        block_align = channels * bits // 8
    fmt = struct.pack(
        "<HHIIHH",
        format_tag,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        bits,
    )
    body = b"WAVE" + struct.pack("<4sI", b"fmt ", len(fmt)) + fmt + extra_chunks
    body += struct.pack("<4sI", b"data", len(data)) + data
    if len(data) & 1:
        body += b"\x00"
    return b"RIFF" + struct.pack("<I", len(body)) + body


@pytest.fixture
def make_wav(tmp_path: Path) -> Callable[..., Path]:
    """Write a multichannel WAV file whose samples encode (channel, frame)."""

    def _make(
        channels: int,
        frames: int,
        bits: int = 16,
        name: str = "input.wav",
        **kwargs,
    ) -> Path:
        width = bits // 8
        data = build_frames(channels, frames, width)
        path = tmp_path / name
        path.write_bytes(wav_bytes(data, channels, bits, **kwargs))
        return path

    return _make


@pytest.fixture
def label_file(tmp_path: Path) -> Callable[[list[str]], Path]:
    def _write(labels: list[str], name: str = "channel-config.txt") -> Path:
        path = tmp_path / name
        path.write_text("\n".join(labels) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handlers and levels installed by configure_logging."""
    package_logger = logging.getLogger("wavesplit")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)
