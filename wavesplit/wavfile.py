"""
wavesplit.wavfile - Minimal RIFF/WAVE reader and writer.

Sample data is handled as raw interleaved bytes: the reader hands out
byte ranges of the ``data`` chunk and the writer appends byte buffers,
so samples are relocated without decoding. Supports PCM, IEEE float and
WAVE_FORMAT_EXTENSIBLE headers; RF64 is not supported.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import BinaryIO

from pydantic import BaseModel, ConfigDict

from wavesplit.exceptions import FormatError

logger = logging.getLogger(__name__)

WAVE_FORMAT_PCM = 0x0001
WAVE_FORMAT_IEEE_FLOAT = 0x0003
WAVE_FORMAT_EXTENSIBLE = 0xFFFE

_FMT = struct.Struct("<HHIIHH")


class WavFormat(BaseModel):
    """Sample format of a WAV stream."""

    model_config = ConfigDict(frozen=True)

    format_tag: int
    channels: int
    sample_rate: int
    bits_per_sample: int
    block_align: int

    @property
    def encoding(self) -> str:
        if self.format_tag == WAVE_FORMAT_PCM:
            return "pcm"
        if self.format_tag == WAVE_FORMAT_IEEE_FLOAT:
            return "float"
        return f"0x{self.format_tag:04x}"

    @property
    def bytes_per_sample(self) -> int:
        """Container width of one sample: 4 or 8 for IEEE float, 1-4 for PCM."""
        return self.bits_per_sample // 8

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.block_align

    def with_channels(self, channels: int) -> WavFormat:
        """Same rate, depth and encoding with a different channel count."""
        return WavFormat(
            format_tag=self.format_tag,
            channels=channels,
            sample_rate=self.sample_rate,
            bits_per_sample=self.bits_per_sample,
            block_align=self.bytes_per_sample * channels,
        )


def _read_chunk_header(f: BinaryIO) -> tuple[bytes, int] | None:
    header = f.read(8)
    if len(header) < 8:
        return None
    chunk_id, size = struct.unpack("<4sI", header)
    return chunk_id, size


def _parse_fmt(body: bytes, path: Path) -> WavFormat:
    if len(body) < _FMT.size:
        raise FormatError(f"{path}: fmt chunk too short ({len(body)} bytes)")
    format_tag, channels, sample_rate, _, block_align, bits = _FMT.unpack_from(body)
    if format_tag == WAVE_FORMAT_EXTENSIBLE:
        if len(body) < 40:
            raise FormatError(f"{path}: truncated WAVE_FORMAT_EXTENSIBLE header")
        # First two bytes of the sub-format GUID carry the actual format tag.
        (format_tag,) = struct.unpack_from("<H", body, 24)
    if channels == 0:
        raise FormatError(f"{path}: header declares zero channels")
    return WavFormat(
        format_tag=format_tag,
        channels=channels,
        sample_rate=sample_rate,
        bits_per_sample=bits,
        block_align=block_align,
    )


class WavReader:
    """Sequential reader over the ``data`` chunk of a WAV file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._file: BinaryIO = open(self.path, "rb")
        try:
            self.format, self._data_offset, self.data_length = self._parse_header()
        except Exception:
            self._file.close()
            raise
        self._file.seek(self._data_offset)
        self._remaining = self.data_length

    def _parse_header(self) -> tuple[WavFormat, int, int]:
        f = self._file
        riff = f.read(12)
        if len(riff) < 12 or riff[:4] != b"RIFF" or riff[8:12] != b"WAVE":
            raise FormatError(f"{self.path}: not a RIFF/WAVE file")

        file_size = self.path.stat().st_size
        fmt: WavFormat | None = None
        data: tuple[int, int] | None = None

        while fmt is None or data is None:
            chunk = _read_chunk_header(f)
            if chunk is None:
                break
            chunk_id, size = chunk
            start = f.tell()
            if chunk_id == b"fmt ":
                fmt = _parse_fmt(f.read(size), self.path)
            elif chunk_id == b"data":
                # Streaming writers may leave the size unset; trust the file length.
                size = min(size, file_size - start)
                data = (start, size)
            f.seek(start + size + (size & 1))

        if fmt is None:
            raise FormatError(f"{self.path}: missing fmt chunk")
        if data is None:
            raise FormatError(f"{self.path}: missing data chunk")
        logger.debug(
            "%s: %s, %d ch, %d Hz, %d bit, %d data bytes",
            self.path.name,
            fmt.encoding,
            fmt.channels,
            fmt.sample_rate,
            fmt.bits_per_sample,
            data[1],
        )
        return fmt, data[0], data[1]

    @property
    def total_frames(self) -> int:
        if self.format.block_align <= 0:
            return 0
        return self.data_length // self.format.block_align

    def read(self, nbytes: int) -> bytes:
        """Read up to nbytes of sample data; b"" at end of data."""
        if self._remaining <= 0:
            return b""
        data = self._file.read(min(nbytes, self._remaining))
        if not data:
            self._remaining = 0
            return b""
        self._remaining -= len(data)
        return data

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> WavReader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class WavWriter:
    """Append-only WAV writer; sizes are patched into the header on close."""

    def __init__(self, path: Path, fmt: WavFormat) -> None:
        self.path = Path(path)
        self.format = fmt
        self.data_length = 0
        self.closed = False
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file: BinaryIO = open(self.path, "wb")
        try:
            self._file.write(self._header())
        except Exception:
            self._file.close()
            raise

    def _header(self) -> bytes:
        fmt = self.format
        pad = self.data_length & 1
        return b"".join(
            [
                struct.pack("<4sI4s", b"RIFF", 36 + self.data_length + pad, b"WAVE"),
                struct.pack("<4sI", b"fmt ", _FMT.size),
                _FMT.pack(
                    fmt.format_tag,
                    fmt.channels,
                    fmt.sample_rate,
                    fmt.byte_rate,
                    fmt.block_align,
                    fmt.bits_per_sample,
                ),
                struct.pack("<4sI", b"data", self.data_length),
            ]
        )

    def write(self, data: bytes) -> None:
        if self.closed:
            raise ValueError(f"write to closed WavWriter: {self.path}")
        self._file.write(data)
        self.data_length += len(data)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            if self.data_length & 1:
                self._file.write(b"\x00")
            self._file.seek(0)
            self._file.write(self._header())
        finally:
            self._file.close()

    def __enter__(self) -> WavWriter:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
