"""Tests for wavesplit.extract module."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from conftest import build_frames, channel_bytes

from wavesplit.exceptions import ConfigError, ExtractionError, FormatError
from wavesplit.extract import (
    ChannelExtractor,
    ExtractionStatus,
    demux_chunk,
    extract_channels,
    validate_format,
)
from wavesplit.progress import ExtractionProgress
from wavesplit.wavfile import WAVE_FORMAT_PCM, WavFormat, WavReader


def read_samples(path: Path) -> bytes:
    with WavReader(path) as reader:
        return reader.read(reader.data_length)


def pcm_format(channels: int, bits: int = 16) -> WavFormat:
    width = bits // 8
    return WavFormat(
        format_tag=WAVE_FORMAT_PCM,
        channels=channels,
        sample_rate=48000,
        bits_per_sample=bits,
        block_align=channels * width,
    )


class TestValidateFormat:
    def test_pcm_ok(self) -> None:
        validate_format(pcm_format(4, 24))

    def test_float_ok(self) -> None:
        validate_format(
            WavFormat(
                format_tag=3, channels=2, sample_rate=48000, bits_per_sample=32, block_align=8
            )
        )

    def test_double_float_ok(self) -> None:
        validate_format(
            WavFormat(
                format_tag=3, channels=2, sample_rate=48000, bits_per_sample=64, block_align=16
            )
        )

    def test_compressed_rejected(self) -> None:
        fmt = WavFormat(
            format_tag=0x0055, channels=2, sample_rate=44100, bits_per_sample=0, block_align=1
        )
        with pytest.raises(FormatError, match="PCM or IEEE float"):
            validate_format(fmt)

    def test_block_align_mismatch(self) -> None:
        fmt = WavFormat(
            format_tag=1, channels=4, sample_rate=48000, bits_per_sample=16, block_align=6
        )
        with pytest.raises(FormatError, match="Block alignment"):
            validate_format(fmt)


class TestDemuxChunk:
    def test_mono_selection(self) -> None:
        fmt = pcm_format(3, 24)
        chunk = build_frames(3, 5, 3)
        assert demux_chunk(chunk, (1,), fmt) == channel_bytes([1], 5, 3)

    def test_stereo_interleaves_left_then_right(self) -> None:
        fmt = pcm_format(4)
        chunk = build_frames(4, 6, 2)
        assert demux_chunk(chunk, (3, 0), fmt) == channel_bytes([3, 0], 6, 2)

    def test_trailing_partial_frame_ignored(self) -> None:
        fmt = pcm_format(2)
        chunk = build_frames(2, 3, 2) + b"\x01\x02"
        assert demux_chunk(chunk, (0,), fmt) == channel_bytes([0], 3, 2)

    def test_empty_chunk(self) -> None:
        assert demux_chunk(b"", (0, 1), pcm_format(2)) == b""


class TestExtractChannels:
    def test_drum_example(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=5, frames=200)
        out = tmp_path / "out"

        result = extract_channels(
            source,
            out,
            ["Kick", "Snare", "OH (L)", "OH (R)", "(unused)"],
            chunk_frames=100,
        )

        assert result.status == ExtractionStatus.COMPLETED
        assert result.chunks_written == 2
        assert sorted(p.name for p in out.iterdir()) == [
            "kick.wav",
            "oh-stereo.wav",
            "snare.wav",
        ]
        assert read_samples(out / "kick.wav") == channel_bytes([0], 200, 2)
        assert read_samples(out / "snare.wav") == channel_bytes([1], 200, 2)
        assert read_samples(out / "oh-stereo.wav") == channel_bytes([2, 3], 200, 2)

    def test_orphan_example(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=3, frames=50, bits=24)
        out = tmp_path / "out"

        extract_channels(source, out, ["Amb L", "Amb R", "Tom L"])

        assert read_samples(out / "amb-stereo.wav") == channel_bytes([0, 1], 50, 3)
        assert read_samples(out / "tom-l.wav") == channel_bytes([2], 50, 3)
        with WavReader(out / "amb-stereo.wav") as reader:
            assert reader.format.channels == 2
            assert reader.format.bits_per_sample == 24

    def test_float_source(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=2, frames=20, bits=32, format_tag=3)
        out = tmp_path / "out"

        extract_channels(source, out, ["Left Mic", "Vox"])

        with WavReader(out / "vox.wav") as reader:
            assert reader.format.encoding == "float"
            assert reader.read(1000) == channel_bytes([1], 20, 4)

    def test_double_float_source(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=3, frames=25, bits=64, format_tag=3)
        out = tmp_path / "out"

        result = extract_channels(source, out, ["Amb L", "Amb R", "Vox"], chunk_frames=8)

        assert result.status == ExtractionStatus.COMPLETED
        with WavReader(out / "amb-stereo.wav") as reader:
            assert reader.format.bits_per_sample == 64
            assert reader.format.block_align == 16
            assert reader.read(10000) == channel_bytes([0, 1], 25, 8)
        assert read_samples(out / "vox.wav") == channel_bytes([2], 25, 8)

    @pytest.mark.parametrize("chunk_frames", [1, 7, 64, 1000])
    def test_chunk_size_invariant(self, make_wav, tmp_path: Path, chunk_frames: int) -> None:
        source = make_wav(channels=6, frames=333)
        labels = ["A L", "A R", "B", "(unused)", "C R", "D"]

        whole = extract_channels(source, tmp_path / "whole", labels, chunk_frames=333)
        chunked = extract_channels(
            source, tmp_path / "chunked", labels, chunk_frames=chunk_frames
        )

        for a, b in zip(whole.output_files, chunked.output_files):
            assert read_samples(a) == read_samples(b)

    def test_inline_and_pooled_agree(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=8, frames=500)
        labels = ["K", "S", "OH L", "OH R", "T1", "T2", "Rm L", "Rm R"]

        inline = extract_channels(source, tmp_path / "a", labels, chunk_frames=64, max_workers=1)
        pooled = extract_channels(source, tmp_path / "b", labels, chunk_frames=64, max_workers=4)

        for a, b in zip(inline.output_files, pooled.output_files):
            assert read_samples(a) == read_samples(b)

    def test_progress_reaches_100(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=2, frames=1000)
        seen: list[ExtractionProgress] = []

        extract_channels(
            source, tmp_path / "out", ["Kick", "Snare"], chunk_frames=64,
            progress_callback=seen.append,
        )

        percents = [p.percent for p in seen]
        assert percents == sorted(percents)
        assert percents[-1] == 100
        assert seen[-1].frames_processed == 1000

    def test_zero_frames(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=2, frames=0)
        seen: list[ExtractionProgress] = []

        result = extract_channels(
            source, tmp_path / "out", ["Kick", "Snare"], progress_callback=seen.append
        )

        assert result.status == ExtractionStatus.COMPLETED
        assert result.frames_processed == 0
        assert [p.percent for p in seen] == [100]
        for path in result.output_files:
            assert read_samples(path) == b""

    def test_cancel_after_n_chunks(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=3, frames=100)
        cancel = threading.Event()

        def on_progress(progress: ExtractionProgress) -> None:
            if progress.frames_processed >= 30:
                cancel.set()

        result = extract_channels(
            source,
            tmp_path / "out",
            ["Amb L", "Amb R", "Kick"],
            chunk_frames=10,
            cancel_event=cancel,
            progress_callback=on_progress,
        )

        assert result.status == ExtractionStatus.CANCELLED
        assert result.chunks_written == 3
        assert result.frames_processed == 30
        assert read_samples(tmp_path / "out" / "kick.wav") == channel_bytes([2], 30, 2)
        assert read_samples(tmp_path / "out" / "amb-stereo.wav") == channel_bytes([0, 1], 30, 2)
        for path in result.output_files:
            with open(path, "rb") as f:
                assert f.read(4) == b"RIFF"

    def test_cancel_before_start(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=2, frames=10)
        cancel = threading.Event()
        cancel.set()

        result = extract_channels(source, tmp_path / "out", ["A", "B"], cancel_event=cancel)

        assert result.status == ExtractionStatus.CANCELLED
        assert result.chunks_written == 0
        assert (tmp_path / "out" / "a.wav").exists()

    def test_format_error_opens_no_sinks(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=2, frames=10, block_align=6)
        out = tmp_path / "out"

        with pytest.raises(FormatError):
            extract_channels(source, out, ["A", "B"])

        assert not out.exists()

    def test_too_many_labels(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=2, frames=10)
        with pytest.raises(ConfigError):
            extract_channels(source, tmp_path / "out", ["A", "B", "C"])

    def test_extra_source_channels_ignored(self, make_wav, tmp_path: Path) -> None:
        source = make_wav(channels=4, frames=10)
        result = extract_channels(source, tmp_path / "out", ["A", "B"])
        assert [p.name for p in result.output_files] == ["a.wav", "b.wav"]

    def test_missing_input(self, tmp_path: Path) -> None:
        with pytest.raises(ExtractionError) as exc_info:
            extract_channels(tmp_path / "missing.wav", tmp_path / "out", ["A"])
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)


class TestChannelExtractor:
    def test_empty_labels(self) -> None:
        with pytest.raises(ConfigError):
            ChannelExtractor([])

    def test_invalid_chunk_size(self) -> None:
        with pytest.raises(ConfigError):
            ChannelExtractor(["A"], chunk_frames=0)

    def test_status_transitions(self, make_wav, tmp_path: Path) -> None:
        extractor = ChannelExtractor(["A", "B"])
        assert extractor.status == ExtractionStatus.IDLE

        with WavReader(make_wav(channels=2, frames=5)) as reader:
            extractor.run(reader, tmp_path / "out")

        assert extractor.status == ExtractionStatus.COMPLETED
        assert extractor.plan is not None

    def test_write_failure_marks_failed(self, make_wav, tmp_path: Path, monkeypatch) -> None:
        from wavesplit.sinks import OutputSinks

        def broken_write(self, entry_index: int, data: bytes) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(OutputSinks, "write", broken_write)
        extractor = ChannelExtractor(["A", "B"])

        with WavReader(make_wav(channels=2, frames=5)) as reader:
            with pytest.raises(ExtractionError) as exc_info:
                extractor.run(reader, tmp_path / "out")

        assert extractor.status == ExtractionStatus.FAILED
        assert isinstance(exc_info.value.__cause__, OSError)
        assert (tmp_path / "out" / "a.wav").exists()
