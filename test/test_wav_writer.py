from __future__ import annotations

import struct
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from wav_writer import read_wav_info, silence_bytes, write_wav  # noqa: E402


def test_header_fields_and_trailing_silence(tmp_path: Path) -> None:
    pcm = struct.pack("<6h", 0, 1000, -1000, 32767, -32768, 5)
    path = write_wav(
        tmp_path / "out.wav",
        pcm,
        channels=1,
        sample_rate=24000,
        bits_per_sample=16,
        trailing_silence_seconds=1.0,
    )

    info = read_wav_info(path)
    assert info.channels == 1
    assert info.sample_rate == 24000
    assert info.bits_per_sample == 16
    assert info.frame_count == 6 + 24000
    assert info.byte_rate == 48000
    assert info.block_align == 2

    raw = path.read_bytes()
    assert raw[:4] == b"RIFF" and raw[8:12] == b"WAVE"
    fmt_tag, channels, rate, byte_rate, align, bits = struct.unpack("<HHIIHH", raw[20:36])
    assert (fmt_tag, channels, rate, byte_rate, align, bits) == (1, 1, 24000, 48000, 2, 16)
    # payload first, zero samples after it
    assert raw[44 : 44 + len(pcm)] == pcm
    assert set(raw[44 + len(pcm) :]) == {0}


def test_stereo_silence_counts_frames_not_samples(tmp_path: Path) -> None:
    pcm = b"\x01\x00\x02\x00" * 10
    path = write_wav(tmp_path / "s.wav", pcm, channels=2, sample_rate=8000, trailing_silence_seconds=0.5)

    info = read_wav_info(path)
    assert info.channels == 2
    assert info.frame_count == 10 + 4000
    assert info.duration == pytest.approx(4010 / 8000)


def test_no_silence_by_default(tmp_path: Path) -> None:
    path = write_wav(tmp_path / "n.wav", b"\x00\x01" * 4)
    assert read_wav_info(path).frame_count == 4


def test_incomplete_trailing_frame_is_dropped(tmp_path: Path) -> None:
    path = write_wav(tmp_path / "odd.wav", b"\x00\x01\x02")
    assert read_wav_info(path).frame_count == 1


def test_eight_bit_silence_uses_midpoint() -> None:
    assert silence_bytes(3, 1, 8) == b"\x80\x80\x80"
    assert silence_bytes(2, 2, 16) == b"\x00" * 8


@pytest.mark.parametrize(
    "kwargs",
    [
        {"channels": 0},
        {"sample_rate": 0},
        {"bits_per_sample": 12},
        {"trailing_silence_seconds": -1.0},
    ],
)
def test_invalid_parameters_are_rejected(tmp_path: Path, kwargs: dict) -> None:
    with pytest.raises(ValueError):
        write_wav(tmp_path / "bad.wav", b"\x00\x00", **kwargs)
