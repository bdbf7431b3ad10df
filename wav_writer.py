"""WAV container helpers for raw PCM returned by generative TTS backends."""
from __future__ import annotations

import wave
from dataclasses import dataclass
from pathlib import Path

from logging_utils import get_logger

logger = get_logger(__name__)

_SUPPORTED_BITS = (8, 16, 24, 32)


@dataclass(frozen=True)
class WavInfo:
    channels: int
    sample_rate: int
    bits_per_sample: int
    frame_count: int

    @property
    def duration(self) -> float:
        return self.frame_count / float(self.sample_rate) if self.sample_rate else 0.0

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.channels * self.bits_per_sample // 8

    @property
    def block_align(self) -> int:
        return self.channels * self.bits_per_sample // 8


def silence_bytes(frames: int, channels: int, bits_per_sample: int) -> bytes:
    """PCM silence; 8-bit WAV samples are unsigned so their zero level is 0x80."""
    fill = b"\x80" if bits_per_sample == 8 else b"\x00"
    return fill * (frames * channels * (bits_per_sample // 8))


def write_wav(
    path: Path,
    pcm: bytes,
    *,
    channels: int = 1,
    sample_rate: int = 24000,
    bits_per_sample: int = 16,
    trailing_silence_seconds: float = 0.0,
) -> Path:
    """Write little-endian PCM samples as an uncompressed WAV file.

    ``trailing_silence_seconds`` of silence are appended after the payload.
    A dangling partial frame at the end of ``pcm`` is dropped.
    """
    if channels < 1:
        raise ValueError(f"channels must be >= 1 (got {channels})")
    if sample_rate < 1:
        raise ValueError(f"sample_rate must be >= 1 (got {sample_rate})")
    if bits_per_sample not in _SUPPORTED_BITS:
        raise ValueError(f"Unsupported bits_per_sample={bits_per_sample}")
    if trailing_silence_seconds < 0:
        raise ValueError("trailing_silence_seconds must not be negative")

    block_align = channels * bits_per_sample // 8
    usable = len(pcm) - (len(pcm) % block_align)
    if usable != len(pcm):
        logger.warning("Dropping %d byte(s) of incomplete PCM frame", len(pcm) - usable)

    silence_frames = int(round(sample_rate * trailing_silence_seconds))

    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(bits_per_sample // 8)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm[:usable])
        if silence_frames:
            wav_file.writeframes(silence_bytes(silence_frames, channels, bits_per_sample))

    logger.debug(
        "WAV written: %s frames=%d silence_frames=%d",
        path,
        usable // block_align,
        silence_frames,
    )
    return path


def read_wav_info(path: Path) -> WavInfo:
    with wave.open(str(path), "rb") as wav_file:
        return WavInfo(
            channels=wav_file.getnchannels(),
            sample_rate=wav_file.getframerate(),
            bits_per_sample=wav_file.getsampwidth() * 8,
            frame_count=wav_file.getnframes(),
        )
