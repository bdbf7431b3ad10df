"""Backend interface and shared types for narration synthesis."""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from wav_writer import write_wav


class TTSError(RuntimeError):
    """Base error for speech synthesis failures."""

    def __init__(self, message: str, *, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend


class TTSUnavailableError(TTSError):
    """The backend cannot serve any request (health probe or credentials)."""


class RetryableTTSError(TTSError):
    """A transient failure; another key or a later attempt may succeed."""


class TTSCancelledError(TTSError):
    """The caller's cancellation event was set before a network call."""


@dataclass(frozen=True)
class SynthesizedAudio:
    """Audio returned by a backend.

    ``is_container`` audio is a complete WAV file written byte-for-byte;
    otherwise ``data`` is raw little-endian PCM in the described shape.
    """

    data: bytes
    is_container: bool
    channels: int = 1
    sample_rate: int = 24000
    bits_per_sample: int = 16
    trailing_silence: float = 0.0

    def save(self, path: Path) -> Path:
        if self.is_container:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(self.data)
            return path
        return write_wav(
            path,
            self.data,
            channels=self.channels,
            sample_rate=self.sample_rate,
            bits_per_sample=self.bits_per_sample,
            trailing_silence_seconds=self.trailing_silence,
        )


def raise_if_cancelled(cancel_event: Optional[threading.Event], backend: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise TTSCancelledError("synthesis cancelled", backend=backend)


class SpeechBackend(ABC):
    """Interface shared by the local service and the Gemini client."""

    name: str = ""

    @abstractmethod
    def ensure_ready(self, cancel_event: Optional[threading.Event] = None) -> None:
        """Raise ``TTSUnavailableError`` unless the backend can serve requests."""

    @abstractmethod
    def synthesize(
        self,
        text: str,
        language: str,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> SynthesizedAudio:
        """Turn one narration string into audio."""

    def synthesize_to_file(
        self,
        text: str,
        language: str,
        output_path: Path,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        audio = self.synthesize(text, language, cancel_event=cancel_event)
        try:
            return audio.save(output_path)
        except OSError as exc:
            raise TTSError(f"failed to save audio to {output_path}: {exc}", backend=self.name) from exc
