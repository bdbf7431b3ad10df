"""
Narration speech synthesis backends.

- local_client: KokoVox-compatible HTTP service returning finished WAV files
- gemini_client: Gemini TTS with API key rotation returning raw PCM
- factory: construction-time backend selection
"""

from __future__ import annotations

__all__ = [
    "GeminiTTSClient",
    "LocalTTSClient",
    "RetryableTTSError",
    "SpeechBackend",
    "SynthesizedAudio",
    "TTSCancelledError",
    "TTSError",
    "TTSUnavailableError",
    "make_speech_backend",
]

from .base import (
    RetryableTTSError,
    SpeechBackend,
    SynthesizedAudio,
    TTSCancelledError,
    TTSError,
    TTSUnavailableError,
)
from .factory import make_speech_backend
from .gemini_client import GeminiTTSClient
from .local_client import LocalTTSClient
