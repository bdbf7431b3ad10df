"""Gemini speech generation with round-robin API key failover."""
from __future__ import annotations

import base64
import re
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar

from google import genai
from google.genai import types

from api_keys import APIKeyPool
from logging_utils import get_logger

from .base import (
    RetryableTTSError,
    SpeechBackend,
    SynthesizedAudio,
    TTSError,
    raise_if_cancelled,
)

logger = get_logger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-preview-tts"
DEFAULT_VOICE = "Iapetus"

# Gemini TTS returns bare PCM in this shape
PCM_CHANNELS = 1
PCM_SAMPLE_RATE = 24000
PCM_BITS = 16

RETRYABLE_STATUS = (429, 500, 503)
_RETRYABLE_TEXT_RE = re.compile(
    r"\b(?:429|500|503)\b|quota|\brate\b|rate[ _-]?limit|resource_exhausted|unavailable",
    re.IGNORECASE,
)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Rate limit, quota and server-side errors are worth retrying on the next key."""
    if isinstance(exc, RetryableTTSError):
        return True
    code = getattr(exc, "code", None)
    if isinstance(code, int) and code in RETRYABLE_STATUS:
        return True
    return bool(_RETRYABLE_TEXT_RE.search(str(exc)))


def extract_pcm(response: Any) -> Optional[bytes]:
    """Pull inline audio bytes out of a ``generate_content`` response."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    if not parts:
        return None
    inline = getattr(parts[0], "inline_data", None)
    data = getattr(inline, "data", None) if inline is not None else None
    if not data:
        return None
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data)


def _default_client_factory(api_key: str) -> Any:
    return genai.Client(api_key=api_key)


class GeminiTTSClient(SpeechBackend):
    """Remote generative TTS.

    Each request starts at the pool's current cursor and moves to the next key
    on every attempt, so ``len(pool)`` bounds the attempts per request.
    """

    name = "gemini"

    def __init__(
        self,
        key_pool: APIKeyPool,
        config: Optional[Dict[str, Any]] = None,
        *,
        client_factory: Callable[[str], Any] = _default_client_factory,
    ) -> None:
        cfg = config or {}
        self.key_pool = key_pool
        self.model = str(cfg.get("model") or DEFAULT_MODEL)
        self.voice = str(cfg.get("voice") or DEFAULT_VOICE)
        self.trailing_silence = float(cfg.get("trailing_silence", 1.0) or 0.0)
        self._client_factory = client_factory
        logger.info(
            "Gemini TTS client initialised: model=%s voice=%s keys=%d",
            self.model,
            self.voice,
            len(key_pool),
        )

    def ensure_ready(self, cancel_event: Optional[threading.Event] = None) -> None:
        raise_if_cancelled(cancel_event, self.name)

    def _speech_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.voice)
                )
            ),
        )

    def _run_with_failover(
        self,
        text: str,
        language: str,
        handle: Callable[[SynthesizedAudio], T],
        cancel_event: Optional[threading.Event],
    ) -> T:
        last_error: Optional[BaseException] = None
        attempts = len(self.key_pool)

        for _ in range(attempts):
            raise_if_cancelled(cancel_event, self.name)
            position, api_key = self.key_pool.next_key()
            logger.debug("Gemini attempt with API key #%d (lang=%s)", position, language)

            try:
                client = self._client_factory(api_key)
            except Exception as exc:
                logger.warning("Could not create Gemini client with API key #%d: %s", position, exc)
                last_error = exc
                continue

            try:
                response = client.models.generate_content(
                    model=self.model,
                    contents=text,
                    config=self._speech_config(),
                )
            except Exception as exc:
                if not is_retryable(exc):
                    raise TTSError(f"error generating speech: {exc}", backend=self.name) from exc
                logger.warning("Rate limit or server error with API key #%d: %s", position, exc)
                last_error = exc
                continue

            pcm = extract_pcm(response)
            if pcm is None:
                logger.warning("No inline audio data returned with API key #%d", position)
                last_error = RetryableTTSError("no audio data in response", backend=self.name)
                continue

            audio = SynthesizedAudio(
                data=pcm,
                is_container=False,
                channels=PCM_CHANNELS,
                sample_rate=PCM_SAMPLE_RATE,
                bits_per_sample=PCM_BITS,
                trailing_silence=self.trailing_silence,
            )
            try:
                result = handle(audio)
            except OSError as exc:
                logger.warning("Saving audio failed after API key #%d: %s", position, exc)
                last_error = exc
                continue
            logger.debug("Gemini synthesis succeeded with API key #%d", position)
            return result

        raise RetryableTTSError(
            f"failed after trying all {attempts} API key(s): {last_error}",
            backend=self.name,
        ) from last_error

    def synthesize(
        self,
        text: str,
        language: str,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> SynthesizedAudio:
        return self._run_with_failover(text, language, lambda audio: audio, cancel_event)

    def synthesize_to_file(
        self,
        text: str,
        language: str,
        output_path: Path,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        return self._run_with_failover(text, language, lambda audio: audio.save(output_path), cancel_event)
