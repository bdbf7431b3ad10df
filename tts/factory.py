"""Factory helpers for selecting the narration speech backend."""
from __future__ import annotations

from typing import Optional

from api_keys import APIKeyPool
from config_loader import AppConfig
from logging_utils import get_logger

from .base import SpeechBackend
from .gemini_client import GeminiTTSClient
from .local_client import LocalTTSClient

logger = get_logger(__name__)


def make_speech_backend(
    config: AppConfig,
    *,
    backend: Optional[str] = None,
    key_pool: Optional[APIKeyPool] = None,
) -> SpeechBackend:
    """Return a speech backend based on configuration or an explicit override.

    Loading the Gemini key pool happens here, so a missing key fails before any
    slide work starts.
    """
    selected = (backend or config.tts_backend).strip().lower()
    if selected == "gemini":
        gemini_cfg = config.gemini_tts
        if key_pool is None:
            key_pool = APIKeyPool.from_environment(max_keys=int(gemini_cfg.get("max_keys", 10) or 10))
        logger.debug("Using Gemini client for narration")
        return GeminiTTSClient(key_pool, gemini_cfg)
    if selected == "local":
        logger.debug("Using local TTS service for narration")
        return LocalTTSClient(config.local_tts)
    raise ValueError(f"Unsupported TTS backend '{selected}'. Supported backends: ['gemini', 'local']")
