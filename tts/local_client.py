"""HTTP client for a locally running speech service (KokoVox compatible)."""
from __future__ import annotations

import os
import threading
from typing import Any, Dict, Optional

import requests

from logging_utils import get_logger

from .base import (
    SpeechBackend,
    SynthesizedAudio,
    TTSError,
    TTSUnavailableError,
    raise_if_cancelled,
)

logger = get_logger(__name__)

DEFAULT_URL = "http://localhost:5108"


class LocalTTSClient(SpeechBackend):
    """Thin wrapper around the local ``/v1/audio/speech`` endpoint.

    The service answers with a complete WAV container, so the response body is
    stored untouched.
    """

    name = "local"

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        cfg = config or {}
        url = cfg.get("url") or os.getenv("KOKOVOX_URL") or DEFAULT_URL
        self.base_url = str(url).rstrip("/")
        self.health_timeout = float(cfg.get("health_timeout", 5) or 5)
        self.timeout = float(cfg.get("timeout", 30) or 30)
        self._connection_verified = False
        logger.info("Local TTS client initialised: url=%s", self.base_url)

    def ensure_ready(self, cancel_event: Optional[threading.Event] = None) -> None:
        if self._connection_verified:
            return
        raise_if_cancelled(cancel_event, self.name)
        try:
            response = requests.get(f"{self.base_url}/health", timeout=self.health_timeout)
        except requests.RequestException as exc:
            raise TTSUnavailableError(
                f"failed to connect to local TTS service at {self.base_url}: {exc}",
                backend=self.name,
            ) from exc
        if response.status_code != 200:
            raise TTSUnavailableError(
                f"local TTS service at {self.base_url} returned status {response.status_code}",
                backend=self.name,
            )
        logger.info("Local TTS service is available at %s", self.base_url)
        self._connection_verified = True

    def synthesize(
        self,
        text: str,
        language: str,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> SynthesizedAudio:
        raise_if_cancelled(cancel_event, self.name)
        url = f"{self.base_url}/v1/audio/speech"
        try:
            response = requests.post(
                url,
                json={"language": language, "text": text},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TTSError(f"failed to call local TTS API: {exc}", backend=self.name) from exc

        if response.status_code != 200:
            raise TTSError(
                f"local TTS API returned status {response.status_code}: {response.text}",
                backend=self.name,
            )
        if not response.content:
            raise TTSError("local TTS API returned an empty body", backend=self.name)
        return SynthesizedAudio(data=response.content, is_container=True)
