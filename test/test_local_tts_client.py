from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Any, Dict, List

import pytest
import requests

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tts import local_client  # noqa: E402
from tts.base import TTSCancelledError, TTSError, TTSUnavailableError  # noqa: E402
from tts.local_client import LocalTTSClient  # noqa: E402

WAV_BYTES = b"RIFF\x24\x00\x00\x00WAVEfmt fake-container"


class DummyResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", text: str = "") -> None:
        self.status_code = status_code
        self.content = content
        self.text = text or content.decode("latin-1")


def test_health_probe_hits_health_endpoint_once(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[Dict[str, Any]] = []

    def fake_get(url: str, **kwargs: Any) -> DummyResponse:
        calls.append({"url": url, **kwargs})
        return DummyResponse(200)

    monkeypatch.setattr(local_client.requests, "get", fake_get)
    client = LocalTTSClient({"url": "http://tts.local:9000/"})

    client.ensure_ready()
    client.ensure_ready()

    assert calls == [{"url": "http://tts.local:9000/health", "timeout": 5.0}]


def test_health_probe_failure_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(url: str, **kwargs: Any) -> DummyResponse:
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(local_client.requests, "get", fake_get)

    with pytest.raises(TTSUnavailableError, match="failed to connect"):
        LocalTTSClient({}).ensure_ready()


def test_health_probe_non_200_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(local_client.requests, "get", lambda url, **kw: DummyResponse(503))

    with pytest.raises(TTSUnavailableError, match="503"):
        LocalTTSClient({}).ensure_ready()


def test_url_defaults_to_env_then_localhost(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("KOKOVOX_URL", raising=False)
    assert LocalTTSClient({}).base_url == "http://localhost:5108"
    monkeypatch.setenv("KOKOVOX_URL", "http://gpu-box:5108")
    assert LocalTTSClient({}).base_url == "http://gpu-box:5108"


def test_synthesize_posts_language_and_text(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    captured: Dict[str, Any] = {}

    def fake_post(url: str, **kwargs: Any) -> DummyResponse:
        captured["url"] = url
        captured.update(kwargs)
        return DummyResponse(200, WAV_BYTES)

    monkeypatch.setattr(local_client.requests, "post", fake_post)
    client = LocalTTSClient({"url": "http://localhost:5108", "timeout": 12})

    output = client.synthesize_to_file("こんにちは", "ja", tmp_path / "audio" / "slide.001.wav")

    assert captured["url"] == "http://localhost:5108/v1/audio/speech"
    assert captured["json"] == {"language": "ja", "text": "こんにちは"}
    assert captured["timeout"] == 12.0
    # the service already returns a full container: stored byte-for-byte
    assert output.read_bytes() == WAV_BYTES


def test_synthesize_non_200_carries_body(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        local_client.requests,
        "post",
        lambda url, **kw: DummyResponse(500, b"", text="model not loaded"),
    )

    with pytest.raises(TTSError, match="model not loaded") as excinfo:
        LocalTTSClient({}).synthesize("hi", "en")
    assert excinfo.value.backend == "local"


def test_synthesize_honours_cancellation(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail_post(url: str, **kwargs: Any) -> DummyResponse:  # pragma: no cover
        raise AssertionError("request should not be sent")

    monkeypatch.setattr(local_client.requests, "post", fail_post)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(TTSCancelledError):
        LocalTTSClient({}).synthesize("hi", "en", cancel_event=cancel)
