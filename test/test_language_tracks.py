from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from language_tracks import TrackFailure, run_language_tracks  # noqa: E402


def test_both_tracks_succeed_and_run_concurrently() -> None:
    barrier = threading.Barrier(2, timeout=5)

    def track(language: str) -> str:
        # deadlocks unless both tracks are in flight at once
        barrier.wait()
        return f"video-{language}.mp4"

    summary = run_language_tracks(["ja", "en"], track)

    assert summary.results == {"ja": "video-ja.mp4", "en": "video-en.mp4"}
    assert summary.failures == {}
    assert summary.succeeded


def test_one_failed_track_is_downgraded_to_a_warning(caplog: pytest.LogCaptureFixture) -> None:
    def track(language: str) -> str:
        if language == "ja":
            raise RuntimeError("TTS service unavailable")
        return "ok"

    with caplog.at_level("WARNING"):
        summary = run_language_tracks(["ja", "en"], track)

    assert summary.results == {"en": "ok"}
    assert isinstance(summary.failures["ja"], RuntimeError)
    assert any("ja track failed" in record.getMessage() for record in caplog.records)


def test_all_tracks_failing_raises() -> None:
    def track(language: str) -> str:
        raise ValueError(f"broken {language}")

    with pytest.raises(TrackFailure) as excinfo:
        run_language_tracks(["ja", "en"], track)

    assert set(excinfo.value.failures) == {"ja", "en"}
    assert "broken en" in str(excinfo.value)


def test_no_languages_is_rejected() -> None:
    with pytest.raises(ValueError):
        run_language_tracks([], lambda language: language)
