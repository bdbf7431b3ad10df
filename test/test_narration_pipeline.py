from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import List, Optional, Set, Tuple

import pytest
from PIL import Image

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config_loader import load_config  # noqa: E402
from narration_pipeline import (  # noqa: E402
    NarrationPipeline,
    PipelineError,
    PreconditionError,
    synthesize_notes,
)
from slide_notes import SlideNote  # noqa: E402
from slide_video.encoder import ClipRequest, MediaEncoder  # noqa: E402
from tts.base import (  # noqa: E402
    SpeechBackend,
    SynthesizedAudio,
    TTSCancelledError,
    TTSError,
    TTSUnavailableError,
)
from wav_writer import read_wav_info  # noqa: E402

DECK = """---
marp: true
---

# Intro
<!-- Hello -->

---

# Middle
<!-- World -->

---

# End
<!-- Done -->
"""


class FakeSpeech(SpeechBackend):
    """Returns 0.5 s of PCM per request; texts listed in ``fail_on`` error out."""

    name = "fake"

    def __init__(self, fail_on: Optional[Set[str]] = None, healthy: bool = True) -> None:
        self.fail_on = fail_on or set()
        self.healthy = healthy
        self.probes = 0
        self.requests: List[Tuple[str, str]] = []

    def ensure_ready(self, cancel_event: Optional[threading.Event] = None) -> None:
        self.probes += 1
        if not self.healthy:
            raise TTSUnavailableError("failed to connect to TTS service", backend=self.name)

    def synthesize(
        self,
        text: str,
        language: str,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> SynthesizedAudio:
        if cancel_event is not None and cancel_event.is_set():
            raise TTSCancelledError("synthesis cancelled", backend=self.name)
        self.requests.append((language, text))
        if text in self.fail_on:
            raise TTSError("TTS API error (status 500): boom", backend=self.name)
        return SynthesizedAudio(data=b"\x00\x00" * 12000, is_container=False, trailing_silence=1.0)


class FakeEncoder(MediaEncoder):
    def __init__(self) -> None:
        self.clips: List[ClipRequest] = []

    def probe_duration(self, path: Path) -> float:
        return read_wav_info(path).duration

    def encode_clip(self, request: ClipRequest) -> Path:
        self.clips.append(request)
        request.output_path.write_bytes(b"clip")
        return request.output_path

    def concat_streamcopy(self, manifest: Path, output: Path) -> Path:
        output.write_bytes(b"video")
        return output


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "slide-en.md").write_text(DECK, encoding="utf-8")
    slides_dir = tmp_path / "dist" / "en"
    slides_dir.mkdir(parents=True)
    for number in (1, 2, 3):
        Image.new("RGB", (320, 180), color=(0, 0, 0)).save(slides_dir / f"slide.{number}.png")
    return tmp_path


def make_pipeline(root: Path, backend: FakeSpeech, encoder: Optional[FakeEncoder] = None, **kwargs):
    config = load_config(None, project_root=root)
    return NarrationPipeline(config, lambda: backend, encoder or FakeEncoder(), **kwargs)


def test_three_slide_deck_end_to_end(project: Path) -> None:
    backend = FakeSpeech()
    encoder = FakeEncoder()
    pipeline = make_pipeline(project, backend, encoder)

    result = pipeline.run_track("en")

    out = project / "dist" / "en"
    assert backend.requests == [("en", "Hello"), ("en", "World"), ("en", "Done")]
    assert sorted(p.name for p in out.glob("slide.*.wav")) == [
        "slide.001.wav",
        "slide.002.wav",
        "slide.003.wav",
    ]
    assert [p.name for p in result.clips.created_paths] == [
        "slide-en-001.mp4",
        "slide-en-002.mp4",
        "slide-en-003.mp4",
    ]
    assert result.combined_video == out / "video-en.mp4"
    assert result.combined_video.exists()
    # 0.5 s narration + 1 s silence in the WAV, + 1 s clip padding
    assert encoder.clips[0].duration == pytest.approx(2.5)


def test_failed_slide_is_skipped_and_batch_continues(project: Path) -> None:
    backend = FakeSpeech(fail_on={"World"})
    pipeline = make_pipeline(project, backend)

    result = pipeline.run_track("en")

    assert [o.slide_number for o in result.audio.skipped_outcomes] == [2]
    assert "status 500" in result.audio.skipped_outcomes[0].reason
    assert [p.name for p in result.clips.created_paths] == ["slide-en-001.mp4", "slide-en-003.mp4"]
    assert [o.slide_number for o in result.clips.skipped_outcomes] == [2]
    assert result.combined_video is not None


def test_every_slide_failing_is_a_pipeline_error(project: Path) -> None:
    pipeline = make_pipeline(project, FakeSpeech(fail_on={"Hello", "World", "Done"}))

    with pytest.raises(PipelineError, match="every slide"):
        pipeline.run_track("en")


def test_unhealthy_backend_fails_before_parsing(project: Path) -> None:
    (project / "slide-en.md").write_text("# no notes here\n", encoding="utf-8")
    backend = FakeSpeech(healthy=False)
    pipeline = make_pipeline(project, backend)

    with pytest.raises(TTSUnavailableError):
        pipeline.generate_audio("en", project / "slide-en.md", project / "out")
    assert backend.requests == []


@pytest.mark.parametrize(
    "language, markdown, message",
    [
        ("fr", "slide-en.md", "invalid language"),
        ("", "slide-en.md", "language is required"),
        ("en", "missing.md", "does not exist"),
        ("en", "notes.txt", "not a markdown file"),
    ],
)
def test_preconditions(project: Path, language: str, markdown: str, message: str) -> None:
    (project / "notes.txt").write_text("<!-- x -->\n", encoding="utf-8")
    backend = FakeSpeech()
    pipeline = make_pipeline(project, backend)

    with pytest.raises(PreconditionError, match=message):
        pipeline.generate_audio(language, project / markdown, project / "out")
    assert backend.probes == 0


def test_deck_without_any_note_is_rejected(project: Path) -> None:
    (project / "slide-en.md").write_text("---\nmarp: true\n---\n", encoding="utf-8")

    with pytest.raises(PreconditionError, match="no notes found"):
        make_pipeline(project, FakeSpeech()).generate_audio("en", project / "slide-en.md", project)


def test_preflight_checks_all_languages_first(project: Path) -> None:
    backend = FakeSpeech()
    pipeline = make_pipeline(project, backend)

    with pytest.raises(PreconditionError, match="slide-ja.md"):
        pipeline.preflight(["en", "ja"])
    assert backend.probes == 0

    pipeline.preflight(["en"])
    assert backend.probes == 1


def test_no_clips_is_a_pipeline_error(project: Path) -> None:
    pipeline = make_pipeline(project, FakeSpeech())
    out = project / "dist" / "en"

    with pytest.raises(PipelineError, match="no slide clips"):
        pipeline.build_videos("en", out, project / "empty-audio", out)


def test_cancellation_aborts_the_track(project: Path) -> None:
    cancel = threading.Event()
    cancel.set()
    backend = FakeSpeech()
    pipeline = make_pipeline(project, backend, cancel_event=cancel)

    with pytest.raises(TTSCancelledError):
        pipeline.run_track("en")
    assert backend.requests == []


def test_synthesize_notes_uses_filename_pattern(tmp_path: Path) -> None:
    notes = [SlideNote(slide_number=4, text="four")]

    report = synthesize_notes(notes, FakeSpeech(), tmp_path, "ja", audio_filename="{number:03d}.wav")

    assert report.created_paths == [tmp_path / "004.wav"]
    assert (tmp_path / "004.wav").exists()


def test_rerun_with_failed_slide_drops_previous_outputs(project: Path) -> None:
    make_pipeline(project, FakeSpeech()).run_track("en")
    out = project / "dist" / "en"
    assert (out / "slide.002.wav").exists()
    assert (out / "slide-en-002.mp4").exists()

    result = make_pipeline(project, FakeSpeech(fail_on={"World"})).run_track("en")

    assert [o.slide_number for o in result.audio.skipped_outcomes] == [2]
    assert [o.slide_number for o in result.clips.skipped_outcomes] == [2]
    assert not (out / "slide.002.wav").exists()
    assert not (out / "slide-en-002.mp4").exists()
    manifest = (out / "filelist-en.txt").read_text(encoding="utf-8")
    assert "slide-en-001.mp4" in manifest
    assert "slide-en-002.mp4" not in manifest
    assert "slide-en-003.mp4" in manifest


def test_concatenation_ignores_clips_left_from_a_longer_deck(project: Path) -> None:
    out = project / "dist" / "en"
    (out / "slide-en-004.mp4").write_bytes(b"old clip")
    pipeline = make_pipeline(project, FakeSpeech())

    pipeline.run_track("en")

    manifest = (out / "filelist-en.txt").read_text(encoding="utf-8").splitlines()
    assert [line.rsplit("/", 1)[-1] for line in manifest] == [
        "slide-en-001.mp4'",
        "slide-en-002.mp4'",
        "slide-en-003.mp4'",
    ]
