"""High-level orchestration: markdown notes -> narration audio -> slide videos."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from batch_report import BatchReport
from config_loader import SUPPORTED_LANGUAGES, AppConfig
from logging_utils import get_logger
from slide_notes import SlideNote, load_notes
from slide_video import MediaEncoder, assemble_slide_clips, concatenate_clips
from tts import SpeechBackend, TTSCancelledError, TTSError

logger = get_logger(__name__)


class PipelineError(RuntimeError):
    """A language track cannot produce any output."""


class PreconditionError(PipelineError):
    """Inputs are missing or invalid; raised before any slide work starts."""


@dataclass
class TrackResult:
    language: str
    audio: Optional[BatchReport]
    clips: Optional[BatchReport]
    combined_video: Optional[Path]


def validate_language(language: str) -> str:
    if not language:
        raise PreconditionError("language is required. Specify ja or en")
    if language not in SUPPORTED_LANGUAGES:
        raise PreconditionError(f"invalid language: {language}. Use ja or en")
    return language


def validate_markdown(path: Path) -> Path:
    if not path.exists():
        raise PreconditionError(f"markdown file '{path}' does not exist")
    if path.suffix.lower() != ".md":
        raise PreconditionError(f"file '{path}' is not a markdown file")
    return path


def synthesize_notes(
    notes: Sequence[SlideNote],
    backend: SpeechBackend,
    audio_dir: Path,
    language: str,
    *,
    audio_filename: str,
    cancel_event: Optional[threading.Event] = None,
) -> BatchReport:
    """Synthesise every note in order; a failed slide is skipped, not fatal."""
    audio_dir.mkdir(parents=True, exist_ok=True)
    report = BatchReport(stage="tts", language=language)

    for note in notes:
        output_path = audio_dir / audio_filename.format(number=note.slide_number)
        logger.info(
            "[TTS] Processing slide %03d [%s] (length: %d chars)",
            note.slide_number,
            language,
            len(note.text),
        )
        # A failed slide must not leave an earlier run's audio behind
        output_path.unlink(missing_ok=True)
        try:
            backend.synthesize_to_file(note.text, language, output_path, cancel_event=cancel_event)
        except TTSCancelledError:
            raise
        except TTSError as exc:
            logger.warning(
                "Failed to generate TTS for slide %03d [%s] via %s: %s",
                note.slide_number,
                language,
                exc.backend or backend.name,
                exc,
            )
            report.skipped(note.slide_number, str(exc))
            continue
        logger.info("Saved slide %03d: %s (%s)", note.slide_number, output_path, backend.name)
        report.created(note.slide_number, output_path)

    logger.info(report.summary())
    return report


class NarrationPipeline:
    """Runs one language track at a time; tracks share nothing but config."""

    def __init__(
        self,
        config: AppConfig,
        backend_factory: Callable[[], SpeechBackend],
        encoder: MediaEncoder,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.config = config
        self.backend_factory = backend_factory
        self.encoder = encoder
        self.cancel_event = cancel_event

    def preflight(self, languages: Sequence[str]) -> None:
        """Check every input and the speech backend before any track starts."""
        if not languages:
            raise PreconditionError("no languages selected")
        for language in languages:
            validate_language(language)
            validate_markdown(self.config.slide_path(language))
        self.backend_factory().ensure_ready(self.cancel_event)

    def generate_audio(self, language: str, markdown: Path, audio_dir: Path) -> BatchReport:
        validate_language(language)
        validate_markdown(markdown)
        backend = self.backend_factory()
        backend.ensure_ready(self.cancel_event)

        notes = load_notes(markdown)
        if not notes:
            raise PreconditionError(
                f"no notes found in {markdown}. Ensure comments are in <!-- --> format"
            )
        logger.info("Found %d slides with notes [%s]", len(notes), language)

        report = synthesize_notes(
            notes,
            backend,
            audio_dir,
            language,
            audio_filename=self.config.audio_filename,
            cancel_event=self.cancel_event,
        )
        if report.created_count == 0:
            raise PipelineError(f"TTS failed for every slide [{language}]")
        return report

    def build_videos(
        self,
        language: str,
        slides_dir: Path,
        audio_dir: Path,
        clips_dir: Path,
    ) -> tuple[BatchReport, Optional[Path]]:
        clips = assemble_slide_clips(
            slides_dir,
            audio_dir,
            clips_dir,
            language,
            encoder=self.encoder,
            audio_filename=self.config.audio_filename,
        )
        if clips.created_count == 0:
            raise PipelineError(f"no slide clips were created [{language}]")
        combined = concatenate_clips(clips_dir, language, encoder=self.encoder, clips=clips.created_paths)
        return clips, combined

    def run_track(self, language: str) -> TrackResult:
        language_dir = self.config.language_dir(language)
        audio = self.generate_audio(language, self.config.slide_path(language), language_dir)
        clips, combined = self.build_videos(language, language_dir, language_dir, language_dir)
        logger.info("Track %s complete: %s", language, combined)
        return TrackResult(language=language, audio=audio, clips=clips, combined_video=combined)
