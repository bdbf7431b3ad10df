from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Tuple

from batch_report import BatchReport
from logging_utils import get_logger

from .encoder import ClipRequest, MediaEncoder, even_dimensions
from .runner import FFmpegError

logger = get_logger(__name__)

# Every clip ends on one second of silence after the narration
TRAILING_PAD_SECONDS = 1.0

DEFAULT_AUDIO_FILENAME = "slide.{number:03d}.wav"

_SLIDE_IMAGE_RE = re.compile(r"^slide\.(\d+)\.png$")


def slide_number(path: Path) -> Optional[int]:
    match = _SLIDE_IMAGE_RE.match(Path(path).name)
    return int(match.group(1)) if match else None


def find_slide_images(slides_dir: Path) -> List[Tuple[int, Path]]:
    """``slide.<n>.png`` files ordered by slide number, not by name."""
    found = []
    for path in slides_dir.glob("slide.*.png"):
        number = slide_number(path)
        if number is None:
            logger.warning("Ignoring image with unexpected name: %s", path.name)
            continue
        found.append((number, path))
    return sorted(found, key=lambda item: item[0])


def clip_filename(language: str, number: int) -> str:
    return f"slide-{language}-{number:03d}.mp4"


def _skip(report: BatchReport, number: int, reason: str, clip_path: Path) -> None:
    # A clip left by an earlier run would otherwise be picked up by concatenation
    if clip_path.exists():
        logger.info("Removing stale clip %s", clip_path)
        clip_path.unlink()
    report.skipped(number, reason)


def assemble_slide_clips(
    slides_dir: Path,
    audio_dir: Path,
    output_dir: Path,
    language: str,
    *,
    encoder: MediaEncoder,
    audio_filename: str = DEFAULT_AUDIO_FILENAME,
) -> BatchReport:
    """Create one MP4 per slide image that has a matching narration file.

    Slides without audio, with unreadable media or with a failing encoder run
    are recorded as skipped; the batch always runs to the end.
    """
    if not slides_dir.is_dir():
        raise FileNotFoundError(f"Slides directory not found: {slides_dir}")
    images = find_slide_images(slides_dir)
    if not images:
        raise FileNotFoundError(f"No slide images found in {slides_dir}")

    output_dir.mkdir(parents=True, exist_ok=True)
    report = BatchReport(stage="video", language=language)

    for number, image_path in images:
        clip_path = output_dir / clip_filename(language, number)
        audio_path = audio_dir / audio_filename.format(number=number)
        if not audio_path.exists():
            logger.warning("Audio file %s not found, skipping slide %d [%s]", audio_path, number, language)
            _skip(report, number, f"missing audio {audio_path.name}", clip_path)
            continue

        try:
            audio_duration = encoder.probe_duration(audio_path)
        except FFmpegError as exc:
            logger.error("Error getting audio duration for %s: %s", audio_path, exc)
            for line in exc.output_tail():
                logger.error("ffprobe: %s", line)
            _skip(report, number, f"duration probe failed: {exc}", clip_path)
            continue

        try:
            width, height = even_dimensions(image_path)
        except (OSError, ValueError) as exc:
            logger.error("Cannot read slide image %s: %s", image_path, exc)
            _skip(report, number, f"unreadable image: {exc}", clip_path)
            continue

        request = ClipRequest(
            image_path=image_path,
            audio_path=audio_path,
            output_path=clip_path,
            duration=audio_duration + TRAILING_PAD_SECONDS,
            width=width,
            height=height,
        )
        logger.info("Creating video for slide %d [%s] (%.2fs)", number, language, request.duration)
        try:
            created = encoder.encode_clip(request)
        except FFmpegError as exc:
            logger.error("Error processing slide %d [%s]: %s", number, language, exc)
            for line in exc.output_tail():
                logger.error("ffmpeg: %s", line)
            _skip(report, number, f"encoder failed: {exc}", clip_path)
            continue
        logger.info("Created %s", created)
        report.created(number, created)

    logger.info(report.summary())
    return report
