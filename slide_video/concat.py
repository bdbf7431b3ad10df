from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence

from logging_utils import get_logger

from .encoder import MediaEncoder
from .runner import FFmpegError

logger = get_logger(__name__)


def manifest_filename(language: str) -> str:
    return f"filelist-{language}.txt"


def combined_filename(language: str) -> str:
    return f"video-{language}.mp4"


def find_clips(clips_dir: Path, language: str) -> List[Path]:
    """Per-slide clips of ``language`` ordered by slide number, not by name."""
    pattern = re.compile(rf"^slide-{re.escape(language)}-(\d+)\.mp4$")
    numbered = []
    for path in clips_dir.glob(f"slide-{language}-*.mp4"):
        match = pattern.match(path.name)
        if match:
            numbered.append((int(match.group(1)), path))
    return [path for _, path in sorted(numbered, key=lambda item: item[0])]


def _manifest_line(path: Path) -> str:
    posix = path.resolve().as_posix().replace("'", "'\\''")
    return f"file '{posix}'"


def write_manifest(clips: Sequence[Path], manifest: Path) -> Path:
    payload = "\n".join(_manifest_line(clip) for clip in clips) + "\n"
    manifest.write_text(payload, encoding="utf-8")
    logger.debug("concat: list file => %s (%d segments)", manifest, len(clips))
    return manifest


def concatenate_clips(
    clips_dir: Path,
    language: str,
    *,
    encoder: MediaEncoder,
    clips: Optional[Sequence[Path]] = None,
) -> Optional[Path]:
    """Stream-copy the per-slide clips of ``language`` into one video.

    ``clips`` pins the exact, ordered set to join; without it every clip found
    in ``clips_dir`` is used. Returns ``None`` when there is nothing to join.
    """
    clips = list(clips) if clips is not None else find_clips(clips_dir, language)
    if not clips:
        logger.info("No videos found for language %s; skipping concatenation", language)
        return None

    empty = [clip for clip in clips if clip.stat().st_size == 0]
    if empty:
        for clip in empty[:10]:
            logger.error("zero-size: %s", clip)
        raise FFmpegError(f"concat: {len(empty)} clip(s) are empty for language {language}")

    manifest = write_manifest(clips, clips_dir / manifest_filename(language))
    output = clips_dir / combined_filename(language)
    logger.info("Creating combined video for %s from %d clip(s)", language, len(clips))
    try:
        encoder.concat_streamcopy(manifest, output)
    except FFmpegError as exc:
        for line in exc.output_tail():
            logger.error("ffmpeg: %s", line)
        content = manifest.read_text(encoding="utf-8").splitlines()
        logger.error("concat list head: %s", " | ".join(content[:5]))
        logger.error("concat list tail: %s", " | ".join(content[-5:]))
        raise
    logger.info("Created %s", output)
    return output
