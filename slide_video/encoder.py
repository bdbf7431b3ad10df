"""Encoder collaborator used by the slide clip assembler and concatenator.

``MediaEncoder`` is the narrow seam between pipeline logic and external
tools; ``FFmpegEncoder`` is the production implementation.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from PIL import Image

from logging_utils import get_logger

from .runner import FFmpegError, run_ffmpeg, run_ffprobe

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClipRequest:
    image_path: Path
    audio_path: Path
    output_path: Path
    duration: float
    width: int
    height: int


def even_dimensions(image_path: Path) -> Tuple[int, int]:
    """Image size rounded down to even numbers, as yuv420p requires."""
    with Image.open(image_path) as image:
        width, height = image.size
    even = (width - width % 2, height - height % 2)
    if even[0] <= 0 or even[1] <= 0:
        raise ValueError(f"Image too small to encode: {image_path} ({width}x{height})")
    return even


class MediaEncoder(ABC):
    @abstractmethod
    def probe_duration(self, path: Path) -> float:
        """Duration of a media file in seconds."""

    @abstractmethod
    def encode_clip(self, request: ClipRequest) -> Path:
        """Loop a still image under an audio track for ``request.duration`` seconds."""

    @abstractmethod
    def concat_streamcopy(self, manifest: Path, output: Path) -> Path:
        """Join the clips listed in a concat manifest without re-encoding."""


class FFmpegEncoder(MediaEncoder):
    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        cfg = config or {}
        self.video_codec = str(cfg.get("video_codec") or "libx264")
        self.audio_codec = str(cfg.get("audio_codec") or "aac")
        self.audio_bitrate = str(cfg.get("audio_bitrate") or "192k")

    def probe_duration(self, path: Path) -> float:
        output = run_ffprobe(
            [
                "-show_entries",
                "format=duration",
                "-of",
                "default=noprint_wrappers=1:nokey=1",
                str(Path(path).resolve()),
            ]
        )
        try:
            return float(output)
        except ValueError as exc:
            raise FFmpegError(f"could not parse duration from ffprobe output '{output}'", output=output) from exc

    def clip_args(self, request: ClipRequest) -> List[str]:
        # apad extends narration with silence so -t can run past the audio end
        return [
            "-y",
            "-loop",
            "1",
            "-i",
            str(request.image_path.resolve()),
            "-i",
            str(request.audio_path.resolve()),
            "-c:v",
            self.video_codec,
            "-tune",
            "stillimage",
            "-c:a",
            self.audio_codec,
            "-b:a",
            self.audio_bitrate,
            "-pix_fmt",
            "yuv420p",
            "-af",
            "apad",
            "-t",
            f"{request.duration:.3f}",
            "-vf",
            f"scale={request.width}:{request.height}",
            str(request.output_path.resolve()),
        ]

    def encode_clip(self, request: ClipRequest) -> Path:
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        run_ffmpeg(self.clip_args(request))
        return request.output_path

    def concat_streamcopy(self, manifest: Path, output: Path) -> Path:
        output.parent.mkdir(parents=True, exist_ok=True)
        run_ffmpeg(
            [
                "-y",
                "-f",
                "concat",
                "-safe",
                "0",
                "-i",
                str(manifest.resolve()),
                "-c",
                "copy",
                "-movflags",
                "+faststart",
                str(output.resolve()),
            ]
        )
        return output
