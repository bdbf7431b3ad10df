"""FFmpeg-based assembly of narrated slide videos.

Modules:
- assembler: one clip per slide image + narration file
- concat: stream-copy concatenation of per-slide clips
- encoder: encoder collaborator interface and the FFmpeg implementation
- runner: subprocess execution and logging helpers
"""

from __future__ import annotations

__all__ = [
    "ClipRequest",
    "FFmpegEncoder",
    "FFmpegError",
    "MediaEncoder",
    "assemble_slide_clips",
    "concatenate_clips",
]

from .assembler import assemble_slide_clips
from .concat import concatenate_clips
from .encoder import ClipRequest, FFmpegEncoder, MediaEncoder
from .runner import FFmpegError
