from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from logging_utils import get_logger

logger = get_logger(__name__)

_TAIL_LINES = 50


class FFmpegError(RuntimeError):
    """Raised when ffmpeg/ffprobe exits non-zero or prints unusable output."""

    def __init__(self, message: str, *, returncode: Optional[int] = None, output: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output

    def output_tail(self, lines: int = _TAIL_LINES) -> List[str]:
        return (self.output or "").splitlines()[-lines:]


def require_tools(*tools: str) -> None:
    """Fail fast when an external binary is not on PATH."""
    missing = [tool for tool in tools if shutil.which(tool) is None]
    if missing:
        raise FileNotFoundError(f"Required tool(s) not found on PATH: {', '.join(missing)}")


def _pretty(cmd: Sequence[str]) -> str:
    return " ".join(a if " " not in a else f"'{a}'" for a in cmd)


def run_ffmpeg(args: Sequence[str], *, cwd: Path | None = None) -> None:
    """Run ffmpeg with the given arguments, raising ``FFmpegError`` on non-zero exit.

    Logs the full command for debuggability; stderr is captured for diagnostics.
    """
    # Keep ffmpeg quiet: only errors; no stats; no banner
    cmd: List[str] = ["ffmpeg", "-hide_banner", "-loglevel", "error", "-nostats"] + list(args)
    logger.debug("FFmpeg: %s", _pretty(cmd))
    proc = subprocess.run(
        cmd,
        cwd=str(cwd) if cwd else None,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        text=True,
    )
    if proc.returncode != 0:
        raise FFmpegError(
            f"ffmpeg failed with exit code {proc.returncode}",
            returncode=proc.returncode,
            output=proc.stderr or "",
        )


def run_ffprobe(args: Sequence[str]) -> str:
    """Run ffprobe and return its stripped stdout."""
    cmd: List[str] = ["ffprobe", "-v", "error"] + list(args)
    logger.debug("FFprobe: %s", _pretty(cmd))
    proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    if proc.returncode != 0:
        raise FFmpegError(
            f"ffprobe failed with exit code {proc.returncode}",
            returncode=proc.returncode,
            output=proc.stderr or "",
        )
    return (proc.stdout or "").strip()
