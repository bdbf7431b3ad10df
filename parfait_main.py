"""Command line entry for the narrated slide video pipeline."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Callable, List, Optional

from api_keys import (
    APIKeyError,
    APIKeyPool,
    add_api_key,
    credential_config_path,
    load_credential_config,
    mask_key,
    set_api_key,
)
from config_loader import SUPPORTED_LANGUAGES, AppConfig, load_config
from language_tracks import TrackFailure, run_language_tracks
from logging_utils import configure_logging, get_logger
from narration_pipeline import NarrationPipeline, PipelineError
from slide_notes import NoteParseError, describe, load_notes
from slide_video import FFmpegEncoder, FFmpegError
from slide_video.runner import require_tools
from tts import SpeechBackend, TTSError, make_speech_backend

logger = get_logger(__name__)

_HANDLED_ERRORS = (
    APIKeyError,
    FFmpegError,
    FileNotFoundError,
    NoteParseError,
    PipelineError,
    TrackFailure,
    TTSError,
    ValueError,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parfait",
        description="Turn Marp markdown speaker notes into narrated slide videos",
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to YAML configuration (default: config.yaml; optional)",
    )
    parser.add_argument("--log-level", help="Override logging level from config")
    sub = parser.add_subparsers(dest="command", required=True)

    notes = sub.add_parser("notes", help="List the narration parsed from a markdown deck")
    notes.add_argument("markdown", type=Path)

    tts = sub.add_parser("tts", help="Synthesise one WAV per slide from a markdown deck")
    tts.add_argument("markdown", type=Path)
    tts.add_argument("--lang", required=True, choices=SUPPORTED_LANGUAGES, help="Narration language")
    tts.add_argument(
        "--gemini",
        action="store_true",
        help="Use Gemini API for TTS (default: use the local TTS service)",
    )
    tts.add_argument(
        "--output",
        type=Path,
        help="Output directory for WAV files (default: same directory as input file)",
    )

    video = sub.add_parser("video", help="Build per-slide clips and the combined video")
    video.add_argument("--lang", required=True, choices=SUPPORTED_LANGUAGES)
    video.add_argument("--slides-dir", type=Path, help="Directory with slide.NNN.png (default: dist/<lang>)")
    video.add_argument("--audio-dir", type=Path, help="Directory with slide.NNN.wav (default: slides dir)")
    video.add_argument("--output-dir", type=Path, help="Directory for clips (default: slides dir)")

    run = sub.add_parser("run", help="TTS + video for every configured language in parallel")
    run.add_argument("--lang", action="append", choices=SUPPORTED_LANGUAGES, help="Restrict to language(s)")
    run.add_argument("--gemini", action="store_true", help="Use Gemini API for TTS")

    config_cmd = sub.add_parser("config", help="Manage global configuration")
    config_sub = config_cmd.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("path", help="Print global config file path")
    set_cmd = config_sub.add_parser("set", help="Set a config value")
    set_cmd.add_argument("item", choices=["api-key"])
    set_cmd.add_argument("key", help="Gemini API key (replaces all keys)")
    add_cmd = config_sub.add_parser("add", help="Add a config value")
    add_cmd.add_argument("item", choices=["api-key"])
    add_cmd.add_argument("key", help="Gemini API key (appended for rotation)")
    list_cmd = config_sub.add_parser("list", help="List config values")
    list_cmd.add_argument("item", choices=["api-keys"])
    return parser


def _backend_factory(config: AppConfig, use_gemini: bool) -> Callable[[], SpeechBackend]:
    if not use_gemini:
        return lambda: make_speech_backend(config)
    # One pool shared by every track; rotation is lock-protected
    pool = APIKeyPool.from_environment(max_keys=int(config.gemini_tts.get("max_keys", 10) or 10))
    return lambda: make_speech_backend(config, backend="gemini", key_pool=pool)


def _wants_gemini(config: AppConfig, flag: bool) -> bool:
    return flag or config.tts_backend == "gemini"


def _run_config(args: argparse.Namespace) -> int:
    path = credential_config_path()
    if args.config_command == "path":
        print(path)
    elif args.config_command == "set":
        set_api_key(args.key, path)
        print(f"Saved 1 api key to {path}")
    elif args.config_command == "add":
        cfg = add_api_key(args.key, path)
        print(f"Saved {len(cfg.google_api_keys)} api key(s) to {path}")
    elif args.config_command == "list":
        keys = load_credential_config(path).google_api_keys
        if not keys:
            print("(no api keys set)")
        for index, key in enumerate(keys, start=1):
            print(f"{index}: {mask_key(key)}")
    return 0


def _run_tts(config: AppConfig, args: argparse.Namespace) -> int:
    markdown = args.markdown.expanduser().resolve()
    output_dir = (args.output or markdown.parent).expanduser().resolve()
    pipeline = NarrationPipeline(
        config,
        _backend_factory(config, _wants_gemini(config, args.gemini)),
        FFmpegEncoder(config.video),
    )
    logger.info("Processing: %s", markdown)
    logger.info("Output directory: %s", output_dir)
    logger.info("Language: %s", args.lang)
    report = pipeline.generate_audio(args.lang, markdown, output_dir)
    logger.info("TTS generation complete! %s", report.summary())
    return 0


def _run_video(config: AppConfig, args: argparse.Namespace) -> int:
    require_tools("ffmpeg", "ffprobe")
    slides_dir = (args.slides_dir or config.language_dir(args.lang)).expanduser().resolve()
    audio_dir = (args.audio_dir or slides_dir).expanduser().resolve()
    output_dir = (args.output_dir or slides_dir).expanduser().resolve()
    pipeline = NarrationPipeline(config, lambda: make_speech_backend(config), FFmpegEncoder(config.video))
    clips, combined = pipeline.build_videos(args.lang, slides_dir, audio_dir, output_dir)
    logger.info("Video generation complete! %s -> %s", clips.summary(), combined)
    return 0


def _run_all(config: AppConfig, args: argparse.Namespace) -> int:
    require_tools("ffmpeg", "ffprobe")
    languages: List[str] = args.lang or config.languages
    pipeline = NarrationPipeline(
        config,
        _backend_factory(config, _wants_gemini(config, args.gemini)),
        FFmpegEncoder(config.video),
    )
    pipeline.preflight(languages)
    summary = run_language_tracks(languages, pipeline.run_track)
    for language, result in sorted(summary.results.items()):
        logger.info("%s: %s", language, result.combined_video)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(level=args.log_level or config.logging_level, log_file=config.log_file)
    logger.debug("Config: %s", config.dumps())

    try:
        if args.command == "config":
            return _run_config(args)
        if args.command == "notes":
            print(describe(load_notes(args.markdown)))
            return 0
        if args.command == "tts":
            return _run_tts(config, args)
        if args.command == "video":
            return _run_video(config, args)
        return _run_all(config, args)
    except _HANDLED_ERRORS as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
