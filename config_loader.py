"""Configuration loader for the narration pipeline."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

SUPPORTED_LANGUAGES = ("ja", "en")
SUPPORTED_BACKENDS = ("local", "gemini")


@dataclass
class AppConfig:
    """Wrapper around raw configuration with resolved paths."""

    raw: Dict[str, Any]
    config_path: Optional[Path]
    project_root: Path
    output_dir: Path
    log_file: Path

    def _section(self, *keys: str) -> Dict[str, Any]:
        node: Any = self.raw
        for key in keys:
            node = node.get(key, {}) if isinstance(node, dict) else {}
        return node if isinstance(node, dict) else {}

    @property
    def logging_level(self) -> str:
        level = self._section("logging").get("level") or "INFO"
        return str(level).upper()

    @property
    def tts_backend(self) -> str:
        backend = str(self._section("tts").get("backend") or "local").strip().lower()
        if backend not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported TTS backend '{backend}'. Supported backends: {list(SUPPORTED_BACKENDS)}"
            )
        return backend

    @property
    def languages(self) -> List[str]:
        raw_languages = self.raw.get("languages") or list(SUPPORTED_LANGUAGES)
        languages = [str(lang).strip().lower() for lang in raw_languages if str(lang).strip()]
        unknown = [lang for lang in languages if lang not in SUPPORTED_LANGUAGES]
        if unknown:
            raise ValueError(f"Unsupported language(s) {unknown}; use ja or en")
        return languages

    @property
    def local_tts(self) -> Dict[str, Any]:
        return self._section("tts", "local")

    @property
    def gemini_tts(self) -> Dict[str, Any]:
        return self._section("tts", "gemini")

    @property
    def video(self) -> Dict[str, Any]:
        return self._section("video")

    @property
    def audio_filename(self) -> str:
        return str(self._section("tts").get("audio_filename") or "slide.{number:03d}.wav")

    def slide_path(self, language: str) -> Path:
        configured = self._section("slides").get(language)
        return (self.project_root / (configured or f"slide-{language}.md")).resolve()

    def language_dir(self, language: str) -> Path:
        return self.output_dir / language

    def to_debug_dict(self) -> Dict[str, Any]:
        return {
            "config_path": str(self.config_path) if self.config_path else None,
            "output_dir": str(self.output_dir),
            "log_file": str(self.log_file),
            "tts_backend": self._section("tts").get("backend", "local"),
            "languages": self.raw.get("languages") or list(SUPPORTED_LANGUAGES),
        }

    def dumps(self) -> str:
        """Return a JSON string for diagnostics."""
        return json.dumps(self.to_debug_dict(), ensure_ascii=False, indent=2)


def _mapping(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    node = raw.get(key)
    return node if isinstance(node, dict) else {}


def load_config(
    path: Path | str | None = None,
    project_root: Path | None = None,
    *,
    required: bool = False,
) -> AppConfig:
    """Load YAML config and resolve key directories.

    A missing file falls back to built-in defaults unless ``required`` is set.
    """
    raw: Dict[str, Any] = {}
    config_path: Optional[Path] = None
    if path is not None:
        config_path = Path(path).expanduser().resolve()
        if config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            if not isinstance(raw, dict):
                raise ValueError(f"Config file must contain a mapping: {config_path}")
        elif required:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        else:
            config_path = None

    if project_root is not None:
        root = project_root.resolve()
    elif config_path is not None:
        root = config_path.parent
    else:
        root = Path.cwd().resolve()

    output_dir = (root / str(_mapping(raw, "output").get("directory") or "dist")).resolve()
    log_file_name = str(_mapping(raw, "logging").get("file") or "logs/parfait.log")
    log_file = (root / log_file_name).resolve()

    return AppConfig(
        raw=raw,
        config_path=config_path,
        project_root=root,
        output_dir=output_dir,
        log_file=log_file,
    )
