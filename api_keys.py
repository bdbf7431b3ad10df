"""Gemini API key pool: loading, persistence and round-robin rotation."""
from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from logging_utils import get_logger

logger = get_logger(__name__)

MAX_KEYS = 10
ENV_KEY = "GOOGLE_API_KEY"


class APIKeyError(RuntimeError):
    """Raised when no usable API key is configured or too many are supplied."""


def normalize_keys(keys: Iterable[str]) -> List[str]:
    """Trim, drop blanks and duplicates while keeping first-seen order."""
    seen = set()
    out: List[str] = []
    for key in keys:
        key = str(key or "").strip()
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(key)
    return out


def mask_key(key: str) -> str:
    if len(key) > 8:
        return f"{key[:4]}...{key[-4:]}"
    return "****"


def credential_config_path() -> Path:
    base = os.getenv("XDG_CONFIG_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".config"
    return root / "parfait" / "config.json"


@dataclass
class CredentialConfig:
    google_api_keys: List[str] = field(default_factory=list)
    # Older config files stored a single key
    google_api_key: str = ""

    def to_dict(self) -> dict:
        payload: dict = {}
        if self.google_api_keys:
            payload["google_api_keys"] = list(self.google_api_keys)
        if self.google_api_key:
            payload["google_api_key"] = self.google_api_key
        return payload


def load_credential_config(path: Optional[Path] = None) -> CredentialConfig:
    config_path = path or credential_config_path()
    if not config_path.exists():
        return CredentialConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise APIKeyError(f"Invalid config file ({config_path}): {exc}") from exc
    if not isinstance(data, dict):
        raise APIKeyError(f"Invalid config file ({config_path}): expected a JSON object")

    keys = data.get("google_api_keys") or []
    legacy = str(data.get("google_api_key") or "").strip()
    if not keys and legacy:
        keys = [legacy]
    return CredentialConfig(google_api_keys=normalize_keys(keys), google_api_key=legacy)


def save_credential_config(config: CredentialConfig, path: Optional[Path] = None) -> Path:
    config_path = path or credential_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(config.to_dict(), ensure_ascii=False, indent=2) + "\n"
    config_path.write_text(payload, encoding="utf-8")
    try:
        config_path.chmod(0o600)
    except OSError:  # pragma: no cover - filesystems without POSIX modes
        logger.debug("Could not restrict permissions on %s", config_path)
    return config_path


def set_api_key(key: str, path: Optional[Path] = None) -> CredentialConfig:
    """Replace every stored key with ``key``."""
    key = key.strip()
    if not key:
        raise APIKeyError("api key is empty")
    config = load_credential_config(path)
    config.google_api_keys = [key]
    config.google_api_key = ""
    save_credential_config(config, path)
    return config


def add_api_key(key: str, path: Optional[Path] = None) -> CredentialConfig:
    """Append ``key`` to the stored rotation list."""
    key = key.strip()
    if not key:
        raise APIKeyError("api key is empty")
    config = load_credential_config(path)
    keys = normalize_keys([*config.google_api_keys, key])
    if len(keys) > MAX_KEYS:
        raise APIKeyError(f"too many api keys: {len(keys)} (max {MAX_KEYS})")
    config.google_api_keys = keys
    config.google_api_key = ""
    save_credential_config(config, path)
    return config


def keys_from_env(environ: Mapping[str, str]) -> List[str]:
    """Numbered ``GOOGLE_API_KEY_1..10`` first, then the singular variable."""
    keys = [environ.get(f"{ENV_KEY}_{index}", "") for index in range(1, MAX_KEYS + 1)]
    keys = normalize_keys(keys)
    if not keys:
        keys = normalize_keys([environ.get(ENV_KEY, "")])
    return keys


def load_api_keys(
    *,
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
    dotenv_path: Optional[Path] = None,
    max_keys: int = MAX_KEYS,
) -> List[str]:
    """Resolve the ordered key list from env (after ``.env``) or the stored config."""
    if environ is None:
        if not load_dotenv(dotenv_path=dotenv_path):
            logger.debug("No .env file loaded")
        environ = os.environ

    keys = keys_from_env(environ)
    source = "environment"
    if not keys:
        keys = load_credential_config(config_path).google_api_keys
        source = "config file"

    if not keys:
        raise APIKeyError(
            "no API keys found. Set GOOGLE_API_KEY or GOOGLE_API_KEY_1, GOOGLE_API_KEY_2, ... "
            "or run `parfait config add api-key <KEY>`"
        )
    if len(keys) > max_keys:
        logger.warning("Using the first %d of %d API keys", max_keys, len(keys))
        keys = keys[:max_keys]

    logger.info("Loaded %d API key(s) for rotation from %s", len(keys), source)
    return keys


class APIKeyPool:
    """Round-robin rotation over an ordered key list.

    The cursor is guarded by a lock so one pool may be shared across tracks.
    """

    def __init__(self, keys: Iterable[str]) -> None:
        self._keys: Tuple[str, ...] = tuple(normalize_keys(keys))
        if not self._keys:
            raise APIKeyError("API key pool is empty")
        self._cursor = 0
        self._lock = threading.Lock()

    @classmethod
    def from_environment(cls, **kwargs) -> "APIKeyPool":
        return cls(load_api_keys(**kwargs))

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    def next_key(self) -> Tuple[int, str]:
        """Return ``(1-based position, key)`` and advance the cursor."""
        with self._lock:
            index = self._cursor
            self._cursor = (index + 1) % len(self._keys)
        return index + 1, self._keys[index]
