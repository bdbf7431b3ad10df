"""Logging setup helpers for the narration pipeline."""
from __future__ import annotations

import logging
from logging import Logger
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: str) -> int:
    return getattr(logging, str(level).upper(), logging.INFO)


def configure_logging(level: str, log_file: Optional[Path] = None) -> Logger:
    """Configure root logger with a console handler and an optional file handler."""
    numeric_level = _resolve_level(level)

    logger = logging.getLogger()
    logger.setLevel(numeric_level)

    # Repeated CLI invocations in one interpreter must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(numeric_level)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(numeric_level)
        logger.addHandler(file_handler)

    logger.debug("Logging configured: level=%s file=%s", level, log_file)
    return logger


def get_logger(name: Optional[str] = None) -> Logger:
    """Return a module-level logger."""
    return logging.getLogger(name)
