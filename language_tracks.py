"""Run independent per-language tracks concurrently and join their outcomes."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Sequence, TypeVar

from logging_utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TrackFailure(RuntimeError):
    """Raised when every language track failed."""

    def __init__(self, failures: Dict[str, BaseException]) -> None:
        self.failures = dict(failures)
        detail = ", ".join(f"{lang}={exc}" for lang, exc in sorted(self.failures.items()))
        super().__init__(f"all language tracks failed: {detail}")


@dataclass
class TrackSummary(Generic[T]):
    results: Dict[str, T] = field(default_factory=dict)
    failures: Dict[str, BaseException] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return bool(self.results)


def run_language_tracks(
    languages: Sequence[str],
    track: Callable[[str], T],
) -> TrackSummary[T]:
    """Run ``track(language)`` for each language in parallel.

    A failed track is downgraded to a warning as long as one other track
    succeeded; if none did, ``TrackFailure`` is raised.
    """
    if not languages:
        raise ValueError("no languages to process")

    summary: TrackSummary[T] = TrackSummary()
    with ThreadPoolExecutor(max_workers=len(languages), thread_name_prefix="track") as pool:
        futures = {pool.submit(track, language): language for language in languages}
        for future in as_completed(futures):
            language = futures[future]
            try:
                summary.results[language] = future.result()
            except Exception as exc:  # track boundary: collect, decide after the join
                logger.error("Track %s failed: %s", language, exc)
                summary.failures[language] = exc

    if not summary.results:
        raise TrackFailure(summary.failures)
    for language, exc in sorted(summary.failures.items()):
        logger.warning("%s track failed: %s", language, exc)
    logger.info("Tracks complete: ok=%s failed=%s", sorted(summary.results), sorted(summary.failures))
    return summary
