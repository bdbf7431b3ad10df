"""Per-slide outcomes for best-effort batch stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

CREATED = "created"
SKIPPED = "skipped"


@dataclass(frozen=True)
class SlideOutcome:
    slide_number: int
    status: str
    path: Optional[Path] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == CREATED


@dataclass
class BatchReport:
    """Accumulates outcomes for one stage of one language track."""

    stage: str
    language: str
    outcomes: List[SlideOutcome] = field(default_factory=list)

    def created(self, slide_number: int, path: Path) -> SlideOutcome:
        outcome = SlideOutcome(slide_number=slide_number, status=CREATED, path=path)
        self.outcomes.append(outcome)
        return outcome

    def skipped(self, slide_number: int, reason: str) -> SlideOutcome:
        outcome = SlideOutcome(slide_number=slide_number, status=SKIPPED, reason=reason)
        self.outcomes.append(outcome)
        return outcome

    @property
    def created_paths(self) -> List[Path]:
        return [o.path for o in self.outcomes if o.ok and o.path is not None]

    @property
    def created_count(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def skipped_outcomes(self) -> List[SlideOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def summary(self) -> str:
        return (
            f"{self.stage}[{self.language}]: {self.created_count} created, "
            f"{len(self.skipped_outcomes)} skipped"
        )
