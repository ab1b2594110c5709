"""OCR accuracy scoring of rendered overlays."""
from __future__ import annotations

from dataclasses import dataclass

from creative_backend.core.similarity import fuzzy_contains

ACCEPT_THRESHOLD = 90.0
RETRY_THRESHOLD = 70.0


@dataclass(slots=True, frozen=True)
class AccuracyScore:
    title: float
    subtitle: float
    overall: float

    @property
    def needs_review(self) -> bool:
        return self.overall < ACCEPT_THRESHOLD


def _expected_score(expected: str, extracted_text: str) -> float:
    # Nothing to render means nothing can be missing.
    if not expected.strip():
        return 100.0
    return fuzzy_contains(expected, extracted_text)


def score_accuracy(title: str, subtitle: str, extracted_text: str) -> AccuracyScore:
    title_score = _expected_score(title, extracted_text)
    subtitle_score = _expected_score(subtitle, extracted_text)
    return AccuracyScore(
        title=title_score,
        subtitle=subtitle_score,
        overall=(title_score + subtitle_score) / 2,
    )


__all__ = ["ACCEPT_THRESHOLD", "RETRY_THRESHOLD", "AccuracyScore", "score_accuracy"]
