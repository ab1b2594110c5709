"""Edit-distance based text similarity used by matching and OCR verification.

Scores are percentages in ``[0, 100]`` and are never rounded here; callers
round for display only.
"""
from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def _normalise(value: str) -> str:
    return value.strip().lower()


def levenshtein(a: str, b: str) -> int:
    """Classic insert/delete/substitute edit distance between ``a`` and ``b``."""

    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Return how similar two strings are, ignoring case and outer whitespace.

    Two strings that are equal after normalisation score 100, which includes
    the case where both are empty.
    """

    left = _normalise(a)
    right = _normalise(b)
    if left == right:
        return 100.0

    longer, shorter = (left, right) if len(left) > len(right) else (right, left)
    max_len = len(longer)
    distance = levenshtein(longer, shorter)
    return (max_len - distance) / max_len * 100.0


def fuzzy_contains(needle: str, haystack: str) -> float:
    """Score how well ``needle`` appears somewhere inside ``haystack``.

    A literal (case-insensitive) substring scores 100. Otherwise every run of
    ``len(needle_words)`` consecutive haystack words is compared against the
    needle and the best window wins. Short haystacks are additionally scored
    as a whole so that OCR output which is nearly just the needle is not
    missed by the word windows.
    """

    needle_norm = _normalise(needle)
    haystack_norm = _normalise(haystack)

    if needle_norm in haystack_norm:
        return 100.0
    if not haystack_norm:
        return 0.0

    needle_words = needle_norm.split()
    haystack_words = haystack_norm.split()
    window = len(needle_words)

    best = 0.0
    for start in range(len(haystack_words) - window + 1):
        sequence = " ".join(haystack_words[start : start + window])
        best = max(best, similarity(needle_norm, sequence))

    if len(haystack_words) <= window + 2:
        best = max(best, similarity(needle_norm, haystack_norm))

    return best


__all__ = ["fuzzy_contains", "levenshtein", "similarity"]
