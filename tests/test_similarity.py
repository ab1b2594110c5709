from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from creative_backend.core.similarity import fuzzy_contains, levenshtein, similarity  # noqa: E402
from creative_backend.core.verification import score_accuracy  # noqa: E402


def test_levenshtein_counts_edits():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("same", "same") == 0


def test_similarity_ignores_case_and_outer_whitespace():
    assert similarity("Hello", "  hello ") == 100.0
    assert similarity("", "") == 100.0
    assert similarity("", "abc") == 0.0


@pytest.mark.parametrize(
    ("left", "right"),
    [("kitten", "sitting"), ("CORSAIR", "C0RSAIR"), ("a compact pc", "compact")],
)
def test_similarity_is_symmetric(left, right):
    assert similarity(left, right) == similarity(right, left)


def test_similarity_scales_with_longer_string():
    assert similarity("kitten", "sitting") == pytest.approx(4 / 7 * 100)


def test_fuzzy_contains_literal_substring():
    assert fuzzy_contains("corsair one", "NEW CORSAIR ONE i600") == 100.0
    assert fuzzy_contains("", "anything") == 100.0


def test_fuzzy_contains_picks_best_word_window():
    score = fuzzy_contains("corsair one", "NEW CORSAIR 0NE i600 LAUNCH")
    assert score == pytest.approx(10 / 11 * 100)


def test_fuzzy_contains_scores_short_haystack_as_a_whole():
    # the haystack has fewer words than the needle, so only the whole-text score applies
    assert fuzzy_contains("hello world", "helloworld") == pytest.approx(10 / 11 * 100)


def test_fuzzy_contains_empty_haystack():
    assert fuzzy_contains("title", "") == 0.0
    assert fuzzy_contains("title", "   ") == 0.0


def test_score_accuracy_averages_title_and_subtitle():
    score = score_accuracy("ABC", "XYZ", "ABC")
    assert score.title == 100.0
    assert score.subtitle == 0.0
    assert score.overall == 50.0
    assert score.needs_review is True


def test_score_accuracy_treats_empty_expected_text_as_present():
    score = score_accuracy("CORSAIR ONE I600", "", "corsair one i600")
    assert score.overall == 100.0
    assert score.needs_review is False
