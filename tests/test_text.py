from __future__ import annotations

import pytest

from core.domain.text import levenshtein, normalize_text, similarity, strip_accents


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Bogotá", "Bogota"),
        ("Itagüí", "Itagui"),
        ("Nariño", "Narino"),
        ("Medellin", "Medellin"),
    ],
)
def test_strip_accents(raw: str, expected: str) -> None:
    assert strip_accents(raw) == expected


def test_normalize_text_folds_case_accents_and_whitespace() -> None:
    assert normalize_text("  Bogotá   D.C. ") == "bogota d.c."
    assert normalize_text(None) == ""
    assert normalize_text("   ") == ""


def test_levenshtein() -> None:
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("abc", "") == 3
    assert levenshtein("medellin", "medellin") == 0
    assert levenshtein("medelin", "medellin") == 1


def test_similarity_is_normalized_by_longest_string() -> None:
    assert similarity("medelin", "medellin") == pytest.approx(1 - 1 / 8)
    assert similarity("", "") == 1.0
    assert similarity("abc", "xyz") == 0.0
