"""Text normalization and string similarity helpers.

Free-text addresses arrive with and without accents, in any case and with
stray whitespace. Everything that compares place names goes through
`normalize_text` so the resolver and the department mapper agree on what
"the same name" means.
"""

from __future__ import annotations

import unicodedata


def strip_accents(value: str) -> str:
    """Remove combining marks after NFD decomposition ("Bogotá" -> "Bogota")."""

    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def normalize_text(value: str | None) -> str:
    """Strip accents, trim, case-fold and collapse inner whitespace."""

    if not value:
        return ""
    return " ".join(strip_accents(value).casefold().split())


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert/delete/substitute, unit cost)."""

    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1 - normalized edit distance, in [0, 1]. Inputs are compared as given."""

    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest
