"""Índice en memoria de municipios DANE.

Precalcula claves (minúsculas con acentos, y normalizadas) una sola vez por
carga. Los alias de cada fila se indexan igual que su nombre oficial. Los
candidatos difusos son la tabla completa: a escala DIVIPOLA (~1100 filas) un
barrido es suficiente.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from core.domain.models import AdminDivisionEntry
from core.domain.text import normalize_text


class InMemoryDivisionIndex:
    """Implementación de `AdminDivisionIndex` sobre una lista inmutable."""

    def __init__(self, entries: Iterable[AdminDivisionEntry]) -> None:
        self._entries: tuple[AdminDivisionEntry, ...] = tuple(entries)
        self._normalized: tuple[str, ...] = tuple(
            normalize_text(e.municipality_name) for e in self._entries
        )

        by_code: dict[str, AdminDivisionEntry] = {}
        by_lower: dict[str, list[AdminDivisionEntry]] = defaultdict(list)
        by_normalized: dict[str, list[AdminDivisionEntry]] = defaultdict(list)
        candidates: list[tuple[AdminDivisionEntry, str]] = []
        for entry, norm in zip(self._entries, self._normalized):
            by_code.setdefault(entry.canonical_code, entry)
            by_lower[entry.municipality_name.strip().lower()].append(entry)
            by_normalized[norm].append(entry)
            candidates.append((entry, norm))
            for alias in entry.aliases:
                alias_norm = normalize_text(alias)
                by_lower[alias.strip().lower()].append(entry)
                by_normalized[alias_norm].append(entry)
                candidates.append((entry, alias_norm))

        self._by_code = by_code
        self._by_lower = dict(by_lower)
        self._by_normalized = dict(by_normalized)
        self._candidates = tuple(candidates)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> Sequence[AdminDivisionEntry]:
        return self._entries

    def get(self, canonical_code: str) -> AdminDivisionEntry | None:
        return self._by_code.get(canonical_code)

    def find_exact(self, name: str) -> AdminDivisionEntry | None:
        matches = self.find_all_exact(name)
        return matches[0] if matches else None

    def find_all_exact(self, name: str) -> Sequence[AdminDivisionEntry]:
        return tuple(self._by_lower.get(name.strip().lower(), ()))

    def find_normalized(self, normalized_name: str) -> Sequence[AdminDivisionEntry]:
        return tuple(self._by_normalized.get(normalized_name, ()))

    def fuzzy_candidates(self, normalized_name: str) -> Iterable[tuple[AdminDivisionEntry, str]]:
        return self._candidates

    def search(self, text: str, *, limit: int = 20) -> list[AdminDivisionEntry]:
        needle = normalize_text(text)
        if not needle:
            return []
        prefix: list[AdminDivisionEntry] = []
        contains: list[AdminDivisionEntry] = []
        for entry, norm in zip(self._entries, self._normalized):
            if norm.startswith(needle):
                prefix.append(entry)
            elif needle in norm:
                contains.append(entry)
        return (prefix + contains)[:limit]
