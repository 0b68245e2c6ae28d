"""Resolución de ciudad en texto libre a código DANE.

Los pedidos llegan con ciudades escritas a mano: sin tildes, con errores de
tipeo o con el departamento pegado. El resolvedor nunca falla: siempre
devuelve un código utilizable y un `CityMatchResult` que explica qué pasó.

Orden estricto (el primer acierto gana):
1. exacta sin distinguir mayúsculas, con tildes
2. exacta normalizada, filtrando por el departamento sugerido si viene
3. difusa por distancia de edición normalizada (umbral configurable)
4. sin coincidencia -> código de respaldo
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Sequence

from core.domain.models import AdminDivisionEntry, CityMatchResult, CitySuggestion, MatchType
from core.domain.text import normalize_text, similarity
from core.interfaces.division_index import AdminDivisionIndex
from core.services.department_mapper import DepartmentCodeMapper

logger = logging.getLogger(__name__)

DEFAULT_FUZZY_THRESHOLD = 0.70
DEFAULT_MAX_SUGGESTIONS = 3
# Bogotá D.C.
DEFAULT_FALLBACK_CODE = "11001000"


def department_matches(hint: str, department: str) -> bool:
    """Contención en cualquier dirección entre nombres ya normalizados."""

    if not hint or not department:
        return False
    return hint in department or department in hint


class _Hint(NamedTuple):
    text: str
    state_code: str | None

    def __bool__(self) -> bool:
        return bool(self.text)


class FuzzyCityResolver:
    def __init__(
        self,
        index: AdminDivisionIndex,
        *,
        threshold: float = DEFAULT_FUZZY_THRESHOLD,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
        fallback_code: str = DEFAULT_FALLBACK_CODE,
        department_mapper: DepartmentCodeMapper | None = None,
    ) -> None:
        self._index = index
        self._threshold = threshold
        self._max_suggestions = max_suggestions
        self._fallback_code = fallback_code
        self._departments = department_mapper or DepartmentCodeMapper()

    @property
    def fallback_code(self) -> str:
        return self._fallback_code

    def resolve(self, input_city: str | None, department_hint: str | None = None) -> tuple[str, CityMatchResult]:
        city = (input_city or "").strip()
        if not city:
            return self._not_found(city)

        hint = _Hint(normalize_text(department_hint), self._departments.lookup(department_hint))

        exact = self._match_exact(city, hint)
        if exact is not None:
            return exact.canonical_code, self._exact_result(city, exact)

        normalized_city = normalize_text(city)
        normalized = self._match_normalized(normalized_city, hint)
        if normalized is not None:
            return normalized.canonical_code, self._exact_result(city, normalized)

        scored = self._score(normalized_city)
        if not scored:
            logger.warning("City %r not found (hint=%r); falling back to %s", city, department_hint, self._fallback_code)
            return self._not_found(city)

        best_entry, best_score = scored[0]
        suggestions = tuple(
            CitySuggestion(
                municipality=entry.municipality_name,
                department=entry.department_name,
                similarity=score,
            )
            for entry, score in scored[: self._max_suggestions]
        )
        logger.info(
            "City %r fuzzy-matched to %s (%s) with similarity %.3f",
            city,
            best_entry.municipality_name,
            best_entry.department_name,
            best_score,
        )
        return best_entry.canonical_code, CityMatchResult(
            match_type=MatchType.FUZZY,
            input_city=city,
            matched_municipality=best_entry.municipality_name,
            matched_department=best_entry.department_name,
            confidence=best_score,
            suggestions=suggestions,
        )

    def _hint_matches(self, hint: _Hint, entry: AdminDivisionEntry) -> bool:
        if department_matches(hint.text, normalize_text(entry.department_name)):
            return True
        # Abreviaturas ("DC", "NSA") no contienen el nombre del departamento.
        return hint.state_code is not None and hint.state_code == self._departments.lookup(entry.department_name)

    def _match_exact(self, city: str, hint: _Hint) -> AdminDivisionEntry | None:
        matches = self._index.find_all_exact(city)
        if not matches:
            return None
        # Homónimos (Granada, Mosquera, Caldas...): el departamento desempata.
        if hint:
            for entry in matches:
                if self._hint_matches(hint, entry):
                    return entry
        return matches[0]

    def _match_normalized(self, normalized_city: str, hint: _Hint) -> AdminDivisionEntry | None:
        candidates: Sequence[AdminDivisionEntry] = self._index.find_normalized(normalized_city)
        for entry in candidates:
            if not hint or self._hint_matches(hint, entry):
                return entry
        return None

    def _score(self, normalized_city: str) -> list[tuple[AdminDivisionEntry, float]]:
        # Un municipio con alias aparece varias veces: se queda su mejor puntaje.
        best: dict[str, tuple[AdminDivisionEntry, float]] = {}
        for entry, candidate in self._index.fuzzy_candidates(normalized_city):
            score = similarity(normalized_city, candidate)
            current = best.get(entry.canonical_code)
            if current is None or score > current[1]:
                best[entry.canonical_code] = (entry, score)
        kept = [item for item in best.values() if item[1] >= self._threshold]
        # sorted() es estable: los empates conservan el orden de la tabla.
        return sorted(kept, key=lambda item: item[1], reverse=True)

    @staticmethod
    def _exact_result(city: str, entry: AdminDivisionEntry) -> CityMatchResult:
        return CityMatchResult(
            match_type=MatchType.EXACT,
            input_city=city,
            matched_municipality=entry.municipality_name,
            matched_department=entry.department_name,
            confidence=1.0,
        )

    def _not_found(self, city: str) -> tuple[str, CityMatchResult]:
        return self._fallback_code, CityMatchResult(
            match_type=MatchType.NOT_FOUND,
            input_city=city,
            confidence=0.0,
        )
