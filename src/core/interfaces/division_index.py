"""Contrato del índice de divisiones administrativas (municipios DANE).

Por qué Protocol:
- El resolvedor difuso depende de este contrato, no de una lista concreta.
- Hoy el índice es un barrido en memoria (unos miles de filas); mañana puede
  ser un índice por clave fonética/bloqueo sin tocar `FuzzyCityResolver`.
"""

from __future__ import annotations

from typing import Iterable, Protocol, Sequence, runtime_checkable

from core.domain.models import AdminDivisionEntry


@runtime_checkable
class AdminDivisionIndex(Protocol):
    """Consultas de solo lectura sobre la tabla de referencia.

    Reglas de diseño:
    - Todas las consultas respetan el orden de inserción de la tabla, que es el
      criterio de desempate del resolvedor.
    - Los nombres normalizados se reciben ya normalizados (`normalize_text`).
    """

    def entries(self) -> Sequence[AdminDivisionEntry]:
        """Todas las filas, en el orden de la tabla."""

        ...

    def get(self, canonical_code: str) -> AdminDivisionEntry | None:
        ...

    def find_exact(self, name: str) -> AdminDivisionEntry | None:
        """Coincidencia exacta sin distinguir mayúsculas (acentos preservados)."""

        ...

    def find_all_exact(self, name: str) -> Sequence[AdminDivisionEntry]:
        """Igual que `find_exact`, pero todas las filas homónimas, en orden."""

        ...

    def find_normalized(self, normalized_name: str) -> Sequence[AdminDivisionEntry]:
        """Filas cuyo nombre normalizado es exactamente `normalized_name`."""

        ...

    def fuzzy_candidates(self, normalized_name: str) -> Iterable[tuple[AdminDivisionEntry, str]]:
        """Pares (fila, nombre normalizado) a puntuar contra `normalized_name`."""

        ...

    def search(self, text: str, *, limit: int = 20) -> list[AdminDivisionEntry]:
        """Búsqueda por prefijo y luego por subcadena (para listados/CLI)."""

        ...
