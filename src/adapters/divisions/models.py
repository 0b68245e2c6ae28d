"""Modelos del archivo/tabla de municipios.

Idea:
- El formato de almacenamiento (`dane_code`, `municipality`, `department`) es
  el mismo en el JSON local y en la tabla PostgREST, así ambos cargadores
  validan con el mismo modelo.
- `aliases` es opcional: nombres comunes que el índice acepta igual que el oficial.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from core.domain.models import AdminDivisionEntry


class DivisionRow(BaseModel):
    dane_code: str = Field(..., min_length=1)
    municipality: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)
    aliases: list[str] | None = None

    def to_entry(self) -> AdminDivisionEntry:
        return AdminDivisionEntry(
            canonical_code=self.dane_code.strip(),
            municipality_name=self.municipality.strip(),
            department_name=self.department.strip(),
            aliases=tuple(alias.strip() for alias in self.aliases or () if alias.strip()),
        )


class DivisionsFile(BaseModel):
    source: str | None = None
    municipalities: list[DivisionRow] = Field(default_factory=list)
