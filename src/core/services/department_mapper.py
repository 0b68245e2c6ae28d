"""Departamento (nombre, abreviatura Shopify o código Envia) -> código de estado Envia.

Mismo criterio que el resolvedor de ciudades: nunca fallar, degradar a un
valor sano (Bogotá D.C.) y dejar constancia en el log.
"""

from __future__ import annotations

import logging

from core.domain.text import normalize_text

logger = logging.getLogger(__name__)

# Códigos de provincia de Shopify (3 letras) -> estado Envia.
SHOPIFY_TO_ENVIA_CODES: dict[str, str] = {
    "AMA": "AM", "ANT": "AN", "ARA": "AR", "ATL": "AT", "BOG": "DC", "DC": "DC",
    "BOL": "BL", "BOY": "BY", "CAL": "CL", "CAQ": "CA", "CAS": "CS", "CAU": "CU",
    "CES": "CE", "CHO": "CH", "COR": "CO", "CUN": "CN", "GUA": "GU", "GUV": "GA",
    "HUI": "HU", "LAG": "LG", "MAG": "MA", "MET": "ME", "NAR": "NA", "NSA": "NS",
    "PUT": "PU", "QUI": "QU", "RIS": "RI", "SAP": "SA", "SAN": "SN", "SUC": "SU",
    "TOL": "TO", "VAC": "VC", "VAU": "VA", "VID": "VI",
}

# Claves ya normalizadas (sin tildes, minúsculas).
DEPARTMENT_STATE_CODES: dict[str, str] = {
    "amazonas": "AM",
    "antioquia": "AN",
    "arauca": "AR",
    "atlantico": "AT",
    "bogota": "DC",
    "bogota dc": "DC",
    "bogota d.c.": "DC",
    "bogota, d.c.": "DC",
    "distrito capital": "DC",
    "capital district": "DC",
    "bolivar": "BL",
    "boyaca": "BY",
    "caldas": "CL",
    "caqueta": "CA",
    "casanare": "CS",
    "cauca": "CU",
    "cesar": "CE",
    "choco": "CH",
    "cordoba": "CO",
    "cundinamarca": "CN",
    "guainia": "GU",
    "guaviare": "GA",
    "huila": "HU",
    "la guajira": "LG",
    "guajira": "LG",
    "magdalena": "MA",
    "meta": "ME",
    "narino": "NA",
    "norte de santander": "NS",
    "putumayo": "PU",
    "quindio": "QU",
    "risaralda": "RI",
    "san andres": "SA",
    "san andres y providencia": "SA",
    "santander": "SN",
    "sucre": "SU",
    "tolima": "TO",
    "valle del cauca": "VC",
    "valle": "VC",
    "vaupes": "VA",
    "vichada": "VI",
}

VALID_STATE_CODES: frozenset[str] = frozenset(DEPARTMENT_STATE_CODES.values())

# Evita que "a" o "me" coincidan con medio catálogo.
_MIN_REVERSE_MATCH = 3

# Claves más largas primero: "norte de santander" gana sobre "santander".
_KEYS_BY_LENGTH: tuple[str, ...] = tuple(sorted(DEPARTMENT_STATE_CODES, key=len, reverse=True))


class DepartmentCodeMapper:
    def __init__(self, *, default_code: str = "DC") -> None:
        self._default_code = default_code

    def lookup(self, department_or_province: str | None) -> str | None:
        """Código Envia reconocido, o `None` si la entrada no se identifica."""

        raw = (department_or_province or "").strip()
        upper = raw.upper()

        if upper in SHOPIFY_TO_ENVIA_CODES:
            return SHOPIFY_TO_ENVIA_CODES[upper]
        if len(upper) == 2 and upper in VALID_STATE_CODES:
            return upper

        normalized = normalize_text(raw)
        if not normalized:
            return None
        exact = DEPARTMENT_STATE_CODES.get(normalized)
        if exact:
            return exact
        for key in _KEYS_BY_LENGTH:
            if key in normalized:
                return DEPARTMENT_STATE_CODES[key]
            if len(normalized) >= _MIN_REVERSE_MATCH and normalized in key:
                return DEPARTMENT_STATE_CODES[key]
        return None

    def map_to_state_code(self, department_or_province: str | None) -> str:
        code = self.lookup(department_or_province)
        if code:
            return code

        raw = (department_or_province or "").strip()
        logger.warning("Unknown department %r; defaulting to state code %s", raw, self._default_code)
        return self._default_code
