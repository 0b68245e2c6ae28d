"""Carga de la tabla de referencia DANE.

Soporta:
- JSON local: {"municipalities": [{"dane_code", "municipality", "department"}, ...]}
- Tabla PostgREST (p.ej. Supabase) con las mismas columnas.

Las filas conservan el orden de origen: es el criterio de desempate del
resolvedor difuso.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx
from pydantic import TypeAdapter

from adapters.divisions.models import DivisionRow, DivisionsFile
from core.config import AppSettings
from core.domain.models import AdminDivisionEntry

logger = logging.getLogger(__name__)

_ROWS_ADAPTER = TypeAdapter(list[DivisionRow])

_PAGE_SIZE = 1000


def load_divisions_file(path: Path) -> list[AdminDivisionEntry]:
    raw = path.read_text(encoding="utf-8")
    data = json.loads(raw)
    parsed = DivisionsFile.model_validate(data)
    entries = [row.to_entry() for row in parsed.municipalities]
    logger.info("Loaded %d municipalities from %s", len(entries), path)
    return entries


def fetch_remote_divisions(
    settings: AppSettings,
    *,
    client: httpx.Client | None = None,
) -> list[AdminDivisionEntry]:
    """Descarga la tabla completa desde PostgREST, paginando por `offset`.

    Requisitos:
    - `settings.divisions_url` definido (base del proyecto, sin `/rest/v1`).
    """

    if not settings.divisions_url:
        raise ValueError("divisions_url is not configured")

    url = f"{settings.divisions_url.rstrip('/')}/rest/v1/{settings.divisions_table}"
    headers = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if settings.divisions_api_key:
        headers["apikey"] = settings.divisions_api_key
        headers["Authorization"] = f"Bearer {settings.divisions_api_key}"

    own_client = client is None
    http = client or httpx.Client(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
    )
    entries: list[AdminDivisionEntry] = []
    try:
        offset = 0
        while True:
            resp = http.get(
                url,
                headers=headers,
                params={
                    "select": "dane_code,municipality,department",
                    "order": "dane_code.asc",
                    "limit": str(_PAGE_SIZE),
                    "offset": str(offset),
                },
            )
            resp.raise_for_status()
            rows = _ROWS_ADAPTER.validate_python(resp.json())
            entries.extend(row.to_entry() for row in rows)
            if len(rows) < _PAGE_SIZE:
                break
            offset += _PAGE_SIZE
    finally:
        if own_client:
            http.close()

    logger.info("Fetched %d municipalities from %s", len(entries), url)
    return entries
