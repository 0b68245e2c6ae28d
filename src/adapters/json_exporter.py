"""Exportación JSON de una cotización.

Por qué JSON:
- Es el mismo contrato que devuelve la función HTTP, así un operador puede
  comparar lo que vio en la CLI con lo que recibió el frontend.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def export_quote_json(*, payload: dict[str, Any], output_path: Path) -> Path:
    """Exporta el payload de respuesta a JSON UTF-8 con formato estable."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
