"""Cargador de recursos/datasets.

Este módulo vive en `core/` porque:
- centraliza el *qué* datos necesitamos (tabla de municipios DANE) sin
  acoplarse a la CLI
- evita duplicar lógica de paths en adaptadores.

El paquete incluye un subconjunto de DIVIPOLA; un operador puede apuntar a la
tabla completa con `ENVIOS_DIVISIONS_PATH` o dejarla en `data/`.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from core.config import get_user_config_dir

DIVISIONS_FILENAME = "municipios_co.json"


def _project_root() -> Path:
    # core/resources_loader.py -> core -> src -> <project_root>
    return Path(__file__).resolve().parents[2]


def bundled_divisions_path() -> Path:
    return Path(__file__).resolve().parent / "data" / DIVISIONS_FILENAME


def _data_dir() -> Path:
    """Directorio de datos en runtime.

    Reglas:
    - Si ENVIOS_DATA_DIR está definido, se usa tal cual.
    - Si estamos en modo "frozen" (PyInstaller), usar un path escribible del usuario.
    - En desarrollo, usar <project_root>/data.
    """

    override = (os.environ.get("ENVIOS_DATA_DIR") or "").strip()
    if override:
        return Path(override)

    if getattr(sys, "frozen", False):
        return get_user_config_dir() / "data"

    return _project_root() / "data"


def get_default_divisions_path(filename: str = DIVISIONS_FILENAME) -> Path:
    """Busca la tabla de municipios en ubicaciones comunes.

    Orden:
    1) <data_dir>/<filename>
    2) <user_config>/data/<filename>
    3) ./<filename> (cwd)
    4) el dataset incluido en el paquete
    """

    candidates = [
        _data_dir() / filename,
        get_user_config_dir() / "data" / filename,
        Path.cwd() / filename,
    ]
    for p in candidates:
        if p.exists() and p.is_file():
            return p
    return bundled_divisions_path()
