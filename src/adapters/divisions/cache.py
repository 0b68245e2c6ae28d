"""Caché de proceso para el índice de municipios.

Un único dueño carga y refresca el índice; los lectores solo obtienen la
referencia vigente. `refresh()` construye el índice nuevo fuera del lock de
lectura y lo publica con una sola asignación.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from adapters.divisions.index import InMemoryDivisionIndex
from adapters.divisions.loader import fetch_remote_divisions, load_divisions_file
from core.config import AppSettings
from core.domain.models import AdminDivisionEntry
from core.resources_loader import get_default_divisions_path

logger = logging.getLogger(__name__)

EntriesLoader = Callable[[], list[AdminDivisionEntry]]


def default_entries_loader(settings: AppSettings) -> EntriesLoader:
    """Elige la fuente según la configuración.

    Orden:
    1) PostgREST si `divisions_url` está definido
    2) `divisions_path` explícito
    3) ubicaciones por defecto / dataset incluido
    """

    def load() -> list[AdminDivisionEntry]:
        if settings.divisions_url:
            return fetch_remote_divisions(settings)
        path = settings.divisions_path or get_default_divisions_path()
        return load_divisions_file(path)

    return load


class DivisionIndexCache:
    def __init__(self, loader: EntriesLoader) -> None:
        self._loader = loader
        self._lock = threading.Lock()
        self._index: InMemoryDivisionIndex | None = None

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "DivisionIndexCache":
        return cls(default_entries_loader(settings))

    @property
    def loaded(self) -> bool:
        return self._index is not None

    def get(self) -> InMemoryDivisionIndex:
        index = self._index
        if index is not None:
            return index
        with self._lock:
            if self._index is None:
                self._index = self._build()
            return self._index

    def refresh(self) -> InMemoryDivisionIndex:
        with self._lock:
            self._index = self._build()
            return self._index

    def _build(self) -> InMemoryDivisionIndex:
        index = InMemoryDivisionIndex(self._loader())
        logger.info("Division index ready (%d entries)", len(index))
        return index
