from adapters.divisions.cache import DivisionIndexCache, default_entries_loader
from adapters.divisions.index import InMemoryDivisionIndex
from adapters.divisions.loader import fetch_remote_divisions, load_divisions_file
from adapters.divisions.models import DivisionRow, DivisionsFile

__all__ = [
    "DivisionIndexCache",
    "DivisionRow",
    "DivisionsFile",
    "InMemoryDivisionIndex",
    "default_entries_loader",
    "fetch_remote_divisions",
    "load_divisions_file",
]
