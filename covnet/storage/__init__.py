"""
Test-history storage layer.

The engine reads covenant test results and covenant metadata from a
``TestHistoryStore``. DuckDB backs deployments; the in-memory store backs
embedding and tests.
"""

from functools import lru_cache

from covnet.config import get_settings

from .base import TestHistoryStore
from .duckdb_storage import DuckDBTestHistoryStore, StorageError
from .memory import InMemoryTestHistoryStore


@lru_cache
def get_storage() -> TestHistoryStore:
    """
    Get cached storage backend instance (singleton).

    Returns:
        TestHistoryStore implementation built from settings
    """
    settings = get_settings()
    return DuckDBTestHistoryStore(db_path=settings.db_path)


__all__ = [
    "TestHistoryStore",
    "DuckDBTestHistoryStore",
    "InMemoryTestHistoryStore",
    "StorageError",
    "get_storage",
]
