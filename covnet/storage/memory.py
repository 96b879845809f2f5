"""In-memory test-history store for embedding the engine and for tests."""

import threading
from datetime import date
from typing import Iterable

import structlog

from covnet.models.enums import ScopeKind
from covnet.models.series import CovenantMetadata, Scope, TestRecord

from .base import SCOPE_COLUMNS, TestHistoryStore

logger = structlog.get_logger(__name__)


class InMemoryTestHistoryStore(TestHistoryStore):
    """
    Keeps test records and metadata in process memory.

    Records keep their insertion order within a (covenant, period) so the
    assembler's "later record wins" rule sees the same order as DuckDB.

    Example:
        >>> store = InMemoryTestHistoryStore()
        >>> store.add_records(records)
        >>> store.add_metadata([CovenantMetadata(covenant_id="cov-1", status="at_risk")])
    """

    def __init__(
        self,
        records: Iterable[TestRecord] = (),
        metadata: Iterable[CovenantMetadata] = (),
    ):
        self._lock = threading.Lock()
        self._records: list[TestRecord] = []
        self._metadata: dict[str, CovenantMetadata] = {}
        self.add_records(records)
        self.add_metadata(metadata)

    def add_records(self, records: Iterable[TestRecord]) -> int:
        records = list(records)
        with self._lock:
            self._records.extend(records)
        logger.debug("memory_records_added", count=len(records))
        return len(records)

    def add_metadata(self, metadata: Iterable[CovenantMetadata]) -> int:
        metadata = list(metadata)
        with self._lock:
            for meta in metadata:
                self._metadata[meta.covenant_id] = meta
        return len(metadata)

    def read_test_records(self, scope: Scope, start: date, end: date) -> list[TestRecord]:
        with self._lock:
            snapshot = list(enumerate(self._records))

        column = SCOPE_COLUMNS.get(scope.kind)
        wanted = set(scope.ids)
        selected = [
            (position, r)
            for position, r in snapshot
            if start <= r.period_end <= end and (column is None or getattr(r, column) in wanted)
        ]
        selected.sort(key=lambda item: (item[1].covenant_id, item[1].period_end, item[0]))
        return [r for _, r in selected]

    def read_covenant_metadata(self, covenant_ids: list[str]) -> dict[str, CovenantMetadata]:
        with self._lock:
            return {cid: self._metadata[cid] for cid in covenant_ids if cid in self._metadata}

    def list_scope_ids(self, kind: ScopeKind) -> list[str]:
        column = SCOPE_COLUMNS.get(kind)
        if column is None:
            return []
        with self._lock:
            return sorted({getattr(r, column) for r in self._records})
