"""
DuckDB test-history store.

Reads covenant test results and covenant metadata from a local DuckDB file.
The engine only reads; the ``write_*`` helpers exist so scripts and tests can
seed a database.

Key features:
- Thread-safe access with per-thread connections
- Idempotent schema creation on first use
- Stable read ordering (covenant, period end, insertion order)
- Structured logging and StorageError on every failure
"""

import threading
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterable

import duckdb
import structlog

from covnet.models.enums import ScopeKind
from covnet.models.series import CovenantMetadata, Scope, TestRecord

from .base import SCOPE_COLUMNS, TestHistoryStore

logger = structlog.get_logger(__name__)


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


class DuckDBTestHistoryStore(TestHistoryStore):
    """
    DuckDB implementation of the test-history store.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/covnet.duckdb"):
        """
        Initialize the DuckDB store.

        Args:
            db_path: Path to DuckDB database file (default: ./data/covnet.duckdb)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except duckdb.Error as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        yield self._local.connection

    def _initialize_schema(self):
        """
        Create tables and indexes. Idempotent and safe to call multiple times.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    # Restatements are allowed, so test results have no primary key
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS covenant_test_results (
                            covenant_id VARCHAR NOT NULL,
                            facility_id VARCHAR NOT NULL,
                            borrower_id VARCHAR NOT NULL,
                            covenant_type VARCHAR NOT NULL,
                            period_end DATE NOT NULL,
                            value DOUBLE NOT NULL,
                            passed BOOLEAN NOT NULL,
                            recorded_at TIMESTAMP NOT NULL
                        )
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_test_results_covenant
                        ON covenant_test_results(covenant_id)
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_test_results_period
                        ON covenant_test_results(period_end)
                    """)

                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS covenant_metadata (
                            covenant_id VARCHAR PRIMARY KEY,
                            covenant_name VARCHAR,
                            covenant_type VARCHAR,
                            facility_id VARCHAR,
                            facility_name VARCHAR,
                            borrower_id VARCHAR,
                            borrower_name VARCHAR,
                            status VARCHAR NOT NULL,
                            current_headroom_pct DOUBLE
                        )
                    """)

                    conn.commit()
                    logger.info("duckdb_schema_initialized", table_count=2)
                    self._initialized = True

            except duckdb.Error as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def clear_for_testing(self) -> None:
        """Delete all rows. Each test starts from a clean slate."""
        try:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM covenant_test_results")
                conn.execute("DELETE FROM covenant_metadata")
                conn.commit()
        except duckdb.Error as e:
            logger.error("clear_for_testing_failed", error=str(e))
            raise StorageError(f"Failed to clear tables: {e}") from e

    def close(self) -> None:
        """Close this thread's connection, if any."""
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            del self._local.connection

    # =========================================================================
    # Seeding
    # =========================================================================

    def write_test_records(self, records: Iterable[TestRecord]) -> int:
        """Append test records in the given order."""
        rows = [
            [
                r.covenant_id,
                r.facility_id,
                r.borrower_id,
                r.covenant_type,
                r.period_end,
                r.value,
                r.passed,
                r.recorded_at,
            ]
            for r in records
        ]
        if not rows:
            return 0

        try:
            with self._get_connection() as conn:
                for row in rows:
                    conn.execute(
                        """
                        INSERT INTO covenant_test_results (
                            covenant_id, facility_id, borrower_id, covenant_type,
                            period_end, value, passed, recorded_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        row,
                    )
                conn.commit()
                logger.info("test_records_written", count=len(rows))
                return len(rows)

        except duckdb.Error as e:
            logger.error("write_test_records_failed", error=str(e))
            raise StorageError(f"Failed to write test records: {e}") from e

    def write_covenant_metadata(self, metadata: Iterable[CovenantMetadata]) -> int:
        """Insert or replace covenant metadata."""
        metadata = list(metadata)
        if not metadata:
            return 0

        try:
            with self._get_connection() as conn:
                for meta in metadata:
                    conn.execute(
                        """
                        INSERT OR REPLACE INTO covenant_metadata (
                            covenant_id, covenant_name, covenant_type, facility_id,
                            facility_name, borrower_id, borrower_name, status,
                            current_headroom_pct
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            meta.covenant_id,
                            meta.covenant_name,
                            meta.covenant_type,
                            meta.facility_id,
                            meta.facility_name,
                            meta.borrower_id,
                            meta.borrower_name,
                            meta.status.value,
                            meta.current_headroom_pct,
                        ],
                    )
                conn.commit()
                logger.info("covenant_metadata_written", count=len(metadata))
                return len(metadata)

        except duckdb.Error as e:
            logger.error("write_covenant_metadata_failed", error=str(e))
            raise StorageError(f"Failed to write covenant metadata: {e}") from e

    # =========================================================================
    # Reads
    # =========================================================================

    def read_test_records(self, scope: Scope, start: date, end: date) -> list[TestRecord]:
        """Read test records for a scope within [start, end]."""
        try:
            with self._get_connection() as conn:
                query = """
                    SELECT covenant_id, facility_id, borrower_id, covenant_type,
                           period_end, value, passed, recorded_at
                    FROM covenant_test_results
                    WHERE period_end >= ? AND period_end <= ?
                """
                params: list = [start, end]

                column = SCOPE_COLUMNS.get(scope.kind)
                if column is not None:
                    placeholders = ", ".join("?" for _ in scope.ids)
                    query += f" AND {column} IN ({placeholders})"
                    params.extend(scope.ids)

                query += " ORDER BY covenant_id ASC, period_end ASC, rowid ASC"

                result = conn.execute(query, params).fetchall()

                records = [
                    TestRecord(
                        covenant_id=row[0],
                        facility_id=row[1],
                        borrower_id=row[2],
                        covenant_type=row[3],
                        period_end=row[4],
                        value=row[5],
                        passed=row[6],
                        recorded_at=row[7],
                    )
                    for row in result
                ]

                logger.debug(
                    "test_records_read",
                    scope_kind=scope.kind.value,
                    count=len(records),
                )
                return records

        except duckdb.Error as e:
            logger.error("read_test_records_failed", error=str(e))
            raise StorageError(f"Failed to read test records: {e}") from e

    def read_covenant_metadata(self, covenant_ids: list[str]) -> dict[str, CovenantMetadata]:
        """Read metadata for the given covenants."""
        if not covenant_ids:
            return {}

        try:
            with self._get_connection() as conn:
                placeholders = ", ".join("?" for _ in covenant_ids)
                result = conn.execute(
                    f"""
                    SELECT covenant_id, covenant_name, covenant_type, facility_id,
                           facility_name, borrower_id, borrower_name, status,
                           current_headroom_pct
                    FROM covenant_metadata
                    WHERE covenant_id IN ({placeholders})
                    ORDER BY covenant_id ASC
                    """,
                    list(covenant_ids),
                ).fetchall()

                return {
                    row[0]: CovenantMetadata(
                        covenant_id=row[0],
                        covenant_name=row[1] or "",
                        covenant_type=row[2] or "",
                        facility_id=row[3] or "",
                        facility_name=row[4] or "",
                        borrower_id=row[5] or "",
                        borrower_name=row[6] or "",
                        status=row[7],
                        current_headroom_pct=row[8],
                    )
                    for row in result
                }

        except duckdb.Error as e:
            logger.error("read_covenant_metadata_failed", error=str(e))
            raise StorageError(f"Failed to read covenant metadata: {e}") from e

    def list_scope_ids(self, kind: ScopeKind) -> list[str]:
        """List distinct ids for a scope kind."""
        column = SCOPE_COLUMNS.get(kind)
        if column is None:
            return []

        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    f"SELECT DISTINCT {column} FROM covenant_test_results ORDER BY {column} ASC"
                ).fetchall()
                return [row[0] for row in result]

        except duckdb.Error as e:
            logger.error("list_scope_ids_failed", kind=kind.value, error=str(e))
            raise StorageError(f"Failed to list scope ids: {e}") from e
