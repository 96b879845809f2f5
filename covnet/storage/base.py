"""
Abstract read interface for covenant test history.

The engine never writes to the authoritative store: it reads test records
and covenant metadata up front and computes everything in memory. Seeding
helpers live on the concrete implementations only.
"""

from abc import ABC, abstractmethod
from datetime import date

from covnet.models.enums import ScopeKind
from covnet.models.series import CovenantMetadata, Scope, TestRecord

# Record attribute a scope kind filters on
SCOPE_COLUMNS = {
    ScopeKind.BORROWER: "borrower_id",
    ScopeKind.FACILITY: "facility_id",
    ScopeKind.COVENANTS: "covenant_id",
}


class TestHistoryStore(ABC):
    """
    Abstract base class for test-history sources.

    Implementations must be safe to read from multiple threads and must
    return records in a stable order so repeated runs see identical input.
    """

    __test__ = False

    @abstractmethod
    def read_test_records(self, scope: Scope, start: date, end: date) -> list[TestRecord]:
        """
        Read test records for covenants in ``scope`` with start <= period_end <= end.

        Args:
            scope: Portfolio, borrower, facility or explicit covenant scope
            start: Earliest period end (inclusive)
            end: Latest period end (inclusive)

        Returns:
            Records ordered by covenant id, period end and recording order

        Raises:
            StorageError: If the read fails
        """

    @abstractmethod
    def read_covenant_metadata(self, covenant_ids: list[str]) -> dict[str, CovenantMetadata]:
        """
        Read display and status metadata.

        Covenants without stored metadata are simply absent from the result.

        Raises:
            StorageError: If the read fails
        """

    @abstractmethod
    def list_scope_ids(self, kind: ScopeKind) -> list[str]:
        """
        List the known ids for a scope kind (sorted).

        Used to validate caller-supplied scopes. Returns an empty list for
        the portfolio kind.
        """
