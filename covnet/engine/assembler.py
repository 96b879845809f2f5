"""
Time Series Assembler.

Turns unordered covenant test-history records into one quarterly
``CovenantSeries`` per covenant on a common time axis:

1. Drop records after the as-of date or outside the history window
2. Normalize each record's period end to its calendar quarter
3. Resolve duplicate quarters by keeping the most recently recorded value
4. Sort ascending by period, leaving gaps unfilled (no interpolation)
5. Reject covenants below the minimum sample count (reported, not fatal)

Covenant metadata missing from the store is derived from the series itself.
"""

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

import structlog
from pydantic import BaseModel, Field

from covnet.config import EngineConfig
from covnet.models.diagnostics import Diagnostic
from covnet.models.enums import CovenantStatus, DiagnosticCode, DiagnosticSeverity
from covnet.models.series import CovenantMetadata, CovenantSeries, SeriesSample, TestRecord
from covnet.utils.periods import index_to_quarter_end, quarter_index

from .errors import InsufficientDataError

logger = structlog.get_logger()


class AssemblyResult(BaseModel):
    """Series that survived assembly plus the covenants that were skipped."""

    series: list[CovenantSeries] = Field(default_factory=list)
    skipped_covenant_ids: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    def covenant_ids(self) -> list[str]:
        return [s.covenant_id for s in self.series]


class TimeSeriesAssembler:
    """
    Builds aligned quarterly series from raw test records.

    Attributes:
        min_sample_size: Minimum quarters required per covenant
        history_quarters: Length of the historical window ending at the as-of date
        logger: Structured logger for observability

    Example:
        >>> assembler = TimeSeriesAssembler(EngineConfig())
        >>> result = assembler.assemble(records, as_of_date=date(2024, 12, 31))
        >>> print([s.covenant_id for s in result.series], result.skipped_covenant_ids)
    """

    def __init__(self, config: EngineConfig):
        self.min_sample_size = config.min_sample_size
        self.history_quarters = config.history_quarters
        self.logger = structlog.get_logger()

    def assemble(self, records: Iterable[TestRecord], as_of_date: date) -> AssemblyResult:
        """
        Assemble one series per covenant present in ``records``.

        Args:
            records: Unordered test records (any number of covenants)
            as_of_date: Records after this date are ignored

        Returns:
            AssemblyResult with series sorted by covenant id
        """
        by_covenant: dict[str, list[TestRecord]] = defaultdict(list)
        for record in records:
            by_covenant[record.covenant_id].append(record)

        series: list[CovenantSeries] = []
        skipped: list[str] = []
        diagnostics: list[Diagnostic] = []

        for covenant_id in sorted(by_covenant):
            try:
                built, duplicates = self.build_series(by_covenant[covenant_id], as_of_date)
            except InsufficientDataError as e:
                skipped.append(covenant_id)
                diagnostics.append(
                    Diagnostic(
                        code=DiagnosticCode.INSUFFICIENT_DATA,
                        severity=DiagnosticSeverity.WARNING,
                        covenant_ids=e.covenant_ids,
                        message=e.message,
                    )
                )
                self.logger.warning(
                    "covenant_skipped_insufficient_data",
                    covenant_id=covenant_id,
                    reason=e.message,
                )
                continue

            if duplicates:
                diagnostics.append(
                    Diagnostic(
                        code=DiagnosticCode.DUPLICATE_PERIOD,
                        severity=DiagnosticSeverity.INFO,
                        covenant_ids=[covenant_id],
                        message=(
                            f"{duplicates} duplicate quarter record(s) resolved "
                            "by keeping the most recently recorded value"
                        ),
                    )
                )
            series.append(built)

        self.logger.info(
            "series_assembled",
            covenant_count=len(by_covenant),
            assembled_count=len(series),
            skipped_count=len(skipped),
            as_of_date=as_of_date.isoformat(),
        )

        return AssemblyResult(
            series=series,
            skipped_covenant_ids=skipped,
            diagnostics=diagnostics,
        )

    def build_series(
        self,
        records: list[TestRecord],
        as_of_date: date,
    ) -> tuple[CovenantSeries, int]:
        """
        Build the quarterly series for a single covenant.

        Args:
            records: Test records of one covenant
            as_of_date: Upper bound of the window

        Returns:
            Tuple of (series, number of duplicate records discarded)

        Raises:
            InsufficientDataError: Fewer than ``min_sample_size`` quarters remain
            ValueError: Records belong to more than one covenant
        """
        if not records:
            raise ValueError("Cannot build a series from zero records")

        covenant_ids = {r.covenant_id for r in records}
        if len(covenant_ids) != 1:
            raise ValueError(f"Records span multiple covenants: {sorted(covenant_ids)}")
        covenant_id = records[0].covenant_id

        last_index = quarter_index(as_of_date)
        first_index = last_index - self.history_quarters + 1

        latest: dict[int, TestRecord] = {}
        duplicates = 0
        for record in records:
            if record.period_end > as_of_date:
                continue
            index = quarter_index(record.period_end)
            if index < first_index:
                continue
            current = latest.get(index)
            if current is None:
                latest[index] = record
                continue
            duplicates += 1
            # Later recording wins; ties keep the later record in input order
            if record.recorded_at >= current.recorded_at:
                latest[index] = record

        if len(latest) < self.min_sample_size:
            raise InsufficientDataError(
                f"Covenant {covenant_id} has {len(latest)} quarterly samples in window, "
                f"minimum is {self.min_sample_size}",
                covenant_ids=[covenant_id],
            )

        samples = [
            SeriesSample(
                period_end=index_to_quarter_end(index),
                period_index=index,
                value=latest[index].value,
                passed=latest[index].passed,
            )
            for index in sorted(latest)
        ]
        # Identity attributes follow the most recent sample
        newest = latest[max(latest)]

        return (
            CovenantSeries(
                covenant_id=covenant_id,
                facility_id=newest.facility_id,
                borrower_id=newest.borrower_id,
                covenant_type=newest.covenant_type,
                samples=samples,
            ),
            duplicates,
        )

    def resolve_metadata(
        self,
        series: list[CovenantSeries],
        metadata: dict[str, CovenantMetadata],
    ) -> dict[str, CovenantMetadata]:
        """
        Return metadata for every assembled series.

        Covenants without stored metadata get metadata derived from the
        series: status is breached when the latest sample failed, otherwise
        active, and headroom is unknown.
        """
        resolved: dict[str, CovenantMetadata] = {}
        for s in series:
            stored: Optional[CovenantMetadata] = metadata.get(s.covenant_id)
            if stored is not None:
                resolved[s.covenant_id] = stored
                continue
            latest_passed = s.samples[-1].passed if s.samples else True
            resolved[s.covenant_id] = CovenantMetadata(
                covenant_id=s.covenant_id,
                covenant_type=s.covenant_type,
                facility_id=s.facility_id,
                borrower_id=s.borrower_id,
                status=CovenantStatus.ACTIVE if latest_passed else CovenantStatus.BREACHED,
            )
        return resolved
