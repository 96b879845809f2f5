"""
Lead-Lag Analyzer.

For each significantly correlated pair, computes the cross-correlation at
integer quarter offsets from -L to +L and keeps the offset with the largest
absolute cross-correlation as the representative lead-lag:

    corr_k = pearson(source[p], target[p + k])  over quarters p where both exist

Positive k means the source moves first (source leads target by k quarters).
Ties in magnitude prefer the smaller |k| (nearer-term, more actionable).

The relation is antisymmetric, so only the canonical direction (smaller
covenant id as source) is ever computed; the opposite direction is derived
by negating the lag, never recomputed.
"""

from typing import Optional

import numpy as np
import structlog

from covnet.config import EngineConfig
from covnet.models.correlation import LeadLagResult, PairwiseCorrelation, classify_lead_lag
from covnet.models.series import CovenantSeries

from .correlation import pearson
from .errors import DegenerateSeriesError
from .parallel import map_pairs

logger = structlog.get_logger()

MAGNITUDE_TIE_TOLERANCE = 1e-9


class LeadLagAnalyzer:
    """
    Determines which covenant of a correlated pair tends to move first.

    Attributes:
        max_lag: Largest offset (quarters) searched in each direction
        min_overlap: Minimum aligned points required to evaluate an offset
        significance_threshold: Pairs above this p-value are not analyzed
        logger: Structured logger for observability

    Example:
        >>> analyzer = LeadLagAnalyzer(EngineConfig(max_lead_lag=4))
        >>> result = analyzer.analyze_pair(series_a, series_b)
        >>> print(result.lag_periods, result.lead_lag_type.value)
    """

    def __init__(self, config: EngineConfig):
        self.max_lag = config.max_lead_lag
        self.min_overlap = config.min_lag_overlap
        self.significance_threshold = config.significance_threshold
        self.max_workers = config.max_workers
        self.logger = structlog.get_logger()

    def analyze_pair(
        self,
        series_a: CovenantSeries,
        series_b: CovenantSeries,
    ) -> LeadLagResult:
        """
        Compute the lead-lag of ``series_a`` relative to ``series_b``.

        The canonical direction is computed and reversed if the caller asked
        for the opposite orientation, so analyze_pair(A, B) and
        analyze_pair(B, A) always agree up to sign.
        """
        if series_a.covenant_id == series_b.covenant_id:
            return LeadLagResult(
                source_covenant_id=series_a.covenant_id,
                target_covenant_id=series_b.covenant_id,
                lag_periods=0,
                lead_lag_type=classify_lead_lag(0),
                cross_correlation=1.0,
            )
        if series_b.covenant_id < series_a.covenant_id:
            return self.analyze_pair(series_b, series_a).reversed()

        values_a = series_a.values_by_period()
        values_b = series_b.values_by_period()

        correlation_at_lag: dict[int, float] = {}
        for lag in range(-self.max_lag, self.max_lag + 1):
            corr = self._lagged_correlation(values_a, values_b, lag)
            if corr is not None:
                correlation_at_lag[lag] = corr

        best_lag = self._select_lag(correlation_at_lag)
        cross_correlation = correlation_at_lag.get(best_lag, 0.0)

        result = LeadLagResult(
            source_covenant_id=series_a.covenant_id,
            target_covenant_id=series_b.covenant_id,
            lag_periods=best_lag,
            lead_lag_type=classify_lead_lag(best_lag),
            cross_correlation=round(cross_correlation, 6),
            correlation_at_lag={k: round(v, 4) for k, v in sorted(correlation_at_lag.items())},
        )

        self.logger.debug(
            "lead_lag_computed",
            source=result.source_covenant_id,
            target=result.target_covenant_id,
            lag=best_lag,
            cross_correlation=result.cross_correlation,
            evaluated_lags=len(correlation_at_lag),
        )

        return result

    def analyze_all(
        self,
        series: list[CovenantSeries],
        correlations: list[PairwiseCorrelation],
    ) -> list[LeadLagResult]:
        """
        Analyze every significant pair in canonical direction.

        Returns:
            Lead-lag results sorted by (source, target)
        """
        by_id = {s.covenant_id: s for s in series}
        significant = [
            c
            for c in correlations
            if c.is_significant
            and c.p_value <= self.significance_threshold
            and c.source_covenant_id in by_id
            and c.target_covenant_id in by_id
        ]

        results = map_pairs(
            lambda c: self.analyze_pair(by_id[c.source_covenant_id], by_id[c.target_covenant_id]),
            significant,
            self.max_workers,
        )
        results.sort(key=lambda r: (r.source_covenant_id, r.target_covenant_id))

        self.logger.info(
            "lead_lag_pairs_analyzed",
            pair_count=len(results),
            leading_count=sum(1 for r in results if r.lag_periods != 0),
            max_lag=self.max_lag,
        )

        return results

    @staticmethod
    def directional_index(results: list[LeadLagResult]) -> dict[tuple[str, str], LeadLagResult]:
        """Index canonical results by ordered pair, deriving reverse directions."""
        index: dict[tuple[str, str], LeadLagResult] = {}
        for result in results:
            index[(result.source_covenant_id, result.target_covenant_id)] = result
            reverse = result.reversed()
            index[(reverse.source_covenant_id, reverse.target_covenant_id)] = reverse
        return index

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _lagged_correlation(
        self,
        values_a: dict[int, float],
        values_b: dict[int, float],
        lag: int,
    ) -> Optional[float]:
        """
        Pearson correlation between a(p) and b(p + lag).

        Returns:
            Correlation or None if too few aligned points or either side is constant
        """
        aligned = [p for p in sorted(values_a) if p + lag in values_b]
        if len(aligned) < self.min_overlap:
            return None

        x = np.array([values_a[p] for p in aligned], dtype=np.float64)
        y = np.array([values_b[p + lag] for p in aligned], dtype=np.float64)
        try:
            return pearson(x, y)
        except DegenerateSeriesError:
            return None

    @staticmethod
    def _select_lag(correlation_at_lag: dict[int, float]) -> int:
        """
        Pick the lag with the largest |correlation|.

        Ties prefer the smaller |lag|; an exact +k/-k tie prefers +k so the
        choice is deterministic.
        """
        if not correlation_at_lag:
            return 0

        best_lag = None
        best_magnitude = -1.0
        for lag in sorted(correlation_at_lag, key=lambda k: (abs(k), -k)):
            magnitude = abs(correlation_at_lag[lag])
            if magnitude > best_magnitude + MAGNITUDE_TIE_TOLERANCE:
                best_lag = lag
                best_magnitude = magnitude
        return best_lag

