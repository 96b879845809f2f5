"""
Correlation Computer.

Computes the Pearson product-moment correlation and its two-tailed p-value
for every unordered pair of covenant series whose quarters overlap by at
least the minimum sample count.

Significance uses the standard t-distribution approximation:
    t = r * sqrt(n - 2) / sqrt(1 - r^2),  df = n - 2

Every pair is computed once in canonical orientation (smaller covenant id as
source), so corr(A, B) == corr(B, A) holds exactly.
"""

import math
from datetime import datetime
from itertools import combinations

import numpy as np
import structlog
from pydantic import BaseModel, Field
from scipy import stats

from covnet.config import EngineConfig
from covnet.models.correlation import PairwiseCorrelation
from covnet.models.diagnostics import Diagnostic
from covnet.models.enums import CorrelationDirection, CorrelationStrength, DiagnosticCode
from covnet.models.series import CovenantSeries

from .errors import DegenerateSeriesError, InsufficientDataError
from .parallel import map_pairs

logger = structlog.get_logger()

# (lower bound on |r|, label), checked in order
STRENGTH_BREAKPOINTS = [
    (0.8, CorrelationStrength.VERY_STRONG),
    (0.6, CorrelationStrength.STRONG),
    (0.4, CorrelationStrength.MODERATE),
    (0.2, CorrelationStrength.WEAK),
]

VARIANCE_EPSILON = 1e-10


def classify_strength(r: float) -> CorrelationStrength:
    """Bucket |r| using fixed breakpoints."""
    magnitude = abs(r)
    for bound, label in STRENGTH_BREAKPOINTS:
        if magnitude >= bound:
            return label
    return CorrelationStrength.VERY_WEAK


def classify_direction(r: float) -> CorrelationDirection:
    if r > 0:
        return CorrelationDirection.POSITIVE
    if r < 0:
        return CorrelationDirection.NEGATIVE
    return CorrelationDirection.NEUTRAL


def pearson(x: np.ndarray, y: np.ndarray) -> float:
    """
    Pearson correlation of two equal-length arrays, clipped to [-1, 1].

    Raises:
        DegenerateSeriesError: Either array has zero variance
    """
    if np.std(x) < VARIANCE_EPSILON or np.std(y) < VARIANCE_EPSILON:
        raise DegenerateSeriesError("Series has zero variance; correlation undefined")
    dx = x - np.mean(x)
    dy = y - np.mean(y)
    denom = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
    r = float(np.sum(dx * dy)) / denom
    return max(-1.0, min(1.0, r))


def two_tailed_p_value(r: float, n: int) -> float:
    """Two-tailed p-value of r under H0: rho = 0 with df = n - 2."""
    if n <= 2:
        return 1.0
    if abs(r) >= 1.0 - 1e-12:
        return 0.0
    t_stat = abs(r) * math.sqrt(n - 2) / math.sqrt(1.0 - r * r)
    p_value = 2.0 * float(stats.t.sf(t_stat, df=n - 2))
    return max(0.0, min(1.0, p_value))


class CorrelationResult(BaseModel):
    """Correlations for all eligible pairs plus the pairs that were skipped."""

    correlations: list[PairwiseCorrelation] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class CorrelationComputer:
    """
    Computes pairwise Pearson correlations between covenant series.

    Attributes:
        min_sample_size: Minimum overlapping quarters for a pair
        significance_threshold: Maximum p-value for significance
        max_workers: Threads used for the pairwise fan-out
        logger: Structured logger for observability

    Example:
        >>> computer = CorrelationComputer(EngineConfig())
        >>> corr = computer.compute_pair(series_a, series_b, computed_at)
        >>> print(corr.coefficient, corr.p_value, corr.strength.value)
    """

    def __init__(self, config: EngineConfig):
        self.min_sample_size = config.min_sample_size
        self.significance_threshold = config.significance_threshold
        self.max_workers = config.max_workers
        self.logger = structlog.get_logger()

    def compute_pair(
        self,
        series_a: CovenantSeries,
        series_b: CovenantSeries,
        computed_at: datetime,
    ) -> PairwiseCorrelation:
        """
        Correlate two series over the intersection of their quarters.

        A zero-variance series yields r = 0, p = 1, flagged non-significant.

        Raises:
            InsufficientDataError: Fewer than ``min_sample_size`` shared quarters
        """
        if series_b.covenant_id < series_a.covenant_id:
            series_a, series_b = series_b, series_a

        values_a = series_a.values_by_period()
        values_b = series_b.values_by_period()
        shared = sorted(set(values_a) & set(values_b))

        if len(shared) < self.min_sample_size:
            raise InsufficientDataError(
                f"Pair {series_a.covenant_id}/{series_b.covenant_id} shares {len(shared)} "
                f"quarters, minimum is {self.min_sample_size}",
                covenant_ids=[series_a.covenant_id, series_b.covenant_id],
            )

        x = np.array([values_a[p] for p in shared], dtype=np.float64)
        y = np.array([values_b[p] for p in shared], dtype=np.float64)
        n = len(shared)

        degenerate = False
        try:
            r = pearson(x, y)
            p_value = two_tailed_p_value(r, n)
        except DegenerateSeriesError:
            degenerate = True
            r, p_value = 0.0, 1.0
            self.logger.warning(
                "degenerate_series_pair",
                source=series_a.covenant_id,
                target=series_b.covenant_id,
                sample_size=n,
            )

        r = round(r, 6)
        p_value = round(p_value, 6)

        # Shared quarters are a subset of both series, so their bounds are in the samples
        start = next(s.period_end for s in series_a.samples if s.period_index == shared[0])
        end = next(s.period_end for s in series_a.samples if s.period_index == shared[-1])

        return PairwiseCorrelation(
            source_covenant_id=series_a.covenant_id,
            target_covenant_id=series_b.covenant_id,
            coefficient=r,
            p_value=p_value,
            sample_size=n,
            strength=classify_strength(r),
            direction=classify_direction(r),
            is_significant=(not degenerate) and p_value <= self.significance_threshold,
            is_degenerate=degenerate,
            data_start=start,
            data_end=end,
            computed_at=computed_at,
        )

    def compute_all(
        self,
        series: list[CovenantSeries],
        computed_at: datetime,
    ) -> CorrelationResult:
        """
        Correlate every unordered pair of series.

        Pairs with insufficient overlap are skipped and reported; degenerate
        pairs are kept (non-significant) and reported.

        Returns:
            CorrelationResult with correlations sorted by (source, target)
        """
        ordered = sorted(series, key=lambda s: s.covenant_id)
        pairs = list(combinations(ordered, 2))

        def _compute(pair: tuple[CovenantSeries, CovenantSeries]):
            try:
                return self.compute_pair(pair[0], pair[1], computed_at)
            except InsufficientDataError as e:
                return e

        outcomes = map_pairs(_compute, pairs, self.max_workers)

        correlations: list[PairwiseCorrelation] = []
        diagnostics: list[Diagnostic] = []
        for outcome in outcomes:
            if isinstance(outcome, InsufficientDataError):
                diagnostics.append(
                    Diagnostic(
                        code=DiagnosticCode.INSUFFICIENT_DATA,
                        covenant_ids=outcome.covenant_ids,
                        message=outcome.message,
                    )
                )
                continue
            if outcome.is_degenerate:
                diagnostics.append(
                    Diagnostic(
                        code=DiagnosticCode.DEGENERATE_SERIES,
                        covenant_ids=[outcome.source_covenant_id, outcome.target_covenant_id],
                        message="Zero-variance series; recorded as r = 0, p = 1 (non-significant)",
                    )
                )
            correlations.append(outcome)

        correlations.sort(key=lambda c: (c.source_covenant_id, c.target_covenant_id))

        self.logger.info(
            "correlation_pairs_computed",
            series_count=len(ordered),
            pair_count=len(pairs),
            computed_count=len(correlations),
            significant_count=sum(1 for c in correlations if c.is_significant),
            skipped_count=len(pairs) - len(correlations),
        )

        return CorrelationResult(correlations=correlations, diagnostics=diagnostics)
