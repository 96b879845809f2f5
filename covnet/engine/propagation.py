"""
Propagation Estimator.

Converts correlation, lead-lag and historical co-breach statistics into a
directional breach-propagation probability for every significant pair.
Each direction is estimated independently: correlation is symmetric, but
co-breach history and lead-lag are not.

Probability (0-100) for source -> target:

    blended    = w_corr * |r| * 100 + w_co * co_breach_rate + w_lead * lead_score
    confidence = min(1, sample_size / full_confidence_samples)
    p          = 50 + (blended - 50) * confidence      (small samples pulled to 50)

where lead_score is 100 when the source leads, 50 when synchronous and 0
when the source lags. The weights are configuration. When no co-breach
event has ever been observed, p is the configured floor: correlation
implies risk that history has not confirmed.
"""

import structlog

from covnet.config import EngineConfig
from covnet.models.correlation import (
    LeadLagResult,
    PairwiseCorrelation,
    PropagationEdge,
    classify_lead_lag,
)
from covnet.models.series import CovenantSeries

from .lead_lag import LeadLagAnalyzer

logger = structlog.get_logger()

NEUTRAL_PROBABILITY = 50.0


class PropagationEstimator:
    """
    Estimates breach-propagation probability and timing per directed pair.

    Attributes:
        co_breach_window: Quarters after a source breach in which a target
            breach counts as a co-breach (the source quarter included)
        propagation_floor: Probability when no co-breach was observed
        full_confidence_samples: Sample size at which no discount applies
        w_correlation, w_co_breach, w_lead_lag: Blending weights (sum to 1.0)
        logger: Structured logger for observability

    Example:
        >>> estimator = PropagationEstimator(EngineConfig())
        >>> edges = estimator.estimate_all(series, correlations, lead_lags)
        >>> print(edges[0].propagation_probability)
    """

    def __init__(self, config: EngineConfig):
        self.co_breach_window = config.co_breach_window
        self.propagation_floor = config.propagation_floor
        self.full_confidence_samples = config.full_confidence_samples
        self.min_sample_size = config.min_sample_size
        self.significance_threshold = config.significance_threshold
        self.min_edge_correlation = config.min_edge_correlation
        self.w_correlation = config.w_correlation
        self.w_co_breach = config.w_co_breach
        self.w_lead_lag = config.w_lead_lag
        self.logger = structlog.get_logger()

    def is_edge_eligible(self, correlation: PairwiseCorrelation) -> bool:
        """Whether a correlation is strong, significant and large enough for edges."""
        return (
            correlation.is_significant
            and correlation.p_value <= self.significance_threshold
            and abs(correlation.coefficient) >= self.min_edge_correlation
            and correlation.sample_size >= self.min_sample_size
        )

    def compute_co_breach(
        self,
        source: CovenantSeries,
        target: CovenantSeries,
    ) -> dict:
        """
        Co-breach statistics for source -> target.

        For every source breach quarter s, look for the nearest target breach
        t with s <= t <= s + window.

        Returns:
            {
                "co_breach_count": int,
                "co_breach_rate": float,          # 0-100
                "avg_propagation_time": float | None,
                "source_breach_count": int,
            }
        """
        source_breaches = source.breach_periods()
        target_breaches = sorted(target.breach_periods())

        delays: list[int] = []
        for s in source_breaches:
            candidates = [t - s for t in target_breaches if 0 <= t - s <= self.co_breach_window]
            if candidates:
                delays.append(min(candidates))

        count = len(delays)
        rate = (count / len(source_breaches) * 100.0) if source_breaches else 0.0
        avg_time = (sum(delays) / count) if count else None

        return {
            "co_breach_count": count,
            "co_breach_rate": round(rate, 4),
            "avg_propagation_time": round(avg_time, 4) if avg_time is not None else None,
            "source_breach_count": len(source_breaches),
        }

    def blend_probability(
        self,
        abs_correlation: float,
        co_breach_rate: float,
        lag_periods: int,
        sample_size: int,
    ) -> float:
        """
        Blend the components into a probability in [floor, 100].

        Only called when at least one co-breach was observed.
        """
        if lag_periods > 0:
            lead_score = 100.0
        elif lag_periods == 0:
            lead_score = 50.0
        else:
            lead_score = 0.0

        blended = (
            self.w_correlation * abs_correlation * 100.0
            + self.w_co_breach * co_breach_rate
            + self.w_lead_lag * lead_score
        )
        confidence = min(1.0, sample_size / self.full_confidence_samples)
        probability = NEUTRAL_PROBABILITY + (blended - NEUTRAL_PROBABILITY) * confidence

        return round(max(self.propagation_floor, min(100.0, probability)), 2)

    def estimate_pair(
        self,
        source: CovenantSeries,
        target: CovenantSeries,
        correlation: PairwiseCorrelation,
        lead_lag: LeadLagResult,
    ) -> PropagationEdge:
        """
        Estimate propagation from ``source`` to ``target``.

        Args:
            source: Series of the breaching covenant
            target: Series of the potentially affected covenant
            correlation: Symmetric correlation of the pair
            lead_lag: Lead-lag oriented source -> target
        """
        co_breach = self.compute_co_breach(source, target)

        if co_breach["co_breach_count"] == 0:
            probability = round(self.propagation_floor, 2)
        else:
            probability = self.blend_probability(
                abs_correlation=abs(correlation.coefficient),
                co_breach_rate=co_breach["co_breach_rate"],
                lag_periods=lead_lag.lag_periods,
                sample_size=correlation.sample_size,
            )

        return PropagationEdge(
            source_covenant_id=source.covenant_id,
            target_covenant_id=target.covenant_id,
            correlation_coefficient=correlation.coefficient,
            p_value=correlation.p_value,
            strength=correlation.strength,
            direction=correlation.direction,
            sample_size=correlation.sample_size,
            data_start=correlation.data_start,
            data_end=correlation.data_end,
            computed_at=correlation.computed_at,
            lead_lag_periods=lead_lag.lag_periods,
            lead_lag_type=lead_lag.lead_lag_type,
            propagation_probability=probability,
            avg_propagation_time=co_breach["avg_propagation_time"],
            co_breach_rate=co_breach["co_breach_rate"],
            co_breach_count=co_breach["co_breach_count"],
        )

    def estimate_all(
        self,
        series: list[CovenantSeries],
        correlations: list[PairwiseCorrelation],
        lead_lags: list[LeadLagResult],
    ) -> list[PropagationEdge]:
        """
        Estimate both directions of every edge-eligible pair.

        Returns:
            Propagation edges sorted by (source, target)
        """
        by_id = {s.covenant_id: s for s in series}
        lag_index = LeadLagAnalyzer.directional_index(lead_lags)

        edges: list[PropagationEdge] = []
        for correlation in correlations:
            if not self.is_edge_eligible(correlation):
                continue
            a, b = correlation.source_covenant_id, correlation.target_covenant_id
            if a not in by_id or b not in by_id:
                continue
            for source_id, target_id in ((a, b), (b, a)):
                lead_lag = lag_index.get((source_id, target_id)) or LeadLagResult(
                    source_covenant_id=source_id,
                    target_covenant_id=target_id,
                    lag_periods=0,
                    lead_lag_type=classify_lead_lag(0),
                    cross_correlation=correlation.coefficient,
                )
                edges.append(
                    self.estimate_pair(by_id[source_id], by_id[target_id], correlation, lead_lag)
                )

        edges.sort(key=lambda e: (e.source_covenant_id, e.target_covenant_id))

        self.logger.info(
            "propagation_edges_estimated",
            eligible_pairs=len(edges) // 2,
            edge_count=len(edges),
            observed_co_breach_edges=sum(1 for e in edges if e.co_breach_count > 0),
        )

        return edges
