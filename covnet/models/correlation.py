"""
Pairwise relationship models.

Correlation is symmetric and stored once per unordered pair (source id sorts
before target id). Lead-lag and propagation are directional and stored per
ordered pair.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import CorrelationDirection, CorrelationStrength, LeadLagType


class PairwiseCorrelation(BaseModel):
    """
    Pearson correlation between two covenant series over their shared periods.

    Attributes:
        source_covenant_id: Lexicographically smaller covenant id
        target_covenant_id: Lexicographically larger covenant id
        coefficient: Pearson r in [-1, 1]
        p_value: Two-tailed p-value in [0, 1]
        sample_size: Number of aligned periods
        strength: Strength bucket for |r|
        direction: Sign of r
        is_significant: p_value within the configured threshold and series non-degenerate
        is_degenerate: Either series was constant over the shared periods
        data_start: First shared period
        data_end: Last shared period
        computed_at: Computation timestamp (derived from the as-of date)
    """

    model_config = ConfigDict(frozen=True)

    source_covenant_id: str
    target_covenant_id: str
    coefficient: float = Field(ge=-1.0, le=1.0)
    p_value: float = Field(ge=0.0, le=1.0)
    sample_size: int = Field(ge=0)
    strength: CorrelationStrength
    direction: CorrelationDirection
    is_significant: bool
    is_degenerate: bool = False
    data_start: date
    data_end: date
    computed_at: datetime

    @field_validator("coefficient", "p_value")
    @classmethod
    def round_statistic(cls, v: float) -> float:
        return round(v, 6)


class LeadLagResult(BaseModel):
    """
    Lead-lag relationship for an ordered covenant pair.

    ``lag_periods`` > 0 means the source leads the target by that many
    quarters. The relation is antisymmetric: lag(A, B) == -lag(B, A).
    """

    model_config = ConfigDict(frozen=True)

    source_covenant_id: str
    target_covenant_id: str
    lag_periods: int
    lead_lag_type: LeadLagType
    cross_correlation: float = Field(ge=-1.0, le=1.0, description="Cross-correlation at the chosen lag")
    correlation_at_lag: dict[int, float] = Field(
        default_factory=dict, description="Cross-correlation at each evaluated lag"
    )

    def reversed(self) -> "LeadLagResult":
        """Derive the opposite direction algebraically."""
        return LeadLagResult(
            source_covenant_id=self.target_covenant_id,
            target_covenant_id=self.source_covenant_id,
            lag_periods=-self.lag_periods,
            lead_lag_type=classify_lead_lag(-self.lag_periods),
            cross_correlation=self.cross_correlation,
            correlation_at_lag=dict(sorted((-lag, corr) for lag, corr in self.correlation_at_lag.items())),
        )


class PropagationEdge(BaseModel):
    """
    Directed breach-propagation estimate for a significant pair.

    Attributes:
        source_covenant_id: Covenant whose breach propagates
        target_covenant_id: Covenant affected
        correlation: Underlying symmetric correlation
        lead_lag_periods: Lag from source to target (positive = source leads)
        lead_lag_type: Classification of the lag
        propagation_probability: Blended probability in [0, 100]
        avg_propagation_time: Mean quarters from source breach to nearest
            subsequent target breach, None when no co-breach was observed
        co_breach_rate: Share of source breach periods followed by a target
            breach within the window, in [0, 100]
        co_breach_count: Number of such co-breach events
    """

    model_config = ConfigDict(frozen=True)

    source_covenant_id: str
    target_covenant_id: str
    correlation_coefficient: float = Field(ge=-1.0, le=1.0)
    p_value: float = Field(ge=0.0, le=1.0)
    strength: CorrelationStrength
    direction: CorrelationDirection
    sample_size: int = Field(ge=0)
    data_start: date
    data_end: date
    computed_at: datetime
    lead_lag_periods: int
    lead_lag_type: LeadLagType
    propagation_probability: float = Field(ge=0.0, le=100.0)
    avg_propagation_time: Optional[float] = Field(default=None, ge=0.0)
    co_breach_rate: float = Field(ge=0.0, le=100.0)
    co_breach_count: int = Field(ge=0)


def classify_lead_lag(lag: int) -> LeadLagType:
    """Classify a signed lag from the source's point of view."""
    if lag > 0:
        return LeadLagType.LEADING
    if lag < 0:
        return LeadLagType.LAGGING
    return LeadLagType.SYNCHRONOUS
