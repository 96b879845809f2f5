"""
Contagion assessment models.

An assessment is produced on demand for one source covenant and is not
persisted as part of the network.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import RiskTier


class AffectedCovenant(BaseModel):
    """
    A covenant reachable from the breach source within the hop bound.

    Attributes:
        covenant_id: Affected covenant
        propagation_probability: Compounded probability along the best path (0-100)
        expected_impact_periods: Sum of average propagation times along the path
        path: Covenant ids from source to this covenant, inclusive
        hops: Number of edges on the path
        current_headroom: Current headroom percent, None when unknown
        post_breach_headroom_estimate: Headroom after the modeled shock
        risk_tier: Qualitative tier
    """

    model_config = ConfigDict(frozen=True)

    covenant_id: str
    covenant_name: str = ""
    facility_id: str = ""
    facility_name: str = ""
    borrower_name: str = ""
    propagation_probability: float = Field(ge=0.0, le=100.0)
    expected_impact_periods: float = Field(ge=0.0)
    path: list[str]
    hops: int = Field(ge=1)
    current_headroom: Optional[float] = None
    post_breach_headroom_estimate: Optional[float] = None
    risk_tier: RiskTier

    @field_validator("propagation_probability", "expected_impact_periods")
    @classmethod
    def round_metric(cls, v: float) -> float:
        return round(v, 4)


class PortfolioImpact(BaseModel):
    """Portfolio-level aggregate of a contagion assessment."""

    model_config = ConfigDict(frozen=True)

    total_facilities_at_risk: int = Field(ge=0)
    total_covenants_at_risk: int = Field(ge=0)
    estimated_breach_cascade_probability: float = Field(ge=0.0, le=100.0)
    expected_contagion_timeline_periods: float = Field(ge=0.0)


class ContagionAssessment(BaseModel):
    """
    Ranked downstream impact of a (real or hypothetical) breach.

    Attributes:
        source_covenant_id: Breaching covenant
        affected_covenants: Ranked by probability desc, horizon asc, id asc
        portfolio_impact: Aggregate counts, cascade probability and timeline
        recommendations: Templated follow-up suggestions
        max_depth: Hop bound used for the traversal
        assessed_at: Derived from the network's as-of date
    """

    model_config = ConfigDict(frozen=True)

    source_covenant_id: str
    source_covenant_name: str = ""
    network_id: str
    affected_covenants: list[AffectedCovenant] = Field(default_factory=list)
    portfolio_impact: PortfolioImpact
    recommendations: list[str] = Field(default_factory=list)
    max_depth: int = Field(ge=1)
    assessed_at: datetime
