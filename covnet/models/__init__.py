"""
Pydantic v2 data models for the covenant correlation engine.

Model Organization:
    - enums: Closed enumerations (status, strength, direction, tiers, codes)
    - series: Test records, covenant metadata, scope, assembled series
    - correlation: Pairwise correlation, lead-lag and propagation edges
    - network: Arena-style network of nodes, edges and statistics
    - contagion: On-demand contagion assessment
    - matrix: Dense matrices for visualization
    - diagnostics: Non-fatal conditions returned alongside results
    - requests: API request bodies

Usage:
    >>> from covnet.models import Scope, TestRecord
    >>> record = TestRecord(
    ...     covenant_id="cov-1",
    ...     facility_id="fac-1",
    ...     borrower_id="bor-1",
    ...     covenant_type="leverage_ratio",
    ...     period_end=date(2024, 3, 31),
    ...     value=3.2,
    ...     passed=True,
    ...     recorded_at=datetime(2024, 4, 15),
    ... )
"""

from .contagion import AffectedCovenant, ContagionAssessment, PortfolioImpact
from .correlation import LeadLagResult, PairwiseCorrelation, PropagationEdge, classify_lead_lag
from .diagnostics import Diagnostic
from .enums import (
    CorrelationDirection,
    CorrelationStrength,
    CovenantStatus,
    DiagnosticCode,
    DiagnosticSeverity,
    LeadLagType,
    RiskTier,
    ScopeKind,
)
from .matrix import CorrelationMatrix, MatrixLabel
from .network import (
    CovenantNetwork,
    MostCentralCovenant,
    NetworkEdge,
    NetworkNode,
    NetworkStats,
    RiskCluster,
)
from .requests import ContagionRequest, NetworkRequest
from .series import CovenantMetadata, CovenantSeries, Scope, SeriesSample, TestRecord

__all__ = [
    # Enumerations
    "CorrelationDirection",
    "CorrelationStrength",
    "CovenantStatus",
    "DiagnosticCode",
    "DiagnosticSeverity",
    "LeadLagType",
    "RiskTier",
    "ScopeKind",
    # Series
    "CovenantMetadata",
    "CovenantSeries",
    "Scope",
    "SeriesSample",
    "TestRecord",
    # Pairwise
    "LeadLagResult",
    "PairwiseCorrelation",
    "PropagationEdge",
    "classify_lead_lag",
    # Network
    "CovenantNetwork",
    "MostCentralCovenant",
    "NetworkEdge",
    "NetworkNode",
    "NetworkStats",
    "RiskCluster",
    # Contagion
    "AffectedCovenant",
    "ContagionAssessment",
    "PortfolioImpact",
    # Matrix
    "CorrelationMatrix",
    "MatrixLabel",
    # Diagnostics / requests
    "Diagnostic",
    "ContagionRequest",
    "NetworkRequest",
]
