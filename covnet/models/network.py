"""
Covenant correlation network models.

The network is an arena: nodes and edges live in flat lists and edges refer
to nodes by stable integer index (and covenant id) rather than by object
reference. Cycles in the underlying correlation structure therefore never
become reference cycles, and the whole network serializes as plain JSON.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from covnet.config import EngineConfig

from .correlation import LeadLagResult, PairwiseCorrelation, PropagationEdge
from .diagnostics import Diagnostic
from .enums import CovenantStatus
from .series import Scope


class NetworkNode(BaseModel):
    """
    One covenant in the network.

    Attributes:
        index: Position in the network's node list
        covenant_id: Covenant identifier
        in_degree: Number of inbound propagation edges
        out_degree: Number of outbound propagation edges
        centrality: Eigenvector centrality in [0, 1]
        risk_score: Blend of status severity, headroom and centrality in [0, 100]
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    covenant_id: str
    covenant_name: str = ""
    covenant_type: str = ""
    facility_id: str = ""
    facility_name: str = ""
    borrower_id: str = ""
    borrower_name: str = ""
    status: CovenantStatus = CovenantStatus.ACTIVE
    current_headroom: Optional[float] = None
    sample_count: int = Field(ge=0)
    in_degree: int = Field(ge=0)
    out_degree: int = Field(ge=0)
    centrality: float = Field(ge=0.0, le=1.0)
    risk_score: float = Field(ge=0.0, le=100.0)

    @field_validator("centrality")
    @classmethod
    def round_centrality(cls, v: float) -> float:
        return round(v, 6)

    @property
    def display_name(self) -> str:
        name = self.covenant_name or self.covenant_type or self.covenant_id
        if self.borrower_name:
            return f"{self.borrower_name} - {name}"
        return name


class NetworkEdge(BaseModel):
    """
    Directed propagation edge between two nodes.

    Attributes:
        index: Position in the network's edge list
        source_index: Index of the source node
        target_index: Index of the target node
        weight: |correlation coefficient|, used for rendering
        is_significant: Whether the underlying correlation is significant
        propagation: Full propagation estimate for this direction
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    source_index: int = Field(ge=0)
    target_index: int = Field(ge=0)
    source_covenant_id: str
    target_covenant_id: str
    weight: float = Field(ge=0.0, le=1.0)
    is_significant: bool = True
    propagation: PropagationEdge


class MostCentralCovenant(BaseModel):
    """The node with the highest centrality (ties broken by covenant id)."""

    model_config = ConfigDict(frozen=True)

    covenant_id: str
    covenant_name: str
    centrality: float = Field(ge=0.0, le=1.0)


class RiskCluster(BaseModel):
    """
    The highest-risk group of connected covenants.

    Attributes:
        covenant_ids: Member covenants, highest risk first
        avg_risk_score: Mean risk score of members
        propagation_potential: Mean probability of edges inside the cluster
    """

    model_config = ConfigDict(frozen=True)

    covenant_ids: list[str]
    avg_risk_score: float = Field(ge=0.0, le=100.0)
    propagation_potential: float = Field(ge=0.0, le=100.0)


class NetworkStats(BaseModel):
    """Portfolio-level statistics derived from the assembled node and edge sets."""

    model_config = ConfigDict(frozen=True)

    total_covenants: int = Field(ge=0)
    total_facilities: int = Field(ge=0)
    significant_correlations: int = Field(ge=0)
    avg_correlation_strength: float = Field(ge=0.0, le=1.0)
    network_density: float = Field(ge=0.0, le=1.0)
    connected_components: int = Field(ge=0)
    most_central_covenant: Optional[MostCentralCovenant] = None
    highest_risk_cluster: Optional[RiskCluster] = Field(
        default=None,
        description="Riskiest component with at least one propagation edge; None when every covenant is isolated",
    )


class CovenantNetwork(BaseModel):
    """
    Complete output of one network computation.

    A pure function of (series snapshot, configuration): recomputed on every
    run and replaced wholesale, never mutated in place.

    Attributes:
        network_id: Digest of scope, as-of date and configuration
        scope: Scope that was analyzed
        as_of_date: Upper bound of the historical window
        generated_at: Derived from the as-of date for reproducibility
        nodes: One node per covenant that survived assembly
        edges: One edge per propagation estimate
        correlations: All computed pairwise correlations
        lead_lags: Lead-lag results for significant pairs (canonical direction)
        stats: Network-level statistics
        centrality_converged: False when power iteration hit the cap
        centrality_iterations: Iterations used
        skipped_covenant_ids: Covenants excluded for insufficient data
        diagnostics: Non-fatal conditions encountered
        config: Engine configuration used for the run
    """

    model_config = ConfigDict(frozen=True)

    network_id: str
    scope: Scope
    as_of_date: date
    generated_at: datetime
    nodes: list[NetworkNode]
    edges: list[NetworkEdge]
    correlations: list[PairwiseCorrelation] = Field(default_factory=list)
    lead_lags: list[LeadLagResult] = Field(default_factory=list)
    stats: NetworkStats
    centrality_converged: bool = True
    centrality_iterations: int = Field(default=0, ge=0)
    skipped_covenant_ids: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    config: EngineConfig

    def node_for(self, covenant_id: str) -> Optional[NetworkNode]:
        for node in self.nodes:
            if node.covenant_id == covenant_id:
                return node
        return None

    def outbound_edges(self) -> dict[int, list[NetworkEdge]]:
        """Adjacency list keyed by source node index, edges in id order."""
        adjacency: dict[int, list[NetworkEdge]] = {node.index: [] for node in self.nodes}
        for edge in self.edges:
            adjacency[edge.source_index].append(edge)
        return adjacency
