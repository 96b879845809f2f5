"""
Network Builder.

Assembles covenants and propagation edges into an arena-style network:

1. Nodes: one per assembled covenant, ordered by covenant id. Isolated
   covenants are kept.
2. Edges: one per propagation estimate, addressed by node index
3. Centrality: eigenvector centrality by power iteration on the symmetrized
   weighted adjacency (weights = probability / 100), run per connected
   component, normalized to max 1.0 each iteration and bounded by an
   iteration cap. Components are scaled by their spectral radius.
4. Risk score: weighted blend of status severity, inverse headroom and
   centrality, in [0, 100]
5. Statistics: density, average correlation strength, connected components
   (networkx, undirected view), most-central node, highest-risk cluster

The iteration runs on I + S instead of S. Both have the same leading
eigenvector, but the shifted matrix cannot oscillate on bipartite
structures (e.g. a star), so the iteration always settles.
"""

import warnings
from datetime import date, datetime
from statistics import mean
from typing import Optional

import networkx as nx
import numpy as np
import structlog

from covnet.config import EngineConfig
from covnet.models.correlation import LeadLagResult, PairwiseCorrelation, PropagationEdge
from covnet.models.diagnostics import Diagnostic
from covnet.models.enums import CovenantStatus, DiagnosticCode, DiagnosticSeverity
from covnet.models.network import (
    CovenantNetwork,
    MostCentralCovenant,
    NetworkEdge,
    NetworkNode,
    NetworkStats,
    RiskCluster,
)
from covnet.models.series import CovenantMetadata, CovenantSeries, Scope

from .errors import ConvergenceWarning

logger = structlog.get_logger()

# Status severity on a 0-100 scale (breached > at_risk > waived > active)
STATUS_SEVERITY = {
    CovenantStatus.BREACHED: 100.0,
    CovenantStatus.AT_RISK: 70.0,
    CovenantStatus.WAIVED: 40.0,
    CovenantStatus.ACTIVE: 10.0,
}

# Headroom component when current headroom is unknown
UNKNOWN_HEADROOM_RISK = 50.0


class NetworkBuilder:
    """
    Builds the covenant network with centrality, risk scores and statistics.

    Attributes:
        tolerance: Power iteration convergence tolerance (max abs change)
        max_iterations: Power iteration cap
        w_status, w_headroom, w_centrality: Risk score weights (sum to 1.0)
        headroom_cap: Headroom percent treated as fully safe
        cluster_top_k: Cluster size when the graph is one component
        logger: Structured logger for observability

    Example:
        >>> builder = NetworkBuilder(EngineConfig())
        >>> network = builder.build(series, metadata, correlations, lead_lags, edges, ...)
        >>> print(network.stats.most_central_covenant)
    """

    def __init__(self, config: EngineConfig):
        self.config = config
        self.tolerance = config.centrality_tolerance
        self.max_iterations = config.centrality_max_iterations
        self.w_status = config.w_status
        self.w_headroom = config.w_headroom
        self.w_centrality = config.w_centrality
        self.headroom_cap = config.headroom_cap
        self.cluster_top_k = config.cluster_top_k
        self.logger = structlog.get_logger()

    def build(
        self,
        series: list[CovenantSeries],
        metadata: dict[str, CovenantMetadata],
        correlations: list[PairwiseCorrelation],
        lead_lags: list[LeadLagResult],
        propagation_edges: list[PropagationEdge],
        *,
        network_id: str,
        scope: Scope,
        as_of_date: date,
        generated_at: datetime,
        skipped_covenant_ids: Optional[list[str]] = None,
        diagnostics: Optional[list[Diagnostic]] = None,
    ) -> CovenantNetwork:
        """
        Assemble the complete network.

        Args:
            series: Assembled series (one node each)
            metadata: Display/status metadata keyed by covenant id
            correlations: All computed correlations
            lead_lags: Canonical lead-lag results
            propagation_edges: Directed propagation estimates
            network_id: Deterministic id of this computation
            scope: Scope that was analyzed
            as_of_date: Upper bound of the historical window
            generated_at: Timestamp recorded on the network
            skipped_covenant_ids: Covenants excluded upstream
            diagnostics: Non-fatal conditions collected upstream

        Returns:
            CovenantNetwork (immutable)
        """
        diagnostics = list(diagnostics or [])
        ordered = sorted(series, key=lambda s: s.covenant_id)
        index_of = {s.covenant_id: i for i, s in enumerate(ordered)}

        kept_edges = sorted(
            (
                e
                for e in propagation_edges
                if e.source_covenant_id in index_of and e.target_covenant_id in index_of
            ),
            key=lambda e: (e.source_covenant_id, e.target_covenant_id),
        )

        centrality, converged, iterations = self.compute_centrality(
            len(ordered),
            [
                (index_of[e.source_covenant_id], index_of[e.target_covenant_id], e.propagation_probability)
                for e in kept_edges
            ],
        )
        if not converged:
            message = (
                f"Centrality did not converge within {self.max_iterations} iterations; "
                "scores are approximate"
            )
            diagnostics.append(
                Diagnostic(
                    code=DiagnosticCode.CONVERGENCE_WARNING,
                    severity=DiagnosticSeverity.WARNING,
                    message=message,
                )
            )
            warnings.warn(message, ConvergenceWarning, stacklevel=2)
            self.logger.warning(
                "centrality_not_converged",
                iterations=iterations,
                tolerance=self.tolerance,
            )
        else:
            self.logger.debug("centrality_converged", iterations=iterations)

        in_degree = [0] * len(ordered)
        out_degree = [0] * len(ordered)
        for e in kept_edges:
            out_degree[index_of[e.source_covenant_id]] += 1
            in_degree[index_of[e.target_covenant_id]] += 1

        nodes: list[NetworkNode] = []
        for i, s in enumerate(ordered):
            meta = metadata.get(s.covenant_id) or CovenantMetadata(covenant_id=s.covenant_id)
            nodes.append(
                NetworkNode(
                    index=i,
                    covenant_id=s.covenant_id,
                    covenant_name=meta.covenant_name,
                    covenant_type=meta.covenant_type or s.covenant_type,
                    facility_id=meta.facility_id or s.facility_id,
                    facility_name=meta.facility_name,
                    borrower_id=meta.borrower_id or s.borrower_id,
                    borrower_name=meta.borrower_name,
                    status=meta.status,
                    current_headroom=meta.current_headroom_pct,
                    sample_count=s.sample_count,
                    in_degree=in_degree[i],
                    out_degree=out_degree[i],
                    centrality=centrality[i],
                    risk_score=self.compute_risk_score(
                        meta.status, meta.current_headroom_pct, centrality[i]
                    ),
                )
            )

        edges = [
            NetworkEdge(
                index=k,
                source_index=index_of[e.source_covenant_id],
                target_index=index_of[e.target_covenant_id],
                source_covenant_id=e.source_covenant_id,
                target_covenant_id=e.target_covenant_id,
                weight=round(abs(e.correlation_coefficient), 6),
                is_significant=True,
                propagation=e,
            )
            for k, e in enumerate(kept_edges)
        ]

        stats = self.compute_stats(nodes, edges, correlations)

        self.logger.info(
            "network_built",
            node_count=len(nodes),
            edge_count=len(edges),
            connected_components=stats.connected_components,
            centrality_converged=converged,
            centrality_iterations=iterations,
        )

        return CovenantNetwork(
            network_id=network_id,
            scope=scope,
            as_of_date=as_of_date,
            generated_at=generated_at,
            nodes=nodes,
            edges=edges,
            correlations=sorted(
                correlations, key=lambda c: (c.source_covenant_id, c.target_covenant_id)
            ),
            lead_lags=sorted(lead_lags, key=lambda r: (r.source_covenant_id, r.target_covenant_id)),
            stats=stats,
            centrality_converged=converged,
            centrality_iterations=iterations,
            skipped_covenant_ids=sorted(skipped_covenant_ids or []),
            diagnostics=diagnostics,
            config=self.config,
        )

    def compute_centrality(
        self,
        node_count: int,
        weighted_edges: list[tuple[int, int, float]],
    ) -> tuple[list[float], bool, int]:
        """
        Eigenvector centrality by power iteration.

        Each connected component is iterated on its own and normalized to
        max 1.0, then scaled by its spectral radius relative to the largest
        one, so unrelated clusters settle independently and stay comparable.

        Args:
            node_count: Number of nodes
            weighted_edges: (source index, target index, probability 0-100)

        Returns:
            Tuple of (centrality per node in [0, 1], converged, iterations used)
        """
        if node_count == 0:
            return [], True, 0

        adjacency = np.zeros((node_count, node_count), dtype=np.float64)
        for source, target, probability in weighted_edges:
            adjacency[source, target] = probability / 100.0
        symmetric = (adjacency + adjacency.T) / 2.0

        graph = nx.Graph()
        graph.add_nodes_from(range(node_count))
        graph.add_edges_from((s, t) for s, t, probability in weighted_edges if probability > 0.0)

        # Nodes without any edge carry no structural importance
        centrality = np.zeros(node_count, dtype=np.float64)
        radius = np.zeros(node_count, dtype=np.float64)
        converged = True
        iterations = 0
        for component in nx.connected_components(graph):
            if len(component) < 2:
                continue
            members = sorted(component)
            vector, spectral_radius, settled, used = self._power_iterate(symmetric[np.ix_(members, members)])
            centrality[members] = vector
            radius[members] = spectral_radius
            converged = converged and settled
            iterations = max(iterations, used)

        peak_radius = float(radius.max())
        if peak_radius > 0.0:
            centrality = centrality * radius / peak_radius

        return [float(max(0.0, min(1.0, v))) for v in centrality], converged, iterations

    def _power_iterate(self, block: np.ndarray) -> tuple[np.ndarray, float, bool, int]:
        """Iterate x <- (I + S)x / max on one connected block."""
        x = np.ones(block.shape[0], dtype=np.float64)
        peak = 1.0
        converged = False
        iterations = 0
        for iterations in range(1, self.max_iterations + 1):
            y = x + block @ x
            peak = float(y.max())
            y = y / peak
            delta = float(np.max(np.abs(y - x)))
            x = y
            if delta < self.tolerance:
                converged = True
                break
        # With max(x) == 1 the peak of (I + S)x approaches 1 + lambda
        return x, peak - 1.0, converged, iterations

    def compute_risk_score(
        self,
        status: CovenantStatus,
        headroom_pct: Optional[float],
        centrality: float,
    ) -> float:
        """
        Blend status severity, inverse headroom and centrality into 0-100.

        Headroom below zero is clipped at 0 (maximum headroom risk); headroom
        at or above the cap contributes no risk.
        """
        if headroom_pct is None:
            headroom_risk = UNKNOWN_HEADROOM_RISK
        else:
            clipped = max(0.0, min(self.headroom_cap, headroom_pct))
            headroom_risk = 100.0 - clipped / self.headroom_cap * 100.0

        score = (
            self.w_status * STATUS_SEVERITY[status]
            + self.w_headroom * headroom_risk
            + self.w_centrality * centrality * 100.0
        )
        return round(max(0.0, min(100.0, score)), 1)

    def compute_stats(
        self,
        nodes: list[NetworkNode],
        edges: list[NetworkEdge],
        correlations: list[PairwiseCorrelation],
    ) -> NetworkStats:
        """Derive network-level statistics from the assembled node and edge sets."""
        n = len(nodes)
        significant = [c for c in correlations if c.is_significant]

        graph = nx.Graph()
        graph.add_nodes_from(node.covenant_id for node in nodes)
        graph.add_edges_from((e.source_covenant_id, e.target_covenant_id) for e in edges)
        components = [sorted(c) for c in nx.connected_components(graph)]

        density = len(edges) / (n * (n - 1)) if n > 1 else 0.0
        avg_strength = mean(abs(c.coefficient) for c in significant) if significant else 0.0

        most_central = None
        if nodes:
            top = min(nodes, key=lambda node: (-node.centrality, node.covenant_id))
            most_central = MostCentralCovenant(
                covenant_id=top.covenant_id,
                covenant_name=top.display_name,
                centrality=top.centrality,
            )

        return NetworkStats(
            total_covenants=n,
            total_facilities=len({node.facility_id for node in nodes if node.facility_id}),
            significant_correlations=len(significant),
            avg_correlation_strength=round(min(1.0, avg_strength), 4),
            network_density=round(min(1.0, density), 4),
            connected_components=len(components),
            most_central_covenant=most_central,
            highest_risk_cluster=self._highest_risk_cluster(nodes, edges, components),
        )

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _highest_risk_cluster(
        self,
        nodes: list[NetworkNode],
        edges: list[NetworkEdge],
        components: list[list[str]],
    ) -> Optional[RiskCluster]:
        """
        Select the highest-risk cluster.

        A single component spanning the whole graph yields its top-k nodes by
        risk score; otherwise the multi-node component with the highest mean
        risk wins, ties going to the component with the smaller first id.
        An isolated covenant carries no propagation, so a graph made only of
        singletons (or with fewer than two covenants) has no cluster.
        """
        if len(nodes) < 2:
            return None

        risk = {node.covenant_id: node.risk_score for node in nodes}

        if len(components) == 1:
            ranked = sorted(nodes, key=lambda node: (-node.risk_score, node.covenant_id))
            members = [node.covenant_id for node in ranked[: self.cluster_top_k]]
        else:
            candidates = [c for c in components if len(c) > 1]
            if not candidates:
                return None
            best = min(candidates, key=lambda c: (-mean(risk[cid] for cid in c), c[0]))
            members = sorted(best, key=lambda cid: (-risk[cid], cid))

        member_set = set(members)
        inside = [
            e.propagation.propagation_probability
            for e in edges
            if e.source_covenant_id in member_set and e.target_covenant_id in member_set
        ]

        return RiskCluster(
            covenant_ids=members,
            avg_risk_score=round(mean(risk[cid] for cid in members), 2),
            propagation_potential=round(mean(inside), 2) if inside else 0.0,
        )
