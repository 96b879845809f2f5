"""
Contagion Assessor.

Bounded best-path search over outbound propagation edges from a breach
source:

    P(path)  = prod(edge probability / 100)        (independent propagation)
    H(path)  = sum(edge horizon)                    (expected impact periods)

When several paths reach the same covenant only the best one is kept
(higher probability, then shorter horizon, then fewer hops, then path ids),
so multi-path exposure is never double counted. The search expands one hop
per layer up to ``max_contagion_depth`` and never revisits a covenant already
on the current path, so cycles cannot make it loop.

Edge horizon is the observed average propagation time; without co-breach
history it falls back to the lead-lag when the source leads, otherwise to
the configured default.
"""

from typing import Optional

import structlog

from covnet.config import EngineConfig
from covnet.models.contagion import AffectedCovenant, ContagionAssessment, PortfolioImpact
from covnet.models.enums import RiskTier
from covnet.models.network import CovenantNetwork, NetworkEdge, NetworkNode

from .errors import InvalidScopeError

logger = structlog.get_logger()

# Tier thresholds on compounded probability (percent)
CRITICAL_PROBABILITY = 80.0
HIGH_PROBABILITY = 60.0
MEDIUM_PROBABILITY = 35.0

# Post-breach headroom (percent) at or below which tiers escalate
CRITICAL_HEADROOM = 0.0
HIGH_HEADROOM = 10.0

CASCADE_ALERT_PROBABILITY = 50.0


class _PathState:
    """Best path found so far to one covenant."""

    __slots__ = ("probability", "horizon", "path")

    def __init__(self, probability: float, horizon: float, path: tuple[int, ...]):
        self.probability = probability
        self.horizon = horizon
        self.path = path

    @property
    def hops(self) -> int:
        return len(self.path) - 1

    def rank_key(self, ids: list[str]) -> tuple:
        return (-self.probability, self.horizon, self.hops, [ids[i] for i in self.path])


class ContagionAssessor:
    """
    Ranks covenants affected by a breach at a source covenant.

    Attributes:
        max_depth: Maximum hops from the source
        headroom_shock_pct: Headroom lost by a certain (100%) propagation
        material_probability: Probability at which a covenant counts as at risk
        default_propagation_periods: Hop horizon when no timing is known
        logger: Structured logger for observability

    Example:
        >>> assessor = ContagionAssessor(network.config)
        >>> assessment = assessor.assess("cov-abc-leverage", network)
        >>> for affected in assessment.affected_covenants:
        ...     print(affected.covenant_id, affected.propagation_probability)
    """

    def __init__(self, config: EngineConfig):
        self.max_depth = config.max_contagion_depth
        self.headroom_shock_pct = config.headroom_shock_pct
        self.material_probability = config.material_probability
        self.default_propagation_periods = config.default_propagation_periods
        self.logger = structlog.get_logger()

    def assess(self, source_covenant_id: str, network: CovenantNetwork) -> ContagionAssessment:
        """
        Assess downstream impact of a breach at ``source_covenant_id``.

        Args:
            source_covenant_id: Covenant assumed to breach
            network: Network computed for the scope containing the source

        Returns:
            ContagionAssessment (empty when the source has no outbound edges)

        Raises:
            InvalidScopeError: Source covenant is not a node of the network
        """
        source = network.node_for(source_covenant_id)
        if source is None:
            raise InvalidScopeError(
                f"Covenant {source_covenant_id} is not part of network {network.network_id}",
                covenant_ids=[source_covenant_id],
            )

        best = self.find_best_paths(source.index, network)

        affected = [self._affected(network.nodes[target], state, network) for target, state in best.items()]
        affected.sort(
            key=lambda a: (-a.propagation_probability, a.expected_impact_periods, a.covenant_id)
        )

        impact = self.compute_portfolio_impact(affected)
        recommendations = self.build_recommendations(source, affected, impact)

        self.logger.info(
            "contagion_assessed",
            source_covenant_id=source_covenant_id,
            network_id=network.network_id,
            affected_count=len(affected),
            covenants_at_risk=impact.total_covenants_at_risk,
            cascade_probability=impact.estimated_breach_cascade_probability,
            max_depth=self.max_depth,
        )

        return ContagionAssessment(
            source_covenant_id=source_covenant_id,
            source_covenant_name=source.display_name,
            network_id=network.network_id,
            affected_covenants=affected,
            portfolio_impact=impact,
            recommendations=recommendations,
            max_depth=self.max_depth,
            assessed_at=network.generated_at,
        )

    def find_best_paths(self, source_index: int, network: CovenantNetwork) -> dict[int, _PathState]:
        """
        Layered best-path search from the source, bounded by ``max_depth``.

        Returns:
            Best path state per reachable node index (source excluded)
        """
        ids = [node.covenant_id for node in network.nodes]
        outbound = network.outbound_edges()

        best: dict[int, _PathState] = {}
        frontier: dict[int, _PathState] = {source_index: _PathState(1.0, 0.0, (source_index,))}

        for _ in range(self.max_depth):
            next_frontier: dict[int, _PathState] = {}
            for node_index in sorted(frontier):
                state = frontier[node_index]
                for edge in outbound.get(node_index, []):
                    target = edge.target_index
                    if target in state.path:
                        continue
                    candidate = _PathState(
                        state.probability * edge.propagation.propagation_probability / 100.0,
                        state.horizon + self.edge_horizon(edge),
                        state.path + (target,),
                    )
                    incumbent = next_frontier.get(target) or best.get(target)
                    if incumbent is None or candidate.rank_key(ids) < incumbent.rank_key(ids):
                        next_frontier[target] = candidate

            # Only paths that improved on every earlier layer are worth extending
            frontier = {}
            for target, candidate in next_frontier.items():
                incumbent = best.get(target)
                if incumbent is None or candidate.rank_key(ids) < incumbent.rank_key(ids):
                    best[target] = candidate
                    frontier[target] = candidate
            if not frontier:
                break

        return best

    def edge_horizon(self, edge: NetworkEdge) -> float:
        """Expected periods for a breach to cross one edge."""
        propagation = edge.propagation
        if propagation.avg_propagation_time is not None:
            return propagation.avg_propagation_time
        if propagation.lead_lag_periods > 0:
            return float(propagation.lead_lag_periods)
        return self.default_propagation_periods

    def classify_tier(self, probability: float, post_breach_headroom: Optional[float]) -> RiskTier:
        """
        Qualitative tier from compounded probability and post-breach headroom.
        """
        if probability >= CRITICAL_PROBABILITY or (
            post_breach_headroom is not None and post_breach_headroom <= CRITICAL_HEADROOM
        ):
            return RiskTier.CRITICAL
        if probability >= HIGH_PROBABILITY or (
            post_breach_headroom is not None and post_breach_headroom <= HIGH_HEADROOM
        ):
            return RiskTier.HIGH
        if probability >= MEDIUM_PROBABILITY:
            return RiskTier.MEDIUM
        return RiskTier.LOW

    def compute_portfolio_impact(self, affected: list[AffectedCovenant]) -> PortfolioImpact:
        """
        Aggregate affected covenants into portfolio-level figures.

        Cascade probability is the chance that at least one directly
        connected covenant breaches, assuming independent propagation.
        """
        at_risk = [a for a in affected if a.propagation_probability >= self.material_probability]

        no_cascade = 1.0
        for a in affected:
            if a.hops == 1:
                no_cascade *= 1.0 - a.propagation_probability / 100.0
        cascade = (1.0 - no_cascade) * 100.0 if affected else 0.0

        total_probability = sum(a.propagation_probability for a in affected)
        timeline = (
            sum(a.propagation_probability * a.expected_impact_periods for a in affected) / total_probability
            if total_probability > 0
            else 0.0
        )

        return PortfolioImpact(
            total_facilities_at_risk=len({a.facility_id or a.covenant_id for a in at_risk}),
            total_covenants_at_risk=len(at_risk),
            estimated_breach_cascade_probability=round(max(0.0, min(100.0, cascade)), 2),
            expected_contagion_timeline_periods=round(timeline, 2),
        )

    def build_recommendations(
        self,
        source: NetworkNode,
        affected: list[AffectedCovenant],
        impact: PortfolioImpact,
    ) -> list[str]:
        """Templated follow-up suggestions, most urgent first."""
        if not affected:
            return [
                f"No propagation paths from {source.display_name}; continue standard covenant monitoring"
            ]

        recommendations: list[str] = []

        for a in affected:
            if a.risk_tier == RiskTier.CRITICAL:
                name = f"{a.borrower_name} - {a.covenant_name}" if a.borrower_name else (a.covenant_name or a.covenant_id)
                recommendations.append(
                    f"Escalate {name} to the workout team - contagion risk is critical "
                    f"({a.propagation_probability:.0f}% propagation probability)"
                )

        high = [a for a in affected if a.risk_tier == RiskTier.HIGH]
        if high:
            borrowers = sorted({a.borrower_name for a in high if a.borrower_name})
            target = ", ".join(borrowers) if borrowers else f"{len(high)} covenant(s)"
            recommendations.append(
                f"Initiate proactive engagement with {target} to discuss covenant amendments"
            )

        if impact.estimated_breach_cascade_probability >= CASCADE_ALERT_PROBABILITY:
            recommendations.append(
                f"Cascade probability is {impact.estimated_breach_cascade_probability:.0f}%: "
                "request enhanced financial reporting from directly connected borrowers"
            )

        if impact.total_facilities_at_risk > 1:
            recommendations.append(
                f"Contagion reaches {impact.total_facilities_at_risk} facilities; "
                "monitor related covenants across the portfolio for early warning signs"
            )

        if not recommendations:
            recommendations.append(
                f"Propagation risk from {source.display_name} is limited; continue standard covenant monitoring"
            )

        return recommendations

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _affected(self, node: NetworkNode, state: _PathState, network: CovenantNetwork) -> AffectedCovenant:
        probability = max(0.0, min(100.0, state.probability * 100.0))
        post_breach = None
        if node.current_headroom is not None:
            post_breach = round(node.current_headroom - self.headroom_shock_pct * probability / 100.0, 2)

        return AffectedCovenant(
            covenant_id=node.covenant_id,
            covenant_name=node.covenant_name or node.covenant_type,
            facility_id=node.facility_id,
            facility_name=node.facility_name,
            borrower_name=node.borrower_name,
            propagation_probability=probability,
            expected_impact_periods=state.horizon,
            path=[network.nodes[i].covenant_id for i in state.path],
            hops=state.hops,
            current_headroom=node.current_headroom,
            post_breach_headroom_estimate=post_breach,
            risk_tier=self.classify_tier(probability, post_breach),
        )
