"""
Golden Path (End-to-End) Tests for the covenant contagion engine.

These tests run the complete pipeline on a fixed portfolio with hand-derived
expectations. Each scenario exercises a full workflow from raw test records
through network construction to contagion assessment.

Dataset (see tests/conftest.py):
- cov-leader   : stress path that breaches in two consecutive quarters
- cov-follower : tracks cov-leader one quarter later
- cov-inverse  : mirror image of cov-leader (r = -1)
- cov-noise    : unrelated, never breaches
- cov-short    : only three quarters of history
"""

import pytest

from covnet.engine.matrix import MatrixExporter
from covnet.models.enums import (
    CorrelationStrength,
    DiagnosticCode,
    LeadLagType,
    RiskTier,
)
from covnet.models.series import Scope
from tests.conftest import AS_OF

PROBABILITY_TOLERANCE = 0.05


def _edge(network, source, target):
    for edge in network.edges:
        if edge.source_covenant_id == source and edge.target_covenant_id == target:
            return edge
    return None


def _node(network, covenant_id):
    return network.node_for(covenant_id)


def _correlation(network, a, b):
    source, target = sorted((a, b))
    for corr in network.correlations:
        if corr.source_covenant_id == source and corr.target_covenant_id == target:
            return corr
    return None


# ============================================================================
# Scenario 1: Records -> Series -> Correlations
# ============================================================================


class TestGoldenCorrelations:
    """Assembly and pairwise statistics on the golden portfolio."""

    def test_nodes_sorted_and_short_series_skipped(self, golden_network):
        assert [n.covenant_id for n in golden_network.nodes] == [
            "cov-follower",
            "cov-inverse",
            "cov-leader",
            "cov-noise",
        ]
        assert golden_network.skipped_covenant_ids == ["cov-short"]
        insufficient = [d for d in golden_network.diagnostics if d.code == DiagnosticCode.INSUFFICIENT_DATA]
        assert [d.covenant_ids for d in insufficient] == [["cov-short"]]

    def test_every_pair_correlated_once(self, golden_network):
        assert len(golden_network.correlations) == 6
        for corr in golden_network.correlations:
            assert corr.source_covenant_id < corr.target_covenant_id
            assert corr.sample_size == 12

    def test_leader_follower_strong_positive(self, golden_network):
        corr = _correlation(golden_network, "cov-leader", "cov-follower")
        assert corr.coefficient == pytest.approx(0.7786, abs=1e-3)
        assert corr.strength == CorrelationStrength.STRONG
        assert corr.p_value < 0.01
        assert corr.is_significant

    def test_leader_inverse_perfectly_negative(self, golden_network):
        corr = _correlation(golden_network, "cov-leader", "cov-inverse")
        assert corr.coefficient == pytest.approx(-1.0, abs=1e-6)
        assert corr.strength == CorrelationStrength.VERY_STRONG

    def test_noise_not_significant(self, golden_network):
        for other in ("cov-leader", "cov-follower", "cov-inverse"):
            corr = _correlation(golden_network, "cov-noise", other)
            assert abs(corr.coefficient) < 0.1
            assert not corr.is_significant
        assert golden_network.stats.significant_correlations == 3


# ============================================================================
# Scenario 2: Lead-lag and propagation
# ============================================================================


class TestGoldenPropagation:
    """Directional relationships on the golden portfolio."""

    def test_leader_leads_follower_by_one_quarter(self, golden_network):
        edge = _edge(golden_network, "cov-leader", "cov-follower")
        assert edge.propagation.lead_lag_periods == 1
        assert edge.propagation.lead_lag_type == LeadLagType.LEADING
        reverse = _edge(golden_network, "cov-follower", "cov-leader")
        assert reverse.propagation.lead_lag_periods == -1
        assert reverse.propagation.lead_lag_type == LeadLagType.LAGGING

    def test_inverse_synchronous_with_leader(self, golden_network):
        assert _edge(golden_network, "cov-leader", "cov-inverse").propagation.lead_lag_periods == 0

    def test_lead_lags_stored_in_canonical_direction(self, golden_network):
        pairs = {
            (r.source_covenant_id, r.target_covenant_id): r.lag_periods for r in golden_network.lead_lags
        }
        assert pairs == {
            ("cov-follower", "cov-inverse"): -1,
            ("cov-follower", "cov-leader"): -1,
            ("cov-inverse", "cov-leader"): 0,
        }

    def test_six_directed_edges(self, golden_network):
        assert [(e.source_covenant_id, e.target_covenant_id) for e in golden_network.edges] == [
            ("cov-follower", "cov-inverse"),
            ("cov-follower", "cov-leader"),
            ("cov-inverse", "cov-follower"),
            ("cov-inverse", "cov-leader"),
            ("cov-leader", "cov-follower"),
            ("cov-leader", "cov-inverse"),
        ]

    def test_co_breach_statistics(self, golden_network):
        forward = _edge(golden_network, "cov-leader", "cov-follower").propagation
        assert forward.co_breach_count == 2
        assert forward.co_breach_rate == 100.0
        assert forward.avg_propagation_time == 0.5

        backward = _edge(golden_network, "cov-follower", "cov-leader").propagation
        assert backward.co_breach_count == 1
        assert backward.co_breach_rate == 50.0
        assert backward.avg_propagation_time == 0.0

    @pytest.mark.parametrize(
        "source,target,expected",
        [
            ("cov-leader", "cov-follower", 79.2),
            ("cov-follower", "cov-leader", 54.82),
            ("cov-inverse", "cov-follower", 79.2),
            ("cov-follower", "cov-inverse", 54.82),
            ("cov-leader", "cov-inverse", 81.88),
            ("cov-inverse", "cov-leader", 81.88),
        ],
    )
    def test_propagation_probabilities(self, golden_network, source, target, expected):
        edge = _edge(golden_network, source, target)
        assert edge.propagation.propagation_probability == pytest.approx(expected, abs=PROBABILITY_TOLERANCE)


# ============================================================================
# Scenario 3: Network structure and risk
# ============================================================================


class TestGoldenNetwork:
    """Centrality, risk scoring and statistics on the golden portfolio."""

    def test_noise_isolated(self, golden_network):
        noise = _node(golden_network, "cov-noise")
        assert noise.centrality == 0.0
        assert noise.in_degree == 0
        assert noise.out_degree == 0

    def test_centrality_values(self, golden_network):
        assert golden_network.centrality_converged
        assert _node(golden_network, "cov-leader").centrality == pytest.approx(1.0, abs=1e-3)
        assert _node(golden_network, "cov-inverse").centrality == pytest.approx(1.0, abs=1e-3)
        assert _node(golden_network, "cov-follower").centrality == pytest.approx(0.93, abs=0.01)

    def test_most_central_is_leader_or_inverse(self, golden_network):
        most_central = golden_network.stats.most_central_covenant
        assert most_central.covenant_id in {"cov-leader", "cov-inverse"}
        assert most_central.centrality == pytest.approx(1.0, abs=1e-3)

    @pytest.mark.parametrize(
        "covenant_id,expected",
        [
            ("cov-inverse", 100.0),
            ("cov-leader", 79.0),
            ("cov-follower", 47.6),
            ("cov-noise", 14.6),
        ],
    )
    def test_risk_scores(self, golden_network, covenant_id, expected):
        assert _node(golden_network, covenant_id).risk_score == pytest.approx(expected, abs=0.2)

    def test_network_stats(self, golden_network):
        stats = golden_network.stats
        assert stats.total_covenants == 4
        assert stats.total_facilities == 4
        assert stats.network_density == pytest.approx(0.5)
        assert stats.connected_components == 2
        assert stats.avg_correlation_strength == pytest.approx(0.8524, abs=1e-3)

    def test_highest_risk_cluster(self, golden_network):
        cluster = golden_network.stats.highest_risk_cluster
        assert cluster.covenant_ids == ["cov-inverse", "cov-leader", "cov-follower"]
        assert cluster.propagation_potential == pytest.approx(71.97, abs=PROBABILITY_TOLERANCE)

    def test_matrix_lead_lag_orientation(self, golden_network):
        matrix = MatrixExporter().export(golden_network)
        leader = matrix.labels.index("cov-leader")
        follower = matrix.labels.index("cov-follower")
        assert matrix.lead_lag_matrix[leader][follower] == 1
        assert matrix.lead_lag_matrix[follower][leader] == -1
        assert matrix.values[leader][follower] == pytest.approx(0.7786, abs=1e-3)


# ============================================================================
# Scenario 4: Contagion from a breach at the leader
# ============================================================================


class TestGoldenContagion:
    """Contagion assessment on the golden portfolio."""

    @pytest.fixture
    def assessment(self, golden_engine, golden_network):
        return golden_engine.assess_contagion("cov-leader", golden_network)

    def test_affected_ranking(self, assessment):
        assert [a.covenant_id for a in assessment.affected_covenants] == ["cov-inverse", "cov-follower"]

    def test_inverse_direct_and_critical(self, assessment):
        inverse = assessment.affected_covenants[0]
        assert inverse.propagation_probability == pytest.approx(81.88, abs=PROBABILITY_TOLERANCE)
        assert inverse.hops == 1
        assert inverse.path == ["cov-leader", "cov-inverse"]
        assert inverse.expected_impact_periods == 0.0
        assert inverse.risk_tier == RiskTier.CRITICAL

    def test_follower_direct_and_high(self, assessment):
        follower = assessment.affected_covenants[1]
        assert follower.propagation_probability == pytest.approx(79.2, abs=PROBABILITY_TOLERANCE)
        assert follower.hops == 1
        assert follower.expected_impact_periods == 0.5
        assert follower.post_breach_headroom_estimate == pytest.approx(8.12, abs=PROBABILITY_TOLERANCE)
        assert follower.risk_tier == RiskTier.HIGH

    def test_portfolio_impact(self, assessment):
        impact = assessment.portfolio_impact
        assert impact.total_covenants_at_risk == 2
        assert impact.total_facilities_at_risk == 2
        assert impact.estimated_breach_cascade_probability == pytest.approx(96.23, abs=PROBABILITY_TOLERANCE)
        assert impact.expected_contagion_timeline_periods == pytest.approx(0.25, abs=0.01)

    def test_recommendations_escalate_and_engage(self, assessment):
        text = " | ".join(assessment.recommendations)
        assert "Escalate Sigma Holdings Inc - Interest Coverage" in text
        assert "XYZ Corporation" in text
        assert "enhanced financial reporting" in text

    def test_assessment_reproducible(self, golden_engine, assessment):
        network = golden_engine.compute_network(Scope.portfolio(), AS_OF)
        again = golden_engine.assess_contagion("cov-leader", network)
        assert again.model_dump_json() == assessment.model_dump_json()


# ============================================================================
# Scenario 5: Determinism
# ============================================================================


class TestGoldenDeterminism:
    def test_network_byte_identical_across_runs(self, golden_engine, golden_network):
        again = golden_engine.compute_network(Scope.portfolio(), AS_OF)
        assert again.model_dump_json() == golden_network.model_dump_json()

    def test_worker_count_does_not_change_output(self, golden_engine, golden_network):
        parallel = golden_engine.compute_network(
            Scope.portfolio(), AS_OF, golden_network.config.with_overrides(max_workers=4)
        )
        assert parallel.nodes == golden_network.nodes
        assert parallel.edges == golden_network.edges
        assert parallel.stats == golden_network.stats
