"""
Covenant network engine facade.

Runs the batch pipeline over a read-only test-history store:

    assemble -> correlate -> lead-lag -> propagate -> build network
                                                   -> matrix / contagion

Every invocation is a pure function of (store snapshot, configuration). The
engine keeps no state between calls; timestamps and ids are derived from
the inputs so identical requests produce byte-identical output.
"""

import hashlib
import json
from datetime import date, datetime, time, timezone
from typing import Optional

import structlog

from covnet.config import EngineConfig
from covnet.models.contagion import ContagionAssessment
from covnet.models.enums import ScopeKind
from covnet.models.matrix import CorrelationMatrix
from covnet.models.network import CovenantNetwork
from covnet.models.series import Scope
from covnet.storage.base import TestHistoryStore
from covnet.utils.periods import index_to_quarter_end, quarter_index

from .assembler import TimeSeriesAssembler
from .contagion import ContagionAssessor
from .correlation import CorrelationComputer
from .errors import InvalidScopeError
from .lead_lag import LeadLagAnalyzer
from .matrix import MatrixExporter
from .network_builder import NetworkBuilder
from .propagation import PropagationEstimator

logger = structlog.get_logger()


def run_timestamp(as_of_date: date) -> datetime:
    """Timestamp recorded on results: midnight UTC of the as-of date."""
    return datetime.combine(as_of_date, time.min, tzinfo=timezone.utc)


def compute_network_id(scope: Scope, as_of_date: date, config: EngineConfig) -> str:
    """Deterministic id from scope, as-of date and configuration."""
    payload = json.dumps(
        {
            "scope": scope.model_dump(mode="json"),
            "as_of_date": as_of_date.isoformat(),
            "config": config.model_dump(mode="json"),
        },
        sort_keys=True,
    )
    return "net_" + hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


class CovenantNetworkEngine:
    """
    Stateless entry point exposing the three engine operations.

    Attributes:
        store: Read-only test-history source
        config: Default configuration for calls that do not pass one
        logger: Structured logger for observability

    Example:
        >>> engine = CovenantNetworkEngine(InMemoryTestHistoryStore(records))
        >>> network = engine.compute_network(Scope.portfolio(), date(2024, 12, 31))
        >>> assessment = engine.assess_contagion("cov-abc-leverage", network)
        >>> print(assessment.portfolio_impact.estimated_breach_cascade_probability)
    """

    def __init__(self, store: TestHistoryStore, config: Optional[EngineConfig] = None):
        self.store = store
        self.config = config or EngineConfig()
        self.logger = structlog.get_logger()

    def compute_network(
        self,
        scope: Scope,
        as_of_date: date,
        config: Optional[EngineConfig] = None,
    ) -> CovenantNetwork:
        """
        Run the full pipeline for a scope.

        Args:
            scope: Portfolio, borrower, facility or covenant list
            as_of_date: Upper bound of the historical window
            config: Per-call configuration (defaults to the engine's)

        Returns:
            CovenantNetwork with nodes, edges, statistics and diagnostics

        Raises:
            InvalidScopeError: Scope names an id absent from the store
            StorageError: Store read failed
        """
        config = config or self.config
        self.validate_scope(scope)

        log = self.logger.bind(
            scope_kind=scope.kind.value,
            scope_size=len(scope.ids),
            as_of_date=as_of_date.isoformat(),
        )
        log.info("network_computation_started")

        computed_at = run_timestamp(as_of_date)
        window_start = index_to_quarter_end(quarter_index(as_of_date) - config.history_quarters)
        records = self.store.read_test_records(scope, window_start, as_of_date)

        # Step 1: Assemble series
        assembly = TimeSeriesAssembler(config).assemble(records, as_of_date)
        metadata = TimeSeriesAssembler(config).resolve_metadata(
            assembly.series, self.store.read_covenant_metadata(assembly.covenant_ids())
        )

        # Step 2: Pairwise correlation
        correlation = CorrelationComputer(config).compute_all(assembly.series, computed_at)

        # Step 3: Lead-lag for significant pairs
        lead_lags = LeadLagAnalyzer(config).analyze_all(assembly.series, correlation.correlations)

        # Step 4: Directional propagation
        propagation_edges = PropagationEstimator(config).estimate_all(
            assembly.series, correlation.correlations, lead_lags
        )

        # Step 5: Network
        network = NetworkBuilder(config).build(
            assembly.series,
            metadata,
            correlation.correlations,
            lead_lags,
            propagation_edges,
            network_id=compute_network_id(scope, as_of_date, config),
            scope=scope,
            as_of_date=as_of_date,
            generated_at=computed_at,
            skipped_covenant_ids=assembly.skipped_covenant_ids,
            diagnostics=assembly.diagnostics + correlation.diagnostics,
        )

        log.info(
            "network_computation_completed",
            network_id=network.network_id,
            record_count=len(records),
            node_count=len(network.nodes),
            edge_count=len(network.edges),
            diagnostic_count=len(network.diagnostics),
        )

        return network

    def compute_matrix(
        self,
        scope: Scope,
        as_of_date: date,
        config: Optional[EngineConfig] = None,
    ) -> CorrelationMatrix:
        """Compute the network for a scope and render it as dense matrices."""
        return MatrixExporter().export(self.compute_network(scope, as_of_date, config))

    def assess_contagion(self, source_covenant_id: str, network: CovenantNetwork) -> ContagionAssessment:
        """
        Assess contagion from a source covenant over an existing network.

        Uses the configuration the network was computed with.

        Raises:
            InvalidScopeError: Source covenant is not in the network
        """
        return ContagionAssessor(network.config).assess(source_covenant_id, network)

    def validate_scope(self, scope: Scope) -> None:
        """
        Ensure every id in a non-portfolio scope exists in the store.

        Raises:
            InvalidScopeError: One or more ids are unknown
        """
        if scope.kind == ScopeKind.PORTFOLIO:
            return

        known = set(self.store.list_scope_ids(scope.kind))
        missing = [i for i in scope.ids if i not in known]
        if missing:
            self.logger.warning(
                "invalid_scope_requested",
                scope_kind=scope.kind.value,
                missing_ids=missing,
            )
            raise InvalidScopeError(
                f"Unknown {scope.kind.value} id(s): {', '.join(missing)}",
                covenant_ids=missing if scope.kind == ScopeKind.COVENANTS else (),
            )
