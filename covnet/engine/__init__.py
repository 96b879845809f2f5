"""
Covenant correlation and contagion engine components.

This package contains the batch pipeline stages, leaf-first:

- TimeSeriesAssembler: raw test records -> aligned quarterly series
- CorrelationComputer: pairwise Pearson correlation and p-values
- LeadLagAnalyzer: cross-correlation lead-lag per significant pair
- PropagationEstimator: directional breach-propagation probability
- NetworkBuilder: arena network with centrality, risk scores, statistics
- ContagionAssessor: bounded best-path contagion from a breach source
- MatrixExporter: dense matrices for visualization consumers

All components are designed for:
- Determinism (stable ordering, derived timestamps, explicit tie-breaks)
- Comprehensive observability (structured logging with request IDs)
- Type safety (complete Pydantic validation)
- Testability (pure functions over immutable inputs)
"""

__version__ = "1.0.0"

__all__ = [
    "ContagionAssessor",
    "CorrelationComputer",
    "CovenantNetworkEngine",
    "LeadLagAnalyzer",
    "MatrixExporter",
    "NetworkBuilder",
    "PropagationEstimator",
    "TimeSeriesAssembler",
]

from covnet.engine.assembler import TimeSeriesAssembler
from covnet.engine.contagion import ContagionAssessor
from covnet.engine.correlation import CorrelationComputer
from covnet.engine.lead_lag import LeadLagAnalyzer
from covnet.engine.matrix import MatrixExporter
from covnet.engine.network_builder import NetworkBuilder
from covnet.engine.pipeline import CovenantNetworkEngine
from covnet.engine.propagation import PropagationEstimator
