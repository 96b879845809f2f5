"""
Pytest configuration and shared fixtures for the covenant contagion test suite.

Provides pydantic model factories, a fixed golden dataset, in-memory stores,
environment isolation, and reusable fixtures across all test types
(unit, integration, golden, property-based).
"""

import os
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytest
from fastapi.testclient import TestClient

# Point the app at a throwaway database BEFORE importing it
# Use temp path (must not exist - DuckDB creates the file). :memory: causes
# per-connection DB which breaks multi-threaded tests.
import tempfile
import uuid as _uuid
_test_db_path = os.path.join(tempfile.gettempdir(), f"covnet_test_{_uuid.uuid4().hex[:8]}.duckdb")
os.environ["DB_PATH"] = _test_db_path


# ---------------------------------------------------------------------------
# Pydantic model factories - reusable across all test suites
# ---------------------------------------------------------------------------

from covnet.config import EngineConfig
from covnet.engine.network_builder import NetworkBuilder
from covnet.engine.pipeline import CovenantNetworkEngine, run_timestamp
from covnet.models.correlation import PropagationEdge, classify_lead_lag
from covnet.models.enums import CorrelationDirection, CorrelationStrength, CovenantStatus
from covnet.models.network import CovenantNetwork
from covnet.models.series import CovenantMetadata, CovenantSeries, Scope, SeriesSample, TestRecord
from covnet.storage.memory import InMemoryTestHistoryStore
from covnet.utils.periods import index_to_quarter_end, quarter_index

AS_OF = date(2024, 12, 31)
LAST_INDEX = quarter_index(AS_OF)


def make_record(
    covenant_id: str = "cov-a",
    period_end: date = AS_OF,
    value: float = 1.0,
    passed: bool = True,
    recorded_at: Optional[datetime] = None,
    facility_id: Optional[str] = None,
    borrower_id: Optional[str] = None,
    covenant_type: str = "leverage_ratio",
) -> TestRecord:
    """Factory function for creating test TestRecord objects."""
    return TestRecord(
        covenant_id=covenant_id,
        facility_id=facility_id or f"fac-{covenant_id}",
        borrower_id=borrower_id or f"bor-{covenant_id}",
        covenant_type=covenant_type,
        period_end=period_end,
        value=value,
        passed=passed,
        recorded_at=recorded_at or datetime.combine(period_end + timedelta(days=30), time.min),
    )


def make_series_records(
    covenant_id: str,
    values: list[float],
    passed: Optional[list[bool]] = None,
    end: date = AS_OF,
    **kwargs,
) -> list[TestRecord]:
    """One record per quarter, the last value landing in the quarter of ``end``."""
    passed = passed if passed is not None else [True] * len(values)
    last = quarter_index(end)
    first = last - len(values) + 1
    return [
        make_record(
            covenant_id=covenant_id,
            period_end=index_to_quarter_end(first + k),
            value=value,
            passed=ok,
            **kwargs,
        )
        for k, (value, ok) in enumerate(zip(values, passed))
    ]


def make_series(
    covenant_id: str,
    values: list[float],
    passed: Optional[list[bool]] = None,
    start_index: Optional[int] = None,
) -> CovenantSeries:
    """Assembled series on consecutive quarters (ending at AS_OF by default)."""
    passed = passed if passed is not None else [True] * len(values)
    first = start_index if start_index is not None else LAST_INDEX - len(values) + 1
    return CovenantSeries(
        covenant_id=covenant_id,
        facility_id=f"fac-{covenant_id}",
        borrower_id=f"bor-{covenant_id}",
        covenant_type="leverage_ratio",
        samples=[
            SeriesSample(
                period_end=index_to_quarter_end(first + k),
                period_index=first + k,
                value=value,
                passed=ok,
            )
            for k, (value, ok) in enumerate(zip(values, passed))
        ],
    )


def make_metadata(covenant_id: str, **overrides) -> CovenantMetadata:
    """Factory function for creating test CovenantMetadata objects."""
    defaults = dict(
        covenant_id=covenant_id,
        covenant_name=f"Covenant {covenant_id}",
        covenant_type="leverage_ratio",
        facility_id=f"fac-{covenant_id}",
        facility_name=f"Facility {covenant_id}",
        borrower_id=f"bor-{covenant_id}",
        borrower_name=f"Borrower {covenant_id}",
        status=CovenantStatus.ACTIVE,
        current_headroom_pct=50.0,
    )
    defaults.update(overrides)
    return CovenantMetadata(**defaults)


def make_propagation_edge(
    source: str,
    target: str,
    probability: float,
    coefficient: float = 0.9,
    lag: int = 0,
    avg_time: Optional[float] = 1.0,
    co_breach_count: int = 1,
) -> PropagationEdge:
    """Factory function for creating test PropagationEdge objects."""
    return PropagationEdge(
        source_covenant_id=source,
        target_covenant_id=target,
        correlation_coefficient=coefficient,
        p_value=0.001,
        strength=CorrelationStrength.VERY_STRONG,
        direction=CorrelationDirection.POSITIVE if coefficient >= 0 else CorrelationDirection.NEGATIVE,
        sample_size=12,
        data_start=index_to_quarter_end(LAST_INDEX - 11),
        data_end=AS_OF,
        computed_at=run_timestamp(AS_OF),
        lead_lag_periods=lag,
        lead_lag_type=classify_lead_lag(lag),
        propagation_probability=probability,
        avg_propagation_time=avg_time,
        co_breach_rate=50.0 if co_breach_count else 0.0,
        co_breach_count=co_breach_count,
    )


def make_network(
    covenant_ids: list[str],
    edges: list[PropagationEdge],
    metadata: Optional[dict[str, CovenantMetadata]] = None,
    config: Optional[EngineConfig] = None,
) -> CovenantNetwork:
    """Build a network directly from hand-made propagation edges."""
    return NetworkBuilder(config or EngineConfig()).build(
        [make_series(cid, [1.0, 2.0, 3.0, 4.0]) for cid in covenant_ids],
        metadata or {},
        [],
        [],
        edges,
        network_id="net_test",
        scope=Scope.portfolio(),
        as_of_date=AS_OF,
        generated_at=run_timestamp(AS_OF),
    )


# ---------------------------------------------------------------------------
# Golden dataset - fixed portfolio with hand-derived expectations
# ---------------------------------------------------------------------------
#
# cov-leader    : stress path, breaches (> 3.5) in positions 5 and 6
# cov-follower  : 2 * leader one quarter earlier + 0.5, breaches (> 7.5) in 6 and 7
# cov-inverse   : 5 - leader, breaches (< 1.5) in 5 and 6
# cov-noise     : uncorrelated, never breaches
# cov-short     : only three quarters (skipped)

GOLDEN_LEADER = [1.0, 1.4, 1.1, 1.8, 2.6, 3.9, 4.4, 3.0, 2.2, 1.6, 1.3, 1.2]
GOLDEN_FOLLOWER = [2.3] + [2.0 * v + 0.5 for v in GOLDEN_LEADER[:-1]]
GOLDEN_INVERSE = [5.0 - v for v in GOLDEN_LEADER]
GOLDEN_NOISE = [5.0, 1.0, 4.0, 2.0] * 3


def golden_records() -> list[TestRecord]:
    records: list[TestRecord] = []
    records += make_series_records(
        "cov-leader", GOLDEN_LEADER, [v <= 3.5 for v in GOLDEN_LEADER], facility_id="fac-1", borrower_id="bor-1"
    )
    records += make_series_records(
        "cov-follower",
        GOLDEN_FOLLOWER,
        [v <= 7.5 for v in GOLDEN_FOLLOWER],
        facility_id="fac-2",
        borrower_id="bor-2",
    )
    records += make_series_records(
        "cov-inverse",
        GOLDEN_INVERSE,
        [v >= 1.5 for v in GOLDEN_INVERSE],
        facility_id="fac-3",
        borrower_id="bor-3",
        covenant_type="interest_coverage",
    )
    records += make_series_records("cov-noise", GOLDEN_NOISE, facility_id="fac-4", borrower_id="bor-4")
    records += make_series_records("cov-short", [1.0, 2.0, 3.0], facility_id="fac-5", borrower_id="bor-5")
    return records


def golden_metadata() -> list[CovenantMetadata]:
    return [
        make_metadata(
            "cov-leader",
            covenant_name="Leverage Ratio",
            facility_id="fac-1",
            borrower_id="bor-1",
            borrower_name="ABC Holdings LLC",
            status=CovenantStatus.AT_RISK,
            current_headroom_pct=20.0,
        ),
        make_metadata(
            "cov-follower",
            covenant_name="Leverage Ratio",
            facility_id="fac-2",
            borrower_id="bor-2",
            borrower_name="XYZ Corporation",
            current_headroom_pct=20.0,
        ),
        make_metadata(
            "cov-inverse",
            covenant_name="Interest Coverage",
            facility_id="fac-3",
            borrower_id="bor-3",
            borrower_name="Sigma Holdings Inc",
            status=CovenantStatus.BREACHED,
            current_headroom_pct=-30.0,
        ),
        make_metadata(
            "cov-noise",
            covenant_name="Minimum Liquidity",
            facility_id="fac-4",
            borrower_id="bor-4",
            borrower_name="Neptune Holdings Inc",
            current_headroom_pct=68.0,
        ),
    ]


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def engine_config():
    """Default engine configuration."""
    return EngineConfig()


@pytest.fixture
def memory_store():
    """Fresh empty in-memory store for each test."""
    return InMemoryTestHistoryStore()


@pytest.fixture
def golden_store():
    """In-memory store pre-populated with the golden dataset."""
    return InMemoryTestHistoryStore(records=golden_records(), metadata=golden_metadata())


@pytest.fixture
def golden_engine(golden_store):
    """Engine over the golden dataset with default configuration."""
    return CovenantNetworkEngine(store=golden_store)


@pytest.fixture
def golden_network(golden_engine):
    """Portfolio network computed from the golden dataset."""
    return golden_engine.compute_network(Scope.portfolio(), AS_OF)


@pytest.fixture
def client(golden_engine):
    """FastAPI test client whose engine reads the golden dataset."""
    from covnet.main import app
    from covnet.routers.network import get_engine

    app.dependency_overrides[get_engine] = lambda: golden_engine
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
