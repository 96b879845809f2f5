#!/usr/bin/env python3
"""
Covenant Contagion Demo - seeds a sample portfolio and runs the engine.

Runs the complete workflow in-process:
1. Seeds 16 quarters of covenant test history for six covenants into DuckDB
2. Computes the correlation network for the portfolio
3. Assesses contagion from a breach at the chosen source covenant

Usage:
    python scripts/demo_run.py                         # Seed + analyze
    python scripts/demo_run.py --no-seed               # Skip seed (data already exists)
    python scripts/demo_run.py --source cov-sigma-ic --seed 7
"""

import argparse
import random
import sys
from datetime import date, datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from covnet.config import get_settings  # noqa: E402
from covnet.engine.pipeline import CovenantNetworkEngine  # noqa: E402
from covnet.models.enums import CovenantStatus  # noqa: E402
from covnet.models.series import CovenantMetadata, Scope, TestRecord  # noqa: E402
from covnet.storage.duckdb_storage import DuckDBTestHistoryStore  # noqa: E402
from covnet.utils.logging import configure_logging  # noqa: E402
from covnet.utils.periods import index_to_quarter_end, quarter_index  # noqa: E402

AS_OF = date(2024, 12, 31)
QUARTERS = 16

# (covenant id, metadata, baseline, sensitivity to sector stress, lag in quarters,
#  breach threshold, breach when value is above the threshold)
DEMO_COVENANTS = [
    (
        CovenantMetadata(
            covenant_id="cov-abc-leverage",
            covenant_name="Leverage Ratio",
            covenant_type="leverage_ratio",
            facility_id="fac-abc-tla",
            facility_name="ABC Holdings - Term Loan A",
            borrower_id="bor-abc",
            borrower_name="ABC Holdings LLC",
            status=CovenantStatus.ACTIVE,
            current_headroom_pct=20.0,
        ),
        3.2, 0.9, 0, 4.5, True,
    ),
    (
        CovenantMetadata(
            covenant_id="cov-abc-interest",
            covenant_name="Interest Coverage Ratio",
            covenant_type="interest_coverage",
            facility_id="fac-abc-tla",
            facility_name="ABC Holdings - Term Loan A",
            borrower_id="bor-abc",
            borrower_name="ABC Holdings LLC",
            status=CovenantStatus.ACTIVE,
            current_headroom_pct=52.0,
        ),
        3.0, -0.5, 1, 1.5, False,
    ),
    (
        CovenantMetadata(
            covenant_id="cov-xyz-leverage",
            covenant_name="Leverage Ratio",
            covenant_type="leverage_ratio",
            facility_id="fac-xyz-rev",
            facility_name="XYZ Corp Revolver",
            borrower_id="bor-xyz",
            borrower_name="XYZ Corporation",
            status=CovenantStatus.AT_RISK,
            current_headroom_pct=11.4,
        ),
        3.8, 0.8, 1, 4.8, True,
    ),
    (
        CovenantMetadata(
            covenant_id="cov-delta-fcc",
            covenant_name="Fixed Charge Coverage",
            covenant_type="fixed_charge_coverage",
            facility_id="fac-delta-tl",
            facility_name="Delta Manufacturing TL",
            borrower_id="bor-delta",
            borrower_name="Delta Manufacturing Co",
            status=CovenantStatus.WAIVED,
            current_headroom_pct=-12.5,
        ),
        1.4, -0.35, 2, 1.1, False,
    ),
    (
        CovenantMetadata(
            covenant_id="cov-neptune-liquidity",
            covenant_name="Minimum Liquidity",
            covenant_type="minimum_liquidity",
            facility_id="fac-neptune-tl",
            facility_name="Neptune Holdings TL",
            borrower_id="bor-neptune",
            borrower_name="Neptune Holdings Inc",
            status=CovenantStatus.ACTIVE,
            current_headroom_pct=68.0,
        ),
        25.0, 0.0, 0, 15.0, False,
    ),
    (
        CovenantMetadata(
            covenant_id="cov-sigma-ic",
            covenant_name="Interest Coverage",
            covenant_type="interest_coverage",
            facility_id="fac-sigma-abl",
            facility_name="Sigma Holdings ABL",
            borrower_id="bor-sigma",
            borrower_name="Sigma Holdings Inc",
            status=CovenantStatus.BREACHED,
            current_headroom_pct=-30.0,
        ),
        1.8, -0.45, 0, 1.25, False,
    ),
]


class DemoPortfolioGenerator:
    """
    Generates reproducible quarterly covenant test history.

    A shared sector-stress factor drives most covenants, each with its own
    sensitivity and lag, so the engine finds correlated, leading and
    independent covenants.
    """

    def __init__(self, seed: int = 42, quarters: int = QUARTERS, as_of: date = AS_OF):
        self.seed = seed
        self.quarters = quarters
        self.as_of = as_of
        self.rng = random.Random(seed)

    def sector_stress(self) -> list[float]:
        """Stress path with a downturn in the middle of the window."""
        path = []
        level = 0.0
        for q in range(self.quarters + 4):
            shock = 1.2 if self.quarters // 2 <= q < self.quarters // 2 + 3 else 0.0
            level = 0.6 * level + shock + self.rng.gauss(0.0, 0.35)
            path.append(level)
        return path

    def generate(self) -> tuple[list[TestRecord], list[CovenantMetadata]]:
        stress = self.sector_stress()
        last = quarter_index(self.as_of)
        records: list[TestRecord] = []

        for meta, baseline, sensitivity, lag, threshold, breach_above in DEMO_COVENANTS:
            for q in range(self.quarters):
                index = last - self.quarters + 1 + q
                # Offset by 4 so lagged covenants can look back before the window
                driver = stress[q + 4 - lag]
                if sensitivity == 0.0:
                    value = baseline + self.rng.gauss(0.0, 3.0)
                else:
                    value = baseline + sensitivity * driver + self.rng.gauss(0.0, 0.08)
                period_end = index_to_quarter_end(index)
                passed = value <= threshold if breach_above else value >= threshold
                records.append(
                    TestRecord(
                        covenant_id=meta.covenant_id,
                        facility_id=meta.facility_id,
                        borrower_id=meta.borrower_id,
                        covenant_type=meta.covenant_type,
                        period_end=period_end,
                        value=round(value, 4),
                        passed=passed,
                        recorded_at=datetime.combine(period_end + timedelta(days=30), datetime.min.time()),
                    )
                )

        return records, [entry[0] for entry in DEMO_COVENANTS]


def main():
    parser = argparse.ArgumentParser(description="Run the covenant contagion demo")
    parser.add_argument("--no-seed", action="store_true", help="Skip seeding; assume data exists")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for the demo portfolio")
    parser.add_argument("--source", default="cov-abc-leverage", help="Covenant assumed to breach")
    parser.add_argument("--db-path", default=None, help="DuckDB path (defaults to DB_PATH setting)")
    args = parser.parse_args()

    configure_logging()
    settings = get_settings()
    store = DuckDBTestHistoryStore(db_path=args.db_path or settings.db_path)

    print("\n" + "=" * 60)
    print("Covenant Contagion Demo")
    print("=" * 60)

    # Step 1: Seed data
    if not args.no_seed:
        print(f"\n[1/3] Seeding {QUARTERS} quarters of test history (seed={args.seed})...")
        records, metadata = DemoPortfolioGenerator(seed=args.seed).generate()
        store.clear_for_testing()
        store.write_test_records(records)
        store.write_covenant_metadata(metadata)
        print(f"  Wrote {len(records)} test records for {len(metadata)} covenants.\n")
    else:
        print("\n[1/3] Skipping seed (--no-seed).\n")

    # Step 2: Network
    print("[2/3] Computing correlation network...")
    engine = CovenantNetworkEngine(store=store, config=settings.engine_config())
    network = engine.compute_network(Scope.portfolio(), AS_OF)
    stats = network.stats
    print(f"  Covenants: {stats.total_covenants}  Facilities: {stats.total_facilities}")
    print(f"  Significant correlations: {stats.significant_correlations}  Edges: {len(network.edges)}")
    print(f"  Density: {stats.network_density:.2f}  Components: {stats.connected_components}")
    if stats.most_central_covenant:
        print(
            f"  Most central: {stats.most_central_covenant.covenant_name} "
            f"({stats.most_central_covenant.centrality:.2f})"
        )
    for node in sorted(network.nodes, key=lambda n: -n.risk_score):
        print(f"    {node.display_name:<50} risk={node.risk_score:5.1f} centrality={node.centrality:.2f}")

    # Step 3: Contagion
    print(f"\n[3/3] Assessing contagion from {args.source}...")
    if network.node_for(args.source) is None:
        print(f"  Unknown source covenant: {args.source}")
        sys.exit(1)
    assessment = engine.assess_contagion(args.source, network)
    for affected in assessment.affected_covenants:
        print(
            f"    {' -> '.join(affected.path):<60} "
            f"p={affected.propagation_probability:5.1f}% "
            f"t={affected.expected_impact_periods:.1f}q tier={affected.risk_tier.value}"
        )
    impact = assessment.portfolio_impact
    print(f"  Cascade probability: {impact.estimated_breach_cascade_probability:.1f}%")
    for recommendation in assessment.recommendations:
        print(f"  - {recommendation}")

    print("\n" + "=" * 60)
    print("Done. Serve the API with: uvicorn covnet.main:app --reload")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    main()
