#!/usr/bin/env python3
"""
Exposure Cube - Demo Script

This script walks through one exposure simulation run:
1. Define a portfolio of IRS and FX Forward trades in two netting sets
2. Prepare the cross-asset model and scenario generator
3. Reprice the portfolio into the NPV cube
4. Estimate dynamic initial margin and post-process
5. Export the report tables

Usage:
    python examples/run_demo.py
"""

import logging
from datetime import date
from pathlib import Path

from xva_cube import (
    FXForward,
    IRSwap,
    NettingSetManager,
    Portfolio,
    TodaysMarket,
    Trade,
    XvaRunner,
)
from xva_cube.config import create_default_market_config, create_default_runner_config
from xva_cube.portfolio import Envelope, NettingSetDefinition

ASOF = date(2024, 1, 15)


def main() -> None:
    """Run the exposure cube demo."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    print("=" * 60)
    print("Exposure Cube - Demo")
    print("=" * 60)
    print()

    # =========================================================================
    # 1. Define Portfolio
    # =========================================================================
    print("1. Defining portfolio...")

    portfolio = Portfolio(
        [
            Trade(
                "IRS_5Y_PAY",
                Envelope("NS_CSA", "CPTY_A"),
                IRSwap(notional=10_000_000, fixed_rate=0.025, maturity=5.0, pay_fixed=True),
            ),
            Trade(
                "IRS_3Y_REC",
                Envelope("NS_CSA", "CPTY_A"),
                IRSwap(notional=15_000_000, fixed_rate=0.020, maturity=3.0, pay_fixed=False),
            ),
            Trade(
                "FXF_1Y_BUY",
                Envelope("NS_UNCOLL", "CPTY_A"),
                FXForward(notional_foreign=5_000_000, strike=1.12, maturity=1.0),
            ),
            Trade(
                "FXF_2Y_SELL",
                Envelope("NS_UNCOLL", "CPTY_A"),
                FXForward(
                    notional_foreign=3_000_000, strike=1.08, maturity=2.0, buy_foreign=False
                ),
            ),
        ]
    )
    netting = NettingSetManager(
        [
            NettingSetDefinition(
                "NS_CSA", "CPTY_A", active_csa=True, threshold=1_000_000, mta=100_000
            ),
            NettingSetDefinition("NS_UNCOLL", "CPTY_A"),
        ]
    )

    print(f"   Portfolio: {len(portfolio)} trades")
    print(f"   Netting sets: {', '.join(portfolio.netting_set_ids())}")
    print()

    # =========================================================================
    # 2. Prepare
    # =========================================================================
    print("2. Preparing model and scenarios...")

    market = TodaysMarket.from_config(ASOF, "USD", create_default_market_config())
    config = create_default_runner_config(
        ASOF,
        samples=2000,
        grid=["3M", "6M", "9M", "1Y", "18M", "2Y", "3Y", "4Y", "5Y"],
        dva_name="BANK",
        fva_borrowing_curve="BANK_FUNDING",
        fva_lending_curve="BANK_LENDING",
        analytics={"kva": True},
    )
    runner = XvaRunner(config, portfolio, netting, n_workers=4)
    runner.prepare(market)

    print(f"   Dates: {len(runner.grid)}")
    print(f"   Samples: {runner.scenario_generator.samples}")
    print()

    # =========================================================================
    # 3. Build Cube
    # =========================================================================
    print("3. Repricing portfolio into the cube...")

    runner.build_cube()
    report = runner.valuation_report

    print(f"   Cube: {runner.npv_cube!r}")
    print(f"   Valuation time: {report.elapsed:.2f}s")
    print()

    # =========================================================================
    # 4. Post-process
    # =========================================================================
    print("4. Estimating initial margin and valuation adjustments...")

    post_process = runner.generate_post_processor(
        market, runner.npv_cube, runner.netting_cube, runner.aggregation_scenario_data
    )

    for ns_id in runner.netting_set_ids():
        profile = post_process.exposure_profile(ns_id)
        print(f"   {ns_id}: peak EPE ${profile.peak_epe:,.0f}, EEPE ${profile.eepe:,.0f}")

    print()
    print(post_process.xva().summary())
    print()

    # =========================================================================
    # 5. Export Results
    # =========================================================================
    print("5. Exporting results...")

    output_dir = Path(__file__).parent / "outputs"
    output_dir.mkdir(exist_ok=True)

    for name, table in post_process.reports.to_dict().items():
        path = output_dir / f"demo_{name}.csv"
        table.to_csv(path, index=False)
        print(f"   Saved: {path}")

    print()
    print("=" * 60)
    print("Demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
