"""
Valuation engine: scenario by scenario revaluation into the cube.

The engine walks every (valuation date, sample) pair of the grid, advances
a simulated market to the scenario and lets each calculator value every
trade. Trade values go to the trade cube, netting-set values (combined per
calculator rule) to the netting cube, and the scenario's numeraire, FX
spots and short rates to the aggregation scenario data.

Samples are independent, so the sample axis is split into contiguous
chunks handled by a thread pool. Every worker owns a clone of the
simulated market and writes a disjoint set of cube cells.
"""

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date

import numpy as np

from xva_cube.cube.npv_cube import NPVCube
from xva_cube.cube.scenario_data import InMemoryAggregationScenarioData
from xva_cube.engine.calculators import CellValues, ValuationCalculator
from xva_cube.errors import ConfigurationError, PathFailure, ValuationError
from xva_cube.market.sim_market import ScenarioSimMarket
from xva_cube.portfolio.portfolio import Portfolio
from xva_cube.portfolio.trade import Trade
from xva_cube.scenario.generator import ScenarioGenerator
from xva_cube.scenario.grid import DateGrid

logger = logging.getLogger(__name__)


@dataclass
class ValuationReport:
    """
    Outcome of one ``ValuationEngine.build_cube`` call.

    Attributes
    ----------
    path_failures : list[PathFailure]
        Pricing failures tolerated under ``continue_on_error``
    samples_processed : int
        Number of samples valued
    elapsed : float
        Wall clock seconds spent in the valuation loop
    """

    path_failures: list[PathFailure] = field(default_factory=list)
    samples_processed: int = 0
    elapsed: float = 0.0

    @property
    def has_failures(self) -> bool:
        return bool(self.path_failures)

    def failed_trade_ids(self) -> list[str]:
        """Distinct ids of trades with at least one failed valuation."""
        return sorted({f.trade_id for f in self.path_failures})


class ValuationEngine:
    """
    Fills trade and netting cubes from a simulated market.

    Parameters
    ----------
    asof : date
        Valuation date of the run
    grid : DateGrid
        Simulation grid; close-out dates are visited when it has a lag
    sim_market : ScenarioSimMarket
        Market bound to the model and scenario generator; used as the
        template for per-worker clones and left untouched itself
    n_workers : int
        Number of threads over the sample axis

    Example
    -------
    >>> engine = ValuationEngine(asof, grid, sim_market, n_workers=4)
    >>> report = engine.build_cube(portfolio, cube, [NPVCalculator("USD")])
    """

    def __init__(
        self,
        asof: date,
        grid: DateGrid,
        sim_market: ScenarioSimMarket,
        n_workers: int = 1,
    ) -> None:
        if n_workers < 1:
            raise ConfigurationError(f"n_workers must be positive, got {n_workers}")
        if sim_market.scenario_generator is None:
            raise ConfigurationError("Simulated market is not bound to a scenario generator")
        self.asof = asof
        self.grid = grid
        self.sim_market = sim_market
        self.n_workers = n_workers

    @property
    def generator(self) -> ScenarioGenerator:
        return self.sim_market.scenario_generator

    @property
    def cube_dates(self) -> tuple[date, ...]:
        """Dates of the cubes this engine fills."""
        if self.grid.with_close_out_lag:
            return self.grid.valuation_dates
        return self.grid.dates

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _check_cube(self, cube: NPVCube, name: str) -> None:
        if tuple(cube.dates) != self.cube_dates:
            raise ConfigurationError(
                f"{name} has {cube.num_dates} dates, simulation grid has {len(self.cube_dates)}"
            )
        if cube.samples != self.generator.samples:
            raise ConfigurationError(
                f"{name} has {cube.samples} samples, scenario generator has "
                f"{self.generator.samples}"
            )
        if cube.frozen:
            raise ConfigurationError(f"{name} is frozen")

    def _validate(
        self,
        portfolio: Portfolio,
        cube: NPVCube,
        netting_cube: NPVCube | None,
        scenario_data: InMemoryAggregationScenarioData | None,
    ) -> None:
        self._check_cube(cube, "Cube")
        if list(cube.ids) != portfolio.ids:
            raise ConfigurationError(
                f"Cube ids {list(cube.ids)} do not match portfolio ids {portfolio.ids}"
            )
        if netting_cube is not None:
            self._check_cube(netting_cube, "Netting cube")
            missing = sorted(set(portfolio.netting_set_ids()) - set(netting_cube.ids))
            if missing:
                raise ConfigurationError(f"Netting cube lacks netting sets {missing}")
        if scenario_data is not None and (
            scenario_data.dim_dates != cube.num_dates
            or scenario_data.dim_samples != cube.samples
        ):
            raise ConfigurationError(
                f"Scenario data dimensions ({scenario_data.dim_dates}, "
                f"{scenario_data.dim_samples}) do not match cube "
                f"({cube.num_dates}, {cube.samples})"
            )

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build_cube(
        self,
        portfolio: Portfolio,
        cube: NPVCube,
        calculators: Sequence[ValuationCalculator],
        mpor_sticky_date: bool = False,
        netting_cube: NPVCube | None = None,
        scenario_data: InMemoryAggregationScenarioData | None = None,
        continue_on_error: bool = False,
    ) -> ValuationReport:
        """
        Value the built portfolio on every scenario.

        Parameters
        ----------
        portfolio : Portfolio
            Trades built against the simulated market, in cube id order
        cube : NPVCube
            Trade cube, dated as ``cube_dates``
        calculators : Sequence[ValuationCalculator]
            Calculators run on every trade
        mpor_sticky_date : bool
            Keep the evaluation time at the valuation date when pricing on
            the close-out scenario
        netting_cube : NPVCube | None
            Receives netting-set values when given
        scenario_data : InMemoryAggregationScenarioData | None
            Receives numeraire, FX spots and short rates when given
        continue_on_error : bool
            Record pricing failures instead of raising

        Returns
        -------
        ValuationReport
            Tolerated failures and timing

        Raises
        ------
        ConfigurationError
            If cube dimensions do not match the grid and portfolio
        ValuationError
            If pricing fails and ``continue_on_error`` is off
        """
        self._validate(portfolio, cube, netting_cube, scenario_data)
        trades = portfolio.trades
        calculators = list(calculators)
        report = ValuationReport()
        start = time.perf_counter()

        logger.debug("value %d trades on today's market", len(trades))
        report.path_failures.extend(
            self._value_t0(trades, calculators, cube, netting_cube, continue_on_error)
        )

        n_chunks = min(self.n_workers, cube.samples)
        chunks = [c for c in np.array_split(np.arange(cube.samples), n_chunks) if len(c)]
        logger.debug(
            "value %d trades on %d dates x %d samples in %d chunks, sticky=%s",
            len(trades),
            cube.num_dates,
            cube.samples,
            len(chunks),
            mpor_sticky_date,
        )

        def run_chunk(samples: np.ndarray) -> list[PathFailure]:
            market = self.sim_market.clone()
            market.aggregation_scenario_data = scenario_data
            return self._value_samples(
                market,
                trades,
                calculators,
                samples,
                cube,
                netting_cube,
                mpor_sticky_date,
                continue_on_error,
            )

        if len(chunks) == 1:
            report.path_failures.extend(run_chunk(chunks[0]))
        else:
            with ThreadPoolExecutor(max_workers=len(chunks)) as pool:
                for failures in pool.map(run_chunk, chunks):
                    report.path_failures.extend(failures)

        cube.freeze()
        if netting_cube is not None:
            netting_cube.freeze()

        report.samples_processed = cube.samples
        report.elapsed = time.perf_counter() - start
        if report.has_failures:
            logger.warning(
                "%d valuations failed and were skipped, trades affected: %s",
                len(report.path_failures),
                report.failed_trade_ids(),
            )
        logger.info(
            "valuation loop finished: %d samples in %.2fs", report.samples_processed, report.elapsed
        )
        return report

    def _value_t0(
        self,
        trades: list[Trade],
        calculators: list[ValuationCalculator],
        cube: NPVCube,
        netting_cube: NPVCube | None,
        continue_on_error: bool,
    ) -> list[PathFailure]:
        market = self.sim_market.todays_market
        failures: list[PathFailure] = []
        values: dict[str, list[CellValues]] = {}
        for trade in trades:
            try:
                values[trade.id] = [c.calculate_t0(trade, market) for c in calculators]
            except Exception as exc:
                failures.append(self._fail(trade, None, None, exc, continue_on_error))

        netting = self._combine(values, trades, calculators, netting_cube is not None)
        for ns_id, per_calc in netting.items():
            for acc in per_calc:
                for depth, value in acc.items():
                    netting_cube.set_t0(ns_id, value, depth)
        for trade_id, per_calc in values.items():
            for cell in per_calc:
                for depth, value in cell.items():
                    cube.set_t0(trade_id, value, depth)
        return failures

    def _value_samples(
        self,
        market: ScenarioSimMarket,
        trades: list[Trade],
        calculators: list[ValuationCalculator],
        samples: np.ndarray,
        cube: NPVCube,
        netting_cube: NPVCube | None,
        sticky: bool,
        continue_on_error: bool,
    ) -> list[PathFailure]:
        generator = self.generator
        with_lag = self.grid.with_close_out_lag
        valuation_times = self.grid.valuation_times
        failures: list[PathFailure] = []

        for sample in samples:
            sample = int(sample)
            for date_index, valuation_date in enumerate(self.cube_dates):
                scenario = generator.scenario(self.grid.index_of(valuation_date), sample)
                market.advance(scenario, date_index=date_index)

                values: dict[str, list[CellValues]] = {}
                for trade in trades:
                    try:
                        values[trade.id] = [
                            c.calculate(trade, market, date_index) for c in calculators
                        ]
                    except Exception as exc:
                        failures.append(
                            self._fail(trade, date_index, sample, exc, continue_on_error)
                        )

                if with_lag:
                    close_out = generator.scenario(self.grid.close_out_index(date_index), sample)
                    evaluation_time = float(valuation_times[date_index]) if sticky else None
                    market.advance(close_out, evaluation_time=evaluation_time)
                    for trade in trades:
                        if trade.id not in values:
                            continue
                        try:
                            extra = [
                                c.calculate(trade, market, date_index, is_close_out=True)
                                for c in calculators
                            ]
                        except Exception as exc:
                            failures.append(
                                self._fail(trade, date_index, sample, exc, continue_on_error)
                            )
                            del values[trade.id]
                            continue
                        for cell, more in zip(values[trade.id], extra):
                            cell.update(more)

                for trade_id, per_calc in values.items():
                    for cell in per_calc:
                        for depth, value in cell.items():
                            cube.set(trade_id, date_index, sample, value, depth)
                netting = self._combine(values, trades, calculators, netting_cube is not None)
                for ns_id, per_calc in netting.items():
                    for acc in per_calc:
                        for depth, value in acc.items():
                            netting_cube.set(ns_id, date_index, sample, value, depth)

        market.reset()
        return failures

    @staticmethod
    def _combine(
        values: dict[str, list[CellValues]],
        trades: list[Trade],
        calculators: list[ValuationCalculator],
        with_netting: bool,
    ) -> dict[str, list[CellValues]]:
        """Combine the trade values of one cell into netting-set values."""
        netting: dict[str, list[CellValues]] = {}
        if not with_netting:
            return netting
        for trade in trades:
            per_calc = values.get(trade.id)
            if per_calc is None:
                continue
            acc = netting.setdefault(trade.netting_set_id, [{} for _ in calculators])
            for calculator, target, cell in zip(calculators, acc, per_calc):
                calculator.combine(target, cell)
        return netting

    @staticmethod
    def _fail(
        trade: Trade,
        date_index: int | None,
        sample: int | None,
        exc: Exception,
        continue_on_error: bool,
    ) -> PathFailure:
        if not continue_on_error:
            raise ValuationError(trade.id, date_index, sample, str(exc)) from exc
        return PathFailure(trade.id, date_index, sample, str(exc))
