"""
Simulation orchestrator.

``XvaRunner`` sequences one exposure simulation run through three stages,
each a precondition for the next:

1. ``prepare``: build the cross-asset model, the date grid, the scenario
   generator and the simulated market;
2. ``build_cube``: reprice the (optionally filtered) portfolio on every
   scenario into the trade cube, the netting cube and the aggregation
   scenario data;
3. ``generate_post_processor``: estimate dynamic initial margin and hand
   everything to the post-processor.

``run`` executes the three stages in order. Results are available through
accessors once their producing stage has completed.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from enum import IntEnum
from typing import Any

from xva_cube.config.models import CrossAssetModelConfig, XvaRunnerConfig
from xva_cube.cube.interpretation import (
    CubeInterpretation,
    MporGridCubeInterpretation,
    RegularCubeInterpretation,
)
from xva_cube.cube.npv_cube import (
    NPVCube,
    SinglePrecisionInMemoryCube,
    SinglePrecisionInMemoryCubeN,
)
from xva_cube.cube.scenario_data import InMemoryAggregationScenarioData
from xva_cube.dim.regression import RegressionDynamicInitialMarginCalculator
from xva_cube.engine.calculators import (
    CashflowCalculator,
    MPORCalculator,
    NPVCalculator,
    ValuationCalculator,
)
from xva_cube.engine.netting import NettingAggregator
from xva_cube.engine.valuation_engine import ValuationEngine, ValuationReport
from xva_cube.errors import (
    BuildFailure,
    ConfigurationError,
    PreconditionError,
    UnsupportedOperationError,
)
from xva_cube.extensions import RunnerExtensions
from xva_cube.market.sim_market import ScenarioSimMarket
from xva_cube.market.todays_market import TodaysMarket
from xva_cube.model.builder import CrossAssetModelBuilder
from xva_cube.model.cross_asset import CrossAssetModel
from xva_cube.portfolio.netting import NettingSetManager
from xva_cube.portfolio.portfolio import Portfolio
from xva_cube.postprocess.post_process import PostProcess
from xva_cube.scenario.generator import ScenarioGenerator, ScenarioGeneratorBuilder
from xva_cube.scenario.grid import DateGrid

logger = logging.getLogger(__name__)


class RunnerStage(IntEnum):
    """Stages of a run, in execution order."""

    IDLE = 0
    PREPARED = 1
    CUBE_BUILT = 2
    POST_PROCESSED = 3


class XvaRunner:
    """
    Runs an exposure simulation and its post-processing.

    Parameters
    ----------
    config : XvaRunnerConfig
        Run settings
    portfolio : Portfolio
        Full portfolio; never modified by the runner
    netting : NettingSetManager | None
        Netting set definitions
    extensions : RunnerExtensions | None
        Restricted capabilities and auxiliary engine builders
    post_processor_factory : Callable[..., Any]
        Called with keyword arguments to create the post-processor
    n_workers : int
        Threads over the sample axis of the valuation loop
    inline_netting : bool
        Fill the netting cube in the valuation loop instead of aggregating
        the trade cube afterwards

    Example
    -------
    >>> runner = XvaRunner(config, portfolio, netting)
    >>> post_process = runner.run(market)
    >>> post_process.reports.xva
    """

    def __init__(
        self,
        config: XvaRunnerConfig,
        portfolio: Portfolio,
        netting: NettingSetManager | None = None,
        extensions: RunnerExtensions | None = None,
        post_processor_factory: Callable[..., Any] = PostProcess,
        n_workers: int = 1,
        inline_netting: bool = True,
    ) -> None:
        self.config = config
        self.portfolio = portfolio
        self.netting = netting if netting is not None else NettingSetManager()
        self.extensions = extensions if extensions is not None else RunnerExtensions()
        self.post_processor_factory = post_processor_factory
        self.n_workers = n_workers
        self.inline_netting = inline_netting
        self._clear()

    def _clear(self) -> None:
        self._stage = RunnerStage.IDLE
        self._market: TodaysMarket | None = None
        self._grid: DateGrid | None = None
        self._model: CrossAssetModel | None = None
        self._model_config: CrossAssetModelConfig = self.config.model
        self._deferred_calibration = False
        self._generator: ScenarioGenerator | None = None
        self._sim_market: ScenarioSimMarket | None = None
        self._clear_cube()

    def _clear_cube(self) -> None:
        self._run_portfolio: Portfolio | None = None
        self._counterparties: dict[str, str] = {}
        self._interpretation: CubeInterpretation | None = None
        self._calculation_type = self.config.calculation_type
        self._cube: NPVCube | None = None
        self._netting_cube: NPVCube | None = None
        self._scenario_data: InMemoryAggregationScenarioData | None = None
        self._build_failures: list[BuildFailure] = []
        self._valuation_report: ValuationReport | None = None
        self._dim_calculator: RegressionDynamicInitialMarginCalculator | None = None
        self._post_process: Any = None

    @property
    def stage(self) -> RunnerStage:
        return self._stage

    def _require(self, stage: RunnerStage, what: str) -> None:
        if self._stage < stage:
            raise PreconditionError(
                f"{what} requires stage {stage.name}, runner is at {self._stage.name}"
            )

    # ------------------------------------------------------------------
    # Prepare
    # ------------------------------------------------------------------

    def prepare(
        self,
        market: TodaysMarket,
        continue_on_error: bool = False,
        currencies: Sequence[str] | None = None,
    ) -> None:
        """
        Build the model, scenario generator and simulated market.

        Parameters
        ----------
        market : TodaysMarket
            Market at the as-of date
        continue_on_error : bool
            Record calibration failures instead of raising
        currencies : Sequence[str] | None
            Restrict the simulation to these currencies; needs a projection
            capability in ``extensions``

        Raises
        ------
        ConfigurationError
            If the market does not match the run settings
        ModelCalibrationError
            If calibration fails and ``continue_on_error`` is off
        UnsupportedOperationError
            If a currency filter is requested without a projection capability
        """
        logger.info("XvaRunner.prepare called")
        if market.asof != self.config.asof:
            raise ConfigurationError(
                f"Market as-of {market.asof} differs from run as-of {self.config.asof}"
            )
        if market.base_currency != self.config.base_currency:
            raise ConfigurationError(
                f"Market base currency {market.base_currency} differs from "
                f"run base currency {self.config.base_currency}"
            )
        if currencies is not None and not self.extensions.projection.supports_currency_filter:
            raise UnsupportedOperationError(
                f"{type(self.extensions.projection).__name__} does not support a currency filter"
            )
        # Every run starts from the as-of date with nothing cached
        self._clear()
        self._market = market

        simulation = self.config.simulation
        self._grid = DateGrid.from_tenors(
            self.config.asof, simulation.grid, simulation.close_out_lag_days
        )

        calibrate = currencies is None
        logger.debug("build cross asset model, calibrate=%s", calibrate)
        model = CrossAssetModelBuilder(
            market, self.config.model, calibrate=calibrate, continue_on_error=continue_on_error
        ).build()

        generator_builder = ScenarioGeneratorBuilder(simulation)
        if currencies is None:
            generator = generator_builder.build(model, self._grid)
        else:
            generator, model = self._projected_generator(
                market, model, generator_builder, list(currencies), continue_on_error
            )
            self._deferred_calibration = True

        self._model = model
        self._generator = generator
        self._sim_market = ScenarioSimMarket(market, model, generator)

        for builder in self.extensions.engine_builders:
            builder.reset()

        self._stage = RunnerStage.PREPARED
        logger.debug(
            "prepared %d dates x %d samples, close-out lag=%s",
            len(self._grid),
            generator.samples,
            self._grid.close_out_lag_days,
        )

    def _projected_generator(
        self,
        market: TodaysMarket,
        model: CrossAssetModel,
        generator_builder: ScenarioGeneratorBuilder,
        currencies: list[str],
        continue_on_error: bool,
    ) -> tuple[ScenarioGenerator, CrossAssetModel]:
        projection = self.extensions.projection
        logger.debug("project simulation onto currencies %s", currencies)
        projected_config = projection.project_sim_market_parameters(self.config.model, currencies)
        base_generator = generator_builder.build(model, self._grid)
        projected_model = CrossAssetModelBuilder(
            market, projected_config, calibrate=False, continue_on_error=continue_on_error
        ).build()
        generator = projection.projected_scenario_generator(base_generator, projected_model)
        self._model_config = projected_config
        return generator, generator.model

    # ------------------------------------------------------------------
    # Build cube
    # ------------------------------------------------------------------

    def netting_set_ids(self, portfolio: Portfolio | None = None) -> list[str]:
        """Sorted netting set ids of ``portfolio`` (the full portfolio by default)."""
        return (portfolio if portfolio is not None else self.portfolio).netting_set_ids()

    def _select_layout(self) -> tuple[CubeInterpretation, bool]:
        store_flows = self.config.store_flows
        if not self._grid.with_close_out_lag:
            self._calculation_type = self.config.calculation_type
            return RegularCubeInterpretation(), store_flows
        if self.config.calculation_type != "NoLag":
            logger.error(
                "calculation type %s does not match the close-out grid, using NoLag",
                self.config.calculation_type,
            )
        self._calculation_type = "NoLag"
        if store_flows:
            logger.warning("store_flows is ignored on a close-out grid")
        return MporGridCubeInterpretation(self._grid), False

    def _calculators(
        self, interpretation: CubeInterpretation, store_flows: bool
    ) -> list[ValuationCalculator]:
        base = self.config.base_currency
        if isinstance(interpretation, MporGridCubeInterpretation):
            return [
                MPORCalculator(
                    NPVCalculator(base),
                    interpretation.default_date_index,
                    interpretation.close_out_index,
                )
            ]
        calculators: list[ValuationCalculator] = [
            NPVCalculator(base, interpretation.default_date_index)
        ]
        if store_flows:
            calculators.append(
                CashflowCalculator(base, self._grid.times, interpretation.flow_index)
            )
        return calculators

    @staticmethod
    def _allocate(asof, ids: Iterable[str], dates, samples: int, depth: int) -> NPVCube:
        if depth == 1:
            return SinglePrecisionInMemoryCube(asof, ids, dates, samples)
        return SinglePrecisionInMemoryCubeN(asof, ids, dates, samples, depth)

    def build_cube(
        self, trade_ids: Iterable[str] | None = None, continue_on_error: bool = False
    ) -> None:
        """
        Reprice the portfolio on every scenario.

        Parameters
        ----------
        trade_ids : Iterable[str] | None
            Restrict the run to these trades
        continue_on_error : bool
            Exclude trades that fail to build and skip failed valuations,
            recording both, instead of raising

        Raises
        ------
        PreconditionError
            If ``prepare`` has not run
        UnknownTradeError
            If a requested id is not in the portfolio
        TradeBuildError
            If a trade fails to build and ``continue_on_error`` is off
        ValuationError
            If a valuation fails and ``continue_on_error`` is off
        """
        self._require(RunnerStage.PREPARED, "build_cube")
        logger.info("XvaRunner.build_cube called")
        self._clear_cube()
        self._stage = RunnerStage.PREPARED

        if trade_ids is not None:
            run_portfolio = self.portfolio.filtered(trade_ids)
        else:
            run_portfolio = self.portfolio.copy()

        # Detach every trade of the full portfolio from earlier runs
        self.portfolio.reset()
        netting_ids = self.netting_set_ids(run_portfolio)
        # The first trade of a netting set names its counterparty
        counterparties = {
            t.netting_set_id: t.counterparty
            for t in reversed(run_portfolio.trades)
            if t.counterparty
        }

        logger.debug("build %d trades", len(run_portfolio))
        failures = run_portfolio.build(self._sim_market, continue_on_error=continue_on_error)
        if failures:
            logger.warning(
                "%d trades failed to build and are excluded: %s",
                len(failures),
                [f.trade_id for f in failures],
            )

        interpretation, store_flows = self._select_layout()
        depth = interpretation.required_depth(store_flows)
        engine = ValuationEngine(self.config.asof, self._grid, self._sim_market, self.n_workers)
        logger.debug("build calculators")
        calculators = self._calculators(interpretation, store_flows)

        dates = engine.cube_dates
        samples = self._generator.samples
        cube = self._allocate(self.config.asof, run_portfolio.ids, dates, samples, depth)
        netting_cube = None
        if self.inline_netting:
            netting_cube = self._allocate(self.config.asof, netting_ids, dates, samples, depth)
        scenario_data = InMemoryAggregationScenarioData(len(dates), samples)

        logger.debug("run valuation engine")
        report = engine.build_cube(
            run_portfolio,
            cube,
            calculators,
            mpor_sticky_date=self.config.simulation.mpor_sticky_date,
            netting_cube=netting_cube,
            scenario_data=scenario_data,
            continue_on_error=continue_on_error,
        )
        if netting_cube is None:
            logger.debug("aggregate netting cube")
            netting_cube = NettingAggregator(run_portfolio, netting_ids).aggregate(cube)

        self._run_portfolio = run_portfolio
        self._counterparties = counterparties
        self._interpretation = interpretation
        self._cube = cube
        self._netting_cube = netting_cube
        self._scenario_data = scenario_data
        self._build_failures = failures
        self._valuation_report = report
        self._stage = RunnerStage.CUBE_BUILT

    # ------------------------------------------------------------------
    # Post-process
    # ------------------------------------------------------------------

    def get_dim_calculator(
        self,
        cube: NPVCube,
        netting_cube: NPVCube | None,
        scenario_data: InMemoryAggregationScenarioData,
        regression_order: int = 0,
        regressors: Sequence[str] = (),
        local_regression_evaluations: int = 0,
        local_regression_bandwidth: float = 0.25,
    ) -> RegressionDynamicInitialMarginCalculator:
        """Dynamic initial margin calculator over the cubes of this run."""
        self._require(RunnerStage.CUBE_BUILT, "get_dim_calculator")
        return RegressionDynamicInitialMarginCalculator(
            self._run_portfolio,
            cube,
            self._interpretation,
            scenario_data,
            quantile=self.config.dim_quantile,
            horizon_calendar_days=self.config.dim_horizon_calendar_days,
            regression_order=regression_order,
            regressors=regressors,
            local_regression_evaluations=local_regression_evaluations,
            local_regression_bandwidth=local_regression_bandwidth,
            netting_cube=netting_cube,
            model=self._model,
        )

    def generate_post_processor(
        self,
        market: TodaysMarket,
        cube: NPVCube,
        netting_cube: NPVCube,
        scenario_data: InMemoryAggregationScenarioData,
        continue_on_error: bool = False,
    ) -> Any:
        """
        Estimate initial margin and create the post-processor.

        Raises
        ------
        PreconditionError
            If ``build_cube`` has not run
        ModelCalibrationError
            If deferred calibration fails and ``continue_on_error`` is off
        """
        self._require(RunnerStage.CUBE_BUILT, "generate_post_processor")
        logger.info("XvaRunner.generate_post_processor called")

        if self._deferred_calibration:
            logger.debug("calibrate deferred model")
            self._model = CrossAssetModelBuilder(
                market, self._model_config, calibrate=True, continue_on_error=continue_on_error
            ).build()
            self._deferred_calibration = False

        analytics = self.config.analytics
        dim_results = {}
        self._dim_calculator = None
        if analytics["dim"] or analytics["mva"]:
            logger.debug("build DIM calculator")
            self._dim_calculator = self.get_dim_calculator(cube, netting_cube, scenario_data)
            dim_results = self._dim_calculator.build()

        logger.debug("create post processor")
        self._post_process = self.post_processor_factory(
            portfolio=self._run_portfolio,
            netting=self.netting,
            market=market,
            cube=cube,
            netting_cube=netting_cube,
            scenario_data=scenario_data,
            analytics=analytics,
            base_currency=self.config.base_currency,
            interpretation=self._interpretation,
            dim_results=dim_results,
            quantile=self.config.exposure_quantile,
            calculation_type=self._calculation_type,
            dva_name=self.config.dva_name,
            fva_borrowing_curve=self.config.fva_borrowing_curve,
            fva_lending_curve=self.config.fva_lending_curve,
            full_initial_collateralisation=self.config.full_initial_collateralisation,
            capital=self.config.capital,
            model=self._model,
            counterparties=dict(self._counterparties),
        )
        self._stage = RunnerStage.POST_PROCESSED
        return self._post_process

    def run(self, market: TodaysMarket, continue_on_error: bool = False) -> Any:
        """Prepare, build the cube for the full portfolio and post-process."""
        self.prepare(market, continue_on_error)
        self.build_cube(continue_on_error=continue_on_error)
        return self.generate_post_processor(
            market,
            self._cube,
            self._netting_cube,
            self._scenario_data,
            continue_on_error,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def model(self) -> CrossAssetModel:
        self._require(RunnerStage.PREPARED, "model")
        return self._model

    @property
    def grid(self) -> DateGrid:
        self._require(RunnerStage.PREPARED, "grid")
        return self._grid

    @property
    def sim_market(self) -> ScenarioSimMarket:
        self._require(RunnerStage.PREPARED, "sim_market")
        return self._sim_market

    @property
    def scenario_generator(self) -> ScenarioGenerator:
        self._require(RunnerStage.PREPARED, "scenario_generator")
        return self._generator

    @property
    def npv_cube(self) -> NPVCube:
        self._require(RunnerStage.CUBE_BUILT, "npv_cube")
        return self._cube

    @property
    def netting_cube(self) -> NPVCube:
        self._require(RunnerStage.CUBE_BUILT, "netting_cube")
        return self._netting_cube

    @property
    def aggregation_scenario_data(self) -> InMemoryAggregationScenarioData:
        self._require(RunnerStage.CUBE_BUILT, "aggregation_scenario_data")
        return self._scenario_data

    @property
    def interpretation(self) -> CubeInterpretation:
        self._require(RunnerStage.CUBE_BUILT, "interpretation")
        return self._interpretation

    @property
    def calculation_type(self) -> str:
        """Calculation type in effect after any override for the close-out grid."""
        self._require(RunnerStage.CUBE_BUILT, "calculation_type")
        return self._calculation_type

    @property
    def run_portfolio(self) -> Portfolio:
        """Trades actually repriced in the cube."""
        self._require(RunnerStage.CUBE_BUILT, "run_portfolio")
        return self._run_portfolio

    @property
    def build_failures(self) -> list[BuildFailure]:
        self._require(RunnerStage.CUBE_BUILT, "build_failures")
        return list(self._build_failures)

    @property
    def valuation_report(self) -> ValuationReport:
        self._require(RunnerStage.CUBE_BUILT, "valuation_report")
        return self._valuation_report

    @property
    def dim_calculator(self) -> RegressionDynamicInitialMarginCalculator | None:
        """DIM calculator of the run; ``None`` when neither DIM nor MVA is enabled."""
        self._require(RunnerStage.POST_PROCESSED, "dim_calculator")
        return self._dim_calculator

    @property
    def post_process(self) -> Any:
        self._require(RunnerStage.POST_PROCESSED, "post_process")
        return self._post_process
