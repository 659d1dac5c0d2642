"""
Simulated market.

A ``ScenarioSimMarket`` is bound to a cross-asset model and a scenario
generator and holds exactly one scenario at a time. Advancing it to a
scenario sets the risk factors trades are priced on, and an explicit
evaluation time. Close-out pricing with a sticky date keeps the evaluation
time at the valuation date while the risk factors move to the close-out
scenario.

Instances are not thread safe; each valuation worker uses its own
``clone()``.
"""

from typing import TYPE_CHECKING

from xva_cube._types import Year
from xva_cube.cube.scenario_data import (
    AggregationScenarioDataType,
    InMemoryAggregationScenarioData,
)
from xva_cube.errors import PreconditionError
from xva_cube.market.todays_market import TodaysMarket
from xva_cube.model.cross_asset import CrossAssetModel

if TYPE_CHECKING:
    from xva_cube.scenario.generator import Scenario, ScenarioGenerator


class ScenarioSimMarket:
    """
    Market state driven by simulated scenarios.

    Parameters
    ----------
    todays_market : TodaysMarket
        Market at the as-of date, used for T0 pricing
    model : CrossAssetModel
        Model that turns factor values into discount bonds
    scenario_generator : ScenarioGenerator | None
        Source of scenarios for the valuation engine
    aggregation_scenario_data : InMemoryAggregationScenarioData | None
        Receives numeraire, FX spots and short rates at valuation dates
    """

    def __init__(
        self,
        todays_market: TodaysMarket,
        model: CrossAssetModel,
        scenario_generator: "ScenarioGenerator | None" = None,
        aggregation_scenario_data: InMemoryAggregationScenarioData | None = None,
    ) -> None:
        self.todays_market = todays_market
        self.model = model
        self.scenario_generator = scenario_generator
        self.aggregation_scenario_data = aggregation_scenario_data
        self._scenario: "Scenario | None" = None
        self._evaluation_time: Year = 0.0

    @property
    def base_currency(self) -> str:
        return self.model.domestic_currency

    @property
    def scenario(self) -> "Scenario | None":
        return self._scenario

    @property
    def evaluation_time(self) -> Year:
        return self._evaluation_time

    def clone(self) -> "ScenarioSimMarket":
        """Independent market over the same model, generator and scenario data."""
        return ScenarioSimMarket(
            self.todays_market,
            self.model,
            self.scenario_generator,
            self.aggregation_scenario_data,
        )

    def advance(
        self,
        scenario: "Scenario",
        evaluation_time: Year | None = None,
        date_index: int | None = None,
    ) -> None:
        """
        Move the market to a scenario.

        Parameters
        ----------
        scenario : Scenario
            Risk factor values to price on
        evaluation_time : Year | None
            Pricing time; defaults to the scenario time. A sticky close-out
            passes the earlier valuation time.
        date_index : int | None
            Valuation date index; when given, the scenario is recorded in the
            attached aggregation scenario data
        """
        if evaluation_time is None:
            evaluation_time = scenario.time
        if evaluation_time > scenario.time:
            raise ValueError(
                f"Evaluation time {evaluation_time} is after the scenario time {scenario.time}"
            )
        self._scenario = scenario
        self._evaluation_time = evaluation_time
        if date_index is not None and self.aggregation_scenario_data is not None:
            self._record(scenario, date_index)

    def _record(self, scenario: "Scenario", date_index: int) -> None:
        data = self.aggregation_scenario_data
        data.set(date_index, scenario.sample, scenario.numeraire, AggregationScenarioDataType.NUMERAIRE)
        for ccy, spot in scenario.fx_spots.items():
            data.set(date_index, scenario.sample, spot, AggregationScenarioDataType.FX_SPOT, ccy)
        for ccy, rate in scenario.short_rates.items():
            data.set(date_index, scenario.sample, rate, AggregationScenarioDataType.SHORT_RATE, ccy)

    def reset(self) -> None:
        """Drop the current scenario."""
        self._scenario = None
        self._evaluation_time = 0.0

    def _current(self) -> "Scenario":
        if self._scenario is None:
            raise PreconditionError("Simulated market has not been advanced to a scenario")
        return self._scenario

    # ------------------------------------------------------------------
    # PricingMarket
    # ------------------------------------------------------------------

    def has_currency(self, currency: str) -> bool:
        return currency in self.model.ir and (
            currency == self.base_currency or currency in self.model.fx
        )

    def discount(self, currency: str, t: Year) -> float:
        """Discount factor from the evaluation time to ``t`` in ``currency``."""
        scenario = self._current()
        tau = t - self._evaluation_time
        if tau <= 0:
            return 1.0
        return float(self.model.discount_bond(currency, scenario.short_rates[currency], tau))

    def fx_spot(self, currency: str) -> float:
        """Base currency units per unit of ``currency``."""
        if currency == self.base_currency:
            return 1.0
        return self._current().fx_spots[currency]

    def numeraire(self) -> float:
        return self._current().numeraire
