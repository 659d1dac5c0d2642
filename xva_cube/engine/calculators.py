"""
Valuation calculators.

A calculator turns one trade on one market state into values for one or
more cube depth slots, and defines how trade values combine into
netting-set values. The slots a calculator fills are handed to it by the
runner, which takes them from the cube interpretation in use.

Values are converted to the base currency and deflated by the numeraire,
so that expectations over samples are risk-neutral present values.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from xva_cube._types import Year
from xva_cube.market.todays_market import PricingMarket
from xva_cube.portfolio.trade import Trade

CellValues = dict[int, float]
"""Values keyed by cube depth slot."""


class ValuationCalculator(ABC):
    """Interface of the calculators run by the valuation engine."""

    @abstractmethod
    def calculate(
        self,
        trade: Trade,
        market: PricingMarket,
        date_index: int,
        is_close_out: bool = False,
    ) -> CellValues:
        """
        Values of one trade at a simulated (date, sample).

        Parameters
        ----------
        trade : Trade
            Built trade
        market : PricingMarket
            Simulated market advanced to the scenario
        date_index : int
            Cube date index
        is_close_out : bool
            True when the market holds the close-out scenario of the date

        Returns
        -------
        CellValues
            Depth slot to value; empty if the calculator has nothing to
            write in this pass
        """

    @abstractmethod
    def calculate_t0(self, trade: Trade, market: PricingMarket) -> CellValues:
        """Values of one trade on today's market."""

    def combine(self, accumulator: CellValues, values: CellValues) -> None:
        """Fold trade values into netting-set values. Sums by default."""
        for depth, value in values.items():
            accumulator[depth] = accumulator.get(depth, 0.0) + value


class NPVCalculator(ValuationCalculator):
    """
    Deflated NPV in the base currency.

    Parameters
    ----------
    base_currency : str
        Currency values are converted to
    index : int
        Depth slot written
    """

    def __init__(self, base_currency: str, index: int = 0) -> None:
        self.base_currency = base_currency
        self.index = index

    def npv(self, trade: Trade, market: PricingMarket) -> float:
        """Deflated base-currency NPV of a trade."""
        fx = market.fx_spot(trade.pricing_currency) / market.fx_spot(self.base_currency)
        return trade.npv(market) * fx / market.numeraire()

    def calculate(
        self,
        trade: Trade,
        market: PricingMarket,
        date_index: int,
        is_close_out: bool = False,
    ) -> CellValues:
        return {self.index: self.npv(trade, market)}

    def calculate_t0(self, trade: Trade, market: PricingMarket) -> CellValues:
        return {self.index: self.npv(trade, market)}


class CashflowCalculator(ValuationCalculator):
    """
    Deflated cash flows paid between consecutive cube dates.

    At date d the calculator records the base-currency amount paid in
    ``(t_d, t_{d+1}]``; the last date records nothing. The T0 slot records
    the amount paid in ``(0, t_0]``.

    Parameters
    ----------
    base_currency : str
        Currency values are converted to
    times : Sequence[Year]
        Year fractions of the cube dates
    index : int
        Depth slot written
    """

    def __init__(self, base_currency: str, times: Sequence[Year], index: int = 1) -> None:
        self.base_currency = base_currency
        self.times = [float(t) for t in times]
        self.index = index

    def _flows(self, trade: Trade, market: PricingMarket, t_start: Year, t_end: Year) -> float:
        fx = market.fx_spot(trade.pricing_currency) / market.fx_spot(self.base_currency)
        return trade.cash_flows(market, t_start, t_end) * fx / market.numeraire()

    def calculate(
        self,
        trade: Trade,
        market: PricingMarket,
        date_index: int,
        is_close_out: bool = False,
    ) -> CellValues:
        if is_close_out:
            return {}
        if date_index + 1 >= len(self.times):
            return {self.index: 0.0}
        return {
            self.index: self._flows(
                trade, market, self.times[date_index], self.times[date_index + 1]
            )
        }

    def calculate_t0(self, trade: Trade, market: PricingMarket) -> CellValues:
        return {self.index: self._flows(trade, market, 0.0, self.times[0])}


class MPORCalculator(ValuationCalculator):
    """
    Routes NPVs on a close-out grid to the default-date and close-out slots.

    Parameters
    ----------
    npv_calculator : NPVCalculator
        Calculator producing the NPV; its own slot is ignored
    default_index : int
        Slot of the default-date NPV
    close_out_index : int
        Slot of the close-out NPV
    """

    def __init__(
        self,
        npv_calculator: NPVCalculator,
        default_index: int = 0,
        close_out_index: int = 1,
    ) -> None:
        if default_index == close_out_index:
            raise ValueError("Default and close-out NPVs need distinct depth slots")
        self.npv_calculator = npv_calculator
        self.default_index = default_index
        self.close_out_index = close_out_index

    def calculate(
        self,
        trade: Trade,
        market: PricingMarket,
        date_index: int,
        is_close_out: bool = False,
    ) -> CellValues:
        index = self.close_out_index if is_close_out else self.default_index
        return {index: self.npv_calculator.npv(trade, market)}

    def calculate_t0(self, trade: Trade, market: PricingMarket) -> CellValues:
        npv = self.npv_calculator.npv(trade, market)
        return {self.default_index: npv, self.close_out_index: npv}

    def combine(self, accumulator: CellValues, values: CellValues) -> None:
        self.npv_calculator.combine(accumulator, values)
