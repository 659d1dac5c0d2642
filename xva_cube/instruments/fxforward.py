"""
FX Forward instrument implementation.

Provides pricing for foreign exchange forward contracts where currencies
are exchanged at a pre-agreed rate on a future date.
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from xva_cube._types import FloatArray, Year
from xva_cube.instruments.base import Instrument, InstrumentType
from xva_cube.market.todays_market import PricingMarket


@dataclass
class FXForward(Instrument):
    """
    FX Forward contract instrument.

    PV at time t (in domestic currency):
        V(t) = N_f × S(t) × DF_f(t,T) - N_d × DF_d(t,T)

    where:
        N_f = notional in foreign currency
        N_d = K × N_f = notional in domestic currency
        S(t) = FX spot rate (domestic per foreign)
        DF_d, DF_f = domestic and foreign discount factors

    Attributes
    ----------
    notional_foreign : float
        Notional in foreign currency
    strike : float
        Forward strike rate (domestic per foreign)
    maturity : float
        Settlement time in years
    foreign_currency : str
        Currency bought or sold
    domestic_currency : str
        Currency the strike is paid in
    buy_foreign : bool
        True if we're buying foreign currency (receiving foreign, paying domestic)

    Example
    -------
    >>> fxf = FXForward(
    ...     notional_foreign=1_000_000,  # 1M EUR
    ...     strike=1.10,                  # 1.10 USD/EUR
    ...     maturity=1.0,
    ...     buy_foreign=True,
    ... )
    """

    notional_foreign: float
    strike: float
    maturity: float
    foreign_currency: str = "EUR"
    domestic_currency: str = "USD"
    buy_foreign: bool = True
    instrument_type: InstrumentType = field(
        default=InstrumentType.FX_FORWARD, init=False, repr=False
    )

    def __post_init__(self) -> None:
        """Validate forward parameters."""
        if self.notional_foreign <= 0:
            raise ValueError(f"Foreign notional must be positive, got {self.notional_foreign}")
        if self.strike <= 0:
            raise ValueError(f"Strike must be positive, got {self.strike}")
        if self.maturity <= 0:
            raise ValueError(f"Maturity must be positive, got {self.maturity}")
        if self.foreign_currency == self.domestic_currency:
            raise ValueError("Foreign and domestic currency must differ")

    @property
    def notional(self) -> float:
        """Notional in foreign currency."""
        return self.notional_foreign

    @property
    def notional_domestic(self) -> float:
        return self.strike * self.notional_foreign

    @property
    def pricing_currency(self) -> str:
        return self.domestic_currency

    def currencies(self) -> tuple[str, ...]:
        return (self.domestic_currency, self.foreign_currency)

    def get_cash_flow_dates(self) -> FloatArray:
        return np.array([self.maturity])

    def _cross_rate(self, market: PricingMarket) -> float:
        # Market spots are quoted against the market's base currency
        return market.fx_spot(self.foreign_currency) / market.fx_spot(self.domestic_currency)

    def _sign(self) -> float:
        return 1.0 if self.buy_foreign else -1.0

    def forward_rate(self, market: PricingMarket) -> float:
        """Outright forward S × DF_f / DF_d for the settlement time."""
        df_d = market.discount(self.domestic_currency, self.maturity)
        df_f = market.discount(self.foreign_currency, self.maturity)
        return self._cross_rate(market) * df_f / df_d

    def npv(self, market: PricingMarket) -> float:
        if market.evaluation_time >= self.maturity:
            return 0.0
        df_d = market.discount(self.domestic_currency, self.maturity)
        df_f = market.discount(self.foreign_currency, self.maturity)
        pv_foreign = self.notional_foreign * self._cross_rate(market) * df_f
        pv_domestic = self.notional_domestic * df_d
        return float(self._sign() * (pv_foreign - pv_domestic))

    def cash_flows(self, market: PricingMarket, t_start: Year, t_end: Year) -> float:
        if not t_start < self.maturity <= t_end:
            return 0.0
        amount = self.notional_foreign * (self.forward_rate(market) - self.strike)
        return float(self._sign() * amount)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.instrument_type.value,
            "notional_foreign": self.notional_foreign,
            "strike": self.strike,
            "maturity": self.maturity,
            "foreign_currency": self.foreign_currency,
            "domestic_currency": self.domestic_currency,
            "buy_foreign": self.buy_foreign,
        }

    @classmethod
    def from_config(cls, config: "FXForwardConfig") -> "FXForward":  # noqa: F821
        return cls(
            notional_foreign=config.notional_foreign,
            strike=config.strike,
            maturity=config.maturity_years,
            foreign_currency=config.foreign_currency,
            domestic_currency=config.domestic_currency,
            buy_foreign=config.buy_foreign,
        )
