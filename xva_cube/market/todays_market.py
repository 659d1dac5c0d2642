"""
Today's market: the curves, spots and credit data observed at the as-of date.

It prices trades at T0, feeds model calibration, and supplies the credit
and funding curves of post-processing.
"""

from collections.abc import Mapping
from datetime import date
from typing import Protocol

from xva_cube._types import Year
from xva_cube.market.curves import DiscountCurve, HazardCurve


class PricingMarket(Protocol):
    """What an instrument needs from a market to price itself."""

    @property
    def evaluation_time(self) -> Year: ...

    def discount(self, currency: str, t: Year) -> float: ...

    def fx_spot(self, currency: str) -> float: ...

    def numeraire(self) -> float: ...

    def has_currency(self, currency: str) -> bool: ...


class TodaysMarket:
    """
    Market data at the as-of date.

    Parameters
    ----------
    asof : date
        As-of date
    base_currency : str
        Currency FX spots are quoted in
    discount_curves : Mapping[str, DiscountCurve]
        Zero curve per currency
    fx_spots : Mapping[str, float]
        Base currency units per unit of each foreign currency
    fx_volatilities : Mapping[str, float] | None
        Implied FX volatilities for calibration
    default_curves : Mapping[str, HazardCurve] | None
        Credit curve per entity name
    funding_spreads : Mapping[str, float] | None
        Funding spread (decimal) per curve name
    """

    evaluation_time: Year = 0.0

    def __init__(
        self,
        asof: date,
        base_currency: str,
        discount_curves: Mapping[str, DiscountCurve],
        fx_spots: Mapping[str, float] | None = None,
        fx_volatilities: Mapping[str, float] | None = None,
        default_curves: Mapping[str, HazardCurve] | None = None,
        funding_spreads: Mapping[str, float] | None = None,
    ) -> None:
        if base_currency not in discount_curves:
            raise ValueError(f"No discount curve for base currency {base_currency}")
        self.asof = asof
        self.base_currency = base_currency
        self.discount_curves = dict(discount_curves)
        self.fx_spots = dict(fx_spots or {})
        self.fx_volatilities = dict(fx_volatilities or {})
        self.default_curves = dict(default_curves or {})
        self.funding_spreads = dict(funding_spreads or {})

    @property
    def currencies(self) -> tuple[str, ...]:
        return tuple(self.discount_curves)

    def has_currency(self, currency: str) -> bool:
        return currency in self.discount_curves and (
            currency == self.base_currency or currency in self.fx_spots
        )

    def curve(self, currency: str) -> DiscountCurve:
        try:
            return self.discount_curves[currency]
        except KeyError:
            raise KeyError(f"No discount curve for currency {currency}") from None

    def discount(self, currency: str, t: Year) -> float:
        return float(self.curve(currency).discount_factor(t))

    def fx_spot(self, currency: str) -> float:
        """Base currency units per unit of ``currency``."""
        if currency == self.base_currency:
            return 1.0
        try:
            return self.fx_spots[currency]
        except KeyError:
            raise KeyError(f"No FX spot for {currency}/{self.base_currency}") from None

    def numeraire(self) -> float:
        return 1.0

    def default_curve(self, name: str) -> HazardCurve:
        try:
            return self.default_curves[name]
        except KeyError:
            raise KeyError(f"No default curve for entity '{name}'") from None

    def funding_spread(self, name: str) -> float:
        try:
            return self.funding_spreads[name]
        except KeyError:
            raise KeyError(f"No funding spread for curve '{name}'") from None

    @classmethod
    def from_config(
        cls, asof: date, base_currency: str, config: "MarketConfig"  # noqa: F821
    ) -> "TodaysMarket":
        """
        Build today's market from a validated configuration.

        Example
        -------
        >>> market = TodaysMarket.from_config(date(2024, 1, 15), "USD",
        ...                                   create_default_market_config())
        """
        curves = {
            ccy: DiscountCurve(rate=c.rate, tenors=c.tenors, rates=c.rates)
            for ccy, c in config.curves.items()
        }
        credit = {
            name: HazardCurve(hazard_rate=c.hazard_rate, recovery_rate=c.recovery_rate)
            for name, c in config.default_curves.items()
        }
        spreads = {name: bps / 10_000 for name, bps in config.funding_spreads_bps.items()}
        return cls(
            asof,
            base_currency,
            curves,
            fx_spots=config.fx_spots,
            fx_volatilities=config.fx_volatilities,
            default_curves=credit,
            funding_spreads=spreads,
        )
