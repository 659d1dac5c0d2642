"""
Base classes for financial instruments.

Provides the abstract interface that all instruments implement so that the
valuation calculators can price them on any market: today's market for T0
values, or a simulated market advanced to a scenario.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

import numpy as np

from xva_cube._types import FloatArray, Year
from xva_cube.market.todays_market import PricingMarket


class InstrumentType(Enum):
    """Enumeration of supported instrument types."""

    IRS = "interest_rate_swap"
    FX_FORWARD = "fx_forward"


class Instrument(ABC):
    """
    Abstract base class for all financial instruments.

    Times are year fractions from the as-of date. Values are from our
    perspective (positive = in-the-money for us) and in
    ``pricing_currency``.

    Attributes
    ----------
    notional : float
        Notional amount
    maturity : float
        Time to maturity in years
    instrument_type : InstrumentType
        Type of instrument for classification
    """

    notional: float
    maturity: float
    instrument_type: InstrumentType

    @property
    @abstractmethod
    def pricing_currency(self) -> str:
        """Currency ``npv`` and ``cash_flows`` are expressed in."""

    @abstractmethod
    def currencies(self) -> tuple[str, ...]:
        """Currencies whose market data the instrument needs."""

    @abstractmethod
    def npv(self, market: PricingMarket) -> float:
        """
        Value at the market's evaluation time.

        Parameters
        ----------
        market : PricingMarket
            Today's market or a simulated market

        Returns
        -------
        float
            Net present value in ``pricing_currency``
        """

    @abstractmethod
    def cash_flows(self, market: PricingMarket, t_start: Year, t_end: Year) -> float:
        """
        Undiscounted net amount paid in ``(t_start, t_end]``.

        Floating amounts not yet fixed are projected off ``market``.
        """

    @abstractmethod
    def get_cash_flow_dates(self) -> FloatArray:
        """Payment times in years."""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Convert instrument to dictionary for serialization."""

    def is_expired(self, t: Year) -> bool:
        """True once all cash flows are paid."""
        return t >= self.maturity

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"notional={self.notional:,.0f}, "
            f"maturity={self.maturity:.2f}Y)"
        )


def payments_in(dates: FloatArray, t_start: Year, t_end: Year) -> FloatArray:
    """Boolean mask of payment times in ``(t_start, t_end]``."""
    dates = np.asarray(dates)
    return (dates > t_start) & (dates <= t_end)
