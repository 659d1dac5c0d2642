"""
Interest Rate Swap instrument implementation.

Single-curve fixed-for-floating swap. The floating leg is valued at par
from the later of the evaluation time and the swap start, ignoring the
fixing of the running period, so the swap value only needs discount factors
of the swap currency seen from the evaluation time.
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from xva_cube._types import FloatArray, Year
from xva_cube.instruments.base import Instrument, InstrumentType, payments_in
from xva_cube.market.todays_market import PricingMarket


@dataclass
class IRSwap(Instrument):
    """
    Interest Rate Swap instrument.

    A payer swap pays fixed and receives floating.
    A receiver swap receives fixed and pays floating.

    At evaluation time t:
    - Fixed leg: N × K × Σ τᵢ × P(t, Tᵢ) over remaining payments
    - Float leg: N × [P(t, max(t, T_start)) - P(t, T_maturity)]

    Attributes
    ----------
    notional : float
        Notional amount
    fixed_rate : float
        Fixed coupon rate (decimal, e.g., 0.02 for 2%)
    maturity : float
        Swap maturity in years
    currency : str
        Currency of both legs
    pay_fixed : bool
        True for payer swap (pay fixed, receive float)
    payment_freq : float
        Payment frequency in years (0.5 = semi-annual)
    start : float
        Swap start in years (default 0)

    Example
    -------
    >>> swap = IRSwap(notional=10_000_000, fixed_rate=0.02, maturity=5.0)
    >>> swap.npv(todays_market)
    """

    notional: float
    fixed_rate: float
    maturity: float
    currency: str = "USD"
    pay_fixed: bool = True
    payment_freq: float = 0.5
    start: float = 0.0
    instrument_type: InstrumentType = field(default=InstrumentType.IRS, init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate swap parameters."""
        if self.notional <= 0:
            raise ValueError(f"Notional must be positive, got {self.notional}")
        if self.maturity <= 0:
            raise ValueError(f"Maturity must be positive, got {self.maturity}")
        if self.payment_freq <= 0 or self.payment_freq > 1:
            raise ValueError(f"Payment frequency must be in (0, 1], got {self.payment_freq}")
        if self.start < 0:
            raise ValueError(f"Start date must be non-negative, got {self.start}")
        if self.start >= self.maturity:
            raise ValueError(f"Start ({self.start}) must be before maturity ({self.maturity})")

    @property
    def pricing_currency(self) -> str:
        return self.currency

    def currencies(self) -> tuple[str, ...]:
        return (self.currency,)

    def get_cash_flow_dates(self) -> FloatArray:
        """Payment times from the first period end to maturity."""
        n_payments = int(round((self.maturity - self.start) / self.payment_freq, 9))
        dates = self.start + np.arange(1, n_payments + 1) * self.payment_freq
        if len(dates) == 0 or dates[-1] < self.maturity - 1e-12:
            dates = np.append(dates, self.maturity)
        return dates

    def _accruals(self, dates: FloatArray) -> FloatArray:
        return np.diff(np.concatenate([[self.start], dates]))

    def _sign(self) -> float:
        return 1.0 if self.pay_fixed else -1.0

    def npv(self, market: PricingMarket) -> float:
        t = market.evaluation_time
        dates = self.get_cash_flow_dates()
        alive = dates > t
        if not alive.any():
            return 0.0

        discount = np.array([market.discount(self.currency, d) for d in dates[alive]])
        pv_fixed = self.notional * self.fixed_rate * (self._accruals(dates)[alive] * discount).sum()
        pv_float = self.notional * (
            market.discount(self.currency, max(t, self.start)) - discount[-1]
        )
        return float(self._sign() * (pv_float - pv_fixed))

    def cash_flows(self, market: PricingMarket, t_start: Year, t_end: Year) -> float:
        dates = self.get_cash_flow_dates()
        paid = payments_in(dates, t_start, t_end)
        if not paid.any():
            return 0.0

        accruals = self._accruals(dates)
        period_starts = dates - accruals
        t = market.evaluation_time
        net = 0.0
        for start, end, tau in zip(period_starts[paid], dates[paid], accruals[paid]):
            # Forward over the period, projected from the evaluation time
            df_start = market.discount(self.currency, max(start, t))
            df_end = market.discount(self.currency, max(end, t))
            float_amount = self.notional * (df_start / df_end - 1.0)
            fixed_amount = self.notional * self.fixed_rate * tau
            net += float_amount - fixed_amount
        return float(self._sign() * net)

    def par_rate(self, market: PricingMarket) -> float:
        """Fixed rate that sets the value at the evaluation time to zero."""
        dates = self.get_cash_flow_dates()
        t = market.evaluation_time
        alive = dates > t
        if not alive.any():
            return self.fixed_rate
        discount = np.array([market.discount(self.currency, d) for d in dates[alive]])
        annuity = (self._accruals(dates)[alive] * discount).sum()
        float_leg = market.discount(self.currency, max(t, self.start)) - discount[-1]
        return float(float_leg / annuity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.instrument_type.value,
            "notional": self.notional,
            "fixed_rate": self.fixed_rate,
            "maturity": self.maturity,
            "currency": self.currency,
            "pay_fixed": self.pay_fixed,
            "payment_freq": self.payment_freq,
            "start": self.start,
        }

    @classmethod
    def from_config(cls, config: "IRSwapConfig") -> "IRSwap":  # noqa: F821
        return cls(
            notional=config.notional,
            fixed_rate=config.fixed_rate,
            maturity=config.maturity_years,
            currency=config.currency,
            pay_fixed=config.pay_fixed,
            payment_freq=config.payment_frequency,
        )
