"""
Cross-asset stochastic model.

One Ornstein-Uhlenbeck (Vasicek) short-rate factor per currency and one
geometric Brownian motion FX factor per foreign currency, driven by
correlated Brownian motions. The model is immutable once built: the
valuation engine and the DIM calculator share the same instance and
neither can alter it.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np

from xva_cube._types import FloatArray, Year
from xva_cube.model.correlation import FactorCorrelation


@dataclass(frozen=True)
class IrFactor:
    """
    Vasicek short-rate factor of one currency.

    The short rate follows the SDE:
        dr = κ(θ - r) dt + σ dW

    Attributes
    ----------
    currency : str
        Currency of the rate
    kappa : float
        Mean reversion speed (higher = faster reversion)
    theta : float
        Long-term mean rate
    sigma : float
        Volatility of the short rate
    r0 : float
        Initial short rate at t=0

    Example
    -------
    >>> factor = IrFactor("USD", kappa=0.1, theta=0.02, sigma=0.01, r0=0.02)
    >>> round(factor.bond_price(0.02, 1.0), 4)
    0.9802
    """

    currency: str
    kappa: float = 0.1
    theta: float = 0.02
    sigma: float = 0.01
    r0: float = 0.02

    def __post_init__(self) -> None:
        """Validate model parameters."""
        if self.kappa <= 0:
            raise ValueError(f"kappa must be positive, got {self.kappa}")
        if self.sigma < 0:
            raise ValueError(f"sigma must be non-negative, got {self.sigma}")

    def expected_rate(self, t: Year) -> float:
        """E[r(t)] = θ + (r₀ - θ) exp(-κt)."""
        return float(self.theta + (self.r0 - self.theta) * np.exp(-self.kappa * t))

    def _b(self, tau: Year | FloatArray) -> FloatArray:
        return (1.0 - np.exp(-self.kappa * np.asarray(tau, dtype=float))) / self.kappa

    def bond_price(self, r: float | FloatArray, tau: Year | FloatArray) -> float | FloatArray:
        """
        Zero-coupon bond price P(t, t + τ) given the short rate at t.

        Notes
        -----
        P = A(τ) exp(-B(τ) r) with
            B(τ) = (1 - exp(-κτ)) / κ
            ln A(τ) = (θ - σ²/2κ²)(B(τ) - τ) - σ² B(τ)² / 4κ
        """
        tau = np.maximum(np.asarray(tau, dtype=float), 0.0)
        b = self._b(tau)
        log_a = (self.theta - self.sigma**2 / (2 * self.kappa**2)) * (b - tau) - (
            self.sigma**2 * b**2 / (4 * self.kappa)
        )
        price = np.exp(log_a - b * np.asarray(r, dtype=float))
        return float(price) if np.ndim(price) == 0 else price

    def zero_rate(self, tau: Year) -> float:
        """Model zero rate to τ seen from t=0."""
        if tau <= 0:
            return self.r0
        return float(-np.log(self.bond_price(self.r0, tau)) / tau)

    def fitted_theta(self, tau: Year, market_zero_rate: float) -> float:
        """
        Long-term mean reproducing a market zero rate at tenor τ.

        ln P is linear in θ, so the fit is closed form.
        """
        b = float(self._b(tau))
        if np.isclose(b, tau):
            raise ValueError(f"Calibration tenor {tau} too short for kappa {self.kappa}")
        target = -market_zero_rate * tau
        convexity = self.sigma**2 * b**2 / (4 * self.kappa)
        return float(
            self.sigma**2 / (2 * self.kappa**2) + (target + convexity + b * self.r0) / (b - tau)
        )

    def transition(self, r: FloatArray, dt: float, z: FloatArray) -> FloatArray:
        """
        Exact OU transition over ``dt``.

        r(t+dt) | r(t) ~ N(θ + (r(t) - θ) e^{-κdt}, σ² (1 - e^{-2κdt}) / 2κ)
        """
        decay = np.exp(-self.kappa * dt)
        std = np.sqrt(self.sigma**2 / (2 * self.kappa) * (1.0 - np.exp(-2 * self.kappa * dt)))
        return self.theta + (r - self.theta) * decay + std * z

    @classmethod
    def from_config(cls, currency: str, config: "OUModelConfig") -> "IrFactor":  # noqa: F821
        return cls(
            currency=currency,
            kappa=config.kappa,
            theta=config.theta,
            sigma=config.sigma,
            r0=config.initial_rate,
        )


@dataclass(frozen=True)
class FxFactor:
    """
    GBM FX factor: units of the domestic currency per unit of ``currency``.

    dS/S = (r_d - r_f) dt + σ dW

    Attributes
    ----------
    currency : str
        Foreign currency
    spot : float
        FX spot at t=0
    sigma : float
        FX volatility
    """

    currency: str
    spot: float
    sigma: float

    def __post_init__(self) -> None:
        if self.spot <= 0:
            raise ValueError(f"FX spot must be positive, got {self.spot}")
        if self.sigma < 0:
            raise ValueError(f"FX volatility must be non-negative, got {self.sigma}")

    def transition(
        self,
        spot: FloatArray,
        r_domestic: FloatArray,
        r_foreign: FloatArray,
        dt: float,
        z: FloatArray,
    ) -> FloatArray:
        """Log-Euler step of the FX rate."""
        drift = (r_domestic - r_foreign - 0.5 * self.sigma**2) * dt
        return spot * np.exp(drift + self.sigma * np.sqrt(dt) * z)


@dataclass(frozen=True, eq=False)
class CrossAssetModel:
    """
    Immutable calibrated cross-asset model.

    Attributes
    ----------
    domestic_currency : str
        Numeraire currency
    ir : Mapping[str, IrFactor]
        Rate factor per currency
    fx : Mapping[str, FxFactor]
        FX factor per foreign currency
    correlation : FactorCorrelation
        Correlation of the factor drivers, ``IR:<CCY>`` then ``FX:<CCY>``
    calibrated : bool
        Whether the factors were fitted to today's market without failures
    calibration_errors : tuple[str, ...]
        Calibration failures tolerated under ``continue_on_error``
    """

    domestic_currency: str
    ir: Mapping[str, IrFactor]
    fx: Mapping[str, FxFactor]
    correlation: FactorCorrelation
    calibrated: bool = False
    calibration_errors: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "ir", MappingProxyType(dict(self.ir)))
        object.__setattr__(self, "fx", MappingProxyType(dict(self.fx)))
        object.__setattr__(self, "calibration_errors", tuple(self.calibration_errors))
        if self.domestic_currency not in self.ir:
            raise ValueError(f"No rate factor for domestic currency {self.domestic_currency}")
        expected = [f"IR:{c}" for c in self.ir] + [f"FX:{c}" for c in self.fx]
        if list(self.correlation.factors) != expected:
            raise ValueError(
                f"Correlation factors {list(self.correlation.factors)} do not match {expected}"
            )

    @property
    def currencies(self) -> tuple[str, ...]:
        return tuple(self.ir)

    @property
    def factor_names(self) -> tuple[str, ...]:
        return self.correlation.factors

    def discount_bond(self, currency: str, r: float | FloatArray, tau: Year) -> float | FloatArray:
        """Zero-coupon bond price in ``currency`` given its short rate."""
        return self.ir[currency].bond_price(r, tau)
